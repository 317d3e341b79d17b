from sqlalchemy import Column, String, JSON, DateTime
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso


class AdminRole(Base):
    """
    Permission grant for a back-office principal.
    Keyed by lowercased email; `roles` never contains the implicit 'owner' tag.
    """
    __tablename__ = "admin_roles"

    email = Column(String(255), primary_key=True, index=True)
    roles = Column(JSON, nullable=False, default=list)
    updated_by = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.email,
            "email": self.email,
            "roles": list(self.roles or []),
            "updatedBy": self.updated_by,
            "updatedAt": iso(self.updated_at),
        }
