"""
Customer profile mirrored from the auth provider.
Created lazily the first time a principal is seen.
"""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso


class UserProfile(Base):
    __tablename__ = "users"

    # Primary key - Firebase Auth UID
    uid = Column(String(128), primary_key=True, index=True)

    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(120), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def to_dict(self):
        """Convert to dict for API responses"""
        return {
            "uid": self.uid,
            "email": self.email,
            "name": self.display_name or "",
            "phone": self.phone or "",
            "address": self.address or "",
            "city": self.city or "",
            "createdAt": iso(self.created_at),
        }
