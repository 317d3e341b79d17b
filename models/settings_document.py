from sqlalchemy import Column, String, JSON, DateTime, Integer
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso


class SettingsDocument(Base):
    """
    Singleton content documents addressed by path, e.g. 'settings/shipping' or 'pages/abayas'.
    `data` holds the validated, schema-shaped payload.
    """
    __tablename__ = "settings_documents"

    path = Column(String(120), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    schema_version = Column(Integer, nullable=False, default=1)
    updated_by = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "path": self.path,
            "data": dict(self.data or {}),
            "schemaVersion": self.schema_version,
            "updatedAt": iso(self.updated_at),
        }
