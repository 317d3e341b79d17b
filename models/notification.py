from sqlalchemy import Column, String, Text, DateTime, Boolean
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso, new_id


class Notification(Base):
    """In-app notification shown in the customer's inbox."""
    __tablename__ = "notifications"

    id = Column(String(64), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False, default="")
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "body": self.body or "",
            "isRead": bool(self.is_read),
            "createdAt": iso(self.created_at),
        }
