from sqlalchemy import Column, String, Text, DateTime, Integer
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso, new_id


class Review(Base):
    """Customer review of a product."""
    __tablename__ = "reviews"

    id = Column(String(64), primary_key=True, default=new_id)
    product_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    user_name = Column(String(255), nullable=False, default="")
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "userId": self.user_id,
            "userName": self.user_name or "",
            "rating": self.rating,
            "comment": self.comment or "",
            "createdAt": iso(self.created_at),
        }
