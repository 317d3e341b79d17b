from sqlalchemy import Column, String, Text, JSON, DateTime, Integer, Boolean
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso, new_id, from_cents


class Product(Base):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, default=new_id)

    name = Column(String(255), nullable=False)
    name_ar = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    description_ar = Column(Text, nullable=True)
    category = Column(String(120), nullable=True, index=True)
    category_ar = Column(String(120), nullable=True)
    image = Column(Text, nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)
    in_stock = Column(Boolean, nullable=False, default=True)

    # Seller attribution; empty for house products
    seller_id = Column(String(128), nullable=True, index=True)
    seller_name = Column(String(255), nullable=True)
    store_name = Column(String(255), nullable=True)

    extra = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "nameAr": self.name_ar or "",
            "description": self.description or "",
            "descriptionAr": self.description_ar or "",
            "category": self.category or "",
            "categoryAr": self.category_ar or "",
            "image": self.image or "",
            "price": from_cents(self.price_cents),
            "inStock": bool(self.in_stock),
            "sellerId": self.seller_id,
            "sellerName": self.seller_name,
            "storeName": self.store_name,
            **({"extra": self.extra} if self.extra else {}),
            "createdAt": iso(self.created_at),
        }
