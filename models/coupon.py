from sqlalchemy import Column, String, JSON, DateTime, Integer, Boolean, Float, UniqueConstraint
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso, new_id

COUPON_PERCENT = "percent"
COUPON_FIXED = "fixed"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(String(64), primary_key=True, default=new_id)
    code = Column(String(64), unique=True, index=True, nullable=False)  # stored uppercase
    type = Column(String(16), nullable=False, default=COUPON_PERCENT)
    # percent: 0..100, fixed: currency amount
    value = Column(Float, nullable=False, default=0.0)
    active = Column(Boolean, nullable=False, default=True)

    usage_limit = Column(Integer, nullable=True)
    usage_limit_per_customer = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)

    allowed_product_ids = Column(JSON, nullable=False, default=list)
    allowed_categories = Column(JSON, nullable=False, default=list)  # lowercased

    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "type": self.type,
            "value": self.value,
            "active": bool(self.active),
            "usageLimit": self.usage_limit,
            "usageLimitPerCustomer": self.usage_limit_per_customer,
            "usageCount": self.usage_count or 0,
            "allowedProductIds": list(self.allowed_product_ids or []),
            "allowedCategories": list(self.allowed_categories or []),
            "startsAt": iso(self.starts_at),
            "endsAt": iso(self.ends_at),
            "lastUsedAt": iso(self.last_used_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class CouponUsage(Base):
    """One row per (coupon, customer) redemption counter."""
    __tablename__ = "coupon_usage"
    __table_args__ = (UniqueConstraint("coupon_id", "user_id", name="uq_coupon_usage_coupon_user"),)

    id = Column(String(200), primary_key=True)  # "<couponId>_<userId>"
    coupon_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    usage_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "couponId": self.coupon_id,
            "userId": self.user_id,
            "usageCount": self.usage_count or 0,
            "updatedAt": iso(self.updated_at),
        }
