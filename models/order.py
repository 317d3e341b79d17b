"""
Orders snapshot the priced cart at checkout time.
Amounts and items are frozen after creation; only status fields move.
"""
from sqlalchemy import Column, String, JSON, DateTime, Integer, Boolean
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso, new_id, from_cents

ORDER_PENDING = "pending"
ORDER_PAID = "paid"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_PENDING, ORDER_PAID, ORDER_CANCELLED)

SELLER_ORDER_STATUSES = ("preparing", "shipping", "delivered")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=False, index=True)
    seller_ids = Column(JSON, nullable=False, default=list)
    items = Column(JSON, nullable=False, default=list)  # [{id,name,nameAr,price,image,quantity,category,sellerId,...}]

    currency = Column(String(10), nullable=False, default="USD")
    subtotal_cents = Column(Integer, nullable=False, default=0)
    discount_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    coupon_code = Column(String(64), nullable=True)

    status = Column(String(20), nullable=False, default=ORDER_PENDING, index=True)
    payment_session_id = Column(String(255), nullable=True, index=True)
    free_delivery_eligible = Column(Boolean, nullable=False, default=False)
    free_delivery_threshold = Column(Integer, nullable=True)

    # Per-seller fulfilment: {sellerId: preparing|shipping|delivered}
    seller_statuses = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self):
        total = from_cents(self.total_cents)
        return {
            "id": self.id,
            "userId": self.user_id,
            "sellerIds": list(self.seller_ids or []),
            "items": list(self.items or []),
            "currency": self.currency,
            "subtotal": from_cents(self.subtotal_cents),
            "discountAmount": from_cents(self.discount_cents),
            "couponCode": self.coupon_code,
            "total": total,
            "totalAfterDiscount": total,
            "status": self.status,
            "paymentSessionId": self.payment_session_id,
            "freeDeliveryEligible": bool(self.free_delivery_eligible),
            "freeDeliveryThreshold": self.free_delivery_threshold,
            "sellerStatuses": dict(self.seller_statuses or {}),
            "createdAt": iso(self.created_at),
            "paidAt": iso(self.paid_at),
        }
