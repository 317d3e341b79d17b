from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso, new_id, from_cents

WITHDRAWAL_PENDING = "pending"
WITHDRAWAL_APPROVED = "approved"
WITHDRAWAL_REJECTED = "rejected"
WITHDRAWAL_STATUSES = (WITHDRAWAL_PENDING, WITHDRAWAL_APPROVED, WITHDRAWAL_REJECTED)


class Withdrawal(Base):
    __tablename__ = "withdrawals"

    id = Column(String(64), primary_key=True, default=new_id)
    seller_id = Column(String(128), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=WITHDRAWAL_PENDING, index=True)
    reviewed_by = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "sellerId": self.seller_id,
            "amount": from_cents(self.amount_cents),
            "status": self.status,
            "reviewedBy": self.reviewed_by,
            "createdAt": iso(self.created_at),
        }
