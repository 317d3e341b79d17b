"""
Seller (merchant) accounts.
approval_status is the single source of truth; `approved` is derived from it.
"""
from sqlalchemy import Column, String, Text, DateTime, Integer
from sqlalchemy.sql import func
from core.database import Base
from models.base import utcnow, iso, from_cents

SELLER_PENDING = "pending"
SELLER_APPROVED = "approved"
SELLER_REJECTED = "rejected"
SELLER_STATUSES = (SELLER_PENDING, SELLER_APPROVED, SELLER_REJECTED)


class SellerAccount(Base):
    __tablename__ = "sellers"

    # Primary key - UID of the synthesized seller credential
    uid = Column(String(128), primary_key=True, index=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)  # real contact email
    auth_email = Column(String(255), unique=True, index=True, nullable=False)  # <username>@seller domain
    username = Column(String(120), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    store_name = Column(String(255), nullable=True)
    store_category = Column(String(120), nullable=True)
    document_url = Column(Text, nullable=True)
    document_key = Column(Text, nullable=True)

    approval_status = Column(String(20), nullable=False, default=SELLER_PENDING, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)

    # Sum of non-rejected withdrawal requests; raised only through a conditional UPDATE
    withdrawn_cents = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    @property
    def approved(self) -> bool:
        return self.approval_status == SELLER_APPROVED

    def to_dict(self):
        """Convert to dict for API responses"""
        return {
            "uid": self.uid,
            "name": self.name,
            "email": self.email or "",
            "phone": self.phone or "",
            "storeName": self.store_name or "",
            "storeCategory": self.store_category or "",
            "documentUrl": self.document_url or "",
            "username": self.username,
            "createdAt": iso(self.created_at),
            "approvalStatus": self.approval_status,
            "approved": self.approved,
            "approvedAt": iso(self.approved_at),
            "rejectedAt": iso(self.rejected_at),
            "withdrawn": from_cents(self.withdrawn_cents or 0),
        }
