"""
Cart pricing: subtotal, coupon discount and free-delivery eligibility.

All arithmetic is in integer cents. Amounts are frozen onto the order at checkout and never re-derived.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from models.base import as_utc, utcnow, from_cents, to_cents
from models.coupon import COUPON_PERCENT, COUPON_FIXED


@dataclass
class CartLine:
    product_id: str
    unit_price_cents: int
    quantity: int
    name: str = ""
    name_ar: str = ""
    image: str = ""
    category: str = ""
    seller_id: Optional[str] = None
    seller_name: Optional[str] = None
    store_name: Optional[str] = None

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_order_item(self) -> dict:
        """Snapshot stored on the order; price is presented as a two-decimal amount."""
        return {
            "id": self.product_id,
            "name": self.name,
            "nameAr": self.name_ar,
            "price": from_cents(self.unit_price_cents),
            "image": self.image,
            "quantity": self.quantity,
            "category": self.category,
            "sellerId": self.seller_id,
            "sellerName": self.seller_name,
            "storeName": self.store_name,
        }


@dataclass
class PricedCart:
    lines: List[CartLine]
    subtotal_cents: int
    eligible_subtotal_cents: int = 0
    discount_cents: int = 0
    total_cents: int = 0
    total_quantity: int = 0
    free_delivery_eligible: bool = False
    free_delivery_threshold: int = 3
    coupon_code: Optional[str] = None
    coupon_id: Optional[str] = None
    coupon_rejection: Optional[str] = None
    seller_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subtotal": from_cents(self.subtotal_cents),
            "eligibleSubtotal": from_cents(self.eligible_subtotal_cents),
            "discountAmount": from_cents(self.discount_cents),
            "total": from_cents(self.total_cents),
            "totalQuantity": self.total_quantity,
            "freeDeliveryEligible": self.free_delivery_eligible,
            "freeDeliveryThreshold": self.free_delivery_threshold,
            "couponCode": self.coupon_code,
            "couponRejection": self.coupon_rejection,
            "sellerIds": list(self.seller_ids),
        }


def _normalized(values) -> List[str]:
    return [str(v).strip().lower() for v in (values or []) if str(v or "").strip()]


def coupon_rejection_reason(coupon, customer_usage_count: int = 0, now: Optional[datetime] = None) -> Optional[str]:
    """None when the coupon may be applied; otherwise a short reason code."""
    now = as_utc(now) or utcnow()
    if coupon.active is not None and not coupon.active:
        return "inactive"
    starts_at = as_utc(coupon.starts_at)
    ends_at = as_utc(coupon.ends_at)
    if starts_at and now < starts_at:
        return "not_started"
    if ends_at and now > ends_at:
        return "expired"
    if coupon.usage_limit and (coupon.usage_count or 0) >= coupon.usage_limit:
        return "usage_limit_reached"
    if coupon.usage_limit_per_customer and (customer_usage_count or 0) >= coupon.usage_limit_per_customer:
        return "customer_limit_reached"
    return None


def is_line_eligible(line: CartLine, coupon) -> bool:
    allowed_ids = _normalized(coupon.allowed_product_ids)
    allowed_categories = _normalized(coupon.allowed_categories)
    if not allowed_ids and not allowed_categories:
        return True
    return (line.product_id or "").lower() in allowed_ids or (line.category or "").lower() in allowed_categories


def eligible_subtotal_cents(lines: Sequence[CartLine], coupon) -> int:
    return sum(line.line_total_cents for line in lines if is_line_eligible(line, coupon))


def compute_discount_cents(coupon, eligible_cents: int) -> int:
    if eligible_cents <= 0:
        return 0
    value = Decimal(str(coupon.value or 0))
    if value <= 0:
        return 0
    if coupon.type == COUPON_PERCENT:
        raw = (Decimal(eligible_cents) * value / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return min(int(raw), eligible_cents)
    if coupon.type == COUPON_FIXED:
        return min(to_cents(value), eligible_cents)
    return 0


def is_free_delivery(total_quantity: int, threshold: int) -> bool:
    """The threshold is a floor: any cart at or above it qualifies."""
    return total_quantity >= threshold


def price_cart(
    lines: Sequence[CartLine],
    coupon=None,
    customer_usage_count: int = 0,
    free_delivery_threshold: int = 3,
    now: Optional[datetime] = None,
) -> PricedCart:
    lines = list(lines)
    subtotal = sum(line.line_total_cents for line in lines)
    total_quantity = sum(max(0, line.quantity) for line in lines)

    seller_ids: List[str] = []
    for line in lines:
        if line.seller_id and line.seller_id not in seller_ids:
            seller_ids.append(line.seller_id)

    priced = PricedCart(
        lines=lines,
        subtotal_cents=subtotal,
        total_cents=subtotal,
        total_quantity=total_quantity,
        free_delivery_eligible=is_free_delivery(total_quantity, free_delivery_threshold),
        free_delivery_threshold=free_delivery_threshold,
        seller_ids=seller_ids,
    )
    if coupon is None:
        return priced

    reason = coupon_rejection_reason(coupon, customer_usage_count, now)
    eligible = eligible_subtotal_cents(lines, coupon)
    if reason is None and eligible <= 0:
        reason = "not_applicable"
    if reason:
        priced.coupon_rejection = reason
        return priced

    discount = compute_discount_cents(coupon, eligible)
    priced.eligible_subtotal_cents = eligible
    priced.discount_cents = discount
    priced.total_cents = max(0, subtotal - discount)
    priced.coupon_code = coupon.code
    priced.coupon_id = coupon.id
    return priced