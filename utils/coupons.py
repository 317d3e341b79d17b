"""
Coupon writes and redemption counters.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.base import as_utc, utcnow
from models.coupon import Coupon, CouponUsage, COUPON_PERCENT, COUPON_FIXED


class CouponValidationError(ValueError):
    pass


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def _parse_dt(value) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")))
    except ValueError:
        raise CouponValidationError(f"Invalid date: {value}")


def _optional_limit(value, field: str) -> Optional[int]:
    if value in (None, "", 0):
        return None
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise CouponValidationError(f"{field} must be a whole number")
    if n < 0:
        raise CouponValidationError(f"{field} must be >= 0")
    return n or None


def apply_coupon_fields(coupon: Coupon, data: Dict[str, Any], creating: bool = False) -> Coupon:
    """Copy camelCase fields onto the coupon, validating as a whole. Raises CouponValidationError."""
    if "code" in data or creating:
        code = normalize_code(data.get("code"))
        if not code:
            raise CouponValidationError("Code is required")
        coupon.code = code

    ctype = str(data.get("type", coupon.type or COUPON_PERCENT) or "").strip().lower()
    if ctype not in (COUPON_PERCENT, COUPON_FIXED):
        raise CouponValidationError("Type must be 'percent' or 'fixed'")
    coupon.type = ctype

    if "value" in data or creating:
        try:
            coupon.value = float(data.get("value") or 0)
        except (TypeError, ValueError):
            raise CouponValidationError("Value must be a number")
    value = float(coupon.value or 0)
    if value < 0:
        raise CouponValidationError("Value must be >= 0")
    if ctype == COUPON_PERCENT and value > 100:
        raise CouponValidationError("Percent value must be between 0 and 100")

    if "active" in data:
        coupon.active = bool(data.get("active"))
    elif creating:
        coupon.active = True
    if "usageLimit" in data:
        coupon.usage_limit = _optional_limit(data.get("usageLimit"), "usageLimit")
    if "usageLimitPerCustomer" in data:
        coupon.usage_limit_per_customer = _optional_limit(data.get("usageLimitPerCustomer"), "usageLimitPerCustomer")
    if "allowedProductIds" in data:
        coupon.allowed_product_ids = [str(p).strip() for p in (data.get("allowedProductIds") or []) if str(p).strip()]
    elif creating:
        coupon.allowed_product_ids = []
    if "allowedCategories" in data:
        coupon.allowed_categories = [str(c).strip().lower() for c in (data.get("allowedCategories") or []) if str(c).strip()]
    elif creating:
        coupon.allowed_categories = []
    if "startsAt" in data:
        coupon.starts_at = _parse_dt(data.get("startsAt"))
    if "endsAt" in data:
        coupon.ends_at = _parse_dt(data.get("endsAt"))
    if coupon.starts_at and coupon.ends_at and as_utc(coupon.ends_at) < as_utc(coupon.starts_at):
        raise CouponValidationError("endsAt must be after startsAt")
    if creating:
        coupon.usage_count = 0
    return coupon


def find_coupon(db: Session, code: Optional[str]) -> Optional[Coupon]:
    code = normalize_code(code)
    if not code:
        return None
    return db.query(Coupon).filter(Coupon.code == code).first()


def usage_id(coupon_id: str, user_id: str) -> str:
    return f"{coupon_id}_{user_id}"


def customer_usage_count(db: Session, coupon_id: str, user_id: Optional[str]) -> int:
    if not user_id:
        return 0
    row = db.query(CouponUsage).filter(CouponUsage.id == usage_id(coupon_id, user_id)).first()
    return int(row.usage_count or 0) if row else 0


def record_coupon_usage(db: Session, coupon_id: str, user_id: Optional[str]) -> None:
    """Increment the global and per-customer counters in SQL so concurrent checkouts both count."""
    now = utcnow()
    db.query(Coupon).filter(Coupon.id == coupon_id).update(
        {Coupon.usage_count: Coupon.usage_count + 1, Coupon.last_used_at: now},
        synchronize_session=False,
    )
    db.commit()
    if not user_id:
        return

    uid = usage_id(coupon_id, user_id)
    updated = db.query(CouponUsage).filter(CouponUsage.id == uid).update(
        {CouponUsage.usage_count: CouponUsage.usage_count + 1, CouponUsage.updated_at: now},
        synchronize_session=False,
    )
    if updated:
        db.commit()
        return
    db.add(CouponUsage(id=uid, coupon_id=coupon_id, user_id=user_id, usage_count=1, updated_at=now))
    try:
        db.commit()
    except IntegrityError:
        # Another checkout inserted the row first
        db.rollback()
        db.query(CouponUsage).filter(CouponUsage.id == uid).update(
            {CouponUsage.usage_count: CouponUsage.usage_count + 1, CouponUsage.updated_at: now},
            synchronize_session=False,
        )
        db.commit()
