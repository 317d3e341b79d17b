from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands timezone columns back naive; treat those as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def new_id() -> str:
    return uuid.uuid4().hex


def to_cents(amount) -> int:
    """Currency amount (float, str or Decimal) to integer minor units, rounding half up."""
    if amount is None or amount == "":
        return 0
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return float((Decimal(int(cents or 0)) / 100).quantize(Decimal("0.01")))
