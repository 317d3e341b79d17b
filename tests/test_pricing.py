from datetime import timedelta

import pytest

from models.base import utcnow
from models.coupon import Coupon, COUPON_FIXED, COUPON_PERCENT
from utils.pricing import CartLine, compute_discount_cents, is_free_delivery, price_cart


def coupon(**kw):
    data = dict(
        id="c1",
        code="SAVE",
        type=COUPON_PERCENT,
        value=20,
        active=True,
        usage_limit=None,
        usage_limit_per_customer=None,
        usage_count=0,
        allowed_product_ids=[],
        allowed_categories=[],
        starts_at=None,
        ends_at=None,
    )
    data.update(kw)
    return Coupon(**data)


def line(pid="p1", cents=10000, qty=1, category="abayas", seller_id=None):
    return CartLine(product_id=pid, unit_price_cents=cents, quantity=qty, category=category, seller_id=seller_id)


def test_percent_twenty_on_hundred():
    priced = price_cart([line(cents=10000)], coupon(value=20))
    assert priced.discount_cents == 2000
    assert priced.total_cents == 8000
    assert priced.to_dict()["discountAmount"] == 20.0
    assert priced.to_dict()["total"] == 80.0


@pytest.mark.parametrize("value,expected", [(5, 500), (100, 10000), (250, 10000), (0, 0)])
def test_fixed_discount_never_exceeds_eligible(value, expected):
    priced = price_cart([line(cents=10000)], coupon(type=COUPON_FIXED, value=value))
    assert priced.discount_cents == expected
    assert priced.discount_cents <= priced.subtotal_cents
    assert priced.total_cents >= 0


def test_fixed_discount_capped_at_eligible_lines_only():
    c = coupon(type=COUPON_FIXED, value=80, allowed_categories=["fabrics"])
    priced = price_cart([line("a", 10000, category="abayas"), line("f", 3000, category="Fabrics")], c)
    assert priced.eligible_subtotal_cents == 3000
    assert priced.discount_cents == 3000
    assert priced.total_cents == 10000


def test_percent_rounds_half_up():
    assert compute_discount_cents(coupon(value=12.5), 1004) == 126


@pytest.mark.parametrize("quantity,eligible", [(2, False), (3, True), (4, True), (10, True)])
def test_free_delivery_threshold_is_a_floor(quantity, eligible):
    assert is_free_delivery(quantity, 3) is eligible
    priced = price_cart([line(qty=quantity)], free_delivery_threshold=3)
    assert priced.free_delivery_eligible is eligible


def test_product_restriction_with_no_matching_lines():
    priced = price_cart([line("p1")], coupon(allowed_product_ids=["other"]))
    assert priced.coupon_rejection == "not_applicable"
    assert priced.discount_cents == 0
    assert priced.total_cents == priced.subtotal_cents


@pytest.mark.parametrize(
    "overrides,usage,reason",
    [
        ({"active": False}, 0, "inactive"),
        ({"starts_at": utcnow() + timedelta(days=1)}, 0, "not_started"),
        ({"ends_at": utcnow() - timedelta(days=1)}, 0, "expired"),
        ({"usage_limit": 5, "usage_count": 5}, 0, "usage_limit_reached"),
        ({"usage_limit_per_customer": 1}, 1, "customer_limit_reached"),
    ],
)
def test_coupon_rejections(overrides, usage, reason):
    priced = price_cart([line()], coupon(**overrides), customer_usage_count=usage)
    assert priced.coupon_rejection == reason
    assert priced.discount_cents == 0
    assert priced.coupon_code is None


def test_seller_ids_are_collected_once_in_order():
    priced = price_cart([line("a", seller_id="s2"), line("b", seller_id="s1"), line("c", seller_id="s2"), line("d")])
    assert priced.seller_ids == ["s2", "s1"]
