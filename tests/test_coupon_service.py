from datetime import timedelta
from decimal import Decimal

import pytest

from storefront_pricing.errors import CouponError
from storefront_pricing.model import Coupon
from storefront_pricing.model.rules import CouponRule, PERCENTAGE, FIXED
from storefront_pricing.services.coupon_service import (
    coupon_discount_amount, check_coupon, apply_coupon,
    create_coupon_from_payload, find_coupon, mark_coupon_used,
)

from .conftest import NOW


def coupon(dtype, value, **kw):
    kw.setdefault("code", "save")
    return CouponRule(type=dtype, value=Decimal(str(value)), **kw)


def test_percentage_coupon_takes_share_of_order():
    assert coupon_discount_amount(coupon(PERCENTAGE, 10), "80.00") == Decimal("8.00")


def test_percentage_coupon_is_capped():
    c = coupon(PERCENTAGE, 50, max_discount_amount=Decimal("15"))
    assert coupon_discount_amount(c, "100.00") == Decimal("15.00")
    assert coupon_discount_amount(c, "20.00") == Decimal("10.00")


def test_fixed_coupon_is_face_value_but_never_more_than_order():
    assert coupon_discount_amount(coupon(FIXED, 5), "40.00") == Decimal("5.00")
    assert coupon_discount_amount(coupon(FIXED, 50), "12.34") == Decimal("12.34")


def test_coupon_discount_rounds_to_cents():
    assert coupon_discount_amount(coupon(PERCENTAGE, 15), "33.33") == Decimal("5.00")   # 4.9995


def test_minimum_order_amount_is_enforced():
    c = coupon(FIXED, 5, min_order_amount=Decimal("50"))
    with pytest.raises(CouponError, match="Minimum order amount of 50.00 required"):
        check_coupon(c, "49.99", NOW)
    check_coupon(c, "50.00", NOW)


@pytest.mark.parametrize("kw, message", [
    ({"is_active": False}, "Invalid coupon code"),
    ({"starts_at": NOW + timedelta(hours=1)}, "not yet valid"),
    ({"ends_at": NOW}, "expired"),
    ({"usage_limit": 3, "used_count": 3}, "usage limit reached"),
])
def test_unusable_coupons_are_rejected(kw, message):
    with pytest.raises(CouponError, match=message):
        check_coupon(coupon(PERCENTAGE, 10, **kw), "100", NOW)


def test_apply_coupon():
    applied = apply_coupon(coupon(PERCENTAGE, 20, id=7), "60.00", NOW)
    assert applied.code == "SAVE"
    assert applied.discount == Decimal("12.00")
    assert applied.as_api()["couponId"] == 7


def test_create_find_and_redeem(app):
    c = create_coupon_from_payload({
        "code": " autumn10 ",
        "type": "percent",
        "value": 10,
        "maxDiscountAmount": 25,
        "usageLimit": 1,
    })
    assert c.code == "AUTUMN10"
    assert c.type == PERCENTAGE

    rule = find_coupon("Autumn10")
    assert rule.max_discount_amount == Decimal("25.00")
    assert rule.used_count == 0

    assert mark_coupon_used("autumn10").used_count == 1
    with pytest.raises(CouponError, match="usage limit"):
        mark_coupon_used("autumn10")


@pytest.mark.parametrize("payload, message", [
    ({"type": "fixed", "value": 5}, "code is required"),
    ({"code": "X1", "type": "bogo", "value": 5}, "percentage' or 'fixed"),
    ({"code": "X1", "type": "fixed", "value": 0}, "> 0"),
    ({"code": "X1", "type": "percentage", "value": 150}, "<= 100"),
    ({"code": "X1", "type": "fixed", "value": 5, "startsAt": "soon"}, "Invalid datetime"),
])
def test_create_rejects_bad_payloads(app, payload, message):
    with pytest.raises(CouponError, match=message):
        create_coupon_from_payload(payload)
    assert Coupon.query.count() == 0


def test_duplicate_code_is_rejected(app):
    create_coupon_from_payload({"code": "ONCE", "type": "fixed", "value": 5})
    with pytest.raises(CouponError, match="already exists"):
        create_coupon_from_payload({"code": "once", "type": "fixed", "value": 3})


def test_unknown_code(app):
    with pytest.raises(CouponError, match="Invalid coupon code"):
        find_coupon("NOPE")
