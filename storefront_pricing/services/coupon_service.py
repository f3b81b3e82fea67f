# storefront_pricing/services/coupon_service.py
"""
Order-level coupons: validation at checkout and the amount they take off.

A coupon applies to the cart subtotal after item discounts, never to a
single product. ``coupon_discount_amount`` is pure; the ``*_coupon`` helpers
further down own the session.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from sqlalchemy import func
from ..extensions import db
from ..errors import CouponError
from ..model import Coupon
from ..model.rules import CouponRule, PERCENTAGE, FIXED, DISCOUNT_TYPES, normalize_type
from ..utils.api import parse_iso8601, parse_bool, parse_number, parse_opt_int
from ..utils.money import D, round_money, non_negative, Money, ZERO

log = logging.getLogger(__name__)

HUNDRED = D(100)

def _validate_coupon_structure(c: CouponRule):
    if c.type not in DISCOUNT_TYPES:
        raise CouponError("coupon type must be 'percentage' or 'fixed'")
    if c.value is None or D(c.value) <= 0:
        raise CouponError("coupon value must be > 0")
    if c.type == PERCENTAGE and D(c.value) > HUNDRED:
        raise CouponError("percentage coupon must be <= 100")

def coupon_discount_amount(coupon: CouponRule, order_amount) -> Money:
    """
    percentage -> order * value / 100, capped at max_discount_amount
    fixed      -> value
    Never more than the order itself; rounded to cents.
    """
    base = non_negative(order_amount)
    if base <= 0:
        return round_money(ZERO)
    value = D(coupon.value)
    if coupon.type == PERCENTAGE:
        amount = base * value / HUNDRED
        if coupon.max_discount_amount is not None and amount > D(coupon.max_discount_amount):
            amount = D(coupon.max_discount_amount)
    else:
        amount = value
    return round_money(min(amount, base))

def check_coupon(coupon: CouponRule, order_amount, now: datetime) -> None:
    """Raise CouponError if ``coupon`` cannot be used on this order at ``now``."""
    _validate_coupon_structure(coupon)
    if not coupon.is_active:
        raise CouponError("Invalid coupon code")
    if coupon.starts_at and now < coupon.starts_at:
        raise CouponError("Coupon is not yet valid")
    if coupon.ends_at and now >= coupon.ends_at:
        raise CouponError("Coupon has expired")
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponError("Coupon usage limit reached")
    if coupon.min_order_amount and D(order_amount) < D(coupon.min_order_amount):
        raise CouponError(f"Minimum order amount of {round_money(coupon.min_order_amount)} required")


@dataclass(frozen=True)
class AppliedCoupon:
    code: str
    type: str
    value: Money
    discount: Money
    coupon_id: int | None = None

    def as_api(self):
        return {
            "couponId": self.coupon_id,
            "code": self.code,
            "discount": float(self.discount),
            "discountType": self.type,
            "discountValue": float(self.value),
        }

def apply_coupon(coupon: CouponRule, order_amount, now: datetime) -> AppliedCoupon:
    now = parse_iso8601(now)
    check_coupon(coupon, order_amount, now)
    discount = coupon_discount_amount(coupon, order_amount)
    log.debug("coupon %s takes %s off %s", coupon.code, discount, order_amount)
    return AppliedCoupon(
        code=coupon.code,
        type=coupon.type,
        value=D(coupon.value),
        discount=discount,
        coupon_id=coupon.id,
    )

# ---- catalog ----------------------------------------------------------------

def create_coupon_from_payload(data: dict) -> Coupon:
    data = data or {}
    code = str(data.get("code") or "").strip().upper()
    ctype = normalize_type(data.get("type") or data.get("discountType") or PERCENTAGE)
    value = parse_number(data.get("value", data.get("discountValue")))

    if not code:
        raise CouponError("code is required")
    if ctype not in (PERCENTAGE, FIXED):
        raise CouponError("coupon type must be 'percentage' or 'fixed'")
    if value is None:
        raise CouponError("value must be numeric")

    starts_raw = data.get("startsAt", data.get("starts_at"))
    ends_raw = data.get("endsAt", data.get("ends_at"))
    starts_at, ends_at = parse_iso8601(starts_raw), parse_iso8601(ends_raw)
    if starts_raw and not starts_at:
        raise CouponError("Invalid datetime format for startsAt")
    if ends_raw and not ends_at:
        raise CouponError("Invalid datetime format for endsAt")
    if starts_at and ends_at and starts_at >= ends_at:
        raise CouponError("End date must be after start date")

    c = Coupon(
        code=code,
        type=ctype,
        value=value,
        is_active=parse_bool(data.get("isActive", data.get("is_active")), True),
        min_order_amount=parse_number(data.get("minOrderAmount", data.get("min_order_amount"))),
        max_discount_amount=parse_number(data.get("maxDiscountAmount", data.get("max_discount_amount"))),
        usage_limit=parse_opt_int(data.get("usageLimit", data.get("usage_limit"))),
        used_count=parse_opt_int(data.get("usedCount", data.get("used_count"))) or 0,
        starts_at=starts_at,
        ends_at=ends_at,
    )
    _validate_coupon_structure(c.to_rule())

    existing = Coupon.query.filter(func.upper(Coupon.code) == code).first()
    if existing:
        raise CouponError("Coupon code already exists")

    db.session.add(c)
    db.session.commit()
    log.info("coupon %s created: %s %s", c.code, c.type, c.value)
    return c

def find_coupon(code) -> CouponRule:
    code = str(code or "").strip().upper()
    c = Coupon.query.filter(func.upper(Coupon.code) == code).first() if code else None
    if c is None:
        raise CouponError("Invalid coupon code")
    return c.to_rule()

def mark_coupon_used(code) -> Coupon:
    rule = find_coupon(code)
    if rule.usage_limit is not None and rule.used_count >= rule.usage_limit:
        raise CouponError("Coupon usage limit reached")
    c = db.session.get(Coupon, rule.id)
    c.used_count = int(c.used_count or 0) + 1
    db.session.commit()
    log.info("coupon %s used %d time(s)", c.code, c.used_count)
    return c
