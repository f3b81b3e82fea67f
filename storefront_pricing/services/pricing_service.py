# storefront_pricing/services/pricing_service.py
from __future__ import annotations
from ..errors import InvalidDiscountConfiguration, InvalidPrice
from ..model.rules import DiscountRule, PERCENTAGE, FIXED, DISCOUNT_TYPES
from ..utils.money import D, round_money, non_negative, Money

HUNDRED = D(100)

def ensure_well_formed(discount: DiscountRule) -> None:
    """
    Reject a discount that could never have passed creation-time validation.
    Raises InvalidDiscountConfiguration naming the first broken rule.
    """
    if discount.type not in DISCOUNT_TYPES:
        raise InvalidDiscountConfiguration(f"unknown discount type {discount.type!r}")

    try:
        value = D(discount.value)
    except ValueError:
        raise InvalidDiscountConfiguration(f"discount value {discount.value!r} is not numeric")
    if not value.is_finite():
        raise InvalidDiscountConfiguration("discount value must be finite")

    if discount.type == PERCENTAGE:
        if value != value.to_integral_value():
            raise InvalidDiscountConfiguration("percentage value must be an integer")
        if value < 1 or value > HUNDRED:
            raise InvalidDiscountConfiguration("percentage value must be between 1 and 100")
    elif value <= 0:
        raise InvalidDiscountConfiguration("fixed amount must be greater than 0")

    if discount.starts_at is None or discount.ends_at is None:
        raise InvalidDiscountConfiguration("discount window needs both startsAt and endsAt")
    if discount.ends_at <= discount.starts_at:
        raise InvalidDiscountConfiguration("endsAt must be later than startsAt")

    if not discount.categories and not discount.products:
        raise InvalidDiscountConfiguration("discount targets no category or product")

def _base(base_price) -> Money:
    try:
        base = D(base_price)
    except ValueError:
        raise InvalidPrice(f"base price {base_price!r} is not numeric")
    if not base.is_finite() or base < 0:
        raise InvalidPrice(f"base price must be a non-negative amount, got {base_price!r}")
    return base

def compute_final_price(base_price, discount: DiscountRule | None = None) -> Money:
    """
    Unit price after ``discount``, rounded to cents (half-up).

    percentage -> base * (100 - value) / 100
    fixed      -> max(0, base - value)
    None       -> base, untouched

    Rounding never lifts a sub-cent base price above itself.
    """
    base = _base(base_price)
    if discount is None:
        return base

    ensure_well_formed(discount)
    value = D(discount.value)
    if discount.type == PERCENTAGE:
        return min(round_money(base * (HUNDRED - value) / HUNDRED), base)
    if discount.type == FIXED:
        return min(round_money(non_negative(base - value)), base)
    # unreachable once ensure_well_formed passed
    raise InvalidDiscountConfiguration(f"unknown discount type {discount.type!r}")

def discount_amount(base_price, discount: DiscountRule | None = None) -> Money:
    return _base(base_price) - compute_final_price(base_price, discount)
