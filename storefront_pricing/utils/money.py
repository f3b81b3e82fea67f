# storefront_pricing/utils/money.py

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

Money = Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")

def D(x) -> Money:
    if isinstance(x, Decimal):
        return x
    if isinstance(x, bool):
        raise ValueError(f"not a money amount: {x!r}")
    try:
        return Decimal(str(x if x is not None else "0").strip() or "0")
    except InvalidOperation:
        raise ValueError(f"not a money amount: {x!r}")

def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)

def non_negative(x) -> Money:
    x = D(x)
    return x if x > ZERO else ZERO

def to_cents(x) -> int:
    # Stripe amounts are integer minor units
    return int((round_money(x) * 100).to_integral_value(rounding=ROUND_HALF_UP))
