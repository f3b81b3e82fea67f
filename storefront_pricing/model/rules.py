# storefront_pricing/model/rules.py
"""
Plain value types the pricing services work on.

The SQLAlchemy rows in this package convert to these with ``to_rule()`` /
``to_ref()`` so the calculator and resolver never touch a session.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

PERCENTAGE = "percentage"
FIXED = "fixed"
DISCOUNT_TYPES = (PERCENTAGE, FIXED)

# older admin screens posted "amount" for fixed discounts, coupons used "percent"
TYPE_ALIASES = {"amount": FIXED, "percent": PERCENTAGE}


def normalize_type(value) -> str:
    t = str(value or "").strip().lower()
    return TYPE_ALIASES.get(t, t)


def _naive_utc(dt):
    if isinstance(dt, datetime) and dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


@dataclass(frozen=True)
class DiscountRule:
    title: str
    type: str
    value: Decimal
    starts_at: datetime
    ends_at: datetime
    is_active: bool = True
    categories: frozenset = field(default_factory=frozenset)
    products: frozenset = field(default_factory=frozenset)
    priority: int = 0
    id: int | None = None

    def __post_init__(self):
        # windows are compared in naive UTC
        object.__setattr__(self, "starts_at", _naive_utc(self.starts_at))
        object.__setattr__(self, "ends_at", _naive_utc(self.ends_at))

    def targets(self, product_id, category_id) -> bool:
        if product_id is not None and product_id in self.products:
            return True
        return category_id is not None and category_id in self.categories


@dataclass(frozen=True)
class ProductRef:
    id: int
    price: Decimal
    category_id: int | None = None
    name: str | None = None


@dataclass(frozen=True)
class CouponRule:
    code: str
    type: str
    value: Decimal
    min_order_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None   # caps percentage coupons
    usage_limit: int | None = None
    used_count: int = 0
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    is_active: bool = True
    id: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "code", str(self.code or "").strip().upper())
        object.__setattr__(self, "starts_at", _naive_utc(self.starts_at))
        object.__setattr__(self, "ends_at", _naive_utc(self.ends_at))
