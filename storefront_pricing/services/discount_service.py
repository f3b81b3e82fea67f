# storefront_pricing/services/discount_service.py
"""
Which discount applies, and how discounts get into the catalog.

Resolution works on plain ``DiscountRule`` / ``ProductRef`` values; the
create/update helpers are the only place a malformed discount can be
stopped, so they validate everything the calculator's guard would reject.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import or_, desc
from ..extensions import db
from ..errors import DiscountValidationError, DiscountNotFound
from ..model import Discount, Product, Category
from ..model.rules import DiscountRule, ProductRef, PERCENTAGE, FIXED, DISCOUNT_TYPES, normalize_type
from ..utils.api import parse_iso8601, parse_bool, parse_number, parse_opt_int, parse_id_list
from ..utils.money import Money
from .pricing_service import compute_final_price, discount_amount

log = logging.getLogger(__name__)

def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

def _as_naive_utc(now: datetime | None) -> datetime:
    if now is None:
        return utcnow()
    return parse_iso8601(now)

# ---- resolution -------------------------------------------------------------

def is_in_effect(discount: DiscountRule, product_id, category_id, now: datetime) -> bool:
    if not discount.is_active:
        return False
    if not (discount.starts_at <= now < discount.ends_at):
        return False
    return discount.targets(product_id, category_id)

def _selection_key(discount: DiscountRule, base_price):
    # biggest reduction first, then priority, then oldest id, then title
    return (
        -discount_amount(base_price, discount),
        -int(discount.priority or 0),
        (discount.id is None, discount.id or 0),
        discount.title,
    )

def resolve_discount(product: ProductRef, discounts, now: datetime | None = None) -> DiscountRule | None:
    """Pick the one discount to apply to ``product`` at ``now``, or None."""
    now = _as_naive_utc(now)
    candidates = [d for d in discounts if is_in_effect(d, product.id, product.category_id, now)]
    if not candidates:
        return None
    chosen = min(candidates, key=lambda d: _selection_key(d, product.price))
    if len(candidates) > 1:
        log.debug("product %s: %d discounts in effect, picked %r", product.id, len(candidates), chosen.title)
    return chosen


@dataclass(frozen=True)
class ProductQuote:
    product: ProductRef
    base_price: Money
    final_price: Money
    discount: DiscountRule | None

    @property
    def saving(self) -> Money:
        return self.base_price - self.final_price

    def as_api(self):
        d = self.discount
        return {
            "product_id": self.product.id,
            "name": self.product.name,
            "base_price": float(self.base_price),
            "final_price": float(self.final_price),
            "saving": float(self.saving),
            "discount": None if d is None else {
                "id": d.id,
                "title": d.title,
                "type": d.type,
                "value": float(d.value),
            },
        }

def quote_product(product: ProductRef, discounts, now: datetime | None = None) -> ProductQuote:
    chosen = resolve_discount(product, discounts, now)
    return ProductQuote(
        product=product,
        base_price=compute_final_price(product.price),
        final_price=compute_final_price(product.price, chosen),
        discount=chosen,
    )

# ---- catalog lookups ----------------------------------------------------------

def _in_effect_query(now: datetime):
    return Discount.query.filter(
        Discount.is_active.is_(True),
        Discount.starts_at <= now,
        Discount.ends_at > now,
    )

def discounts_in_effect(now: datetime | None = None) -> list[DiscountRule]:
    now = _as_naive_utc(now)
    rows = _in_effect_query(now).order_by(desc(Discount.priority), Discount.id).all()
    return [d.to_rule() for d in rows]

def discounts_for_product(product: ProductRef, now: datetime | None = None) -> list[DiscountRule]:
    now = _as_naive_utc(now)
    targeted = [Discount.products.any(Product.id == product.id)]
    if product.category_id is not None:
        targeted.append(Discount.categories.any(Category.id == product.category_id))
    rows = _in_effect_query(now).filter(or_(*targeted)).all()
    return [d.to_rule() for d in rows]

def resolve_for_product(product, now: datetime | None = None) -> DiscountRule | None:
    ref = product.to_ref() if isinstance(product, Product) else product
    return resolve_discount(ref, discounts_for_product(ref, now), now)

# ---- payload decoding / validation ------------------------------------------

_FIELD_ALIASES = {
    "title": ("title",),
    "type": ("type",),
    "value": ("value",),
    "starts_at": ("startsAt", "starts_at"),
    "ends_at": ("endsAt", "ends_at"),
    "is_active": ("isActive", "is_active"),
    "priority": ("priority",),
    "categories": ("categories", "categoryIds", "category_ids"),
    "products": ("products", "productIds", "product_ids"),
}

def _pick(data: dict, names):
    for n in names:
        if n in data:
            return True, data[n]
    return False, None

def decode_discount_record(data: dict) -> dict:
    """
    Normalize one admin payload / exported record into model field names.
    Only the keys present in ``data`` come back, so it also serves partial updates.
    """
    out = {}
    for field, names in _FIELD_ALIASES.items():
        present, raw = _pick(data, names)
        if not present:
            continue
        if field == "title":
            out[field] = str(raw or "").strip()
        elif field == "type":
            out[field] = normalize_type(raw)
        elif field == "value":
            out[field] = parse_number(raw)
        elif field in ("starts_at", "ends_at"):
            out[field] = parse_iso8601(raw)
        elif field == "is_active":
            out[field] = parse_bool(raw, True)
        elif field == "priority":
            out[field] = parse_opt_int(raw) or 0
        else:
            out[field] = parse_id_list(raw)

    # older admin forms sent status: active|inactive instead of isActive
    if "is_active" not in out and data.get("status") in ("active", "inactive"):
        out["is_active"] = data["status"] == "active"
    return out

def validate_discount_fields(fields: dict, partial: bool = False) -> list[dict]:
    errors = []

    if not partial or "title" in fields:
        if not fields.get("title"):
            errors.append({"field": "title", "message": "Title is required"})

    dtype = fields.get("type")
    if not partial or "type" in fields:
        if dtype not in DISCOUNT_TYPES:
            errors.append({"field": "type", "message": "Discount type must be percentage or fixed"})

    if not partial or "value" in fields or "type" in fields:
        value = fields.get("value")
        if value is None:
            errors.append({"field": "value", "message": "Discount value is required"})
        elif dtype == PERCENTAGE:
            if value != value.to_integral_value():
                errors.append({"field": "value", "message": "Percentage value must be an integer"})
            if value < 1 or value > 100:
                errors.append({"field": "value", "message": "Percentage value must be between 1 and 100"})
        elif dtype == FIXED and value <= 0:
            errors.append({"field": "value", "message": "Fixed amount must be greater than 0"})

    if not partial or "starts_at" in fields or "ends_at" in fields:
        starts_at, ends_at = fields.get("starts_at"), fields.get("ends_at")
        if starts_at is None:
            errors.append({"field": "startsAt", "message": "Start date is required and must be valid"})
        if ends_at is None:
            errors.append({"field": "endsAt", "message": "End date is required and must be valid"})
        if starts_at is not None and ends_at is not None and starts_at >= ends_at:
            errors.append({"field": "endsAt", "message": "End date must be after start date"})

    return errors

def _load_targets(model, ids: list[int]):
    if not ids:
        return []
    rows = model.query.filter(model.id.in_(ids), model.status.is_(True)).all()
    missing = set(ids) - {r.id for r in rows}
    if missing:
        log.warning("ignoring unknown or inactive %s ids: %s", model.__tablename__, sorted(missing))
    return rows

def _reject(errors):
    log.warning("discount rejected: %s", "; ".join(e["message"] for e in errors))
    raise DiscountValidationError(errors)

# ---- administration ---------------------------------------------------------

def create_discount_from_payload(data: dict) -> Discount:
    fields = decode_discount_record(data or {})
    errors = validate_discount_fields(fields, partial=False)
    if errors:
        _reject(errors)

    categories = _load_targets(Category, fields.get("categories", []))
    products = _load_targets(Product, fields.get("products", []))
    if not categories and not products:
        _reject([{"field": "categories", "message": "Select at least one category or product"}])

    d = Discount(
        title=fields["title"],
        type=fields["type"],
        value=fields["value"],
        starts_at=fields["starts_at"],
        ends_at=fields["ends_at"],
        is_active=fields.get("is_active", True),
        priority=fields.get("priority", 0),
        categories=categories,
        products=products,
    )
    db.session.add(d)
    db.session.commit()
    log.info("discount %s created: %r %s %s", d.id, d.title, d.type, d.value)
    return d

def get_discount(discount_id: int) -> Discount:
    d = db.session.get(Discount, discount_id)
    if d is None:
        raise DiscountNotFound(f"Discount {discount_id} not found")
    return d

def update_discount_from_payload(discount_id: int, data: dict) -> Discount:
    d = get_discount(discount_id)
    changes = decode_discount_record(data or {})

    merged = {
        "title": d.title,
        "type": d.type,
        "value": Decimal(str(d.value)),
        "starts_at": d.starts_at,
        "ends_at": d.ends_at,
        **changes,
    }
    errors = validate_discount_fields(merged, partial=False)
    if errors:
        _reject(errors)

    categories = _load_targets(Category, changes["categories"]) if "categories" in changes else list(d.categories)
    products = _load_targets(Product, changes["products"]) if "products" in changes else list(d.products)
    if not categories and not products:
        _reject([{"field": "categories", "message": "Select at least one category or product"}])

    for field in ("title", "type", "value", "starts_at", "ends_at", "is_active", "priority"):
        if field in changes:
            setattr(d, field, changes[field])
    d.categories = categories
    d.products = products

    db.session.commit()
    log.info("discount %s updated: %s", d.id, sorted(changes))
    return d

def delete_discount(discount_id: int) -> dict:
    d = get_discount(discount_id)
    snapshot = d.as_api()
    db.session.delete(d)
    db.session.commit()
    log.info("discount %s deleted", discount_id)
    return snapshot

def _to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default

def _paginate(query, page, per_page):
    page = max(_to_int(page, 1), 1)
    per_page = min(max(_to_int(per_page, 20), 1), 100)
    items = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        "meta": {
            "page": items.page,
            "pages": items.pages or 1,
            "per_page": per_page,
            "total": items.total,
            "has_prev": items.has_prev,
            "has_next": items.has_next,
        },
        "items": items.items,
    }

def list_discounts(active=None, dtype=None, search=None, page=1, per_page=20):
    """
    active   -> True / False filters on isActive, None lists all
    dtype    -> percentage | fixed
    search   -> substring match on title
    """
    q = Discount.query
    if active is not None:
        q = q.filter(Discount.is_active.is_(bool(active)))
    dtype = normalize_type(dtype) if dtype else None
    if dtype in DISCOUNT_TYPES:
        q = q.filter(Discount.type == dtype)
    if search and search.strip():
        q = q.filter(Discount.title.ilike(f"%{search.strip()}%"))

    q = q.order_by(desc(Discount.created_at), desc(Discount.id))
    page_data = _paginate(q, page, per_page)
    return {
        "meta": page_data["meta"],
        "items": [d.as_api() for d in page_data["items"]],
    }
