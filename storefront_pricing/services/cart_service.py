# storefront_pricing/services/cart_service.py
from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from ..errors import CartError
from ..model.rules import ProductRef
from ..utils.money import D, round_money, non_negative, to_cents, Money, ZERO
from .discount_service import quote_product, utcnow
from .coupon_service import apply_coupon, AppliedCoupon

log = logging.getLogger(__name__)

COD = "cod"
STRIPE = "stripe"
PAYMENT_METHODS = (COD, STRIPE)
PAYMENT_ALIASES = {"cash_on_delivery": COD, "cash": COD, "card": STRIPE}

def _valid_qty(quantity) -> int:
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        raise CartError(f"quantity must be an integer, got {quantity!r}")
    if qty != quantity and not isinstance(quantity, str):
        raise CartError(f"quantity must be an integer, got {quantity!r}")
    if qty < 1:
        raise CartError("Quantity must be at least 1")
    return qty


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    price: Money                      # unit price snapshot at add time
    category_id: int | None = None
    name: str | None = None
    base_price: Money | None = None   # list price before discount, if known

    @property
    def amount(self) -> Money:
        return round_money(self.price * self.quantity)

    def with_quantity(self, quantity) -> "CartLine":
        return replace(self, quantity=_valid_qty(quantity))

    def as_api(self):
        return {
            "product_id": self.product_id,
            "category_id": self.category_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": float(self.price),
            "base_price": float(self.base_price) if self.base_price is not None else None,
            "amount": float(self.amount),
        }


@dataclass(frozen=True)
class Cart:
    """Cart aggregate. Every mutation returns a new Cart; lines are keyed by product."""
    lines: tuple = ()

    def line_for(self, product_id) -> CartLine | None:
        return next((l for l in self.lines if l.product_id == product_id), None)

    def add_item(self, product_id, price, quantity=1, *, category_id=None, name=None, base_price=None) -> "Cart":
        qty = _valid_qty(quantity)
        existing = self.line_for(product_id)
        if existing:
            # same product again: keep the first snapshot, add quantity
            return self._swap(existing, existing.with_quantity(existing.quantity + qty))
        line = CartLine(
            product_id=product_id,
            quantity=qty,
            price=round_money(price),
            category_id=category_id,
            name=name,
            base_price=round_money(base_price) if base_price is not None else None,
        )
        return Cart(self.lines + (line,))

    def update_quantity(self, product_id, quantity) -> "Cart":
        existing = self.line_for(product_id)
        if not existing:
            raise CartError(f"product {product_id} is not in the cart")
        return self._swap(existing, existing.with_quantity(quantity))

    def remove_item(self, product_id) -> "Cart":
        if not self.line_for(product_id):
            raise CartError(f"product {product_id} is not in the cart")
        return Cart(tuple(l for l in self.lines if l.product_id != product_id))

    def clear(self) -> "Cart":
        return Cart()

    def _swap(self, old: CartLine, new: CartLine) -> "Cart":
        return Cart(tuple(new if l is old else l for l in self.lines))

    def __len__(self):
        return len(self.lines)


@dataclass(frozen=True)
class CartSummary:
    total_items: int
    sub_total: Money
    shipping_cost: Money
    total_amount: Money
    coupon_discount: Money = ZERO

    def as_api(self):
        return {
            "totalItems": self.total_items,
            "subTotal": float(self.sub_total),
            "shippingCost": float(self.shipping_cost),
            "couponDiscount": float(self.coupon_discount),
            "totalAmount": float(self.total_amount),
        }


def summarize(lines, shipping_cost, coupon_discount=ZERO) -> CartSummary:
    lines = lines.lines if isinstance(lines, Cart) else tuple(lines)
    sub_total = round_money(sum((l.amount for l in lines), ZERO))
    shipping = round_money(shipping_cost)
    if shipping < 0:
        raise CartError("shipping cost cannot be negative")
    coupon = round_money(coupon_discount)
    return CartSummary(
        total_items=sum(l.quantity for l in lines),
        sub_total=sub_total,
        shipping_cost=shipping,
        total_amount=round_money(non_negative(sub_total + shipping - coupon)),
        coupon_discount=coupon,
    )

def shipping_cost_for(sub_total, threshold=100, flat_rate=10) -> Money:
    """Flat-rate shipping, free from ``threshold`` up. An empty cart ships for free."""
    sub_total = D(sub_total)
    if sub_total <= 0 or sub_total >= D(threshold):
        return round_money(ZERO)
    return round_money(flat_rate)

def normalize_payment_method(method) -> str:
    m = str(method or COD).strip().lower()
    m = PAYMENT_ALIASES.get(m, m)
    if m not in PAYMENT_METHODS:
        raise CartError(f"payment method must be one of {', '.join(PAYMENT_METHODS)}")
    return m


@dataclass(frozen=True)
class CheckoutTotals:
    summary: CartSummary
    payment_method: str
    amount_in_cents: int
    coupon: AppliedCoupon | None = None

    @property
    def requires_online_payment(self) -> bool:
        return self.payment_method == STRIPE

    def as_api(self):
        return {
            **self.summary.as_api(),
            "paymentMethod": self.payment_method,
            "amountInCents": self.amount_in_cents,
            "coupon": self.coupon.as_api() if self.coupon else None,
        }

def checkout_totals(cart: Cart, payment_method=COD, shipping_cost=None, *,
                    free_shipping_threshold=100, shipping_flat_rate=10,
                    coupon=None, now: datetime | None = None) -> CheckoutTotals:
    """
    Totals for paying ``cart``. Shipping follows the threshold rule unless
    given; ``coupon`` (a CouponRule) comes off the subtotal and raises
    CouponError when it does not apply.
    """
    if not cart:
        raise CartError("cart is empty")
    method = normalize_payment_method(payment_method)

    pre = summarize(cart, ZERO)
    if shipping_cost is None:
        shipping_cost = shipping_cost_for(pre.sub_total, free_shipping_threshold, shipping_flat_rate)
    applied = None
    if coupon is not None:
        applied = apply_coupon(coupon, pre.sub_total, now if now is not None else utcnow())
    summary = summarize(cart, shipping_cost, applied.discount if applied else ZERO)

    cents = to_cents(summary.total_amount)
    if method == STRIPE and cents <= 0:
        raise CartError("nothing to charge: use cash on delivery for a zero total")
    log.debug("checkout %s: %d items, total %s", method, summary.total_items, summary.total_amount)
    return CheckoutTotals(summary=summary, payment_method=method, amount_in_cents=cents, coupon=applied)

def price_cart(items, discounts, now: datetime | None = None, cart: Cart | None = None) -> Cart:
    """
    Add ``(ProductRef, quantity)`` pairs to ``cart`` (or a new one), snapshotting
    each unit price with the discount in effect at ``now``.
    """
    cart = cart if cart is not None else Cart()
    discounts = list(discounts)
    for product, quantity in items:
        if not isinstance(product, ProductRef):
            product = product.to_ref()
        quote = quote_product(product, discounts, now)
        cart = cart.add_item(
            product.id,
            quote.final_price,
            quantity,
            category_id=product.category_id,
            name=product.name,
            base_price=quote.base_price,
        )
    return cart
