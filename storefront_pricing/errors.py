# storefront_pricing/errors.py
from __future__ import annotations


class PricingError(ValueError):
    """Base class for everything the pricing core rejects."""


class InvalidPrice(PricingError):
    pass


class InvalidDiscountConfiguration(PricingError):
    """A discount reached the calculator in a state it could never be created in."""


class DiscountValidationError(PricingError):
    """Create/update payload failed validation.

    ``errors`` is a list of ``{"field": ..., "message": ...}`` dicts; the
    exception message is the first one.
    """

    def __init__(self, errors: list[dict]):
        self.errors = list(errors)
        message = self.errors[0]["message"] if self.errors else "invalid discount"
        super().__init__(message)


class DiscountNotFound(PricingError):
    pass


class CartError(PricingError):
    pass


class PayloadError(PricingError):
    pass


class CouponError(PricingError):
    """Coupon code unknown, out of its window, used up, or below its minimum order."""
