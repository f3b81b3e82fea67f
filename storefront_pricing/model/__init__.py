# ------ storefront_pricing/model/__init__.py ------

from .category import Category
from .product import Product
from .discount import Discount, discount_category, discount_product
from .coupon import Coupon
from .rules import DiscountRule, ProductRef, CouponRule, PERCENTAGE, FIXED, DISCOUNT_TYPES

__all__ = [
    "Category",
    "Product",
    "Discount",
    "discount_category",
    "discount_product",
    "Coupon",
    "DiscountRule",
    "ProductRef",
    "CouponRule",
    "PERCENTAGE",
    "FIXED",
    "DISCOUNT_TYPES",
]
