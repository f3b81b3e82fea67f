# --- storefront_pricing/model/coupon.py ---
from decimal import Decimal
from sqlalchemy.sql import func
from ..extensions import db
from .rules import CouponRule

def _dec(v):
    return Decimal(str(v)) if v is not None else None

class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)   # stored upper-case

    # "percentage" or "fixed"
    type = db.Column(db.String(16), nullable=False, default="percentage")
    value = db.Column(db.Numeric(12, 2), nullable=False)

    is_active = db.Column(db.Boolean, default=True, index=True)

    # Optional constraints
    min_order_amount = db.Column(db.Numeric(12, 2), nullable=True)     # require subtotal >= this
    max_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)  # cap for percentage coupons
    usage_limit = db.Column(db.Integer, nullable=True)                 # global usage cap
    used_count = db.Column(db.Integer, nullable=False, default=0)
    starts_at = db.Column(db.DateTime, nullable=True)
    ends_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def to_rule(self) -> CouponRule:
        return CouponRule(
            id=self.id,
            code=self.code,
            type=self.type,
            value=_dec(self.value),
            min_order_amount=_dec(self.min_order_amount),
            max_discount_amount=_dec(self.max_discount_amount),
            usage_limit=self.usage_limit,
            used_count=int(self.used_count or 0),
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            is_active=bool(self.is_active),
        )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "type": self.type,
            "value": float(self.value) if self.value is not None else None,
            "isActive": self.is_active,
            "minOrderAmount": float(self.min_order_amount) if self.min_order_amount is not None else None,
            "maxDiscountAmount": float(self.max_discount_amount) if self.max_discount_amount is not None else None,
            "usageLimit": self.usage_limit,
            "usedCount": self.used_count,
            "startsAt": self.starts_at.isoformat() if self.starts_at else None,
            "endsAt": self.ends_at.isoformat() if self.ends_at else None,
        }
