# --- storefront_pricing/model/discount.py ---
from decimal import Decimal
from sqlalchemy.sql import func
from ..extensions import db
from .rules import DiscountRule

discount_category = db.Table(
    "discount_category",
    db.Column("discount_id", db.Integer, db.ForeignKey("discount.id", ondelete="CASCADE"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("category.id", ondelete="CASCADE"), primary_key=True),
)

discount_product = db.Table(
    "discount_product",
    db.Column("discount_id", db.Integer, db.ForeignKey("discount.id", ondelete="CASCADE"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), primary_key=True),
)

class Discount(db.Model):
    __tablename__ = "discount"
    __table_args__ = (
        db.Index("ix_discount_window", "is_active", "starts_at", "ends_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)

    # "percentage" or "fixed"
    type = db.Column(db.String(16), nullable=False, index=True)
    value = db.Column(db.Numeric(12, 2), nullable=False)

    starts_at = db.Column(db.DateTime, nullable=False)     # naive UTC
    ends_at = db.Column(db.DateTime, nullable=False)       # exclusive
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    priority = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    categories = db.relationship("Category", secondary=discount_category, lazy="selectin")
    products = db.relationship("Product", secondary=discount_product, lazy="selectin")

    def to_rule(self) -> DiscountRule:
        return DiscountRule(
            id=self.id,
            title=self.title,
            type=self.type,
            value=Decimal(str(self.value)),
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            is_active=bool(self.is_active),
            categories=frozenset(c.id for c in self.categories),
            products=frozenset(p.id for p in self.products),
            priority=int(self.priority or 0),
        )

    def as_api(self):
        # same field names the admin screens post
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "value": float(self.value) if self.value is not None else None,
            "startsAt": self.starts_at.isoformat() if self.starts_at else None,
            "endsAt": self.ends_at.isoformat() if self.ends_at else None,
            "isActive": self.is_active,
            "priority": self.priority,
            "categories": sorted(c.id for c in self.categories),
            "products": sorted(p.id for p in self.products),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
