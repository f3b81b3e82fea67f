# storefront_pricing/model/product.py
from decimal import Decimal
from sqlalchemy.sql import func
from ..extensions import db
from .rules import ProductRef

class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), index=True)
    name = db.Column(db.String(255), nullable=False, index=True)

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.Boolean, default=True, index=True)

    category_id = db.Column(
        db.Integer,
        db.ForeignKey("category.id"),
        nullable=True
    )

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def to_ref(self) -> ProductRef:
        return ProductRef(
            id=self.id,
            price=Decimal(str(self.price or 0)),
            category_id=self.category_id,
            name=self.name,
        )
