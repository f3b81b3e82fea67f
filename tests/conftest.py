from datetime import datetime
from decimal import Decimal

import pytest

from storefront_pricing import create_app
from storefront_pricing.config import TestConfig
from storefront_pricing.extensions import db
from storefront_pricing.model import Category, Product

NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def catalog(app):
    """Two categories, three products, one inactive category."""
    shoes = Category(name="Shoes")
    bags = Category(name="Bags")
    retired = Category(name="Retired", status=False)
    db.session.add_all([shoes, bags, retired])
    db.session.flush()

    runner_shoe = Product(name="Trail Runner", slug="trail-runner", price=Decimal("100.00"), category_id=shoes.id)
    loafer = Product(name="Loafer", slug="loafer", price=Decimal("50.00"), category_id=shoes.id)
    tote = Product(name="Canvas Tote", slug="canvas-tote", price=Decimal("20.00"), category_id=bags.id)
    db.session.add_all([runner_shoe, loafer, tote])
    db.session.commit()

    return {
        "shoes": shoes,
        "bags": bags,
        "retired": retired,
        "runner": runner_shoe,
        "loafer": loafer,
        "tote": tote,
    }
