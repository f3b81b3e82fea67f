# storefront_pricing/cli.py
from __future__ import annotations
import json
import os
import click
import pandas as pd
from flask import current_app
from flask.cli import AppGroup
from .errors import PricingError, DiscountValidationError
from .extensions import db
from .model import Discount, Product, Coupon
from .services.discount_service import (
    create_discount_from_payload, delete_discount, list_discounts,
    discounts_in_effect, quote_product, utcnow,
)
from .services.cart_service import price_cart, checkout_totals
from .services.coupon_service import create_coupon_from_payload, find_coupon, mark_coupon_used
from .utils.api import api_ok, unwrap_items, load_json, parse_iso8601, parse_opt_int, parse_number

discounts_cli = AppGroup("discounts", help="Manage catalog discounts.")
pricing_cli = AppGroup("pricing", help="Quote products and carts.")
coupons_cli = AppGroup("coupons", help="Manage order coupons.")

TABLE_SUFFIXES = {".csv", ".xlsx", ".xls"}

def _ext(path: str) -> str:
    return os.path.splitext(path)[1].lower()

def _at_option(value):
    if value is None:
        return utcnow()
    at = parse_iso8601(value)
    if at is None:
        raise click.BadParameter(f"not an ISO-8601 datetime: {value}")
    return at

def _shipping_option(ctx, param, value):
    if value is None:
        return None
    cost = parse_number(value)
    if cost is None or cost < 0:
        raise click.BadParameter(f"shipping cost must be a number >= 0, got {value}")
    return cost

def _echo_json(data):
    click.echo(json.dumps(data, indent=2, default=str))

# ---- reading / writing record files ----------------------------------------

def _read_records(path: str) -> list[dict]:
    ext = _ext(path)
    if ext in TABLE_SUFFIXES:
        df = pd.read_csv(path) if ext == ".csv" else pd.read_excel(path)
        df.columns = df.columns.str.strip()
        # empty cells come back as NaN/NaT
        df = df.astype(object).where(pd.notnull(df), None)
        return df.to_dict(orient="records")
    with open(path, encoding="utf-8") as fh:
        records = unwrap_items(load_json(fh.read()))
    if not all(isinstance(r, dict) for r in records):
        raise click.ClickException("every discount record must be a JSON object")
    return records

def _export_rows(discounts) -> list[dict]:
    rows = []
    for d in discounts:
        rec = d.as_api()
        rows.append({
            "id": rec["id"],
            "title": rec["title"],
            "type": rec["type"],
            "value": rec["value"],
            "startsAt": rec["startsAt"],
            "endsAt": rec["endsAt"],
            "isActive": rec["isActive"],
            "priority": rec["priority"],
            "categories": ",".join(str(i) for i in rec["categories"]),
            "products": ",".join(str(i) for i in rec["products"]),
        })
    return rows

# ---- discounts --------------------------------------------------------------

@discounts_cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_discounts(path):
    """Create discounts from a JSON envelope, CSV or Excel file."""
    try:
        records = _read_records(path)
    except PricingError as e:
        raise click.ClickException(str(e))

    created, rejected = 0, 0
    for n, rec in enumerate(records, start=1):
        try:
            d = create_discount_from_payload(rec)
        except DiscountValidationError as e:
            db.session.rollback()
            rejected += 1
            click.echo(f"record {n}: {e}", err=True)
            continue
        created += 1
        click.echo(f"created discount {d.id}: {d.title}")

    click.echo(f"{created} discount(s) imported from {path}")
    if rejected:
        raise click.ClickException(f"{rejected} record(s) rejected")

@discounts_cli.command("export")
@click.argument("path", type=click.Path(dir_okay=False, writable=True))
def export_discounts(path):
    """Write every discount to PATH (.json, .csv or .xlsx)."""
    discounts = Discount.query.order_by(Discount.id).all()
    ext = _ext(path)
    if ext == ".json":
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(api_ok("discounts", {"items": [d.as_api() for d in discounts]}), fh, indent=2)
    elif ext in TABLE_SUFFIXES:
        df = pd.DataFrame(_export_rows(discounts))
        if ext == ".csv":
            df.to_csv(path, index=False)
        else:
            df.to_excel(path, index=False)
    else:
        raise click.BadParameter("export file must end in .json, .csv or .xlsx")
    click.echo(f"{len(discounts)} discount(s) exported to {path}")

@discounts_cli.command("list")
@click.option("--active/--inactive", default=None, help="Filter on isActive.")
@click.option("--type", "dtype", default=None, help="percentage or fixed.")
@click.option("--search", default=None, help="Substring of the title.")
@click.option("--page", default=1, show_default=True)
@click.option("--per-page", default=20, show_default=True)
def list_discounts_cmd(active, dtype, search, page, per_page):
    result = list_discounts(active=active, dtype=dtype, search=search, page=page, per_page=per_page)
    for d in result["items"]:
        state = "active" if d["isActive"] else "inactive"
        click.echo(
            f"{d['id']:>5}  {d['title']:<30}  {d['type']:<10}  {d['value']:>8}  "
            f"{d['startsAt']} -> {d['endsAt']}  {state}"
        )
    meta = result["meta"]
    click.echo(f"page {meta['page']}/{meta['pages']}, {meta['total']} total")

@discounts_cli.command("delete")
@click.argument("discount_id", type=int)
def delete_discount_cmd(discount_id):
    try:
        d = delete_discount(discount_id)
    except PricingError as e:
        raise click.ClickException(str(e))
    click.echo(f"deleted discount {d['id']}: {d['title']}")

# ---- pricing ----------------------------------------------------------------

@pricing_cli.command("quote-product")
@click.argument("product_id", type=int)
@click.option("--at", "at", default=None, help="Evaluate at this ISO-8601 time (UTC if naive).")
def quote_product_cmd(product_id, at):
    now = _at_option(at)
    product = db.session.get(Product, product_id)
    if product is None or product.status is False:
        raise click.ClickException(f"product {product_id} not found or inactive")
    try:
        quote = quote_product(product.to_ref(), discounts_in_effect(now), now)
    except PricingError as e:
        raise click.ClickException(str(e))
    _echo_json(quote.as_api())

@pricing_cli.command("quote-cart")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--payment", default="cod", show_default=True, help="cod or stripe.")
@click.option("--shipping", default=None, callback=_shipping_option,
              help="Fixed shipping cost; default follows the config rule.")
@click.option("--coupon", default=None, help="Coupon code taken off the subtotal.")
@click.option("--at", "at", default=None, help="Evaluate at this ISO-8601 time (UTC if naive).")
def quote_cart_cmd(path, payment, shipping, coupon, at):
    """
    PATH holds cart lines: [{"product_id": 1, "quantity": 2}, ...]
    (bare list or an API envelope).
    """
    now = _at_option(at)
    try:
        with open(path, encoding="utf-8") as fh:
            raw_lines = unwrap_items(load_json(fh.read()))

        items = []
        for n, line in enumerate(raw_lines, start=1):
            pid = parse_opt_int(line.get("product_id", line.get("productId"))) if isinstance(line, dict) else None
            if pid is None:
                raise click.ClickException(f"line {n}: product_id is required")
            product = db.session.get(Product, pid)
            if product is None or product.status is False:
                raise click.ClickException(f"line {n}: product {pid} not found or inactive")
            items.append((product.to_ref(), line.get("quantity", 1)))

        cart = price_cart(items, discounts_in_effect(now), now)
        totals = checkout_totals(
            cart,
            payment,
            shipping,
            free_shipping_threshold=current_app.config["FREE_SHIPPING_THRESHOLD"],
            shipping_flat_rate=current_app.config["SHIPPING_FLAT_RATE"],
            coupon=find_coupon(coupon) if coupon else None,
            now=now,
        )
    except (PricingError, ValueError) as e:
        raise click.ClickException(str(e))

    _echo_json({
        "items": [l.as_api() for l in cart.lines],
        "totals": totals.as_api(),
    })

# ---- coupons ----------------------------------------------------------------

@coupons_cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_coupons(path):
    """Create coupons from a JSON envelope, CSV or Excel file."""
    try:
        records = _read_records(path)
    except PricingError as e:
        raise click.ClickException(str(e))

    created, rejected = 0, 0
    for n, rec in enumerate(records, start=1):
        try:
            c = create_coupon_from_payload(rec)
        except PricingError as e:
            db.session.rollback()
            rejected += 1
            click.echo(f"record {n}: {e}", err=True)
            continue
        created += 1
        click.echo(f"created coupon {c.code}")

    click.echo(f"{created} coupon(s) imported from {path}")
    if rejected:
        raise click.ClickException(f"{rejected} record(s) rejected")

@coupons_cli.command("list")
def list_coupons_cmd():
    for c in Coupon.query.order_by(Coupon.code).all():
        limit = c.usage_limit if c.usage_limit is not None else "-"
        state = "active" if c.is_active else "inactive"
        click.echo(f"{c.code:<20}  {c.type:<10}  {float(c.value):>8}  used {c.used_count}/{limit}  {state}")

@coupons_cli.command("redeem")
@click.argument("code")
def redeem_coupon_cmd(code):
    """Count one use of CODE against its usage limit."""
    try:
        c = mark_coupon_used(code)
    except PricingError as e:
        raise click.ClickException(str(e))
    click.echo(f"coupon {c.code} used {c.used_count} time(s)")

def register_cli(app):
    app.cli.add_command(discounts_cli)
    app.cli.add_command(pricing_cli)
    app.cli.add_command(coupons_cli)
