from datetime import datetime
from decimal import Decimal

import pytest

from storefront_pricing.errors import PayloadError
from storefront_pricing.utils.api import (
    api_ok, unwrap_items, load_json, parse_iso8601, parse_bool, parse_number, parse_id_list,
)
from storefront_pricing.utils.money import round_money, to_cents, D


@pytest.mark.parametrize("payload", [
    [{"id": 1}],
    {"data": [{"id": 1}]},
    {"data": {"items": [{"id": 1}]}},
    {"success": True, "data": {"discounts": [{"id": 1}]}},
    {"items": [{"id": 1}]},
    api_ok("discounts", {"items": [{"id": 1}]}),
])
def test_unwrap_items_accepts_every_list_shape(payload):
    assert unwrap_items(payload) == [{"id": 1}]


@pytest.mark.parametrize("payload, message", [
    ({"status": False, "message": "Forbidden", "data": {}}, "Forbidden"),
    ({"data": {"total": 3}}, "no item list"),
    ("nope", "expected a list"),
])
def test_unwrap_items_rejects_other_shapes(payload, message):
    with pytest.raises(PayloadError, match=message):
        unwrap_items(payload)


def test_load_json_wraps_decode_errors():
    with pytest.raises(PayloadError, match="invalid JSON"):
        load_json("{not json")


def test_parse_iso8601():
    assert parse_iso8601("2026-10-19T12:00:00Z") == datetime(2026, 10, 19, 12, 0)
    assert parse_iso8601("2026-10-19T14:00:00+02:00") == datetime(2026, 10, 19, 12, 0)
    assert parse_iso8601("2026-10-19") == datetime(2026, 10, 19)
    assert parse_iso8601("yesterday") is None
    assert parse_iso8601("") is None


def test_parse_bool():
    assert parse_bool("YES") is True
    assert parse_bool("off") is False
    assert parse_bool(1) is True
    assert parse_bool(None, default=True) is True
    assert parse_bool("maybe", default=False) is False


def test_parse_number():
    assert parse_number("12.50") == Decimal("12.50")
    assert parse_number("abc") is None
    assert parse_number("") is None
    assert parse_number("NaN") is None


@pytest.mark.parametrize("raw, expected", [
    (None, []),
    ("", []),
    ("3, 1, 3", [3, 1]),
    ("[4, 5]", [4, 5]),
    ([1, "2", "x", None, 2.0], [1, 2]),
    (7, [7]),
])
def test_parse_id_list(raw, expected):
    assert parse_id_list(raw) == expected


def test_money_helpers():
    assert round_money("2.675") == Decimal("2.68")
    assert round_money(None) == Decimal("0.00")
    assert to_cents("19.995") == 2000
    with pytest.raises(ValueError):
        D("twelve")
