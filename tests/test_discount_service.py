from datetime import timedelta
from decimal import Decimal

import pytest

from storefront_pricing.errors import DiscountValidationError, DiscountNotFound
from storefront_pricing.model import Discount
from storefront_pricing.services.discount_service import (
    create_discount_from_payload, update_discount_from_payload, delete_discount,
    list_discounts, discounts_in_effect, resolve_for_product, decode_discount_record,
    validate_discount_fields,
)

from .conftest import NOW


def payload(**over):
    data = {
        "title": "Autumn sale",
        "type": "percentage",
        "value": 20,
        "startsAt": (NOW - timedelta(days=1)).isoformat() + "Z",
        "endsAt": (NOW + timedelta(days=7)).isoformat() + "Z",
        "isActive": True,
        "categories": [],
        "products": [],
    }
    data.update(over)
    return data


def test_create_discount(catalog):
    d = create_discount_from_payload(payload(categories=[catalog["shoes"].id]))
    assert d.id is not None
    assert d.type == "percentage"
    assert d.value == Decimal("20")
    assert d.starts_at == NOW - timedelta(days=1)
    assert [c.name for c in d.categories] == ["Shoes"]
    assert d.as_api()["categories"] == [catalog["shoes"].id]


def test_amount_type_is_stored_as_fixed(catalog):
    d = create_discount_from_payload(payload(type="amount", value="7.5", products=[catalog["tote"].id]))
    assert d.type == "fixed"
    assert d.value == Decimal("7.50")


def test_comma_separated_targets_are_accepted(catalog):
    data = payload(productIds=f"{catalog['runner'].id}, {catalog['loafer'].id}")
    del data["products"]
    d = create_discount_from_payload(data)
    assert sorted(p.id for p in d.products) == sorted([catalog["runner"].id, catalog["loafer"].id])


@pytest.mark.parametrize("over, field, message", [
    ({"title": "  "}, "title", "Title is required"),
    ({"type": "bogo"}, "type", "percentage or fixed"),
    ({"value": None}, "value", "Discount value is required"),
    ({"value": 0}, "value", "between 1 and 100"),
    ({"value": 120}, "value", "between 1 and 100"),
    ({"value": 12.5}, "value", "must be an integer"),
    ({"type": "fixed", "value": 0}, "value", "greater than 0"),
    ({"startsAt": "not a date"}, "startsAt", "Start date is required"),
    ({"endsAt": None}, "endsAt", "End date is required"),
    ({"endsAt": (NOW - timedelta(days=2)).isoformat()}, "endsAt", "after start date"),
])
def test_create_rejects_malformed_discount(catalog, over, field, message):
    with pytest.raises(DiscountValidationError) as exc:
        create_discount_from_payload(payload(categories=[catalog["shoes"].id], **over))
    assert any(e["field"] == field and message in e["message"] for e in exc.value.errors)
    assert Discount.query.count() == 0


def test_create_requires_a_target(catalog):
    with pytest.raises(DiscountValidationError, match="at least one category or product"):
        create_discount_from_payload(payload())


def test_unknown_and_inactive_targets_do_not_count(catalog):
    with pytest.raises(DiscountValidationError, match="at least one category or product"):
        create_discount_from_payload(payload(categories=[catalog["retired"].id, 999]))


def test_validation_reports_every_problem():
    errors = validate_discount_fields(decode_discount_record({"type": "fixed", "value": -1}))
    fields = {e["field"] for e in errors}
    assert fields == {"title", "value", "startsAt", "endsAt"}


def test_partial_validation_only_checks_given_fields():
    assert validate_discount_fields({"title": "x"}, partial=True) == []


def test_status_field_maps_to_is_active():
    assert decode_discount_record({"status": "inactive"}) == {"is_active": False}


def test_update_merges_with_stored_values(catalog):
    d = create_discount_from_payload(payload(categories=[catalog["shoes"].id]))
    updated = update_discount_from_payload(d.id, {"value": 30, "isActive": "false"})
    assert updated.value == Decimal("30")
    assert updated.is_active is False
    assert updated.title == "Autumn sale"
    assert [c.id for c in updated.categories] == [catalog["shoes"].id]


def test_update_checks_merged_window(catalog):
    d = create_discount_from_payload(payload(categories=[catalog["shoes"].id]))
    with pytest.raises(DiscountValidationError, match="after start date"):
        update_discount_from_payload(d.id, {"endsAt": (NOW - timedelta(days=3)).isoformat()})


def test_update_type_revalidates_value(catalog):
    d = create_discount_from_payload(payload(type="fixed", value=150, products=[catalog["runner"].id]))
    with pytest.raises(DiscountValidationError, match="between 1 and 100"):
        update_discount_from_payload(d.id, {"type": "percentage"})


def test_update_cannot_empty_the_scope(catalog):
    d = create_discount_from_payload(payload(categories=[catalog["shoes"].id]))
    with pytest.raises(DiscountValidationError):
        update_discount_from_payload(d.id, {"categories": []})


def test_update_and_delete_unknown_id(app):
    with pytest.raises(DiscountNotFound):
        update_discount_from_payload(404, {"value": 10})
    with pytest.raises(DiscountNotFound):
        delete_discount(404)


def test_delete_returns_snapshot(catalog):
    d = create_discount_from_payload(payload(categories=[catalog["shoes"].id]))
    snap = delete_discount(d.id)
    assert snap["title"] == "Autumn sale"
    assert Discount.query.count() == 0


def test_list_filters_and_paginates(catalog):
    for i in range(3):
        create_discount_from_payload(payload(title=f"Shoe deal {i}", categories=[catalog["shoes"].id]))
    create_discount_from_payload(payload(title="Bag clearance", type="fixed", value=5,
                                         isActive=False, categories=[catalog["bags"].id]))

    assert list_discounts()["meta"]["total"] == 4
    assert [d["title"] for d in list_discounts(active=False)["items"]] == ["Bag clearance"]
    assert list_discounts(dtype="amount")["meta"]["total"] == 1
    assert list_discounts(search="shoe")["meta"]["total"] == 3

    page = list_discounts(page=2, per_page=3)
    assert page["meta"]["pages"] == 2
    assert len(page["items"]) == 1


def test_discounts_in_effect_uses_the_window(catalog):
    create_discount_from_payload(payload(title="now", categories=[catalog["shoes"].id]))
    create_discount_from_payload(payload(
        title="later",
        categories=[catalog["shoes"].id],
        startsAt=(NOW + timedelta(days=1)).isoformat(),
        endsAt=(NOW + timedelta(days=2)).isoformat(),
    ))
    create_discount_from_payload(payload(title="off", isActive=False, categories=[catalog["shoes"].id]))

    assert [d.title for d in discounts_in_effect(NOW)] == ["now"]
    assert sorted(d.title for d in discounts_in_effect(NOW + timedelta(days=1, hours=1))) == ["later", "now"]
    assert discounts_in_effect(NOW + timedelta(days=8)) == []


def test_resolve_for_product_prefers_biggest_saving(catalog):
    create_discount_from_payload(payload(title="shoes 20%", categories=[catalog["shoes"].id]))
    create_discount_from_payload(payload(title="runner -25", type="fixed", value=25,
                                         products=[catalog["runner"].id]))
    create_discount_from_payload(payload(title="bags 50%", value=50, categories=[catalog["bags"].id]))

    assert resolve_for_product(catalog["runner"], NOW).title == "runner -25"
    assert resolve_for_product(catalog["loafer"], NOW).title == "shoes 20%"
    assert resolve_for_product(catalog["tote"], NOW).title == "bags 50%"
    assert resolve_for_product(catalog["tote"], NOW + timedelta(days=30)) is None
