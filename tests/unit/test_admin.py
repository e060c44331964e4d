"""Tests for merchstudio.core.admin: publish toggles, products and orders."""

from __future__ import annotations

import json

import pytest

from merchstudio.core.admin import (
    OrderBook,
    ProductCatalog,
    apply_publish_form,
    design_id_from_field,
    parse_price,
    price_field_name,
    publish_field_name,
)
from merchstudio.core.record_store import new_design_id


class TestPublishFieldNames:
    @pytest.mark.parametrize(
        "design_id",
        ["ts_65f1a2b3c4d5e.12345678", "logo_1.2.3", "plain", new_design_id("ts")],
    )
    def test_round_trip(self, design_id):
        field_name = publish_field_name(design_id)
        assert "." not in field_name
        assert design_id_from_field(field_name) == design_id

    @pytest.mark.parametrize("design_id", ["ts_a-b.c", "a--b", "x-d", "-.-", "ts_a.b-c"])
    def test_round_trip_with_dashes(self, design_id):
        assert design_id_from_field(publish_field_name(design_id)) == design_id

    def test_dash_and_dot_ids_get_distinct_names(self):
        assert publish_field_name("ts_a-b") != publish_field_name("ts_a.b")
        assert price_field_name("a-b") != price_field_name("a.b")

    def test_malformed_escape(self):
        assert design_id_from_field("publish_ts_a-xb") is None
        assert design_id_from_field("publish_ts_a-") is None

    def test_unrelated_field(self):
        assert design_id_from_field("price_tee") is None

    def test_dot_free_field_name_survives_form_parsers(self):
        """A parser rewriting '.' to '_' must not break the round trip."""
        field_name = publish_field_name("ts_abc.123")
        mangled = field_name.replace(".", "_")
        assert design_id_from_field(mangled) == "ts_abc.123"


class TestApplyPublishForm:
    def test_publishes_checked_designs_only(self, records):
        ids = [new_design_id("ts") for _ in range(3)]
        for design_id in ids:
            records.append("tshirt", {"id": design_id, "file": f"{design_id}.png"})
        records.set_published("tshirt", [ids[2]])

        form_keys = ["section", publish_field_name(ids[0]), publish_field_name(ids[1])]
        changed = apply_publish_form(records, form_keys)

        flags = {r["id"]: r["published"] for r in records.list("tshirt")}
        assert flags == {ids[0]: True, ids[1]: True, ids[2]: False}
        assert changed == 3

    def test_empty_form_unpublishes_everything(self, records):
        design_id = new_design_id("ts")
        records.append("tshirt", {"id": design_id, "published": True})
        apply_publish_form(records, [])
        assert records.list("tshirt")[0]["published"] is False

    def test_dashed_id_stays_published(self, records):
        records.append("tshirt", {"id": "ts_a-b.c", "published": True})
        records.append("tshirt", {"id": "ts_a.b.c", "published": False})

        changed = apply_publish_form(records, [publish_field_name("ts_a-b.c")])

        assert changed == 0
        flags = {r["id"]: r["published"] for r in records.list("tshirt")}
        assert flags == {"ts_a-b.c": True, "ts_a.b.c": False}


class TestParsePrice:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("19.99", 19.99), (" 5 ", 5.0), (12, 12.0), ("0", None), ("-3", None),
         ("abc", None), ("", None), (None, None), ("nan", None), ("inf", None)],
    )
    def test_values(self, value, expected):
        assert parse_price(value) == expected


@pytest.fixture
def catalog(test_config) -> ProductCatalog:
    test_config.products_file.write_text(
        json.dumps([{"id": "tee", "name": "T-Shirt", "price": 20.0}]), encoding="utf-8"
    )
    return ProductCatalog(test_config.products_file)


class TestProductCatalog:
    def test_price_update(self, catalog):
        result = catalog.update({price_field_name("tee"): "24.5"})
        assert result.updated == ["tee"]
        assert catalog.list()[0]["price"] == 24.5

    def test_price_edit_targets_one_product(self, test_config):
        test_config.products_file.write_text(
            json.dumps(
                [{"id": "a.b", "name": "Dot", "price": 1.0}, {"id": "a-b", "name": "Dash", "price": 2.0}]
            ),
            encoding="utf-8",
        )
        catalog = ProductCatalog(test_config.products_file)
        result = catalog.update({price_field_name("a-b"): "9"})
        assert result.updated == ["a-b"]
        assert [p["price"] for p in catalog.list()] == [1.0, 9.0]

    def test_non_positive_price_ignored(self, catalog):
        result = catalog.update({price_field_name("tee"): "0"})
        assert result.updated == []
        assert catalog.list()[0]["price"] == 20.0

    def test_new_product_added_once(self, catalog):
        result = catalog.update({}, {"id": "mug", "name": "Mug", "price": "12"})
        assert result.added == "mug"
        assert result.rejected_reason is None
        assert catalog.list() == [
            {"id": "tee", "name": "T-Shirt", "price": 20.0},
            {"id": "mug", "name": "Mug", "price": 12.0},
        ]

    def test_duplicate_id_rejected(self, catalog):
        before = catalog.list()
        result = catalog.update({}, {"id": "tee", "name": "Other", "price": "9"})
        assert result.added is None
        assert "already exists" in result.rejected_reason
        assert catalog.list() == before

    def test_duplicate_check_is_case_sensitive(self, catalog):
        result = catalog.update({}, {"id": "TEE", "name": "Big tee", "price": "30"})
        assert result.added == "TEE"
        assert len(catalog.list()) == 2

    @pytest.mark.parametrize(
        "new_product",
        [
            {"id": "", "name": "Mug", "price": "12"},
            {"id": "mug", "name": " ", "price": "12"},
            {"id": "mug", "name": "Mug", "price": "free"},
            {"id": "mug", "name": "Mug", "price": "-1"},
        ],
    )
    def test_invalid_new_product_rejected(self, catalog, new_product):
        result = catalog.update({}, new_product)
        assert result.added is None
        assert result.rejected_reason
        assert len(catalog.list()) == 1

    def test_blank_new_product_is_ignored(self, catalog):
        result = catalog.update({}, {"id": "", "name": "", "price": ""})
        assert result.rejected_reason is None
        assert result.message == "Products updated."


class TestOrderBook:
    def test_orders_newest_first(self, test_config):
        orders = [
            {"order_id": "order_1", "total": 20.0, "items": []},
            {"order_id": "order_2", "total": 35.0, "items": []},
        ]
        test_config.orders_file.write_text(json.dumps(orders), encoding="utf-8")
        assert [o["order_id"] for o in OrderBook(test_config.orders_file).list()] == [
            "order_2",
            "order_1",
        ]

    def test_missing_file(self, test_config):
        assert OrderBook(test_config.orders_file).list() == []
