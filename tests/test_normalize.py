"""
Tests for productsync/services/normalize.py
"""

import pytest

from productsync.errors import NormalizationError
from productsync.services.normalize import (
    normalize, parse_id, weight_unit, strip_marker, add_marker,
)


class TestParseId:

    @pytest.mark.parametrize("value,expected", [
        (123, 123),
        ("123", 123),
        ("gid://shopify/Product/7891234567890", 7891234567890),
        (None, None),
    ])
    def test_parse(self, value, expected):
        assert parse_id(value) == expected

    def test_garbage_raises(self):
        with pytest.raises(NormalizationError):
            parse_id("gid://shopify/Product/abc")


class TestWeightUnit:

    def test_graphql_units_are_mapped(self):
        assert weight_unit("POUNDS") == "lb"
        assert weight_unit("kilograms") == "kg"
        assert weight_unit("GRAMS") == "g"
        assert weight_unit("ounces") == "oz"

    def test_unknown_passes_through_lower_cased(self):
        assert weight_unit("STONE") == "stone"
        assert weight_unit("lb") == "lb"


class TestNormalize:

    def test_rest_shape(self, rest_product):
        p = normalize(rest_product)

        assert p["id"] == 100
        assert p["tags"] == "blue"
        assert p["template_suffix"] == ""
        assert p["options"] == [{"id": 501, "name": "Size", "position": 1, "values": ["S", "M"]}]
        v = p["variants"][0]
        assert v["price"] == 10.0
        assert v["inventory_item_id"] == 9001
        assert v["weight_unit"] == "lb"
        assert p["images"][0]["src"] == "https://cdn/w.png"

    def test_graphql_shape_matches_rest(self, rest_product, graphql_product):
        rest = normalize(rest_product)
        rest.pop("images")
        gql = normalize(graphql_product)

        assert gql == rest

    def test_defaults(self, rest_product):
        del rest_product["product_type"]
        del rest_product["published_scope"]

        p = normalize(rest_product)

        assert p["product_type"] == ""
        assert p["published_scope"] == "web"

    def test_tag_array_and_loose_string(self, rest_product):
        rest_product["tags"] = ["blue", " sale "]
        assert normalize(rest_product)["tags"] == "blue, sale"

        rest_product["tags"] = "blue,sale,,"
        assert normalize(rest_product)["tags"] == "blue, sale"

    def test_status_lower_cased(self, graphql_product):
        assert normalize(graphql_product)["status"] == "active"

    def test_graphql_measurement_weight(self, graphql_product):
        node = graphql_product["variants"]["edges"][0]["node"]
        del node["weight"], node["weightUnit"]
        node["inventoryItem"]["measurement"] = {"weight": {"value": 2.0, "unit": "KILOGRAMS"}}

        v = normalize(graphql_product)["variants"][0]

        assert v["weight"] == 2.0
        assert v["weight_unit"] == "kg"

    def test_nodes_connection(self, graphql_product):
        graphql_product["variants"] = {"nodes": [e["node"] for e in graphql_product["variants"]["edges"]]}
        assert normalize(graphql_product)["variants"][0]["id"] == 1001

    @pytest.mark.parametrize("field", ["status", "variants", "options"])
    def test_missing_required_field(self, rest_product, field):
        del rest_product[field]
        with pytest.raises(NormalizationError, match=field):
            normalize(rest_product)

    def test_non_mapping(self):
        with pytest.raises(NormalizationError):
            normalize(None)

    def test_idempotent(self, rest_product, graphql_product):
        for raw in (rest_product, graphql_product):
            once = normalize(raw)
            assert normalize(once) == once


class TestMarker:

    def test_strip_current_and_legacy(self):
        tags = "blue, ProductSync Copy, Wholesale Copy"
        assert strip_marker(tags, ["ProductSync Copy", "Wholesale Copy"]) == "blue"

    def test_strip_only_marker(self):
        assert strip_marker("ProductSync Copy", ["ProductSync Copy"]) == ""

    def test_add_once(self):
        assert add_marker("blue", "ProductSync Copy") == "blue, ProductSync Copy"
        assert add_marker("blue, ProductSync Copy", "ProductSync Copy") == "blue, ProductSync Copy"
        assert add_marker("", "ProductSync Copy") == "ProductSync Copy"
