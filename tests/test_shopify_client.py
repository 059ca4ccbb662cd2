"""
Tests for productsync/clients/shopify.py
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from productsync.clients.shopify import ShopifyClient, admin_base, product_gid
from productsync.errors import PlatformApiError, TransientApiError
from productsync.models import Session


def _resp(status=200, body=None):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = body if body is not None else {}
    r.content = b"{}" if body is not None else b""
    r.text = str(body)
    return r


@pytest.fixture
def api():
    return ShopifyClient(Session(shop="widgets.myshopify.com", access_token="shpat_test"))


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(ShopifyClient.request.retry, "sleep", lambda seconds: None)


@pytest.fixture
def http():
    with patch("productsync.clients.shopify.requests.request") as m:
        yield m


def test_urls_and_headers(api, http):
    http.return_value = _resp(200, {"product": {"id": 1}})

    api.get_product(1)

    method, url = http.call_args[0]
    assert method == "GET"
    assert url == f"{admin_base('widgets.myshopify.com')}/products/1.json"
    assert http.call_args.kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_test"


def test_product_gid():
    assert product_gid(42) == "gid://shopify/Product/42"


def test_missing_product_is_none(api, http):
    http.return_value = _resp(404, {"errors": "Not Found"})
    assert api.get_product(1) is None


def test_delete_already_gone(api, http):
    http.return_value = _resp(404, {"errors": "Not Found"})
    assert api.delete_product(1) is False


def test_delete(api, http):
    http.return_value = _resp(200, {})
    assert api.delete_product(1) is True


def test_client_error_raises(api, http):
    http.return_value = _resp(422, {"errors": {"title": ["can't be blank"]}})

    with pytest.raises(PlatformApiError) as exc:
        api.update_product(1, {"title": ""})
    assert exc.value.status == 422


def test_update_sends_id(api, http):
    http.return_value = _resp(200, {"product": {"id": 1, "title": "x"}})

    assert api.update_product(1, {"title": "x"}) == {"id": 1, "title": "x"}
    assert http.call_args.kwargs["json"] == {"product": {"title": "x", "id": 1}}


def test_network_error_is_platform_error(api, http):
    http.side_effect = requests.ConnectionError("refused")

    with pytest.raises(PlatformApiError, match="refused"):
        api.list_locations()


def test_rate_limit_is_retried(api, http, no_sleep):
    http.side_effect = [_resp(429, {"errors": "Throttled"}), _resp(200, {"locations": [{"id": 55}]})]

    assert api.list_locations() == [{"id": 55}]
    assert http.call_count == 2


def test_retries_give_up(api, http, no_sleep):
    http.return_value = _resp(503, {})

    with pytest.raises(TransientApiError):
        api.list_locations()
    assert http.call_count == 5


def test_graphql_errors(api, http):
    http.return_value = _resp(200, {"errors": [{"message": "Field 'x' doesn't exist"}]})

    with pytest.raises(PlatformApiError, match="GraphQL"):
        api.get_product_category(1)


class TestCategory:

    def test_get(self, api, http):
        http.return_value = _resp(200, {"data": {"product": {"id": "gid://shopify/Product/1",
                                                             "category": {"id": "gid://shopify/TaxonomyCategory/hg-1"}}}})
        assert api.get_product_category(1) == "gid://shopify/TaxonomyCategory/hg-1"

    def test_get_none(self, api, http):
        http.return_value = _resp(200, {"data": {"product": {"id": "gid://shopify/Product/1", "category": None}}})
        assert api.get_product_category(1) is None

    def test_clear(self, api, http):
        http.return_value = _resp(200, {"data": {"productUpdate": {"userErrors": []}}})

        api.set_product_category(2, None)

        variables = http.call_args.kwargs["json"]["variables"]
        assert variables == {"product": {"id": "gid://shopify/Product/2", "category": None}}

    def test_user_errors(self, api, http):
        http.return_value = _resp(200, {"data": {"productUpdate": {"userErrors": [{"message": "bad"}]}}})

        with pytest.raises(PlatformApiError):
            api.set_product_category(2, "gid://shopify/TaxonomyCategory/x")


def test_counterpart_metafields_point_both_ways(api, http):
    http.return_value = _resp(200, {"data": {"metafieldsSet": {"userErrors": []}}})

    api.set_counterpart_metafields(1, 2)

    mfs = http.call_args.kwargs["json"]["variables"]["metafields"]
    assert [(m["ownerId"], m["value"]) for m in mfs] == [
        ("gid://shopify/Product/1", "gid://shopify/Product/2"),
        ("gid://shopify/Product/2", "gid://shopify/Product/1"),
    ]
    assert {m["type"] for m in mfs} == {"product_reference"}


def test_inventory_levels_params(api, http):
    http.return_value = _resp(200, {"inventory_levels": []})

    api.list_inventory_levels(location_ids=[55, 56])

    assert http.call_args.kwargs["params"] == {"location_ids": "55,56"}


def test_set_inventory_level(api, http):
    http.return_value = _resp(200, {"inventory_level": {"available": 7}})

    api.set_inventory_level(9001, 55, 7)

    assert http.call_args[0][1].endswith("/inventory_levels/set.json")
    assert http.call_args.kwargs["json"] == {"location_id": 55, "inventory_item_id": 9001, "available": 7}
