"""
Pytest configuration and shared fixtures for the ProductSync tests.
"""

import copy
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from productsync.clients.shopify import ShopifyClient
from productsync.db.store import SessionRepository, SyncRecordStore
from productsync.models import Session


# ============================================================================
# IN-MEMORY DOCUMENT STORE
# ============================================================================

class MemoryDocumentStore:
    """Same contract as DocumentStore: exact-match queries on top-level fields."""

    def __init__(self):
        self.data = {}

    def _coll(self, ns, collection):
        return self.data.setdefault(ns, {}).setdefault(collection, [])

    @staticmethod
    def _match(doc, query):
        return all(doc.get(k) == v for k, v in query.items())

    def insert(self, ns, collection, doc):
        doc = copy.deepcopy(doc)
        doc["last_modified"] = datetime.now(timezone.utc)
        self._coll(ns, collection).append(doc)

    def find(self, ns, collection, query):
        return [copy.deepcopy(d) for d in self._coll(ns, collection) if self._match(d, query)]

    def update(self, ns, collection, query, patch):
        for d in self._coll(ns, collection):
            if self._match(d, query):
                d.update(copy.deepcopy(patch))
                d["last_modified"] = datetime.now(timezone.utc)
                return 1
        return 0

    def delete(self, ns, collection, query):
        docs = self._coll(ns, collection)
        for i, d in enumerate(docs):
            if self._match(d, query):
                del docs[i]
                return 1
        return 0

    def drop_collection(self, ns, collection):
        self.data.get(ns, {}).pop(collection, None)


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def records(store):
    return SyncRecordStore(store, "ProductSync")


@pytest.fixture
def sessions(store):
    return SessionRepository(store, "ProductSync", "clients")


@pytest.fixture
def shop():
    return "widgets.myshopify.com"


@pytest.fixture
def session(shop, sessions):
    s = Session(shop=shop, access_token="shpat_test")
    sessions.save(s)
    return s


# ============================================================================
# SAMPLE PRODUCTS
# ============================================================================

@pytest.fixture
def rest_product():
    """The original product as a products/update webhook delivers it."""
    return {
        "id": 100,
        "title": "Widget",
        "body_html": "<p>A widget</p>",
        "vendor": "Acme",
        "product_type": "Gadgets",
        "handle": "widget",
        "status": "active",
        "published_scope": "web",
        "template_suffix": None,
        "tags": "blue",
        "options": [{"id": 501, "product_id": 100, "name": "Size", "position": 1, "values": ["S", "M"]}],
        "variants": [
            {
                "id": 1001, "product_id": 100, "title": "S", "price": "10.00",
                "compare_at_price": None, "sku": "W-S", "position": 1,
                "option1": "S", "option2": None, "option3": None,
                "barcode": "123", "inventory_item_id": 9001, "inventory_management": "shopify",
                "inventory_policy": "deny", "inventory_quantity": 7, "weight": 1.5,
                "weight_unit": "lb", "requires_shipping": True, "taxable": True,
                "fulfillment_service": "manual",
            },
        ],
        "images": [{"id": 7001, "product_id": 100, "position": 1, "src": "https://cdn/w.png", "alt": None}],
    }


@pytest.fixture
def graphql_product():
    """The same product as the resource picker (GraphQL) hands it over."""
    return {
        "id": "gid://shopify/Product/100",
        "title": "Widget",
        "descriptionHtml": "<p>A widget</p>",
        "vendor": "Acme",
        "productType": "Gadgets",
        "handle": "widget",
        "status": "ACTIVE",
        "tags": ["blue"],
        "options": [{"id": "gid://shopify/ProductOption/501", "name": "Size", "position": 1, "values": ["S", "M"]}],
        "variants": {
            "edges": [
                {
                    "node": {
                        "id": "gid://shopify/ProductVariant/1001",
                        "title": "S",
                        "price": "10.00",
                        "compareAtPrice": None,
                        "sku": "W-S",
                        "position": 1,
                        "barcode": "123",
                        "selectedOptions": [{"name": "Size", "value": "S"}],
                        "inventoryItem": {"id": "gid://shopify/InventoryItem/9001"},
                        "inventoryManagement": "SHOPIFY",
                        "inventoryPolicy": "DENY",
                        "inventoryQuantity": 7,
                        "weight": 1.5,
                        "weightUnit": "POUNDS",
                        "requiresShipping": True,
                        "taxable": True,
                        "fulfillmentService": {"type": "MANUAL"},
                        "product": {"id": "gid://shopify/Product/100"},
                    }
                }
            ]
        },
    }


def as_copy(product, copy_id=200, multiplier=0.5, marker="ProductSync Copy"):
    """What the copy of `product` looks like on the store."""
    out = copy.deepcopy(product)
    out["id"] = copy_id
    out["handle"] = f"{product['handle']}-productsync-copy"
    out["tags"] = f"{product['tags']}, {marker}" if product["tags"] else marker
    for i, v in enumerate(out["variants"]):
        v["id"] = copy_id * 10 + i
        v["product_id"] = copy_id
        v["inventory_item_id"] = copy_id * 100 + i
        v["price"] = f"{float(v['price']) * multiplier:.2f}"
    for o in out["options"]:
        o["id"] = copy_id * 5
        o["product_id"] = copy_id
    out.pop("images", None)
    return out


@pytest.fixture
def copy_of():
    return as_copy


# ============================================================================
# MOCK PLATFORM CLIENT
# ============================================================================

@pytest.fixture
def client():
    """ShopifyClient double; product updates echo back a product with per-side variant ids."""
    mock = MagicMock(spec=ShopifyClient)

    def update_product(pid, fields):
        variants = [dict(v, id=pid * 10 + i, inventory_item_id=pid * 100 + i)
                    for i, v in enumerate(fields.get("variants") or [{"price": 1.0}])]
        return dict(fields, id=pid, status=fields.get("status", "active"), options=[], variants=variants)

    mock.update_product.side_effect = update_product
    mock.create_product.return_value = {"id": 200}
    mock.get_product_category.return_value = "gid://shopify/TaxonomyCategory/hg-1"
    mock.list_locations.return_value = [{"id": 55}, {"id": 56}]
    mock.list_inventory_levels.return_value = [{"inventory_item_id": 20000, "location_id": 56, "available": 3}]
    mock.list_images.return_value = []
    mock.list_collects.return_value = []
    return mock
