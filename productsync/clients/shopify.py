# productsync/clients/shopify.py
from typing import List, Optional

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..config import API_VERSION, COUNTERPART_NAMESPACE, COUNTERPART_KEY
from ..errors import PlatformApiError, TransientApiError
from ..models import Session

TRANSIENT_STATUSES = (409, 429, 502, 503, 504)


def admin_base(domain: str) -> str:
    return f"https://{domain}/admin/api/{API_VERSION}"

def rest_headers(token: str) -> dict:
    return {"Content-Type": "application/json", "X-Shopify-Access-Token": token}

def product_gid(pid: int | str) -> str:
    return f"gid://shopify/Product/{pid}"


# =========================================================
# GraphQL documents
# =========================================================

GET_CATEGORY_QUERY = """
query GetCategory($id: ID!) {
  product(id: $id) {
    id
    category { id }
  }
}
"""

UPDATE_CATEGORY_MUTATION = """
mutation UpdateCategory($product: ProductUpdateInput!) {
  productUpdate(product: $product) {
    product { id category { id } }
    userErrors { field message }
  }
}
"""

METAFIELDS_SET = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id namespace key }
    userErrors { field message }
  }
}
"""

METAFIELD_DEFINITION_CREATE = """
mutation metafieldDefinitionCreate($definition: MetafieldDefinitionInput!) {
  metafieldDefinitionCreate(definition: $definition) {
    createdDefinition { id name namespace key }
    userErrors { field message }
  }
}
"""


def _user_errors(block: Optional[dict]) -> List[dict]:
    return (block or {}).get("userErrors") or []


class ShopifyClient:
    """Admin API access for one shop session. Raises PlatformApiError on any failure."""

    def __init__(self, session: Session, timeout: int = 30):
        self.session = session
        self.base_url = admin_base(session.shop)
        self.headers = rest_headers(session.access_token)
        self.timeout = timeout

    # -----------------------------------------------------
    # transport
    # -----------------------------------------------------

    @retry(
        reraise=True,
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=6),
        retry=retry_if_exception_type(TransientApiError),
    )
    def request(self, method: str, endpoint: str, payload: Optional[dict] = None,
                params: Optional[dict] = None, allow_404: bool = False) -> Optional[dict]:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            r = requests.request(method, url, headers=self.headers, json=payload,
                                 params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise PlatformApiError(f"{method} {endpoint} failed: {e}") from e
        if r.status_code in TRANSIENT_STATUSES:
            raise TransientApiError(f"{method} {endpoint} -> {r.status_code}", r.status_code, r.text)
        if allow_404 and r.status_code == 404:
            return None
        if r.status_code >= 400:
            raise PlatformApiError(f"{method} {endpoint} -> {r.status_code}: {r.text}", r.status_code, r.text)
        if not r.content:
            return {}
        return r.json()

    def get(self, endpoint: str, params: Optional[dict] = None, **kw):
        return self.request("GET", endpoint, params=params, **kw)

    def post(self, endpoint: str, payload: dict):
        return self.request("POST", endpoint, payload=payload)

    def put(self, endpoint: str, payload: dict):
        return self.request("PUT", endpoint, payload=payload)

    def delete(self, endpoint: str, **kw):
        return self.request("DELETE", endpoint, **kw)

    def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        resp = self.post("graphql.json", {"query": query, "variables": variables or {}})
        if resp.get("errors"):
            raise PlatformApiError(f"GraphQL errors: {resp['errors']}", body=str(resp["errors"]))
        return resp.get("data") or {}

    # -----------------------------------------------------
    # products
    # -----------------------------------------------------

    def get_product(self, pid: int | str) -> Optional[dict]:
        resp = self.get(f"products/{pid}.json", allow_404=True)
        return (resp or {}).get("product")

    def create_product(self, product: dict) -> dict:
        return self.post("products.json", {"product": product}).get("product") or {}

    def update_product(self, pid: int | str, fields: dict) -> dict:
        payload = {"product": dict(fields, id=int(pid))}
        return self.put(f"products/{pid}.json", payload).get("product") or {}

    def delete_product(self, pid: int | str) -> bool:
        """False when the product was already gone."""
        return self.delete(f"products/{pid}.json", allow_404=True) is not None

    # -----------------------------------------------------
    # images & collections (used when creating a copy)
    # -----------------------------------------------------

    def list_images(self, pid: int | str) -> List[dict]:
        return self.get(f"products/{pid}/images.json").get("images", [])

    def create_image(self, pid: int | str, image: dict) -> dict:
        return self.post(f"products/{pid}/images.json", {"image": image}).get("image") or {}

    def list_collects(self, pid: int | str) -> List[dict]:
        return self.get("collects.json", params={"product_id": pid}).get("collects", [])

    def create_collect(self, pid: int | str, collection_id: int | str) -> dict:
        payload = {"collect": {"product_id": int(pid), "collection_id": int(collection_id)}}
        return self.post("collects.json", payload).get("collect") or {}

    # -----------------------------------------------------
    # inventory
    # -----------------------------------------------------

    def list_locations(self) -> List[dict]:
        return self.get("locations.json").get("locations", [])

    def list_inventory_levels(self, location_ids: Optional[List[int]] = None,
                              inventory_item_ids: Optional[List[int]] = None) -> List[dict]:
        params = {}
        if location_ids:
            params["location_ids"] = ",".join(str(i) for i in location_ids)
        if inventory_item_ids:
            params["inventory_item_ids"] = ",".join(str(i) for i in inventory_item_ids)
        return self.get("inventory_levels.json", params=params).get("inventory_levels", [])

    def set_inventory_level(self, inventory_item_id: int, location_id: int, available: int) -> dict:
        payload = {"location_id": int(location_id), "inventory_item_id": int(inventory_item_id),
                   "available": int(available)}
        return self.post("inventory_levels/set.json", payload).get("inventory_level") or {}

    # -----------------------------------------------------
    # category & metafields (GraphQL)
    # -----------------------------------------------------

    def get_product_category(self, pid: int | str) -> Optional[str]:
        data = self.graphql(GET_CATEGORY_QUERY, {"id": product_gid(pid)})
        category = (data.get("product") or {}).get("category")
        return category.get("id") if category else None

    def set_product_category(self, pid: int | str, category_id: Optional[str]):
        """`None` clears the category."""
        data = self.graphql(UPDATE_CATEGORY_MUTATION,
                            {"product": {"id": product_gid(pid), "category": category_id}})
        errs = _user_errors(data.get("productUpdate"))
        if errs:
            raise PlatformApiError(f"productUpdate category on {pid}: {errs}")

    def set_counterpart_metafields(self, original_id: int, copy_id: int):
        """Point each product's counterpart metafield at the other. Upsert, so safe to repeat."""
        def mf(owner, target):
            return {
                "ownerId": product_gid(owner),
                "namespace": COUNTERPART_NAMESPACE,
                "key": COUNTERPART_KEY,
                "type": "product_reference",
                "value": product_gid(target),
            }
        data = self.graphql(METAFIELDS_SET, {"metafields": [mf(original_id, copy_id), mf(copy_id, original_id)]})
        errs = _user_errors(data.get("metafieldsSet"))
        if errs:
            raise PlatformApiError(f"metafieldsSet {original_id}<->{copy_id}: {errs}")

    def create_metafield_definition(self, definition: dict) -> dict:
        data = self.graphql(METAFIELD_DEFINITION_CREATE, {"definition": definition})
        return data.get("metafieldDefinitionCreate") or {}

    # -----------------------------------------------------
    # webhooks & shop
    # -----------------------------------------------------

    def list_webhooks(self) -> List[dict]:
        return self.get("webhooks.json").get("webhooks", [])

    def create_webhook(self, topic: str, address: str) -> dict:
        payload = {"webhook": {"topic": topic, "address": address, "format": "json"}}
        return self.post("webhooks.json", payload).get("webhook") or {}

    def update_webhook(self, webhook_id: int, address: str) -> dict:
        payload = {"webhook": {"id": webhook_id, "address": address, "format": "json"}}
        return self.put(f"webhooks/{webhook_id}.json", payload).get("webhook") or {}

    def get_shop(self) -> dict:
        return self.get("shop.json").get("shop") or {}
