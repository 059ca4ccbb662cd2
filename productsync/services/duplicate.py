# productsync/services/duplicate.py
import copy
from datetime import datetime, timezone
from typing import List, Optional

from ..clients.shopify import ShopifyClient
from ..config import PRICE_MULTIPLIER, MARKER_TAG, COPY_IMAGES, COPY_COLLECTIONS
from ..db.store import SyncRecordStore
from ..errors import AlreadySyncingError, NormalizationError, ProductSyncError
from ..models import Session, SyncRecord
from ..utils.logger import info, warn, error
from .normalize import normalize, add_marker

COPY_HANDLE_SUFFIX = "-productsync-copy"

# product fields sent when creating the copy
COPY_FIELDS = ("title", "body_html", "vendor", "product_type", "published_scope",
               "status", "template_suffix")
VARIANT_SKIP = ("id", "product_id", "inventory_item_id", "inventory_quantity")


def build_copy(canonical: dict, multiplier: float = PRICE_MULTIPLIER, marker: str = MARKER_TAG) -> dict:
    """REST create payload for the copy of a canonical original."""
    product = {k: canonical.get(k) for k in COPY_FIELDS if canonical.get(k) is not None}
    product["tags"] = add_marker(canonical.get("tags") or "", marker)
    if canonical.get("handle"):
        product["handle"] = f"{canonical['handle']}{COPY_HANDLE_SUFFIX}"
    product["options"] = [{"name": o["name"], "values": o["values"]} for o in canonical.get("options") or []]

    variants = []
    for v in canonical.get("variants") or []:
        v = {k: val for k, val in v.items() if k not in VARIANT_SKIP and val is not None}
        if v.get("price") is not None:
            v["price"] = round(v["price"] * multiplier, 2)
        variants.append(v)
    product["variants"] = variants
    return product


def _copy_images(client: ShopifyClient, original_id: int, copy_id: int, notes: List[str]):
    for image in client.list_images(original_id):
        try:
            client.create_image(copy_id, {k: image.get(k) for k in ("src", "alt", "position") if image.get(k)})
        except ProductSyncError as e:
            notes.append(f"image {image.get('id')} not copied: {e}")

def _copy_collections(client: ShopifyClient, original_id: int, copy_id: int, notes: List[str]):
    for collect in client.list_collects(original_id):
        try:
            client.create_collect(copy_id, collect["collection_id"])
        except ProductSyncError as e:
            notes.append(f"collection {collect.get('collection_id')} not joined: {e}")


def duplicate(product: dict, session: Session, records: SyncRecordStore,
              client: Optional[ShopifyClient] = None,
              multiplier: float = PRICE_MULTIPLIER, marker: str = MARKER_TAG) -> dict:
    """Create the copy of `product`, link both sides and start tracking the pair."""
    client = client or ShopifyClient(session)
    shop = session.shop
    canonical = normalize(product)
    original_id = canonical["id"]
    ctx = f"[duplicate shop={shop} pid={original_id}]"

    if original_id is None:
        raise NormalizationError("Product has no id, cannot duplicate it.")

    if records.lookup(shop, original_id):
        raise AlreadySyncingError(f"Product {original_id} is already syncing.")

    notes: List[str] = []
    created = client.create_product(build_copy(canonical, multiplier, marker))
    copy_id = int(created["id"])
    info(f"{ctx} created copy {copy_id}")

    if COPY_IMAGES:
        try:
            _copy_images(client, original_id, copy_id, notes)
        except ProductSyncError as e:
            notes.append(f"images not copied: {e}")
    if COPY_COLLECTIONS:
        try:
            _copy_collections(client, original_id, copy_id, notes)
        except ProductSyncError as e:
            notes.append(f"collections not copied: {e}")

    # the next reconciliation re-sets these, so a failure here is not fatal
    try:
        client.set_counterpart_metafields(original_id, copy_id)
    except ProductSyncError as e:
        notes.append(f"counterpart metafields not set: {e}")

    record = SyncRecord(
        original_id=original_id,
        copy_id=copy_id,
        price_multiplier=multiplier,
        cached_product_data=copy.deepcopy(canonical),
        last_synced=datetime.now(timezone.utc),
        marker_tag=marker,
    )
    records.insert(shop, record)

    for n in notes:
        warn(f"{ctx} {n}")
    return {"copy_id": copy_id, "notes": notes}


def duplicate_many(products: List[dict], session: Session, records: SyncRecordStore,
                   client: Optional[ShopifyClient] = None) -> List[dict]:
    """Duplicate each product in turn; a failure is reported for that item only."""
    client = client or ShopifyClient(session)
    results = []
    for product in products:
        handle = product.get("handle") if isinstance(product, dict) else None
        try:
            out = duplicate(product, session, records, client)
            results.append({"handle": handle, "success": True, "copy_id": out["copy_id"],
                            "error": None, "notes": out["notes"]})
        except ProductSyncError as e:
            error(f"[duplicate shop={session.shop}] {handle or product!r}: {e}")
            results.append({"handle": handle, "success": False, "copy_id": None,
                            "error": str(e), "notes": []})
    return results
