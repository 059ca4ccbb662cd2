# productsync/services/sync.py
import copy
import enum
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import requests

from ..clients.shopify import ShopifyClient
from ..config import DEBOUNCE_SEC, SYNC_LOCK_TIMEOUT_SEC, LEGACY_MARKER_TAGS
from ..db.store import SyncRecordStore
from ..errors import NormalizationError, PlatformApiError
from ..models import Session, SyncRecord
from ..utils.logger import debug, info, warn, error
from .diff import diff
from .normalize import normalize, parse_id, strip_marker, add_marker


class SyncOutcome(enum.Enum):
    NOT_TRACKED = "not_tracked"
    SUPPRESSED = "suppressed"
    NO_CHANGE = "no_change"
    SYNCED = "synced"


# =========================================================
# Locks & Debounce
# ---------------------------------------------------------
# The debounce window is the echo guard: our own write to the counterpart
# comes back as a products/update webhook a moment later and must be dropped.
# It is a wall-clock heuristic, not mutual exclusion, so overlapping
# deliveries for one pair are additionally serialized by a per-pair lock.
# =========================================================

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()

def _key(shop: str, pid: int) -> str:
    return f"{shop}:{pid}"

def _lock_for(shop: str, pid: int) -> threading.Lock:
    k = _key(shop, pid)
    with _locks_guard:
        if k not in _locks:
            _locks[k] = threading.Lock()
        return _locks[k]

def forget_pair(shop: str, original_id: int):
    """Drop the lock of a pair that is no longer synced."""
    with _locks_guard:
        _locks.pop(_key(shop, original_id), None)

def forget_shop(shop: str):
    prefix = f"{shop}:"
    with _locks_guard:
        for k in [k for k in _locks if k.startswith(prefix)]:
            del _locks[k]

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _as_utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

def _debounced(record: SyncRecord, now: datetime, window_sec: Optional[int] = None) -> bool:
    if not record.last_synced:
        return False
    window = DEBOUNCE_SEC if window_sec is None else window_sec
    return now - _as_utc(record.last_synced) < timedelta(seconds=window)


# =========================================================
# Transformations
# =========================================================

ID_FIELDS = ("id", "product_id", "inventory_item_id")

def _markers(record: SyncRecord) -> List[str]:
    return [record.marker_tag, *LEGACY_MARKER_TAGS]

def _scale_prices(variants: List[dict], factor: float) -> List[dict]:
    out = []
    for v in variants:
        v = dict(v)
        if v.get("price") is not None:
            v["price"] = round(v["price"] * factor, 2)
        out.append(v)
    return out

def _unscale_prices(variants: List[dict], cached_variants: List[dict], multiplier: float) -> List[dict]:
    """
    Copy prices back to original scale. A copy price that is exactly the
    rounded forward price of the cached variant maps back to the cached
    price, so rounding never shows up as a change.
    """
    out = []
    for i, v in enumerate(variants):
        v = dict(v)
        before = cached_variants[i].get("price") if i < len(cached_variants) else None
        if v.get("price") is not None:
            if before is not None and round(before * multiplier, 2) == round(v["price"], 2):
                v["price"] = before
            else:
                v["price"] = round(v["price"] / multiplier, 2)
        out.append(v)
    return out

def _scrub(product: dict) -> dict:
    """Drop what belongs to one side only (ids, the shop-unique handle) and images (never synced)."""
    product.pop("id", None)
    product.pop("handle", None)
    product.pop("images", None)
    for o in product.get("options") or []:
        o.pop("id", None)
    product["variants"] = [{k: v for k, v in var.items() if k not in ID_FIELDS}
                           for var in product.get("variants") or []]
    return product

def original_payload(differences: dict, record: SyncRecord) -> dict:
    payload = copy.deepcopy(differences)
    if "tags" in payload:
        payload["tags"] = strip_marker(payload["tags"], _markers(record))
    return payload

def copy_payload(differences: dict, record: SyncRecord) -> dict:
    payload = copy.deepcopy(differences)
    if "tags" in payload:
        payload["tags"] = add_marker(strip_marker(payload["tags"], _markers(record)), record.marker_tag)
    if "variants" in payload:
        payload["variants"] = [{k: v for k, v in var.items() if k not in ID_FIELDS}
                               for var in _scale_prices(payload["variants"], record.price_multiplier)]
    return payload


# =========================================================
# Best-effort fan-out
# =========================================================

def _best_effort(ctx: str, step: str, failures: List[str], fn: Callable, *args):
    try:
        return fn(*args)
    except (PlatformApiError, NormalizationError, requests.RequestException) as e:
        error(f"{ctx} {step} failed: {e}")
        failures.append(step)
        return None


def _location_by_item(client: ShopifyClient, item_ids: List[int]) -> tuple[dict, Optional[int]]:
    locations = [loc["id"] for loc in client.list_locations() if loc.get("id")]
    if not locations:
        return {}, None
    levels = client.list_inventory_levels(location_ids=locations, inventory_item_ids=item_ids)
    wanted = set(item_ids)
    by_item = {lvl["inventory_item_id"]: lvl["location_id"] for lvl in levels
               if lvl.get("inventory_item_id") in wanted}
    return by_item, locations[0]


def mirror_inventory(ctx: str, client: ShopifyClient, src_variants: List[dict], counterpart: dict):
    """Set each counterpart variant's stock to its source variant's quantity, paired by position."""
    dst_variants = normalize(counterpart)["variants"]
    pairs = [(s, d) for s, d in zip(src_variants, dst_variants) if d.get("inventory_item_id")]
    if not pairs:
        debug(f"{ctx} no counterpart inventory items to update")
        return
    dst_items = [parse_id(d["inventory_item_id"]) for _, d in pairs]
    by_item, fallback = _location_by_item(client, dst_items)

    for (src, _), item_id in zip(pairs, dst_items):
        location_id = by_item.get(item_id) or fallback
        if not location_id:
            warn(f"{ctx} no location for inventory item {item_id}, skipping")
            continue
        qty = src.get("inventory_quantity") or 0
        client.set_inventory_level(item_id, location_id, qty)
        debug(f"{ctx} inventory item {item_id} @ {location_id} -> {qty}")


def mirror_category(client: ShopifyClient, src_pid: int, dst_pid: int):
    client.set_product_category(dst_pid, client.get_product_category(src_pid))


# =========================================================
# Core reconciliation
# =========================================================

def handle_product_update(shop: str, session: Session, payload: dict, records: SyncRecordStore,
                          client: Optional[ShopifyClient] = None) -> SyncOutcome:
    """
    Reconcile one products/update delivery for either side of a pair.

    Raises NormalizationError / InconsistentStateError / StoreError before
    anything is written. Once writes start, platform failures are logged
    per step and the cache is still updated.
    """
    updated_id = parse_id(payload.get("id"))
    ctx = f"[sync shop={shop} pid={updated_id}]"

    found = records.lookup(shop, updated_id)
    if not found:
        debug(f"{ctx} not synced, ignoring")
        return SyncOutcome.NOT_TRACKED
    record, is_original = found

    if _debounced(record, _now()):
        info(f"{ctx} synced within the last {DEBOUNCE_SEC}s, ignoring")
        return SyncOutcome.SUPPRESSED

    lock = _lock_for(shop, record.original_id)
    if not lock.acquire(timeout=SYNC_LOCK_TIMEOUT_SEC):
        warn(f"{ctx} pair {record.original_id}<->{record.copy_id} busy for {SYNC_LOCK_TIMEOUT_SEC}s, dropping")
        return SyncOutcome.SUPPRESSED
    try:
        # another delivery may have finished while we waited
        found = records.lookup(shop, updated_id)
        if not found:
            return SyncOutcome.NOT_TRACKED
        record, is_original = found
        if _debounced(record, _now()):
            info(f"{ctx} synced while waiting for lock, ignoring")
            return SyncOutcome.SUPPRESSED
        return _reconcile(ctx, shop, session, payload, record, is_original, records, client)
    finally:
        lock.release()


def _reconcile(ctx: str, shop: str, session: Session, payload: dict, record: SyncRecord,
               is_original: bool, records: SyncRecordStore, client: Optional[ShopifyClient]) -> SyncOutcome:
    updated_id = record.original_id if is_original else record.copy_id
    other_id = record.other_id(updated_id)
    info(f"{ctx} updated product is the {'original' if is_original else 'copy'} (other={other_id})")

    cached = normalize(record.cached_product_data)
    new = normalize(payload)
    src_variants = copy.deepcopy(new["variants"])

    new["tags"] = strip_marker(new["tags"], _markers(record))
    if not is_original:
        new["variants"] = _unscale_prices(new["variants"], cached["variants"], record.price_multiplier)

    # the cache keeps the original's own handle and images
    keep = new if is_original else cached
    handle, images = keep.get("handle"), keep.get("images")
    _scrub(cached)
    _scrub(new)

    differences = diff(cached, new)
    if not differences:
        info(f"{ctx} nothing changed")
        return SyncOutcome.NO_CHANGE
    # the marker differs per side, so tags are always written
    differences["tags"] = new["tags"]
    info(f"{ctx} changed fields: {sorted(differences)}")

    client = client or ShopifyClient(session)
    failures: List[str] = []

    updated_original = _best_effort(ctx, "update original", failures,
                                    client.update_product, record.original_id, original_payload(differences, record))
    updated_copy = _best_effort(ctx, "update copy", failures,
                                client.update_product, record.copy_id, copy_payload(differences, record))

    counterpart = updated_copy if is_original else updated_original
    if not counterpart:
        counterpart = _best_effort(ctx, "fetch counterpart", failures, client.get_product, other_id)
    if counterpart:
        _best_effort(ctx, "inventory", failures, mirror_inventory,
                     ctx, client, src_variants, counterpart)

    _best_effort(ctx, "category", failures, mirror_category, client, updated_id, other_id)
    _best_effort(ctx, "metafields", failures, client.set_counterpart_metafields,
                 record.original_id, record.copy_id)

    new["id"] = record.original_id
    new["handle"] = handle
    if images:
        new["images"] = images
    records.update_cache(shop, updated_id, is_original, new, _now())

    if failures:
        warn(f"{ctx} synced with failed steps: {', '.join(failures)}")
    else:
        info(f"{ctx} sync complete {record.original_id} <-> {record.copy_id}")
    return SyncOutcome.SYNCED
