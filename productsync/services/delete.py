# productsync/services/delete.py
from typing import List

from ..clients.shopify import ShopifyClient
from ..db.store import SessionRepository, SyncRecordStore
from ..errors import PlatformApiError
from ..models import SyncRecord
from ..utils.logger import debug, info, error
from .sync import forget_pair, forget_shop


def handle_delete(shop: str, product_id: int, records: SyncRecordStore, client: ShopifyClient) -> bool:
    """
    A product of a pair was deleted. Deleting the original also deletes the
    copy; deleting the copy only ends the sync. The record is removed either
    way, even when deleting the copy fails. Returns False when the product
    was not synced.
    """
    ctx = f"[delete shop={shop} pid={product_id}]"
    found = records.lookup(shop, product_id)
    if not found:
        debug(f"{ctx} not synced, ignoring")
        return False
    record, is_original = found

    try:
        if is_original:
            info(f"{ctx} original deleted, removing copy {record.copy_id}")
            client.delete_product(record.copy_id)
        else:
            info(f"{ctx} copy deleted, original {record.original_id} stays")
    except PlatformApiError as e:
        error(f"{ctx} deleting copy {record.copy_id} failed, remove it by hand: {e}")
    finally:
        records.delete(shop, product_id, is_original)
        forget_pair(shop, record.original_id)
    return True


def stop_sync(shop: str, original_id: int, records: SyncRecordStore, client: ShopifyClient) -> List[SyncRecord]:
    """Stop syncing an original and delete its copy. Unknown ids are a no-op."""
    found = records.get(shop, original_id)
    if not found:
        debug(f"[delete shop={shop} pid={original_id}] no record, nothing to stop")
        return []
    records.delete(shop, original_id)
    forget_pair(shop, original_id)
    client.delete_product(found[0].copy_id)
    info(f"[delete shop={shop} pid={original_id}] stopped sync, copy {found[0].copy_id} deleted")
    return found


def stop_all(shop: str, records: SyncRecordStore, client: ShopifyClient) -> List[dict]:
    results = []
    for record in records.all(shop):
        try:
            stop_sync(shop, record.original_id, records, client)
            results.append({"original_id": record.original_id, "copy_id": record.copy_id,
                            "success": True, "error": None})
        except PlatformApiError as e:
            error(f"[delete shop={shop} pid={record.original_id}] {e}")
            results.append({"original_id": record.original_id, "copy_id": record.copy_id,
                            "success": False, "error": str(e)})
    return results


def handle_uninstall(shop: str, records: SyncRecordStore, sessions: SessionRepository):
    records.drop(shop)
    sessions.delete(shop)
    forget_shop(shop)
    info(f"[uninstall shop={shop}] sync records and session removed")
