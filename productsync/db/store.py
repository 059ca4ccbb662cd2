# productsync/db/store.py
"""
Persistence for sync records and shop sessions.

One MongoDB database (MONGO_DB) holds:
  - one collection per shop with that shop's sync records
  - the sessions collection (SESSIONS_COLLECTION), one document per shop

Every call is atomic on its own; nothing here spans more than one
document write, so callers must tolerate a crash between calls.
"""
import threading
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..config import MONGO_URI, MONGO_DB, SESSIONS_COLLECTION
from ..errors import InconsistentStateError, StoreError
from ..models import Session, SyncRecord
from ..utils.logger import info


def collection_for(shop: str) -> str:
    """`foo.myshopify.com` -> `foo`."""
    return shop.split(".")[0]


class DocumentStore:
    def __init__(self, client: MongoClient):
        self.client = client

    def _coll(self, ns: str, collection: str):
        return self.client[ns][collection]

    def insert(self, ns: str, collection: str, doc: dict):
        doc = dict(doc, last_modified=datetime.now(timezone.utc))
        try:
            return self._coll(ns, collection).insert_one(doc).inserted_id
        except PyMongoError as e:
            raise StoreError(f"insert into {ns}.{collection} failed: {e}") from e

    def find(self, ns: str, collection: str, query: dict) -> List[dict]:
        try:
            return list(self._coll(ns, collection).find(query, {"_id": False}))
        except PyMongoError as e:
            raise StoreError(f"find in {ns}.{collection} failed: {e}") from e

    def update(self, ns: str, collection: str, query: dict, patch: dict):
        command = {"$set": patch, "$currentDate": {"last_modified": True}}
        try:
            return self._coll(ns, collection).update_one(query, command).modified_count
        except PyMongoError as e:
            raise StoreError(f"update in {ns}.{collection} failed: {e}") from e

    def delete(self, ns: str, collection: str, query: dict):
        try:
            return self._coll(ns, collection).delete_one(query).deleted_count
        except PyMongoError as e:
            raise StoreError(f"delete in {ns}.{collection} failed: {e}") from e

    def drop_collection(self, ns: str, collection: str):
        try:
            self.client[ns].drop_collection(collection)
        except PyMongoError as e:
            raise StoreError(f"drop {ns}.{collection} failed: {e}") from e
        info(f"[db] dropped collection {ns}.{collection}")


_store: Optional[DocumentStore] = None
_store_lock = threading.Lock()

def get_store() -> DocumentStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = DocumentStore(MongoClient(MONGO_URI, tz_aware=True))
        return _store


class SyncRecordStore:
    """Typed access to the per-shop sync record collections."""

    def __init__(self, store: DocumentStore, ns: str = MONGO_DB):
        self.store = store
        self.ns = ns

    def _find(self, shop: str, query: dict) -> List[SyncRecord]:
        return [SyncRecord.from_doc(d) for d in self.store.find(self.ns, collection_for(shop), query)]

    def lookup(self, shop: str, pid: int) -> Optional[Tuple[SyncRecord, bool]]:
        """Return (record, is_original) for a product id, or None if it is not synced."""
        originals = self._find(shop, {"original_id": pid})
        copies = self._find(shop, {"copy_id": pid})
        if len(originals) > 1 or len(copies) > 1 or (originals and copies):
            raise InconsistentStateError(f"There are multiple records for product {pid} in {shop}.")
        if originals:
            return originals[0], True
        if copies:
            return copies[0], False
        return None

    def get(self, shop: str, original_id: int) -> List[SyncRecord]:
        return self._find(shop, {"original_id": original_id})

    def all(self, shop: str) -> List[SyncRecord]:
        return self._find(shop, {})

    def insert(self, shop: str, record: SyncRecord):
        self.store.insert(self.ns, collection_for(shop), record.to_doc())

    def update_cache(self, shop: str, pid: int, is_original: bool, cached: dict, synced_at: datetime):
        query = {"original_id": pid} if is_original else {"copy_id": pid}
        self.store.update(self.ns, collection_for(shop), query,
                          {"cached_product_data": cached, "last_synced": synced_at})

    def delete(self, shop: str, pid: int, is_original: bool = True):
        query = {"original_id": pid} if is_original else {"copy_id": pid}
        return self.store.delete(self.ns, collection_for(shop), query)

    def drop(self, shop: str):
        self.store.drop_collection(self.ns, collection_for(shop))


class SessionRepository:
    def __init__(self, store: DocumentStore, ns: str = MONGO_DB, collection: str = SESSIONS_COLLECTION):
        self.store = store
        self.ns = ns
        self.collection = collection

    def get(self, shop: str) -> Optional[Session]:
        docs = self.store.find(self.ns, self.collection, {"shop": shop})
        if not docs or not docs[0].get("session"):
            return None
        return Session.from_doc(docs[0]["session"])

    def save(self, session: Session):
        if self.store.find(self.ns, self.collection, {"shop": session.shop}):
            self.store.update(self.ns, self.collection, {"shop": session.shop}, {"session": session.to_doc()})
        else:
            self.store.insert(self.ns, self.collection, {"shop": session.shop, "session": session.to_doc()})

    def delete(self, shop: str):
        return self.store.delete(self.ns, self.collection, {"shop": shop})
