# productsync/models.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .config import MARKER_TAG
from .errors import StoreError


@dataclass
class Session:
    shop: str
    access_token: str
    scope: Optional[str] = None

    def to_doc(self) -> dict:
        return {"shop": self.shop, "access_token": self.access_token, "scope": self.scope}

    @classmethod
    def from_doc(cls, doc: dict) -> "Session":
        return cls(shop=doc["shop"], access_token=doc["access_token"], scope=doc.get("scope"))


@dataclass
class SyncRecord:
    """Linkage between an original product and its copy, plus the cached snapshot."""
    original_id: int
    copy_id: int
    price_multiplier: float
    cached_product_data: dict
    last_synced: Optional[datetime] = None
    marker_tag: str = MARKER_TAG
    last_modified: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self):
        if self.original_id == self.copy_id:
            raise ValueError(f"original and copy share id {self.original_id}")
        if not 0 < self.price_multiplier <= 1:
            raise ValueError(f"price multiplier {self.price_multiplier} outside (0, 1]")

    def other_id(self, pid: int) -> int:
        return self.copy_id if pid == self.original_id else self.original_id

    def to_doc(self) -> dict:
        return {
            "original_id": self.original_id,
            "copy_id": self.copy_id,
            "price_multiplier": self.price_multiplier,
            "marker_tag": self.marker_tag,
            "cached_product_data": self.cached_product_data,
            "last_synced": self.last_synced,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "SyncRecord":
        try:
            return cls(
                original_id=int(doc["original_id"]),
                copy_id=int(doc["copy_id"]),
                price_multiplier=float(doc.get("price_multiplier") or 0.5),
                cached_product_data=doc.get("cached_product_data") or {},
                last_synced=doc.get("last_synced"),
                # records created before the marker was stored
                marker_tag=doc.get("marker_tag") or MARKER_TAG,
                last_modified=doc.get("last_modified"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"malformed sync record {doc!r}: {e}") from e

    def summary(self) -> dict:
        """JSON-safe view for the HTTP API."""
        cached = self.cached_product_data or {}
        return {
            "original_id": self.original_id,
            "copy_id": self.copy_id,
            "price_multiplier": self.price_multiplier,
            "marker_tag": self.marker_tag,
            "title": cached.get("title"),
            "handle": cached.get("handle"),
            "images": cached.get("images") or [],
            "cached_product_data": cached,
            "last_synced": self.last_synced.isoformat() if self.last_synced else None,
        }
