# productsync/errors.py
from typing import Optional


class ProductSyncError(Exception):
    pass


class NormalizationError(ProductSyncError):
    """Product payload is missing a required field or has an unparseable id."""


class InconsistentStateError(ProductSyncError):
    """More than one sync record claims the same product id. Needs manual repair."""


class AlreadySyncingError(ProductSyncError):
    pass


class StoreError(ProductSyncError):
    pass


class PlatformApiError(ProductSyncError):
    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class TransientApiError(PlatformApiError):
    """Rate limit / conflict / gateway failure; safe to retry."""
