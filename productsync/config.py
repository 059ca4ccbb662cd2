import os


def _flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


API_VERSION = os.getenv("API_VERSION", "2025-04")
BASE_URL = os.getenv("BASE_URL")

SHOPIFY_API_SECRET = os.getenv("SHOPIFY_API_SECRET", "")

MONGO_URI = os.getenv("MONGO_URI") or os.getenv("CONNECTION_STRING") or "mongodb://localhost:27017"
MONGO_DB = os.getenv("MONGO_DB", "ProductSync")
SESSIONS_COLLECTION = os.getenv("SESSIONS_COLLECTION", "clients")

DEBOUNCE_SEC = int(os.getenv("DEBOUNCE_SEC", "10"))         # echoes of our own writes land inside this
SYNC_LOCK_TIMEOUT_SEC = int(os.getenv("SYNC_LOCK_TIMEOUT_SEC", "30"))

PRICE_MULTIPLIER = float(os.getenv("PRICE_MULTIPLIER", "0.5"))
MARKER_TAG = os.getenv("MARKER_TAG", "ProductSync Copy")
LEGACY_MARKER_TAGS = [t.strip() for t in os.getenv("LEGACY_MARKER_TAGS", "Wholesale Copy").split(",") if t.strip()]

COUNTERPART_NAMESPACE = os.getenv("COUNTERPART_NAMESPACE", "productsync")
COUNTERPART_KEY = os.getenv("COUNTERPART_KEY", "counterpart")

COPY_IMAGES = _flag("COPY_IMAGES")
COPY_COLLECTIONS = _flag("COPY_COLLECTIONS")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
