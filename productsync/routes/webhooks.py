# productsync/routes/webhooks.py
import json
import threading
import time
from flask import Blueprint, current_app, request

from ..context import records, sessions, client_for
from ..services.delete import handle_delete, handle_uninstall
from ..services.normalize import parse_id
from ..services.sync import handle_product_update
from ..utils.logger import info, warn, error
from ..utils.security import verify_webhook_hmac

bp = Blueprint("webhooks", __name__)

# In-memory idempotency (best-effort)
_SEEN_IDS: dict[str, float] = {}
_SEEN_TTL = 60 * 10  # 10 minutes
_seen_lock = threading.Lock()

def _seen(webhook_id: str) -> bool:
    now = time.time()
    with _seen_lock:
        for k, ts in list(_SEEN_IDS.items()):
            if now - ts > _SEEN_TTL:
                _SEEN_IDS.pop(k, None)
        if not webhook_id:
            return False
        if webhook_id in _SEEN_IDS:
            return True
        _SEEN_IDS[webhook_id] = now
        return False


def _spawn(target):
    threading.Thread(target=target, daemon=True).start()


# =========================================================
# Topic handlers (run on the worker thread, inside an app context)
# =========================================================

def _products_update(shop: str, payload: dict):
    session = sessions().get(shop)
    if session is None:
        warn(f"[webhook] products/update for {shop} without a stored session, ignoring")
        return
    outcome = handle_product_update(shop, session, payload, records(), client_for(session))
    info(f"[webhook] products/update {shop} pid={payload.get('id')}: {outcome.value}")

def _products_delete(shop: str, payload: dict):
    session = sessions().get(shop)
    if session is None:
        warn(f"[webhook] products/delete for {shop} without a stored session, ignoring")
        return
    handle_delete(shop, parse_id(payload.get("id")), records(), client_for(session))

def _uninstalled(shop: str, payload: dict):
    handle_uninstall(shop, records(), sessions())

def _customer_data(shop: str, payload: dict):
    # no customer data is stored
    info(f"[webhook] customer data webhook for {shop} acknowledged")


HANDLERS = {
    "products/update": _products_update,
    "products/delete": _products_delete,
    "app/uninstalled": _uninstalled,
    "shop/redact": _uninstalled,
    "customers/data_request": _customer_data,
    "customers/redact": _customer_data,
}


@bp.post("")
def receive():
    raw = verify_webhook_hmac(current_app.config["SHOPIFY_API_SECRET"])

    webhook_id = request.headers.get("X-Shopify-Webhook-Id", "")
    if _seen(webhook_id):
        return "OK", 200

    topic = request.headers.get("X-Shopify-Topic", "")
    shop = request.headers.get("X-Shopify-Shop-Domain", "")
    handler = HANDLERS.get(topic)
    info(f"[webhook] {topic} received for {shop} (id={webhook_id or '-'})")
    if handler is None or not shop:
        warn(f"[webhook] unhandled topic '{topic}' for '{shop}'")
        return "OK", 200

    payload = json.loads(raw.decode("utf-8")) if raw else {}
    app = current_app._get_current_object()

    # Respond 200 immediately; do work async
    def worker():
        with app.app_context():
            try:
                handler(shop, payload)
            except Exception as e:
                error(f"[webhook] {topic} worker {shop} pid={payload.get('id')}: {e}")

    _spawn(worker)
    return "OK", 200
