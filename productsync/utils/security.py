import base64, hashlib, hmac
from functools import wraps

from flask import request, abort, g, jsonify

from ..context import sessions


def verify_webhook_hmac(secret: str):
    raw = request.get_data()
    their_hmac = request.headers.get("X-Shopify-Hmac-Sha256", "")
    digest = hmac.new(secret.encode(), raw, hashlib.sha256).digest()
    if not secret or not hmac.compare_digest(base64.b64encode(digest).decode(), their_hmac):
        abort(401)
    return raw


def require_session(view):
    """Resolve the calling shop's stored session into `g.shop` / `g.session`, or answer 401."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        shop = request.headers.get("X-Shopify-Shop-Domain") or request.args.get("shop")
        session = sessions().get(shop) if shop else None
        if session is None:
            return jsonify({"success": False, "error": "No session for shop.", "result": None}), 401
        g.shop = shop
        g.session = session
        return view(*args, **kwargs)
    return wrapper
