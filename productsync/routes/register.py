# productsync/routes/register.py
from flask import Blueprint, current_app, g

from ..context import client_for
from ..errors import PlatformApiError
from ..utils.security import require_session

bp = Blueprint("register", __name__)

TOPICS = ("products/update", "products/delete", "app/uninstalled")


def ensure_webhooks(client, address: str, topics=TOPICS) -> list[str]:
    existing = client.list_webhooks()

    out = []
    for topic in topics:
        found = [w for w in existing if w.get("topic") == topic]

        if found:
            if any(w.get("address") == address for w in found):
                out.append(f"OK {topic}")
                continue

            # repoint the first one instead of adding a duplicate when the URL changes
            try:
                client.update_webhook(found[0].get("id"), address)
                out.append(f"UPDATED {topic}")
            except PlatformApiError as e:
                out.append(f"FAIL {topic} {e}")
            continue

        try:
            client.create_webhook(topic, address)
            out.append(f"CREATED {topic}")
        except PlatformApiError as e:
            out.append(f"FAIL {topic} {e}")
    return out


@bp.get("")
@require_session
def register():
    base_url = current_app.config.get("BASE_URL")
    if not base_url:
        return "Missing BASE_URL in env.", 500
    try:
        out = ensure_webhooks(client_for(g.session), f"{base_url}/api/webhooks")
    except PlatformApiError as e:
        return f"Failed to read existing webhooks: {e}", 500
    return "; ".join(out), 200
