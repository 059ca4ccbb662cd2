# productsync/routes/setup_metafields.py
from flask import Blueprint, g

from ..config import COUNTERPART_NAMESPACE, COUNTERPART_KEY
from ..context import client_for
from ..errors import PlatformApiError
from ..utils.security import require_session

bp = Blueprint("setup_metafields", __name__)

# (name, namespace, key, type, description)
DEFS = [
    ("ProductSync: Counterpart", COUNTERPART_NAMESPACE, COUNTERPART_KEY, "product_reference",
     "The other product of a synced original/copy pair"),
]


def create_defs(client) -> str:
    out = []
    for name, ns, key, type_, desc in DEFS:
        definition = {
            "name": name,
            "namespace": ns,
            "key": key,
            "type": type_,
            "description": desc,
            "ownerType": "PRODUCT",
        }
        try:
            block = client.create_metafield_definition(definition)
        except PlatformApiError as e:
            out.append(f"{ns}.{key}: ERR {e}")
            continue

        created = block.get("createdDefinition")
        errs = block.get("userErrors") or []

        if created:
            out.append(f"{ns}.{key}: OK {created.get('id')}")
            continue

        if errs:
            msg = "; ".join([e.get("message", "") for e in errs])
            # Treat duplicates as success
            if "already been taken" in msg.lower() or "already exists" in msg.lower():
                out.append(f"{ns}.{key}: EXISTS")
            else:
                out.append(f"{ns}.{key}: ERR {msg}")
        else:
            out.append(f"{ns}.{key}: UNKNOWN {block}")

    return " ; ".join(out)


@bp.get("/create")
@require_session
def create():
    return create_defs(client_for(g.session)), 200
