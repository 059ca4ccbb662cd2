# productsync/routes/api.py
from flask import Blueprint, g, jsonify, request

from ..context import records, client_for
from ..errors import ProductSyncError
from ..services.delete import stop_sync, stop_all
from ..services.duplicate import duplicate_many
from ..utils.logger import error
from ..utils.security import require_session

bp = Blueprint("api", __name__)


def _reply(result=None, err=None, key="result", status=None):
    body = {"success": err is None, "error": err, key: result}
    return jsonify(body), status or (200 if err is None else 500)


@bp.get("/database/get")
@require_session
def list_synced():
    try:
        return _reply([r.summary() for r in records().all(g.shop)])
    except ProductSyncError as e:
        error(f"[api] list {g.shop}: {e}")
        return _reply([], str(e))


@bp.get("/database/get/<int:pid>")
@require_session
def get_synced(pid: int):
    try:
        return _reply([r.summary() for r in records().get(g.shop, pid)])
    except ProductSyncError as e:
        error(f"[api] get {g.shop} {pid}: {e}")
        return _reply([], str(e))


@bp.delete("/database/delete/<int:pid>")
@require_session
def delete_synced(pid: int):
    search = []
    try:
        search = [r.summary() for r in stop_sync(g.shop, pid, records(), client_for(g.session))]
        return _reply(search, key="search")
    except ProductSyncError as e:
        error(f"[api] delete {g.shop} {pid}: {e}")
        return _reply(search, str(e), key="search")


@bp.delete("/database/delete-all")
@require_session
def delete_all():
    try:
        results = stop_all(g.shop, records(), client_for(g.session))
    except ProductSyncError as e:
        error(f"[api] delete-all {g.shop}: {e}")
        return _reply([], str(e))
    failed = [r for r in results if not r["success"]]
    err = f"{len(failed)} of {len(results)} products could not be removed." if failed else None
    return _reply(results, err, status=200)


@bp.post("/database/insert")
@require_session
def insert():
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        body = body.get("products") or ([body["product"]] if body.get("product") else None)
    if not isinstance(body, list) or not body:
        return _reply([], "Expected a list of products.", status=400)

    results = duplicate_many(body, g.session, records(), client_for(g.session))
    failed = [r for r in results if not r["success"]]
    err = "; ".join(f"{r['handle'] or '?'}: {r['error']}" for r in failed) if failed else None
    return _reply(results, err, status=200)


@bp.get("/shop")
@require_session
def shop():
    try:
        return _reply(client_for(g.session).get_shop())
    except ProductSyncError as e:
        error(f"[api] shop {g.shop}: {e}")
        return _reply(None, str(e))
