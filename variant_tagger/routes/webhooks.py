# variant_tagger/routes/webhooks.py
import json
import threading
from flask import Blueprint, current_app

from ..utils.logger import info, warn, error
from ..utils.security import verify_webhook_hmac
from ..services.catalog import to_variant_gid
from ..services.sync import reconcile_many

bp = Blueprint("webhooks", __name__)

def variant_ids_from_payload(payload: dict) -> list[str]:
    """products/* webhook body -> variant GIDs, in payload order, without repeats."""
    out = []
    for v in payload.get("variants") or []:
        if not isinstance(v, dict):
            continue
        gid = v.get("admin_graphql_api_id") or (to_variant_gid(v["id"]) if v.get("id") else None)
        if gid and gid not in out:
            out.append(gid)
    return out

@bp.post("/products")
def products():
    store = current_app.config["STORE"]
    raw = verify_webhook_hmac(store["secret"])
    try:
        payload = json.loads(raw.decode("utf-8")) if raw else {}
    except ValueError as e:
        warn(f"/products body is not JSON: {e}", "webhooks")
        return "OK", 200
    pid = payload.get("id") if isinstance(payload, dict) else None
    ids = variant_ids_from_payload(payload) if isinstance(payload, dict) else []
    info(f"/products webhook received. PID={pid} variants={len(ids)}", "webhooks")
    if not ids:
        return "OK", 200

    cooldown = current_app.config["COOLDOWN"]
    throttle = current_app.config["THROTTLE_SEC"]

    def worker():
        try:
            summary = reconcile_many(store, ids, cooldown, throttle_sec=throttle)
            info(f"PID={pid} done: {summary}", "webhooks")
        except Exception as e:
            error(f"products worker PID={pid}: {e}", "webhooks")

    threading.Thread(target=worker, daemon=True).start()
    return "OK", 200
