# variant_tagger/routes/tagging.py
import threading
from flask import Blueprint, current_app, request, jsonify

from ..utils.logger import info, error
from ..services.sync import reconcile_many
from ..services.work_queue import enqueue_full_sync

bp = Blueprint("tagging", __name__)

def _requested_ids():
    body = request.get_json(silent=True) or {}
    ids = body.get("variant_ids") if isinstance(body, dict) else None
    if ids is None:
        return []
    if not isinstance(ids, list):
        return None
    return [str(v) for v in ids if v not in (None, "")]

@bp.post("")
def tag_variants():
    ids = _requested_ids()
    if ids is None:
        return jsonify({"error": "variant_ids must be a list"}), 400

    store = current_app.config["STORE"]

    if not ids:
        # No ids -> whole catalog. Enumeration runs off the request thread and
        # feeds the queue page by page; its outcome shows up in GET /queue.
        work = current_app.config["VARIANT_QUEUE"]

        def worker():
            try:
                enqueue_full_sync(store, work, cancel=work.stopping)
            except Exception as e:
                error(f"full sync worker: {e}", "bulk")

        threading.Thread(target=worker, daemon=True).start()
        return jsonify({
            "status": "accepted",
            "note": "enumerating the whole catalog in the background; see GET /tag-variants/queue",
        }), 202

    info(f"tagging requested for {len(ids)} variants", "tagger")
    summary = reconcile_many(store, ids, current_app.config["COOLDOWN"],
                             throttle_sec=current_app.config["THROTTLE_SEC"])
    return jsonify({"status": "done", **summary}), 200

@bp.post("/enqueue")
def enqueue():
    ids = _requested_ids()
    if ids is None:
        return jsonify({"error": "variant_ids must be a list"}), 400
    work = current_app.config["VARIANT_QUEUE"]
    n = work.put(ids)
    return jsonify({"status": "queued", "queued": n, "pending": work.pending()}), 202

@bp.get("/queue")
def queue_status():
    work = current_app.config["VARIANT_QUEUE"]
    return jsonify({
        "pending": work.pending(),
        "running": work.running,
        "last_full_sync": work.last_full_sync,
    }), 200
