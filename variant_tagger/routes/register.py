# variant_tagger/routes/register.py
from flask import Blueprint, current_app

from .. import config
from ..services.subscriptions import ensure_subscription

bp = Blueprint("register", __name__)

@bp.get("")
def register():
    store = current_app.config["STORE"]
    if not config.BASE_URL:
        return "Missing BASE_URL in env.", 500
    if not (store.get("domain") and store.get("token")):
        return f"Missing domain/token for {store.get('domain') or 'unknown'}", 500

    report = ensure_subscription(store, config.WEBHOOK_TOPIC, f"{config.BASE_URL}{config.WEBHOOK_PATH}")
    return report.summary(), (200 if report.ok else 502)
