import sys
import logging
import threading
from flask import Flask


def create_app(start_workers: bool = True, **overrides):
    from . import config
    from .services.cooldown import InMemoryCooldownStore
    from .services.work_queue import VariantQueue, start_full_sync_scheduler
    from .services.subscriptions import ensure_subscription
    from .utils.logger import info, error

    app = Flask(__name__)

    # =========================================================
    # Configure logging so logs show up on Render
    # =========================================================
    gunicorn_error = logging.getLogger("gunicorn.error")
    app.logger.handlers = gunicorn_error.handlers
    app.logger.setLevel(logging.INFO)

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    app.logger.addHandler(sh)

    # =========================================================
    # Runtime objects (replaceable in tests)
    # =========================================================
    # explicit None checks: an empty store/cooldown is falsy but still injected
    store = overrides.get("STORE")
    if store is None:
        store = dict(config.STORE)
    cooldown = overrides.get("COOLDOWN")
    if cooldown is None:
        cooldown = InMemoryCooldownStore(config.COOLDOWN_SEC)
    throttle = overrides.get("THROTTLE_SEC", config.THROTTLE_SEC)
    work = overrides.get("VARIANT_QUEUE")
    if work is None:
        work = VariantQueue(
            store, cooldown,
            batch_size=config.QUEUE_BATCH_SIZE,
            interval_sec=config.QUEUE_INTERVAL_SEC,
            throttle_sec=throttle,
        )
    app.config.update(STORE=store, COOLDOWN=cooldown, VARIANT_QUEUE=work, THROTTLE_SEC=throttle)

    # =========================================================
    # Blueprints
    # =========================================================
    from .routes.register import bp as register_bp
    from .routes.webhooks import bp as webhooks_bp
    from .routes.tagging import bp as tagging_bp
    from .routes.setup_metafields import bp as setup_bp

    app.register_blueprint(register_bp, url_prefix="/register_webhooks")
    app.register_blueprint(webhooks_bp, url_prefix="/webhooks")
    app.register_blueprint(tagging_bp, url_prefix="/tag-variants")
    app.register_blueprint(setup_bp, url_prefix="/setup/metafields")

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        app.logger.info("Health check endpoint called")
        return {"ok": True}, 200

    # =========================================================
    # Background: queue consumer, scheduled full sync, webhook subscription
    # =========================================================
    if start_workers:
        work.start()
        start_full_sync_scheduler(store, work, config.FULL_SYNC_INTERVAL_SEC)

        if config.REGISTER_ON_BOOT and config.BASE_URL and store.get("domain") and store.get("token"):
            def register():
                try:
                    ensure_subscription(store, config.WEBHOOK_TOPIC, f"{config.BASE_URL}{config.WEBHOOK_PATH}")
                except Exception as e:
                    error(f"webhook subscription check failed: {e}", "subscriptions")

            threading.Thread(target=register, name="register-webhooks", daemon=True).start()
        else:
            info("webhook subscription check skipped (REGISTER_ON_BOOT off or store/BASE_URL missing)", "subscriptions")

    return app
