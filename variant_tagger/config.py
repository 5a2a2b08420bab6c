import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


API_VERSION = os.getenv("API_VERSION", "2024-10")
BASE_URL = os.getenv("BASE_URL")

STORE = {
    "domain": os.getenv("SHOPIFY_STORE_DOMAIN"),
    "token": os.getenv("SHOPIFY_ACCESS_TOKEN"),
    "secret": os.getenv("SHOPIFY_API_SECRET"),
    "name": os.getenv("SHOPIFY_STORE_NAME", "STORE"),
}

# Webhook subscription
WEBHOOK_TOPIC = os.getenv("WEBHOOK_TOPIC", "products/update")
WEBHOOK_PATH = "/webhooks/products"
REGISTER_ON_BOOT = _flag("REGISTER_ON_BOOT", "true")

# Metafields: where the label lives, and where the best-seller signal comes from
LABEL_NAMESPACE = os.getenv("LABEL_NAMESPACE", "custom")
LABEL_KEY = os.getenv("LABEL_KEY", "tag")
SIGNAL_NAMESPACE = os.getenv("SIGNAL_NAMESPACE", "espresso")
SIGNAL_KEY = os.getenv("SIGNAL_KEY", "best_selling_30_days")

# Classification
NEW_WINDOW_DAYS = int(os.getenv("NEW_WINDOW_DAYS", "45"))

# Pipeline pacing
COOLDOWN_SEC = float(os.getenv("COOLDOWN_SEC", "30"))
THROTTLE_SEC = float(os.getenv("THROTTLE_SEC", "1.0"))
RETRY_ATTEMPTS = int(os.getenv("RETRY_ATTEMPTS", "3"))
RETRY_WAIT_SEC = float(os.getenv("RETRY_WAIT_SEC", "2"))
HTTP_TIMEOUT_SEC = float(os.getenv("HTTP_TIMEOUT_SEC", "30"))

# Bulk sync
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "250"))
QUEUE_BATCH_SIZE = int(os.getenv("QUEUE_BATCH_SIZE", "25"))
QUEUE_INTERVAL_SEC = float(os.getenv("QUEUE_INTERVAL_SEC", "30"))
FULL_SYNC_INTERVAL_SEC = float(os.getenv("FULL_SYNC_INTERVAL_SEC", "0"))  # 0 = off
