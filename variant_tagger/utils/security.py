import base64, hashlib, hmac
from flask import request, abort

from .logger import warn

HMAC_HEADER = "X-Shopify-Hmac-Sha256"

def sign(secret: str, raw: bytes) -> str:
    digest = hmac.new(secret.encode(), raw, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()

def is_valid_hmac(secret: str | None, raw: bytes, their_hmac: str | None) -> bool:
    """Check a webhook signature over the exact bytes received (never re-serialized JSON)."""
    if not secret or not their_hmac:
        return False
    return hmac.compare_digest(sign(secret, raw), their_hmac)

def verify_webhook_hmac(secret: str | None) -> bytes:
    raw = request.get_data()
    if not is_valid_hmac(secret, raw, request.headers.get(HMAC_HEADER, "")):
        warn(f"rejected {request.path}: bad or missing {HMAC_HEADER} ({len(raw)} bytes)", "webhooks")
        abort(401)
    return raw
