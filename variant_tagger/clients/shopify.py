import requests
from .. import config

class ShopifyError(Exception):
    """Base for every failure talking to the Admin API."""

class TransientCatalogError(ShopifyError):
    """Network trouble, throttling or a 5xx: safe to retry."""

class MalformedResponse(ShopifyError):
    def __init__(self, message: str, payload=None):
        super().__init__(message)
        self.payload = payload

RETRYABLE_STATUS = (429, 500, 502, 503, 504)

def admin_base(domain: str) -> str:
    return f"https://{domain}/admin/api/{config.API_VERSION}"

def rest_headers(token: str) -> dict:
    return {"Content-Type": "application/json", "X-Shopify-Access-Token": token}

def _is_throttled(errors) -> bool:
    for e in errors or []:
        code = ((e or {}).get("extensions") or {}).get("code")
        if code == "THROTTLED":
            return True
    return False

def graphql(domain: str, token: str, query: str, variables=None) -> dict:
    url = f"{admin_base(domain)}/graphql.json"
    try:
        r = requests.post(url, headers=rest_headers(token),
                          json={"query": query, "variables": variables or {}},
                          timeout=config.HTTP_TIMEOUT_SEC)
    except (requests.ConnectionError, requests.Timeout) as e:
        raise TransientCatalogError(f"graphql transport error: {e}") from e
    if r.status_code in RETRYABLE_STATUS:
        raise TransientCatalogError(f"graphql HTTP {r.status_code}: {r.text[:200]}")
    if r.status_code != 200:
        raise ShopifyError(f"graphql HTTP {r.status_code}: {r.text[:200]}")
    try:
        body = r.json()
    except ValueError as e:
        raise MalformedResponse(f"graphql body is not JSON: {e}", r.text) from e
    if not isinstance(body, dict):
        raise MalformedResponse("graphql body is not an object", body)
    if _is_throttled(body.get("errors")):
        raise TransientCatalogError("graphql THROTTLED")
    return body
