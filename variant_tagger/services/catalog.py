# variant_tagger/services/catalog.py
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from .. import config
from ..clients.shopify import graphql, ShopifyError, TransientCatalogError, MalformedResponse
from ..utils.logger import debug, info, warn

VARIANT_GID = "gid://shopify/ProductVariant/"

class VariantNotFound(ShopifyError):
    pass

class LabelWriteError(ShopifyError):
    """metafieldsSet answered with userErrors: the request itself is wrong, do not retry."""
    def __init__(self, message: str, user_errors: list):
        super().__init__(message)
        self.user_errors = user_errors

def to_variant_gid(variant_id) -> str:
    vid = str(variant_id).strip()
    if vid.isdigit():
        return f"{VARIANT_GID}{vid}"
    return vid

# =========================================================
# GraphQL documents
# =========================================================

VARIANT_FOR_TAGGING = """
query variantForTagging($id: ID!, $labelNs: String!, $signalNs: String!) {
  productVariant(id: $id) {
    id
    createdAt
    price
    compareAtPrice
    product { id createdAt }
    labels: metafields(namespace: $labelNs, first: 10) {
      edges { node { key value } }
    }
    signals: metafields(namespace: $signalNs, first: 10) {
      edges { node { key value } }
    }
  }
}
"""

SET_LABEL = """
mutation setVariantLabel($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { key value }
    userErrors { field message }
  }
}
"""

VARIANT_IDS_PAGE = """
query variantIds($first: Int!, $after: String) {
  productVariants(first: $first, after: $after) {
    edges { node { id } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

# =========================================================
# Reader
# =========================================================

@dataclass(frozen=True)
class VariantSnapshot:
    id: str
    created_at: datetime
    product_created_at: datetime
    price: float
    compare_at_price: Optional[float]
    best_seller: bool
    current_label: str

def _edges_to_map(conn) -> dict[str, str]:
    out = {}
    for edge in (conn or {}).get("edges") or []:
        node = (edge or {}).get("node") or {}
        if node.get("key"):
            out[node["key"]] = node.get("value")
    return out

def _parse_ts(value) -> datetime:
    if not isinstance(value, str) or not value:
        raise ValueError(f"bad timestamp {value!r}")
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        raise ValueError(f"timestamp without timezone {value!r}")
    return ts

def parse_variant(node: dict) -> VariantSnapshot:
    """productVariant node -> snapshot; MalformedResponse on any missing/garbled field."""
    try:
        labels = _edges_to_map(node.get("labels"))
        signals = _edges_to_map(node.get("signals"))
        compare = node.get("compareAtPrice")
        return VariantSnapshot(
            id=node["id"],
            created_at=_parse_ts(node.get("createdAt")),
            product_created_at=_parse_ts((node.get("product") or {}).get("createdAt")),
            price=float(node["price"]),
            compare_at_price=float(compare) if compare not in (None, "") else None,
            best_seller=str(signals.get(config.SIGNAL_KEY) or "").strip().lower() == "true",
            current_label=labels.get(config.LABEL_KEY) or "",
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise MalformedResponse(f"unexpected productVariant shape: {e}", node) from e

@retry(
    reraise=True,
    stop=stop_after_attempt(config.RETRY_ATTEMPTS),
    wait=wait_fixed(config.RETRY_WAIT_SEC),
    retry=retry_if_exception_type(TransientCatalogError),
)
def fetch_variant(store: dict, variant_id: str) -> VariantSnapshot:
    gid = to_variant_gid(variant_id)
    resp = graphql(store["domain"], store["token"], VARIANT_FOR_TAGGING, {
        "id": gid,
        "labelNs": config.LABEL_NAMESPACE,
        "signalNs": config.SIGNAL_NAMESPACE,
    })
    data = resp.get("data")
    if not isinstance(data, dict):
        raise MalformedResponse("no data in productVariant response", resp)
    node = data.get("productVariant")
    if node is None:
        # null plus errors is a denied/broken query, not a vanished variant
        if resp.get("errors"):
            raise MalformedResponse(f"productVariant query failed for {gid}: {resp['errors']}", resp)
        raise VariantNotFound(f"variant {gid} not found")
    if not isinstance(node, dict):
        raise MalformedResponse("productVariant is not an object", resp)
    return parse_variant(node)

# =========================================================
# Writer
# =========================================================

@retry(
    reraise=True,
    stop=stop_after_attempt(config.RETRY_ATTEMPTS),
    wait=wait_fixed(config.RETRY_WAIT_SEC),
    retry=retry_if_exception_type(TransientCatalogError),
)
def write_label(store: dict, variant_id: str, label) -> None:
    gid = to_variant_gid(variant_id)
    value = getattr(label, "value", label)
    resp = graphql(store["domain"], store["token"], SET_LABEL, {"metafields": [{
        "ownerId": gid,
        "namespace": config.LABEL_NAMESPACE,
        "key": config.LABEL_KEY,
        "type": "single_line_text_field",
        "value": value,
    }]})
    if resp.get("errors"):
        raise LabelWriteError(f"metafieldsSet failed for {gid}: {resp['errors']}", resp["errors"])
    block = ((resp.get("data") or {}).get("metafieldsSet") or {})
    errs = block.get("userErrors") or []
    if errs:
        msg = "; ".join(f"{e.get('field')}: {e.get('message')}" for e in errs)
        raise LabelWriteError(f"metafieldsSet rejected {gid}: {msg}", errs)
    debug(f"wrote {config.LABEL_NAMESPACE}.{config.LABEL_KEY}={value} on {gid}", "tagger")

# =========================================================
# Bulk enumerator
# =========================================================

@dataclass
class EnumerationResult:
    ids: list[str] = field(default_factory=list)
    complete: bool = True
    pages: int = 0

    def __len__(self) -> int:
        return len(self.ids)

@retry(
    reraise=True,
    stop=stop_after_attempt(config.RETRY_ATTEMPTS),
    wait=wait_fixed(config.RETRY_WAIT_SEC),
    retry=retry_if_exception_type(TransientCatalogError),
)
def _fetch_page(store: dict, first: int, after: Optional[str]) -> dict:
    resp = graphql(store["domain"], store["token"], VARIANT_IDS_PAGE, {"first": first, "after": after})
    conn = (resp.get("data") or {}).get("productVariants")
    if not isinstance(conn, dict) or "pageInfo" not in conn:
        raise MalformedResponse("productVariants page missing pageInfo", resp)
    return conn

def list_variant_ids(store: dict, page_size: int = config.PAGE_SIZE,
                     cancel: Optional[threading.Event] = None,
                     on_page: Optional[Callable[[list[str]], object]] = None) -> EnumerationResult:
    """Walk every variant of the catalog. Truncated runs come back with complete=False.

    on_page receives each page's ids as soon as the page arrives, so a run
    cut short still hands over everything read so far.
    """
    result = EnumerationResult()
    after = None
    while True:
        if cancel is not None and cancel.is_set():
            warn(f"enumeration cancelled after {result.pages} pages ({len(result)} ids)", "bulk")
            result.complete = False
            return result
        try:
            conn = _fetch_page(store, page_size, after)
        except ShopifyError as e:
            warn(f"page {result.pages + 1} failed, stopping early with {len(result)} ids: {e}", "bulk")
            result.complete = False
            return result
        result.pages += 1
        page_ids = []
        for edge in conn.get("edges") or []:
            vid = ((edge or {}).get("node") or {}).get("id")
            if vid:
                page_ids.append(vid)
        result.ids.extend(page_ids)
        if on_page is not None and page_ids:
            on_page(page_ids)
        page_info = conn.get("pageInfo") or {}
        if not page_info.get("hasNextPage"):
            break
        after = page_info.get("endCursor")
        if not after:
            warn("hasNextPage without endCursor, stopping", "bulk")
            result.complete = False
            return result
    info(f"enumerated {len(result)} variants in {result.pages} pages", "bulk")
    return result
