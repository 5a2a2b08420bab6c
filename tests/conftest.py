import copy
import time

import pytest

from variant_tagger.clients.shopify import TransientCatalogError
from variant_tagger.services import catalog

STORE = {"domain": "example.myshopify.com", "token": "shpat_test", "secret": "hush", "name": "TEST"}


def variant_node(num, *, created="2024-03-11T00:00:00Z", product_created="2024-03-01T00:00:00Z",
                 price="20.00", compare=None, best_seller=False, label=None):
    labels = [{"node": {"key": "tag", "value": label}}] if label is not None else []
    return {
        "id": f"gid://shopify/ProductVariant/{num}",
        "createdAt": created,
        "price": price,
        "compareAtPrice": compare,
        "product": {"id": "gid://shopify/Product/1", "createdAt": product_created},
        "labels": {"edges": labels},
        "signals": {"edges": [{"node": {"key": "best_selling_30_days", "value": "true" if best_seller else "false"}}]},
    }


class FakeShopify:
    """In-memory stand-in for the Admin GraphQL endpoint."""

    def __init__(self):
        self.variants = {}
        self.calls = []
        self.writes = []
        self.page_ids = []
        self.page_size = None
        self.user_errors = []
        # operation name -> list of exceptions to raise before answering
        self.failures = {}

    def add(self, node):
        self.variants[node["id"]] = copy.deepcopy(node)
        return node["id"]

    def fail(self, operation, *errors):
        self.failures.setdefault(operation, []).extend(errors)

    def __call__(self, domain, token, query, variables=None):
        variables = variables or {}
        op = next(name for name in ("variantForTagging", "setVariantLabel", "variantIds", "metafieldDefinitionCreate")
                  if name in query)
        self.calls.append((op, variables))
        pending = self.failures.get(op)
        if pending:
            raise pending.pop(0)
        if op == "variantForTagging":
            node = self.variants.get(variables["id"])
            return {"data": {"productVariant": copy.deepcopy(node)}}
        if op == "setVariantLabel":
            mf = variables["metafields"][0]
            if self.user_errors:
                return {"data": {"metafieldsSet": {"metafields": [], "userErrors": self.user_errors}}}
            self.writes.append((mf["ownerId"], mf["value"]))
            node = self.variants.get(mf["ownerId"])
            if node is not None:
                node["labels"] = {"edges": [{"node": {"key": mf["key"], "value": mf["value"]}}]}
            return {"data": {"metafieldsSet": {"metafields": [{"key": mf["key"], "value": mf["value"]}], "userErrors": []}}}
        if op == "variantIds":
            size = variables["first"]
            start = int(variables["after"] or 0)
            chunk = self.page_ids[start:start + size]
            end = start + len(chunk)
            return {"data": {"productVariants": {
                "edges": [{"node": {"id": vid}} for vid in chunk],
                "pageInfo": {"hasNextPage": end < len(self.page_ids), "endCursor": str(end)},
            }}}
        return {"data": {}}


@pytest.fixture()
def store():
    return dict(STORE)


@pytest.fixture()
def shopify(monkeypatch):
    fake = FakeShopify()
    monkeypatch.setattr(catalog, "graphql", fake)
    return fake


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Retry waits and throttle pauses return immediately; durations are recorded."""
    recorded = []
    monkeypatch.setattr(time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded


@pytest.fixture()
def transient():
    return lambda msg="HTTP 503": TransientCatalogError(msg)
