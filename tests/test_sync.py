import threading
from datetime import datetime, timedelta, timezone

from variant_tagger.services.cooldown import InMemoryCooldownStore
from variant_tagger.services.sync import (
    COOLDOWN, FAILED, MALFORMED, NOT_FOUND, UNCHANGED, WRITE_FAILED, WRITTEN,
    reconcile_many, reconcile_variant,
)

from .conftest import variant_node

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def iso(dt):
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


class OpenGate:
    """Cooldown store that admits everything (isolates the write guard)."""

    def admit(self, variant_id):
        return True

    def expire(self, variant_id):
        pass


def test_new_beats_offer_and_hot_and_is_written(shopify, store):
    parent = NOW - timedelta(days=20)
    shopify.add(variant_node(1, created=iso(parent + timedelta(days=10)), product_created=iso(parent),
                             price="20.00", compare="25.00", best_seller=True, label="offer"))
    assert reconcile_variant(store, "1", OpenGate(), now=NOW) == WRITTEN
    assert shopify.writes == [("gid://shopify/ProductVariant/1", "New")]


def test_matching_label_with_other_casing_is_skipped(shopify, store):
    old = iso(NOW - timedelta(days=300))
    shopify.add(variant_node(2, created=old, product_created=old, price="20.00",
                             compare=None, best_seller=True, label="Hot"))
    assert reconcile_variant(store, "2", OpenGate(), now=NOW) == UNCHANGED
    shopify.variants["gid://shopify/ProductVariant/2"]["labels"]["edges"][0]["node"]["value"] = " HOT "
    assert reconcile_variant(store, "2", OpenGate(), now=NOW) == UNCHANGED
    assert shopify.writes == []


def test_none_not_written_over_missing_label(shopify, store):
    old = iso(NOW - timedelta(days=300))
    shopify.add(variant_node(3, created=old, product_created=old))
    assert reconcile_variant(store, "3", OpenGate(), now=NOW) == UNCHANGED
    assert shopify.writes == []


def test_stale_label_cleared_to_none(shopify, store):
    old = iso(NOW - timedelta(days=300))
    shopify.add(variant_node(4, created=old, product_created=old, label="Offer"))
    assert reconcile_variant(store, "4", OpenGate(), now=NOW) == WRITTEN
    assert shopify.writes == [("gid://shopify/ProductVariant/4", "None")]


def test_two_runs_write_once(shopify, store):
    old = iso(NOW - timedelta(days=300))
    shopify.add(variant_node(5, created=old, product_created=old, price="10.00", compare="12.50"))
    assert reconcile_variant(store, "5", OpenGate(), now=NOW) == WRITTEN
    assert reconcile_variant(store, "5", OpenGate(), now=NOW) == UNCHANGED
    assert len(shopify.writes) == 1


def test_cooldown_gate_runs_before_read(shopify, store):
    cooldown = InMemoryCooldownStore(window_sec=60)
    try:
        old = iso(NOW - timedelta(days=300))
        shopify.add(variant_node(6, created=old, product_created=old, price="10.00", compare="12.50"))
        assert reconcile_variant(store, "6", cooldown, now=NOW) == WRITTEN
        reads = len(shopify.calls)
        # the echo of our own write arrives while the entry is alive
        assert reconcile_variant(store, "gid://shopify/ProductVariant/6", cooldown, now=NOW) == COOLDOWN
        assert len(shopify.calls) == reads
        cooldown.expire("gid://shopify/ProductVariant/6")
        assert reconcile_variant(store, "6", cooldown, now=NOW) == UNCHANGED
    finally:
        cooldown.clear()


def test_failures_do_not_stop_siblings(shopify, store, sleeps):
    recent = datetime.now(timezone.utc) - timedelta(days=2)
    parent = recent - timedelta(days=100)
    shopify.add(variant_node(10, created=iso(recent), product_created=iso(parent)))
    bad = variant_node(11)
    bad["price"] = "twenty"
    shopify.add(bad)
    shopify.add(variant_node(12, created=iso(recent), product_created=iso(parent)))
    shopify.add(variant_node(13, created=iso(recent), product_created=iso(parent), label="New"))

    cooldown = InMemoryCooldownStore(window_sec=60)
    try:
        summary = reconcile_many(store, ["10", "11", "404", "12", "10", "13"], cooldown, throttle_sec=1.0)
    finally:
        cooldown.clear()

    assert summary["processed"] == 6
    assert summary[WRITTEN] == 2
    assert summary[MALFORMED] == 1
    assert summary[NOT_FOUND] == 1
    assert summary[COOLDOWN] == 1
    assert summary[UNCHANGED] == 1
    assert summary[FAILED] == 0
    # throttle only after ids that reached classification
    assert sleeps == [1.0, 1.0, 1.0]


def test_transient_read_exhaustion_skips_variant(shopify, store, transient):
    shopify.add(variant_node(20))
    shopify.fail("variantForTagging", transient(), transient(), transient())
    assert reconcile_variant(store, "20", OpenGate(), now=NOW) == FAILED
    assert shopify.writes == []


def test_write_user_errors_are_logged_not_raised(shopify, store):
    old = iso(NOW - timedelta(days=300))
    shopify.add(variant_node(21, created=old, product_created=old, best_seller=True))
    shopify.user_errors = [{"field": ["value"], "message": "nope"}]
    assert reconcile_variant(store, "21", OpenGate(), now=NOW) == WRITE_FAILED
    assert [op for op, _ in shopify.calls].count("setVariantLabel") == 1


def test_unexpected_error_is_contained(shopify, store, monkeypatch):
    from variant_tagger.services import sync

    def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(sync, "classify", boom)
    shopify.add(variant_node(30))
    shopify.add(variant_node(31))
    summary = reconcile_many(store, ["30", "31"], OpenGate(), throttle_sec=0)
    assert summary[FAILED] == 2
    assert summary["processed"] == 2


def test_cancelled_batch_stops(shopify, store):
    cancel = threading.Event()
    cancel.set()
    summary = reconcile_many(store, ["1", "2"], OpenGate(), throttle_sec=0, cancel=cancel)
    assert summary["processed"] == 0
    assert shopify.calls == []
