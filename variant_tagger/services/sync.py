# variant_tagger/services/sync.py
import time
import threading
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Optional

from .. import config
from ..clients.shopify import ShopifyError, TransientCatalogError, MalformedResponse
from ..utils.logger import debug, info, warn, error
from .catalog import fetch_variant, write_label, to_variant_gid, VariantNotFound, LabelWriteError
from .cooldown import CooldownStore
from .labels import classify, should_write, parse_label

# =========================================================
# Outcomes
# =========================================================

WRITTEN = "written"
UNCHANGED = "unchanged"
COOLDOWN = "cooldown"
NOT_FOUND = "not_found"
MALFORMED = "malformed"
FAILED = "failed"
WRITE_FAILED = "write_failed"

OUTCOMES = (WRITTEN, UNCHANGED, COOLDOWN, NOT_FOUND, MALFORMED, FAILED, WRITE_FAILED)

# Reached classification: the throttle pause applies after these
_CLASSIFIED = (WRITTEN, UNCHANGED, WRITE_FAILED)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

# =========================================================
# Single variant: cooldown gate -> read -> classify -> guard -> write
# =========================================================

def reconcile_variant(store: dict, variant_id: str, cooldown: CooldownStore,
                      now: Optional[datetime] = None) -> str:
    gid = to_variant_gid(variant_id)
    if not cooldown.admit(gid):
        debug(f"skip {gid}: recently processed", "tagger")
        return COOLDOWN

    try:
        snap = fetch_variant(store, gid)
    except VariantNotFound:
        info(f"skip {gid}: variant no longer exists", "tagger")
        return NOT_FOUND
    except MalformedResponse as e:
        warn(f"skip {gid}: {e} payload={e.payload!r}", "tagger")
        return MALFORMED
    except TransientCatalogError as e:
        warn(f"skip {gid}: read failed after retries: {e}", "tagger")
        return FAILED
    except ShopifyError as e:
        warn(f"skip {gid}: read failed: {e}", "tagger")
        return FAILED

    target = classify(now or _utcnow(), snap.created_at, snap.product_created_at,
                      snap.price, snap.compare_at_price, snap.best_seller,
                      window_days=config.NEW_WINDOW_DAYS)

    if not should_write(snap.current_label, target):
        info(f"skipped {gid}: already tagged as \"{snap.current_label or target.value}\"", "tagger")
        return UNCHANGED

    if snap.current_label.strip() and parse_label(snap.current_label) is None:
        warn(f"{gid} carries unknown label \"{snap.current_label}\", replacing", "tagger")
    info(f"updating {gid}: \"{snap.current_label}\" -> \"{target.value}\"", "tagger")
    try:
        write_label(store, gid, target)
    except LabelWriteError as e:
        warn(f"write rejected for {gid}: {e}", "tagger")
        return WRITE_FAILED
    except ShopifyError as e:
        warn(f"write failed for {gid}: {e}", "tagger")
        return WRITE_FAILED
    return WRITTEN

# =========================================================
# Batches
# =========================================================

def reconcile_many(store: dict, variant_ids: Iterable[str], cooldown: CooldownStore,
                   throttle_sec: float = config.THROTTLE_SEC,
                   cancel: Optional[threading.Event] = None) -> dict:
    """Run the pipeline for each id in order. One bad id never stops the rest."""
    counts = Counter({k: 0 for k in OUTCOMES})
    processed = 0
    for vid in variant_ids:
        if cancel is not None and cancel.is_set():
            warn(f"batch cancelled after {processed} ids", "tagger")
            break
        try:
            outcome = reconcile_variant(store, vid, cooldown)
        except Exception as e:
            error(f"unexpected error tagging {vid}: {e}", "tagger")
            outcome = FAILED
        counts[outcome] += 1
        processed += 1
        if outcome in _CLASSIFIED and throttle_sec > 0:
            time.sleep(throttle_sec)
    summary = dict(counts)
    summary["processed"] = processed
    return summary
