# variant_tagger/services/labels.py
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .. import config

# =========================================================
# Label
# ---------------------------------------------------------
# The label is a cached, derived value: it can always be recomputed
# from the variant's own attributes and "now". Stored values are compared
# through normalize_label() (trim + lowercase) on both read and write;
# the capitalized enum value is what gets written.
# =========================================================

class Label(str, Enum):
    NEW = "New"
    OFFER = "Offer"
    HOT = "Hot"
    NONE = "None"

def normalize_label(value: Optional[str]) -> str:
    return (value or "").strip().lower()

def parse_label(value: Optional[str]) -> Optional[Label]:
    """Stored string -> Label. Empty/absent -> None; unknown text -> None too."""
    norm = normalize_label(value)
    for label in Label:
        if label.value.lower() == norm:
            return label
    return None

# =========================================================
# Classifier
# =========================================================

def classify(now: datetime, variant_created_at: datetime, product_created_at: datetime,
             price: float, compare_at_price: Optional[float], best_seller: bool,
             window_days: int = config.NEW_WINDOW_DAYS) -> Label:
    # first match wins: New > Offer > Hot > None
    if variant_created_at > product_created_at and (now - variant_created_at) < timedelta(days=window_days):
        return Label.NEW
    if (compare_at_price or 0.0) > price:
        return Label.OFFER
    if best_seller:
        return Label.HOT
    return Label.NONE

# =========================================================
# Write guard
# =========================================================

def should_write(current: Optional[str], target: Label) -> bool:
    cur = normalize_label(current)
    if cur == normalize_label(target.value):
        return False
    # empty-means-none: never write "None" over an absent label
    if target is Label.NONE and cur == "":
        return False
    return True
