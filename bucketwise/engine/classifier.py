"""
Category / bucket classification.

Transactions carry either a locked category ("wants::Coffee") whose bucket
was fixed when the transaction was created, or a legacy free-text label
("Coffee") resolved through the user's category mappings. Locking means a
later label edit can only rename, never move spend to another bucket.

Collections and adjustments are classified separately into the four
savings trackers by an ordered prefix rule list.
"""

from collections.abc import Iterable, Mapping
from typing import NamedTuple, Optional

from bucketwise.models.budget import (
    Bucket,
    CategoryMapping,
    TrackerBucket,
    Transaction,
)

LOCKED_DELIMITER = "::"

_BUCKETS_BY_VALUE = {bucket.value: bucket for bucket in Bucket}


class StoredCategory(NamedTuple):
    bucket: Optional[Bucket]
    raw: str


def make_stored_category(bucket: Bucket, raw: str) -> str:
    return f"{bucket.value}{LOCKED_DELIMITER}{raw}"


def split_stored_category(category: str) -> StoredCategory:
    """
    Split a stored category into its locked bucket and label.

    Only a known bucket prefix with a non-empty label counts as locked;
    anything else is returned whole as a legacy label.
    """
    idx = category.find(LOCKED_DELIMITER)
    if idx > 0:
        prefix = category[:idx].strip()
        raw = category[idx + len(LOCKED_DELIMITER):].strip()
        bucket = _BUCKETS_BY_VALUE.get(prefix)
        if bucket is not None and raw:
            return StoredCategory(bucket, raw)
    return StoredCategory(None, category)


def relabel_category(category: str, raw: str) -> str:
    """New stored category after a label edit, keeping any locked bucket."""
    locked = split_stored_category(category).bucket
    if locked is None:
        return raw
    return make_stored_category(locked, raw)


def mapping_dict(mappings: Iterable[CategoryMapping]) -> dict[str, Bucket]:
    return {m.raw_category: m.bucket for m in mappings}


def resolve_bucket(category: str, mappings: Mapping[str, Bucket]) -> Optional[Bucket]:
    """Bucket a transaction counts against, or None while unmapped."""
    parsed = split_stored_category(category)
    if parsed.bucket is not None:
        return parsed.bucket
    return mappings.get(category)


def unmapped_categories(
    transactions: Iterable[Transaction],
    mappings: Mapping[str, Bucket],
) -> list[str]:
    """Distinct legacy labels the user still has to assign, sorted."""
    found = set()
    for tx in transactions:
        if split_stored_category(tx.category).bucket is not None:
            continue
        if tx.category not in mappings:
            found.add(tx.category)
    return sorted(found)


# =============================================================================
# SAVINGS TRACKERS
# =============================================================================

# Evaluated in order; first matching prefix wins
TRACKER_RULES: tuple[tuple[str, TrackerBucket], ...] = (
    ("save", TrackerBucket.SAVINGS),
    ("student loans", TrackerBucket.STUDENT_LOANS),
    ("emergency", TrackerBucket.EMERGENCY),
)
DEFAULT_TRACKER = TrackerBucket.EXTRA_MONEY

TRACKER_LABELS: dict[TrackerBucket, str] = {
    TrackerBucket.SAVINGS: "save",
    TrackerBucket.STUDENT_LOANS: "student loans",
    TrackerBucket.EMERGENCY: "emergency",
    TrackerBucket.EXTRA_MONEY: "extra money",
}


def tracker_for_label(label: Optional[str]) -> TrackerBucket:
    """
    Tracker a collection label feeds.

    Labels may carry a note suffix, e.g. "student loans (gift)".
    Wants, expenses and anything unrecognised land in extra money.
    """
    text = (label or "").strip().lower()
    for prefix, tracker in TRACKER_RULES:
        if text.startswith(prefix):
            return tracker
    return DEFAULT_TRACKER


def tracker_label(tracker: TrackerBucket, note: Optional[str] = None) -> str:
    """Label stored on an adjustment row for a tracker."""
    base = TRACKER_LABELS[tracker]
    note = (note or "").strip()
    return f"{base} ({note})" if note else base
