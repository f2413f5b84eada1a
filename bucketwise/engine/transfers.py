"""
Transfer & collection rules.

Pure decisions only: how much may move from one bucket to another, how
much a bucket can be collected for, which collection an undo targets.
The orchestrator persists whatever these functions approve.

Collected state is never a stored flag. A bucket is collected for a week
while an active (not undone) collection row exists for it.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any, Optional

from bucketwise.engine.money import round_money, to_decimal
from bucketwise.models.budget import (
    AdjustmentDirection,
    Bucket,
    BucketCollection,
    CollectionKind,
)
from bucketwise.models.results import LedgerSummary
from bucketwise.validation.errors import ValidationError

ZERO = Decimal("0")

_BUCKETS_BY_VALUE = {bucket.value: bucket for bucket in Bucket}


def _active_collections(
    collections: Iterable[BucketCollection],
) -> list[BucketCollection]:
    return [
        row for row in collections
        if row.is_active and row.kind == CollectionKind.COLLECTION
    ]


def collected_buckets(collections: Iterable[BucketCollection]) -> set[Bucket]:
    """Buckets with an active collection row (adjustments never count)."""
    collected = set()
    for row in _active_collections(collections):
        bucket = _BUCKETS_BY_VALUE.get(row.bucket)
        if bucket is not None:
            collected.add(bucket)
    return collected


def available_from_bucket(
    summary: LedgerSummary,
    bucket: Bucket,
    collected: set[Bucket],
) -> Decimal:
    """
    Leftover a bucket can give away.

    A collected bucket's leftover has already been withdrawn.
    """
    row = summary.row_for(bucket)
    if row is None or bucket in collected:
        return ZERO
    return max(ZERO, round_money(row.variance))


def plan_cover_transfer(
    summary: LedgerSummary,
    collected: set[Bucket],
    target: Bucket,
    source: Optional[Bucket],
    requested: Any = None,
) -> Decimal:
    """
    Amount to move from source to cover target's overspend.

    The amount is min(requested, deficit, available); with no request it
    is min(deficit, available).

    Raises:
        ValidationError: no source, source == target, target not
            overspent, nothing available, or a non-positive request
    """
    if source is None:
        raise ValidationError("Choose a source bucket to cover from", field="source")
    if source == target:
        raise ValidationError("Source and target can't be the same", field="source")

    target_row = summary.row_for(target)
    if target_row is None or target_row.variance >= 0:
        raise ValidationError(f"{target.value} is not overspent", field="target")
    deficit = round_money(abs(target_row.variance))

    available = available_from_bucket(summary, source, collected)
    if available <= 0:
        raise ValidationError("That source bucket has no available money", field="source")

    if requested is None or (isinstance(requested, str) and not requested.strip()):
        wanted = min(deficit, available)
    else:
        try:
            wanted = to_decimal(requested)
        except ValueError:
            raise ValidationError("Enter a valid cover amount", field="amount")
        if wanted <= 0:
            raise ValidationError("Enter a valid cover amount", field="amount")

    amount = round_money(min(wanted, deficit, available))
    if amount <= 0:
        raise ValidationError("Enter a valid cover amount", field="amount")
    return amount


def plan_collection(
    summary: LedgerSummary,
    collected: set[Bucket],
    bucket: Bucket,
) -> Decimal:
    """
    Amount a collection of bucket records: its full positive variance.

    Raises:
        ValidationError: already collected, or nothing left over
    """
    if bucket in collected:
        raise ValidationError(f"{bucket.value} is already collected this week", field="bucket")
    row = summary.row_for(bucket)
    if row is None or row.variance <= 0:
        raise ValidationError(
            f"Nothing to collect from {bucket.value}: not under budget",
            field="bucket",
        )
    return round_money(row.variance)


def latest_active_collection(
    collections: Iterable[BucketCollection],
    bucket: Bucket,
) -> Optional[BucketCollection]:
    """Newest active collection for bucket, the row an undo marks."""
    matching = [
        row for row in _active_collections(collections)
        if row.bucket == bucket.value
    ]
    if not matching:
        return None
    # stable sort: among equal timestamps the last inserted wins
    return sorted(matching, key=lambda row: row.created_at)[-1]


def adjustment_amount(magnitude: Any, direction: AdjustmentDirection) -> Decimal:
    """Signed amount for a manual tracker adjustment."""
    amount = round_money(magnitude)
    if amount <= 0:
        raise ValidationError("Enter an amount greater than 0", field="amount")
    return -amount if direction == AdjustmentDirection.SUBTRACT else amount
