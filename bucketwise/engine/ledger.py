"""
Ledger aggregation.

Combines a week's budget rows, transactions and transfers into one
budgeted / spent / variance row per bucket. Stored budget rows are never
mutated; transfers are applied on every read.

Only expenses (negative amounts) count as spend. Income transactions
neither raise a bucket's budget nor lower its spend: budgets come from
the weekly allocation alone.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime, time
from decimal import Decimal

from bucketwise.engine.allocation import BUCKETS
from bucketwise.engine.classifier import resolve_bucket, unmapped_categories
from bucketwise.engine.money import round_money
from bucketwise.models.budget import Bucket, BucketTransfer, BudgetRow, Transaction
from bucketwise.models.results import (
    LedgerItem,
    LedgerRow,
    LedgerSummary,
    LedgerTotals,
)

ZERO = Decimal("0")


def aggregate_week(
    budgets: Iterable[BudgetRow],
    transactions: Iterable[Transaction],
    transfers: Iterable[BucketTransfer],
    mappings: Mapping[str, Bucket],
) -> LedgerSummary:
    """
    Per-bucket budgeted vs spent for one week.

    budgeted = base allocation + inbound transfers - outbound transfers
    spent    = sum of |amount| over expenses resolved to the bucket
    variance = budgeted - spent

    Unmapped legacy transactions count toward no bucket and are listed
    in unmapped_categories instead.
    """
    transactions = list(transactions)

    base: dict[Bucket, Decimal] = defaultdict(lambda: ZERO)
    for row in budgets:
        base[row.category] += row.amount

    delta: dict[Bucket, Decimal] = defaultdict(lambda: ZERO)
    for tr in transfers:
        delta[tr.from_bucket] -= tr.amount
        delta[tr.to_bucket] += tr.amount

    spent: dict[Bucket, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.amount >= 0:
            continue
        bucket = resolve_bucket(tx.category, mappings)
        if bucket is None:
            continue
        spent[bucket] += abs(tx.amount)

    rows = []
    for bucket in BUCKETS:
        budgeted = round_money(base[bucket] + delta[bucket])
        bucket_spent = round_money(spent[bucket])
        rows.append(LedgerRow(
            bucket=bucket,
            budgeted=budgeted,
            spent=bucket_spent,
            variance=round_money(budgeted - bucket_spent),
        ))

    total_budgeted = round_money(sum((r.budgeted for r in rows), ZERO))
    total_spent = round_money(sum((r.spent for r in rows), ZERO))

    return LedgerSummary(
        rows=rows,
        totals=LedgerTotals(
            budgeted=total_budgeted,
            spent=total_spent,
            variance=round_money(total_budgeted - total_spent),
        ),
        unmapped_categories=unmapped_categories(transactions, mappings),
    )


def _item_sort_key(item: LedgerItem) -> tuple[datetime, datetime]:
    # Transactions sort at the end of their own day, then by entry time
    if item.transaction is not None:
        tx = item.transaction
        return datetime.combine(tx.date, time.max), tx.created_at
    return item.transfer.created_at, item.transfer.created_at


def group_items_by_bucket(
    transactions: Iterable[Transaction],
    transfers: Iterable[BucketTransfer],
    mappings: Mapping[str, Bucket],
) -> dict[Bucket, list[LedgerItem]]:
    """Activity per bucket, newest first."""
    items: dict[Bucket, list[LedgerItem]] = {bucket: [] for bucket in BUCKETS}

    for tx in transactions:
        bucket = resolve_bucket(tx.category, mappings)
        if bucket is None:
            continue
        items[bucket].append(LedgerItem(kind="tx", transaction=tx))

    for tr in transfers:
        items[tr.from_bucket].append(LedgerItem(kind="transfer_out", transfer=tr))
        items[tr.to_bucket].append(LedgerItem(kind="transfer_in", transfer=tr))

    for bucket_items in items.values():
        bucket_items.sort(key=_item_sort_key, reverse=True)
    return items
