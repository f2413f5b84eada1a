"""
Main Orchestrator for Bucketwise

This module ties the engine, the store and the audit log together and
defines the use-case flows for:
1. Weeks (income -> budgets, transactions, collect, cover overspend)
2. Savings trackers (totals, weekly breakdown, manual adjustments)
3. Goals (default seeding, targets, progress rings)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Input is validated before storage is touched
- Every multi-step mutation runs in one storage transaction
- Every week read comes from one consistent snapshot
- Every change is audited; every failure is logged and re-raised

The engine stays pure. Nothing in here computes money by itself.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, NamedTuple, Optional
from uuid import UUID

import structlog

from bucketwise.audit import AuditLogger
from bucketwise.config import BudgetSettings, get_settings
from bucketwise.engine import (
    adjustment_amount,
    aggregate_week,
    build_budget_rows,
    collected_buckets,
    goal_progress,
    group_items_by_bucket,
    is_in_week,
    latest_active_collection,
    make_stored_category,
    mapping_dict,
    plan_collection,
    plan_cover_transfer,
    relabel_category,
    split_stored_category,
    tracker_label,
    tracker_totals,
    week_end,
    week_start_for_income_entry,
    weekly_tracker_breakdown,
)
from bucketwise.models.budget import (
    PERMANENT_GOAL_KEYS,
    AdjustmentDirection,
    Bucket,
    BucketCollection,
    BucketTransfer,
    BudgetRow,
    CategoryMapping,
    CollectionKind,
    Goal,
    TrackerBucket,
    Transaction,
    TransactionKind,
    UserPreferences,
    WeeklyIncome,
)
from bucketwise.models.results import GoalCard, LedgerSummary, TrackerWeek, WeekView
from bucketwise.services.storage import (
    BudgetStorageInterface,
    ConnectionError,
    InMemoryBudgetStorage,
    NotFoundError,
    PersistenceError,
    SqlBudgetStorage,
)
from bucketwise.session import UserSession
from bucketwise.validation import BudgetValidator, ValidationError


class _Snapshot(NamedTuple):
    """Everything the ledger needs for one week, read together."""
    income: Optional[WeeklyIncome]
    budgets: list[BudgetRow]
    transactions: list[Transaction]
    transfers: list[BucketTransfer]
    mappings: dict[str, Bucket]
    collections: list[BucketCollection]


class _Flow:
    """Shared wiring: store, validator, audit log, error reporting."""

    def __init__(
        self,
        storage: BudgetStorageInterface,
        validator: Optional[BudgetValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[BudgetSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().budget
        self._validator = validator or BudgetValidator(self._settings)
        self._audit_logger = audit_logger or AuditLogger()

    @asynccontextmanager
    async def _reported(self, operation: str, session: UserSession) -> AsyncIterator[None]:
        """
        Log rejected input and store failures, then let them propagate.

        A missing week or entity is a warning, not a system error.
        """
        try:
            yield
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                operation=operation,
                issues=e.issues,
                user_id=session.user_id,
            )
            raise
        except NotFoundError as e:
            await self._audit_logger.log_not_found(
                operation=operation,
                message=str(e),
                user_id=session.user_id,
            )
            raise
        except PersistenceError as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": operation},
                user_id=session.user_id,
            )
            raise


class WeekFlow(_Flow):
    """
    Orchestrates everything that happens inside one budget week.

    Flow:
    1. Resolve week  -> pay schedule picks the week an income belongs to
    2. Rebuild       -> income upserted, budgets and transfers replaced
    3. Record        -> transactions, mappings
    4. Reconcile     -> collect leftovers, cover overspends
    5. Load          -> one snapshot aggregated into a WeekView
    """

    # -- pay schedule --------------------------------------------------

    async def get_preferences(self, session: UserSession) -> UserPreferences:
        """Stored pay schedule, or the configured defaults (not saved)."""
        user_id = session.require_user_id()
        async with self._reported("get_preferences", session):
            prefs = await self._storage.get_preferences(user_id)
        if prefs is not None:
            return prefs
        return UserPreferences(
            user_id=user_id,
            week_start_dow=self._settings.default_week_start_dow,
            notice_dow=self._settings.default_notice_dow,
        )

    async def save_preferences(
        self,
        session: UserSession,
        week_start_dow: Any,
        notice_dow: Any = None,
    ) -> UserPreferences:
        user_id = session.require_user_id()
        async with self._reported("save_preferences", session):
            start, notice = self._validator.validate_preferences(week_start_dow, notice_dow)
            prefs = await self._storage.upsert_preferences(UserPreferences(
                user_id=user_id,
                week_start_dow=start,
                notice_dow=notice,
            ))
        await self._audit_logger.log_preferences_saved(user_id, start, notice)
        return prefs

    async def resolve_week_start(
        self,
        session: UserSession,
        entry_date: Optional[date] = None,
    ) -> date:
        """Week an income entered on entry_date (default today) belongs to."""
        prefs = await self.get_preferences(session)
        return week_start_for_income_entry(
            entry_date or date.today(),
            prefs.week_start_dow,
            prefs.notice_dow,
        )

    # -- weeks ---------------------------------------------------------

    async def add_week_from_income(
        self,
        session: UserSession,
        income: Any,
        week_start: Optional[date] = None,
        entry_date: Optional[date] = None,
    ) -> WeekView:
        """
        Log income for a week and return the rebuilt week.

        Without an explicit week_start the pay schedule picks the week.
        """
        session.require_user_id()
        if week_start is None:
            week_start = await self.resolve_week_start(session, entry_date)
        await self.rebuild_week(session, week_start, income)
        return await self.load_week(session, week_start)

    async def rebuild_week(
        self,
        session: UserSession,
        week_start: date,
        income: Any,
    ) -> list[BudgetRow]:
        """
        Replace a week's income, budgets and transfers in one transaction.

        Transfers are dropped with the budgets they adjusted. Transactions
        and collections are untouched.
        """
        user_id = session.require_user_id()
        async with self._reported("rebuild_week", session):
            amount = self._validator.validate_income(income)
            rows = build_budget_rows(user_id, week_start, amount)

            async with self._storage.transaction():
                await self._storage.upsert_weekly_income(WeeklyIncome(
                    user_id=user_id,
                    week_start=week_start,
                    amount=amount,
                ))
                await self._storage.delete_budgets(user_id, week_start)
                await self._storage.delete_transfers(user_id, week_start)
                await self._storage.insert_budgets(rows)

        await self._audit_logger.log_income_recorded(user_id, week_start, amount)
        await self._audit_logger.log_budgets_rebuilt(
            user_id,
            week_start,
            {row.category.value: row.amount for row in rows},
        )
        return rows

    async def _read_week(self, user_id: str, week_start: date) -> _Snapshot:
        async with self._storage.transaction():
            income = await self._storage.get_weekly_income(user_id, week_start)
            budgets = await self._storage.list_budgets(user_id, week_start)
            if not budgets:
                return _Snapshot(income, [], [], [], {}, [])
            transactions = await self._storage.list_transactions(
                user_id, week_start, week_end(week_start)
            )
            transfers = await self._storage.list_transfers(user_id, week_start)
            mappings = mapping_dict(await self._storage.list_mappings(user_id))
            collections = await self._storage.list_collections(
                user_id, week_start=week_start, active_only=True
            )
        return _Snapshot(income, budgets, transactions, transfers, mappings, collections)

    async def _require_week(self, user_id: str, week_start: date) -> tuple[_Snapshot, LedgerSummary]:
        snapshot = await self._read_week(user_id, week_start)
        if not snapshot.budgets:
            raise NotFoundError(f"No budget exists for the week of {week_start.isoformat()}")
        summary = aggregate_week(
            snapshot.budgets,
            snapshot.transactions,
            snapshot.transfers,
            snapshot.mappings,
        )
        return snapshot, summary

    async def load_week(self, session: UserSession, week_start: date) -> WeekView:
        """
        Consistent view of one week.

        A week with no budgets comes back empty (has_budget is False).
        """
        user_id = session.require_user_id()
        async with self._reported("load_week", session):
            snapshot = await self._read_week(user_id, week_start)

        view = WeekView(
            week_start=week_start,
            week_end=week_end(week_start),
            income=snapshot.income,
        )
        if not snapshot.budgets:
            return view

        collected = collected_buckets(snapshot.collections)
        view.summary = aggregate_week(
            snapshot.budgets,
            snapshot.transactions,
            snapshot.transfers,
            snapshot.mappings,
        )
        view.transactions = sorted(
            snapshot.transactions,
            key=lambda tx: (tx.date, tx.created_at),
            reverse=True,
        )
        view.transfers = snapshot.transfers
        view.collected = [bucket for bucket in Bucket if bucket in collected]
        view.items_by_bucket = group_items_by_bucket(
            snapshot.transactions,
            snapshot.transfers,
            snapshot.mappings,
        )
        return view

    # -- transactions --------------------------------------------------

    async def add_transaction(
        self,
        session: UserSession,
        week_start: date,
        bucket: Bucket,
        amount: Any,
        raw_category: Optional[str],
        tx_date: Optional[date],
        kind: TransactionKind = TransactionKind.EXPENSE,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Record a transaction locked to bucket.

        amount is the unsigned magnitude; kind picks the sign.
        """
        user_id = session.require_user_id()
        async with self._reported("add_transaction", session):
            magnitude, raw, note = self._validator.validate_transaction(
                amount, raw_category, tx_date, week_start, description
            )
            tx = Transaction(
                user_id=user_id,
                date=tx_date,
                amount=-magnitude if kind == TransactionKind.EXPENSE else magnitude,
                category=make_stored_category(bucket, raw),
                description=note,
            )

            async with self._storage.transaction():
                if not await self._storage.list_budgets(user_id, week_start):
                    raise NotFoundError(
                        f"No budget exists for the week of {week_start.isoformat()}"
                    )
                tx = await self._storage.insert_transaction(tx)

        await self._audit_logger.log_transaction_saved(
            user_id, tx.id, tx.category, tx.amount, is_new=True
        )
        return tx

    async def update_transaction(
        self,
        session: UserSession,
        week_start: date,
        transaction_id: UUID,
        amount: Any,
        raw_category: Optional[str],
        tx_date: Optional[date],
        kind: TransactionKind = TransactionKind.EXPENSE,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Edit a transaction without moving its spend to another bucket.

        Locked categories keep their bucket. A mapped legacy label that is
        renamed carries its mapping over to the new label. The transaction
        must belong to week_start, and stays in it.
        """
        user_id = session.require_user_id()
        async with self._reported("update_transaction", session):
            magnitude, raw, note = self._validator.validate_transaction(
                amount, raw_category, tx_date, week_start, description
            )

            async with self._storage.transaction():
                if not await self._storage.list_budgets(user_id, week_start):
                    raise NotFoundError(
                        f"No budget exists for the week of {week_start.isoformat()}"
                    )
                current = await self._storage.get_transaction(user_id, transaction_id)
                if current is None or not is_in_week(current.date, week_start):
                    raise NotFoundError(
                        f"Transaction {transaction_id} not found in the week of "
                        f"{week_start.isoformat()}"
                    )

                carried: Optional[Bucket] = None
                if split_stored_category(current.category).bucket is None:
                    mappings = mapping_dict(await self._storage.list_mappings(user_id))
                    mapped = mappings.get(current.category)
                    if mapped is not None and mappings.get(raw) != mapped:
                        await self._storage.upsert_mapping(CategoryMapping(
                            user_id=user_id,
                            raw_category=raw,
                            bucket=mapped,
                        ))
                        carried = mapped

                # model_copy would skip field validation
                updated = await self._storage.update_transaction(Transaction.model_validate({
                    **current.model_dump(),
                    "date": tx_date,
                    "amount": -magnitude if kind == TransactionKind.EXPENSE else magnitude,
                    "category": relabel_category(current.category, raw),
                    "description": note,
                }))

        if carried is not None:
            await self._audit_logger.log_mapping_saved(user_id, raw, carried.value)
        await self._audit_logger.log_transaction_saved(
            user_id, updated.id, updated.category, updated.amount, is_new=False
        )
        return updated

    async def delete_transaction(self, session: UserSession, transaction_id: UUID) -> None:
        user_id = session.require_user_id()
        async with self._reported("delete_transaction", session):
            removed = await self._storage.delete_transaction(user_id, transaction_id)
            if not removed:
                raise NotFoundError(f"Transaction {transaction_id} not found")
        await self._audit_logger.log_transaction_deleted(user_id, transaction_id)

    async def save_mapping(
        self,
        session: UserSession,
        raw_category: Optional[str],
        bucket: Bucket,
    ) -> CategoryMapping:
        """Assign a legacy label to a bucket."""
        user_id = session.require_user_id()
        async with self._reported("save_mapping", session):
            raw = self._validator.validate_mapping(raw_category)
            mapping = await self._storage.upsert_mapping(CategoryMapping(
                user_id=user_id,
                raw_category=raw,
                bucket=bucket,
            ))
        await self._audit_logger.log_mapping_saved(user_id, raw, bucket.value)
        return mapping

    # -- reconciliation ------------------------------------------------

    async def collect_bucket(
        self,
        session: UserSession,
        week_start: date,
        bucket: Bucket,
    ) -> BucketCollection:
        """Withdraw a bucket's whole leftover into its savings tracker."""
        user_id = session.require_user_id()
        async with self._reported("collect_bucket", session):
            async with self._storage.transaction():
                snapshot, summary = await self._require_week(user_id, week_start)
                amount = plan_collection(
                    summary, collected_buckets(snapshot.collections), bucket
                )
                row = await self._storage.insert_collection(BucketCollection(
                    user_id=user_id,
                    week_start=week_start,
                    bucket=bucket.value,
                    amount=amount,
                    kind=CollectionKind.COLLECTION,
                ))

        await self._audit_logger.log_bucket_collected(
            user_id, week_start, bucket.value, amount, row.id
        )
        return row

    async def undo_collect(
        self,
        session: UserSession,
        week_start: date,
        bucket: Bucket,
    ) -> Optional[BucketCollection]:
        """
        Mark the newest active collection for bucket as undone.

        Returns None when there is nothing to undo.
        """
        user_id = session.require_user_id()
        async with self._reported("undo_collect", session):
            async with self._storage.transaction():
                rows = await self._storage.list_collections(
                    user_id, week_start=week_start, bucket=bucket, active_only=True
                )
                latest = latest_active_collection(rows, bucket)
                if latest is None:
                    return None
                undone = await self._storage.update_collection(
                    latest.model_copy(update={"undone_at": datetime.utcnow()})
                )

        await self._audit_logger.log_collection_undone(
            user_id, week_start, bucket.value, undone.id
        )
        return undone

    async def cover_overspend(
        self,
        session: UserSession,
        week_start: date,
        target: Bucket,
        source: Optional[Bucket],
        amount: Any = None,
    ) -> BucketTransfer:
        """
        Move leftover from source into an overspent target.

        Without an amount, covers as much of the deficit as source allows.
        """
        user_id = session.require_user_id()
        async with self._reported("cover_overspend", session):
            async with self._storage.transaction():
                snapshot, summary = await self._require_week(user_id, week_start)
                planned = plan_cover_transfer(
                    summary,
                    collected_buckets(snapshot.collections),
                    target,
                    source,
                    amount,
                )
                transfer = await self._storage.insert_transfer(BucketTransfer(
                    user_id=user_id,
                    week_start=week_start,
                    from_bucket=source,
                    to_bucket=target,
                    amount=planned,
                ))

        await self._audit_logger.log_transfer_recorded(
            user_id, week_start, source.value, target.value, planned, transfer.id
        )
        return transfer


class SavingsFlow(_Flow):
    """
    Orchestrates the savings trackers.

    Tracker totals are derived from collection rows across all weeks;
    manual adjustments are extra signed rows, never edits of old ones.
    """

    async def _active_collections(self, session: UserSession) -> list[BucketCollection]:
        user_id = session.require_user_id()
        async with self._reported("list_collections", session):
            return await self._storage.list_collections(user_id, active_only=True)

    async def tracker_totals(self, session: UserSession) -> dict[TrackerBucket, Decimal]:
        return tracker_totals(await self._active_collections(session))

    async def weekly_breakdown(self, session: UserSession) -> list[TrackerWeek]:
        return weekly_tracker_breakdown(await self._active_collections(session))

    async def adjust_tracker_total(
        self,
        session: UserSession,
        tracker: TrackerBucket,
        amount: Any,
        direction: AdjustmentDirection,
        week_start: Optional[date],
        note: Optional[str] = None,
    ) -> BucketCollection:
        """Record a one-off correction (gift, manual transfer) to a tracker."""
        user_id = session.require_user_id()
        async with self._reported("adjust_tracker_total", session):
            magnitude = self._validator.validate_adjustment(amount, week_start, note)
            signed = adjustment_amount(magnitude, direction)
            label = tracker_label(tracker, note)
            row = await self._storage.insert_collection(BucketCollection(
                user_id=user_id,
                week_start=week_start,
                bucket=label,
                amount=signed,
                kind=CollectionKind.ADJUSTMENT,
            ))

        await self._audit_logger.log_adjustment_recorded(
            user_id, week_start, label, signed, row.id
        )
        return row


# Seeded the first time goals are viewed
DEFAULT_GOALS: dict[TrackerBucket, dict[str, Any]] = {
    TrackerBucket.SAVINGS: {
        "title": "Savings Goal",
        "ring_color": "#FF6FB1",
        "sort_order": 0,
    },
    TrackerBucket.STUDENT_LOANS: {
        "title": "Student Loans Savings",
        "ring_color": "#B7A7FF",
        "sort_order": 1,
    },
}

EXTRA_GOAL_RING_COLOR = "#56D6C9"
EXTRA_GOAL_SORT_BASE = 10


class GoalFlow(_Flow):
    """
    Orchestrates goals and their progress rings.

    Savings and Student Loans goals always exist once seeded and can
    only have their target edited. Extra goals can be added, hidden,
    shown and deleted.
    """

    def _default_target(self, key: TrackerBucket) -> Decimal:
        if key == TrackerBucket.SAVINGS:
            return self._settings.default_savings_target
        return self._settings.default_student_loans_target

    def _default_goal(self, user_id: str, key: TrackerBucket) -> Goal:
        return Goal(
            user_id=user_id,
            key=key,
            target=self._default_target(key),
            **DEFAULT_GOALS[key],
        )

    async def list_goals(self, session: UserSession) -> list[Goal]:
        user_id = session.require_user_id()
        async with self._reported("list_goals", session):
            return await self._storage.list_goals(user_id)

    async def ensure_default_goals(self, session: UserSession) -> list[Goal]:
        """Seed the permanent goals if they don't exist yet."""
        user_id = session.require_user_id()
        async with self._reported("ensure_default_goals", session):
            async with self._storage.transaction():
                for key in DEFAULT_GOALS:
                    if await self._storage.get_goal(user_id, key) is None:
                        await self._storage.upsert_goal(self._default_goal(user_id, key))
                return await self._storage.list_goals(user_id)

    async def save_goal(
        self,
        session: UserSession,
        key: TrackerBucket,
        title: Optional[str],
        target: Any,
        ring_color: Optional[str] = None,
    ) -> Goal:
        """Add or replace an extra goal."""
        user_id = session.require_user_id()
        async with self._reported("save_goal", session):
            if key in PERMANENT_GOAL_KEYS:
                raise ValidationError(
                    "Use set_goal_target to change Savings or Student Loans targets",
                    field="key",
                )
            clean_title, clean_target, color = self._validator.validate_goal(
                title, target, ring_color
            )

            async with self._storage.transaction():
                goals = await self._storage.list_goals(user_id)
                existing_extra = [g for g in goals if not g.is_permanent]
                current = next((g for g in goals if g.key == key), None)
                goal = await self._storage.upsert_goal(Goal(
                    user_id=user_id,
                    key=key,
                    title=clean_title,
                    target=clean_target,
                    ring_color=color or EXTRA_GOAL_RING_COLOR,
                    sort_order=(
                        current.sort_order if current is not None
                        else EXTRA_GOAL_SORT_BASE + len(existing_extra)
                    ),
                    is_active=True,
                ))

        await self._audit_logger.log_goal_saved(user_id, key.value, goal.target)
        return goal

    async def set_goal_target(
        self,
        session: UserSession,
        key: TrackerBucket,
        target: Any,
    ) -> Goal:
        """Change a goal's target, seeding a permanent goal if needed."""
        user_id = session.require_user_id()
        async with self._reported("set_goal_target", session):
            async with self._storage.transaction():
                goal = await self._storage.get_goal(user_id, key)
                if goal is None:
                    if key not in PERMANENT_GOAL_KEYS:
                        raise NotFoundError(f"Goal {key.value} not found")
                    goal = self._default_goal(user_id, key)
                _, clean_target, _ = self._validator.validate_goal(goal.title, target)
                goal = await self._storage.upsert_goal(goal.model_copy(update={
                    "target": clean_target,
                    "updated_at": datetime.utcnow(),
                }))

        await self._audit_logger.log_goal_saved(user_id, key.value, goal.target)
        return goal

    async def toggle_goal(self, session: UserSession, key: TrackerBucket) -> Goal:
        """Hide or show an extra goal."""
        user_id = session.require_user_id()
        async with self._reported("toggle_goal", session):
            if key in PERMANENT_GOAL_KEYS:
                raise ValidationError(
                    "The Savings and Student Loans goals are always shown",
                    field="key",
                )
            async with self._storage.transaction():
                goal = await self._storage.get_goal(user_id, key)
                if goal is None:
                    raise NotFoundError(f"Goal {key.value} not found")
                goal = await self._storage.upsert_goal(goal.model_copy(update={
                    "is_active": not goal.is_active,
                    "updated_at": datetime.utcnow(),
                }))

        await self._audit_logger.log_goal_saved(user_id, key.value, goal.target)
        return goal

    async def delete_goal(self, session: UserSession, key: TrackerBucket) -> None:
        user_id = session.require_user_id()
        async with self._reported("delete_goal", session):
            async with self._storage.transaction():
                goal = await self._storage.get_goal(user_id, key)
                if goal is None:
                    raise NotFoundError(f"Goal {key.value} not found")
                self._validator.validate_goal_deletion(goal)
                await self._storage.delete_goal(user_id, key)

        await self._audit_logger.log_goal_deleted(user_id, key.value, goal.id)

    async def goal_progress(self, session: UserSession) -> list[GoalCard]:
        """
        Progress rings to display.

        Permanent goals first, then active extra goals by sort_order.
        """
        user_id = session.require_user_id()
        goals = await self.ensure_default_goals(session)
        async with self._reported("goal_progress", session):
            rows = await self._storage.list_collections(user_id, active_only=True)
        totals = tracker_totals(rows)

        by_key = {goal.key: goal for goal in goals}
        shown = [by_key[key] for key in DEFAULT_GOALS if key in by_key]
        shown.extend(sorted(
            (g for g in goals if not g.is_permanent and g.is_active),
            key=lambda g: g.sort_order,
        ))

        return [
            GoalCard(goal=goal, progress=goal_progress(totals[goal.key], goal.target))
            for goal in shown
        ]


def create_app_components(
    use_sql: bool = True,
) -> tuple[WeekFlow, SavingsFlow, GoalFlow, BudgetStorageInterface]:
    """
    Factory function to create all application components.

    Args:
        use_sql: Whether to use the configured SQL database.
                 Set to False for an in-memory store.

    Returns:
        (week_flow, savings_flow, goal_flow, storage)
    """
    logger = structlog.get_logger(__name__)
    audit_logger = AuditLogger()

    storage: BudgetStorageInterface
    if use_sql:
        sql_storage = SqlBudgetStorage()
        try:
            sql_storage.connect()
            storage = sql_storage
        except ConnectionError as e:
            # Database not reachable - continue without persistence
            logger.warning("storage_unavailable", error=str(e), fallback="memory")
            storage = InMemoryBudgetStorage()
    else:
        storage = InMemoryBudgetStorage()

    validator = BudgetValidator()

    week_flow = WeekFlow(storage, validator=validator, audit_logger=audit_logger)
    savings_flow = SavingsFlow(storage, validator=validator, audit_logger=audit_logger)
    goal_flow = GoalFlow(storage, validator=validator, audit_logger=audit_logger)

    return week_flow, savings_flow, goal_flow, storage
