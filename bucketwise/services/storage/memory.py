"""
In-Memory Storage Implementation

Dict-backed store used by the test suite and for local experiments.
Rows are copied on the way in and on the way out so callers can never
mutate stored state by accident.

Transactions snapshot the whole state on entry and restore it if the
block raises.
"""

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from bucketwise.models.budget import (
    Bucket,
    BucketCollection,
    BucketTransfer,
    BudgetRow,
    CategoryMapping,
    Goal,
    TrackerBucket,
    Transaction,
    UserPreferences,
    WeeklyIncome,
)
from bucketwise.services.storage.interface import (
    BudgetStorageInterface,
    DuplicateError,
    NotFoundError,
)

M = TypeVar("M", bound=BaseModel)


def _copy(model: M) -> M:
    return model.model_copy(deep=True)


class _State:
    """Everything the store holds."""

    def __init__(self):
        self.incomes: dict[tuple[str, date], WeeklyIncome] = {}
        self.budgets: list[BudgetRow] = []
        self.transactions: dict[UUID, Transaction] = {}
        self.transfers: list[BucketTransfer] = []
        self.mappings: dict[tuple[str, str], CategoryMapping] = {}
        self.collections: dict[UUID, BucketCollection] = {}
        self.goals: dict[tuple[str, TrackerBucket], Goal] = {}
        self.preferences: dict[str, UserPreferences] = {}


class InMemoryBudgetStorage(BudgetStorageInterface):
    """In-process implementation of BudgetStorageInterface."""

    def __init__(self):
        self._state = _State()
        self._depth = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._depth:
            # join the open transaction
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = copy.deepcopy(self._state)
        self._depth = 1
        try:
            yield
        except BaseException:
            self._state = snapshot
            raise
        finally:
            self._depth = 0

    # -- weekly income -------------------------------------------------

    async def get_weekly_income(self, user_id: str, week_start: date) -> Optional[WeeklyIncome]:
        income = self._state.incomes.get((user_id, week_start))
        return _copy(income) if income else None

    async def upsert_weekly_income(self, income: WeeklyIncome) -> WeeklyIncome:
        key = (income.user_id, income.week_start)
        existing = self._state.incomes.get(key)
        if existing is not None:
            income = income.model_copy(update={
                "id": existing.id,
                "created_at": existing.created_at,
            })
        self._state.incomes[key] = _copy(income)
        return _copy(income)

    # -- budgets -------------------------------------------------------

    async def list_budgets(self, user_id: str, week_start: date) -> list[BudgetRow]:
        return [
            _copy(row) for row in self._state.budgets
            if row.user_id == user_id and row.week_start == week_start
        ]

    async def insert_budgets(self, rows: list[BudgetRow]) -> None:
        for row in rows:
            clash = any(
                existing.user_id == row.user_id
                and existing.week_start == row.week_start
                and existing.category == row.category
                for existing in self._state.budgets
            )
            if clash:
                raise DuplicateError(
                    f"Budget for {row.category.value} in week {row.week_start} already exists"
                )
            self._state.budgets.append(_copy(row))

    async def delete_budgets(self, user_id: str, week_start: date) -> int:
        before = len(self._state.budgets)
        self._state.budgets = [
            row for row in self._state.budgets
            if not (row.user_id == user_id and row.week_start == week_start)
        ]
        return before - len(self._state.budgets)

    # -- transactions --------------------------------------------------

    async def list_transactions(
        self,
        user_id: str,
        date_from: date,
        date_to: date,
    ) -> list[Transaction]:
        rows = [
            tx for tx in self._state.transactions.values()
            if tx.user_id == user_id and date_from <= tx.date <= date_to
        ]
        rows.sort(key=lambda tx: (tx.date, tx.created_at))
        return [_copy(tx) for tx in rows]

    async def get_transaction(self, user_id: str, transaction_id: UUID) -> Optional[Transaction]:
        tx = self._state.transactions.get(transaction_id)
        if tx is None or tx.user_id != user_id:
            return None
        return _copy(tx)

    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id in self._state.transactions:
            raise DuplicateError(f"Transaction {transaction.id} already exists")
        self._state.transactions[transaction.id] = _copy(transaction)
        return _copy(transaction)

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        existing = self._state.transactions.get(transaction.id)
        if existing is None or existing.user_id != transaction.user_id:
            raise NotFoundError(f"Transaction {transaction.id} not found")
        self._state.transactions[transaction.id] = _copy(transaction)
        return _copy(transaction)

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        existing = self._state.transactions.get(transaction_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._state.transactions[transaction_id]
        return True

    # -- transfers -----------------------------------------------------

    async def list_transfers(self, user_id: str, week_start: date) -> list[BucketTransfer]:
        rows = [
            t for t in self._state.transfers
            if t.user_id == user_id and t.week_start == week_start
        ]
        rows.sort(key=lambda t: t.created_at)
        return [_copy(t) for t in rows]

    async def insert_transfer(self, transfer: BucketTransfer) -> BucketTransfer:
        self._state.transfers.append(_copy(transfer))
        return _copy(transfer)

    async def delete_transfers(self, user_id: str, week_start: date) -> int:
        before = len(self._state.transfers)
        self._state.transfers = [
            t for t in self._state.transfers
            if not (t.user_id == user_id and t.week_start == week_start)
        ]
        return before - len(self._state.transfers)

    # -- category mappings ---------------------------------------------

    async def list_mappings(self, user_id: str) -> list[CategoryMapping]:
        return [
            _copy(m) for (owner, _), m in self._state.mappings.items()
            if owner == user_id
        ]

    async def upsert_mapping(self, mapping: CategoryMapping) -> CategoryMapping:
        key = (mapping.user_id, mapping.raw_category)
        existing = self._state.mappings.get(key)
        if existing is not None:
            mapping = mapping.model_copy(update={"id": existing.id})
        self._state.mappings[key] = _copy(mapping)
        return _copy(mapping)

    # -- collections ---------------------------------------------------

    async def list_collections(
        self,
        user_id: str,
        week_start: Optional[date] = None,
        bucket: Optional[Bucket] = None,
        active_only: bool = False,
    ) -> list[BucketCollection]:
        rows = []
        for row in self._state.collections.values():
            if row.user_id != user_id:
                continue
            if week_start is not None and row.week_start != week_start:
                continue
            if bucket is not None and row.bucket != bucket.value:
                continue
            if active_only and not row.is_active:
                continue
            rows.append(row)
        rows.sort(key=lambda r: r.created_at)
        return [_copy(r) for r in rows]

    async def insert_collection(self, collection: BucketCollection) -> BucketCollection:
        if collection.id in self._state.collections:
            raise DuplicateError(f"Collection {collection.id} already exists")
        self._state.collections[collection.id] = _copy(collection)
        return _copy(collection)

    async def update_collection(self, collection: BucketCollection) -> BucketCollection:
        existing = self._state.collections.get(collection.id)
        if existing is None or existing.user_id != collection.user_id:
            raise NotFoundError(f"Collection {collection.id} not found")
        self._state.collections[collection.id] = _copy(collection)
        return _copy(collection)

    # -- goals ---------------------------------------------------------

    async def list_goals(self, user_id: str) -> list[Goal]:
        rows = [g for (owner, _), g in self._state.goals.items() if owner == user_id]
        rows.sort(key=lambda g: (g.sort_order, g.created_at))
        return [_copy(g) for g in rows]

    async def get_goal(self, user_id: str, key: TrackerBucket) -> Optional[Goal]:
        goal = self._state.goals.get((user_id, key))
        return _copy(goal) if goal else None

    async def upsert_goal(self, goal: Goal) -> Goal:
        key = (goal.user_id, goal.key)
        existing = self._state.goals.get(key)
        if existing is not None:
            goal = goal.model_copy(update={
                "id": existing.id,
                "created_at": existing.created_at,
            })
        self._state.goals[key] = _copy(goal)
        return _copy(goal)

    async def delete_goal(self, user_id: str, key: TrackerBucket) -> bool:
        return self._state.goals.pop((user_id, key), None) is not None

    # -- preferences ---------------------------------------------------

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        prefs = self._state.preferences.get(user_id)
        return _copy(prefs) if prefs else None

    async def upsert_preferences(self, preferences: UserPreferences) -> UserPreferences:
        self._state.preferences[preferences.user_id] = _copy(preferences)
        return _copy(preferences)
