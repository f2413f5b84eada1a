"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the flows against SQLite, Postgres or any SQLAlchemy URL
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - just the per-table operations the
budget flows need, plus one transaction boundary.

ATOMICITY: Multi-step mutations are wrapped in

    async with storage.transaction():
        ...

which commits on success and rolls back on any exception. A nested
transaction() joins the one already open.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date
from typing import Optional
from uuid import UUID

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


class BudgetStorageInterface(ABC):
    """
    Abstract interface for budget storage operations.

    Every operation is scoped to one user. Implementations raise
    PersistenceError (or a subclass) on backend failure.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Unit of work.

        Returns an async context manager; everything written inside it is
        committed together or not at all.
        """
        pass

    # -- weekly income -------------------------------------------------

    @abstractmethod
    async def get_weekly_income(self, user_id: str, week_start: date) -> Optional[WeeklyIncome]:
        pass

    @abstractmethod
    async def upsert_weekly_income(self, income: WeeklyIncome) -> WeeklyIncome:
        """
        Insert or replace the income for (user, week_start).

        Returns:
            The stored row (keeps the existing id when replacing)
        """
        pass

    # -- budgets -------------------------------------------------------

    @abstractmethod
    async def list_budgets(self, user_id: str, week_start: date) -> list[BudgetRow]:
        pass

    @abstractmethod
    async def insert_budgets(self, rows: list[BudgetRow]) -> None:
        pass

    @abstractmethod
    async def delete_budgets(self, user_id: str, week_start: date) -> int:
        """
        Delete every budget row for a week.

        Returns:
            Number of rows removed
        """
        pass

    # -- transactions --------------------------------------------------

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        date_from: date,
        date_to: date,
    ) -> list[Transaction]:
        """
        Transactions dated within [date_from, date_to], inclusive.

        Returns:
            Rows ordered by date then created_at
        """
        pass

    @abstractmethod
    async def get_transaction(self, user_id: str, transaction_id: UUID) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace a stored transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        """
        Returns:
            True if a row was removed
        """
        pass

    # -- transfers -----------------------------------------------------

    @abstractmethod
    async def list_transfers(self, user_id: str, week_start: date) -> list[BucketTransfer]:
        pass

    @abstractmethod
    async def insert_transfer(self, transfer: BucketTransfer) -> BucketTransfer:
        pass

    @abstractmethod
    async def delete_transfers(self, user_id: str, week_start: date) -> int:
        pass

    # -- category mappings ---------------------------------------------

    @abstractmethod
    async def list_mappings(self, user_id: str) -> list[CategoryMapping]:
        pass

    @abstractmethod
    async def upsert_mapping(self, mapping: CategoryMapping) -> CategoryMapping:
        """Insert or replace the mapping for (user, raw_category)."""
        pass

    # -- collections ---------------------------------------------------

    @abstractmethod
    async def list_collections(
        self,
        user_id: str,
        week_start: Optional[date] = None,
        bucket: Optional[Bucket] = None,
        active_only: bool = False,
    ) -> list[BucketCollection]:
        """
        Collection and adjustment rows with optional filters.

        Args:
            user_id: Owner
            week_start: Only rows recorded against this week
            bucket: Only rows whose label is exactly this bucket
            active_only: Skip rows that have been undone

        Returns:
            Rows ordered by created_at (oldest first)
        """
        pass

    @abstractmethod
    async def insert_collection(self, collection: BucketCollection) -> BucketCollection:
        pass

    @abstractmethod
    async def update_collection(self, collection: BucketCollection) -> BucketCollection:
        """
        Raises:
            NotFoundError: If the row doesn't exist
        """
        pass

    # -- goals ---------------------------------------------------------

    @abstractmethod
    async def list_goals(self, user_id: str) -> list[Goal]:
        """Goals ordered by sort_order, then created_at."""
        pass

    @abstractmethod
    async def get_goal(self, user_id: str, key: TrackerBucket) -> Optional[Goal]:
        pass

    @abstractmethod
    async def upsert_goal(self, goal: Goal) -> Goal:
        """Insert or replace the goal for (user, key)."""
        pass

    @abstractmethod
    async def delete_goal(self, user_id: str, key: TrackerBucket) -> bool:
        pass

    # -- preferences ---------------------------------------------------

    @abstractmethod
    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        pass

    @abstractmethod
    async def upsert_preferences(self, preferences: UserPreferences) -> UserPreferences:
        pass


class PersistenceError(Exception):
    """Base exception for storage operations. Never retried."""
    pass


class NotFoundError(PersistenceError):
    """Entity not found in storage."""
    pass


class DuplicateError(PersistenceError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(PersistenceError):
    """Could not connect to storage backend."""
    pass
