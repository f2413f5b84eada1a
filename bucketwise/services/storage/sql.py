"""
SQL Storage Implementation

DESIGN DECISION: SQLAlchemy 2.0 ORM over any SQLAlchemy URL, SQLite by
default, because:
1. Rebuilding a week (delete budgets + insert five rows) must be atomic
2. A relational unique key enforces one income / mapping / goal per user
3. No server to run for personal use

SESSIONS:
- transaction() opens one Session, commits on success, rolls back on error
- Every other method reuses the session of the open transaction, or runs
  in a short transaction of its own
- The open session lives in a ContextVar so nested transaction() calls
  join it

Connection establishment is retried; user operations never are.
"""

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from bucketwise.config import StorageSettings, get_settings
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
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PersistenceError,
)

M = TypeVar("M", bound=BaseModel)

# TransactionRecord has a column named "date"
Day = date

MONEY = Numeric(12, 2)


# =============================================================================
# TABLES
# =============================================================================

class Base(DeclarativeBase):
    pass


class WeeklyIncomeRecord(Base):
    __tablename__ = "weekly_income"
    __table_args__ = (UniqueConstraint("user_id", "week_start"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    week_start: Mapped[date] = mapped_column(Date)
    amount: Mapped[Decimal] = mapped_column(MONEY)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)


class BudgetRecord(Base):
    __tablename__ = "budgets"
    __table_args__ = (UniqueConstraint("user_id", "week_start", "category"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    week_start: Mapped[date] = mapped_column(Date)
    category: Mapped[str] = mapped_column(String(50))
    amount: Mapped[Decimal] = mapped_column(MONEY)
    created_at: Mapped[datetime] = mapped_column(DateTime)


class TransactionRecord(Base):
    __tablename__ = "transactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    date: Mapped[Day] = mapped_column(Date, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY)
    category: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime)


class BucketTransferRecord(Base):
    __tablename__ = "bucket_transfers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    week_start: Mapped[date] = mapped_column(Date)
    from_bucket: Mapped[str] = mapped_column(String(50))
    to_bucket: Mapped[str] = mapped_column(String(50))
    amount: Mapped[Decimal] = mapped_column(MONEY)
    created_at: Mapped[datetime] = mapped_column(DateTime)


class CategoryMappingRecord(Base):
    __tablename__ = "category_map"
    __table_args__ = (UniqueConstraint("user_id", "raw_category"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    raw_category: Mapped[str] = mapped_column(String(200))
    bucket: Mapped[str] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime)


class BucketCollectionRecord(Base):
    __tablename__ = "bucket_collections"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    week_start: Mapped[date] = mapped_column(Date)
    bucket: Mapped[str] = mapped_column(String(200))
    amount: Mapped[Decimal] = mapped_column(MONEY)
    kind: Mapped[str] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime)
    undone_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class GoalRecord(Base):
    __tablename__ = "user_goals"
    __table_args__ = (UniqueConstraint("user_id", "key"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    key: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(100))
    target: Mapped[Decimal] = mapped_column(MONEY)
    ring_color: Mapped[str] = mapped_column(String(50))
    sort_order: Mapped[int] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)


class UserPreferencesRecord(Base):
    __tablename__ = "user_preferences"

    user_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    week_start_dow: Mapped[int] = mapped_column(Integer)
    notice_dow: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime)


def _columns(model: BaseModel) -> dict[str, Any]:
    """Model fields as column values (enums stored by value)."""
    values = model.model_dump()
    return {
        name: value.value if isinstance(value, Enum) else value
        for name, value in values.items()
    }


def _assign(record: Base, values: dict[str, Any], skip: tuple[str, ...] = ()) -> None:
    for name, value in values.items():
        if name not in skip:
            setattr(record, name, value)


# =============================================================================
# STORE
# =============================================================================

class SqlBudgetStorage(BudgetStorageInterface):
    """
    SQLAlchemy implementation of BudgetStorageInterface.

    The engine is created lazily on first use; call connect() up front to
    fail fast on a bad URL.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        settings: Optional[StorageSettings] = None,
    ):
        self._settings = settings or get_settings().storage
        self._database_url = database_url or self._settings.database_url
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None
        self._active: ContextVar[Optional[Session]] = ContextVar(
            f"bucketwise_sql_session_{id(self)}", default=None
        )
        self._logger = structlog.get_logger(__name__)

    # -- connection ----------------------------------------------------

    def _create_engine(self) -> Engine:
        url = make_url(self._database_url)
        kwargs: dict[str, Any] = {"echo": self._settings.echo_sql}

        if url.get_backend_name() == "sqlite":
            if url.database in (None, "", ":memory:"):
                # one shared connection, otherwise every session sees an empty db
                kwargs["poolclass"] = StaticPool
                kwargs["connect_args"] = {"check_same_thread": False}
            else:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(url, **kwargs)
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError:
            engine.dispose()
            raise
        return engine

    def connect(self) -> Engine:
        """
        Create the engine and tables.

        Retries transient connection failures with exponential backoff.
        """
        if self._engine is None:
            try:
                for attempt in Retrying(
                    stop=stop_after_attempt(self._settings.connect_attempts),
                    wait=wait_exponential(multiplier=1, min=2, max=10),
                    retry=retry_if_exception_type(OperationalError),
                    reraise=True,
                ):
                    with attempt:
                        engine = self._create_engine()
            except SQLAlchemyError as e:
                raise ConnectionError(f"Failed to connect to database: {e}") from e

            self._engine = engine
            self._sessionmaker = sessionmaker(
                bind=engine, expire_on_commit=False, autoflush=False
            )
            self._logger.info(
                "storage_connected",
                backend=engine.url.get_backend_name(),
            )
        return self._engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    # -- sessions ------------------------------------------------------

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """The open transaction's session, or a fresh one committed on exit."""
        session = self._active.get()
        if session is not None:
            yield session
            return

        self.connect()
        session = self._sessionmaker()
        token = self._active.set(session)
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise DuplicateError(f"Constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Database error: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            self._active.reset(token)
            session.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        with self._session():
            yield

    def _flush(self, session: Session) -> None:
        try:
            session.flush()
        except IntegrityError as e:
            raise DuplicateError(f"Constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database error: {e}") from e

    def _execute(self, session: Session, statement):
        try:
            return session.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database error: {e}") from e

    def _all(self, session: Session, statement, model: type[M]) -> list[M]:
        return [
            model.model_validate(record)
            for record in self._execute(session, statement).scalars()
        ]

    def _first(self, session: Session, statement, model: type[M]) -> Optional[M]:
        record = self._execute(session, statement).scalars().first()
        return model.model_validate(record) if record is not None else None

    # -- weekly income -------------------------------------------------

    async def get_weekly_income(self, user_id: str, week_start: date) -> Optional[WeeklyIncome]:
        with self._session() as session:
            return self._first(session, select(WeeklyIncomeRecord).where(
                WeeklyIncomeRecord.user_id == user_id,
                WeeklyIncomeRecord.week_start == week_start,
            ), WeeklyIncome)

    async def upsert_weekly_income(self, income: WeeklyIncome) -> WeeklyIncome:
        with self._session() as session:
            record = self._execute(session, select(WeeklyIncomeRecord).where(
                WeeklyIncomeRecord.user_id == income.user_id,
                WeeklyIncomeRecord.week_start == income.week_start,
            )).scalars().first()
            if record is None:
                record = WeeklyIncomeRecord(**_columns(income))
                session.add(record)
            else:
                _assign(record, _columns(income), skip=("id", "created_at"))
            self._flush(session)
            return WeeklyIncome.model_validate(record)

    # -- budgets -------------------------------------------------------

    async def list_budgets(self, user_id: str, week_start: date) -> list[BudgetRow]:
        with self._session() as session:
            return self._all(session, select(BudgetRecord).where(
                BudgetRecord.user_id == user_id,
                BudgetRecord.week_start == week_start,
            ), BudgetRow)

    async def insert_budgets(self, rows: list[BudgetRow]) -> None:
        with self._session() as session:
            session.add_all([BudgetRecord(**_columns(row)) for row in rows])
            self._flush(session)

    async def delete_budgets(self, user_id: str, week_start: date) -> int:
        with self._session() as session:
            result = self._execute(session, delete(BudgetRecord).where(
                BudgetRecord.user_id == user_id,
                BudgetRecord.week_start == week_start,
            ))
            return result.rowcount

    # -- transactions --------------------------------------------------

    async def list_transactions(
        self,
        user_id: str,
        date_from: date,
        date_to: date,
    ) -> list[Transaction]:
        with self._session() as session:
            return self._all(session, select(TransactionRecord).where(
                TransactionRecord.user_id == user_id,
                TransactionRecord.date >= date_from,
                TransactionRecord.date <= date_to,
            ).order_by(TransactionRecord.date, TransactionRecord.created_at), Transaction)

    async def get_transaction(self, user_id: str, transaction_id: UUID) -> Optional[Transaction]:
        with self._session() as session:
            return self._first(session, select(TransactionRecord).where(
                TransactionRecord.user_id == user_id,
                TransactionRecord.id == transaction_id,
            ), Transaction)

    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        with self._session() as session:
            session.add(TransactionRecord(**_columns(transaction)))
            self._flush(session)
            return transaction

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        with self._session() as session:
            record = session.get(TransactionRecord, transaction.id)
            if record is None or record.user_id != transaction.user_id:
                raise NotFoundError(f"Transaction {transaction.id} not found")
            _assign(record, _columns(transaction), skip=("id", "user_id", "created_at"))
            self._flush(session)
            return Transaction.model_validate(record)

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        with self._session() as session:
            result = self._execute(session, delete(TransactionRecord).where(
                TransactionRecord.user_id == user_id,
                TransactionRecord.id == transaction_id,
            ))
            return result.rowcount > 0

    # -- transfers -----------------------------------------------------

    async def list_transfers(self, user_id: str, week_start: date) -> list[BucketTransfer]:
        with self._session() as session:
            return self._all(session, select(BucketTransferRecord).where(
                BucketTransferRecord.user_id == user_id,
                BucketTransferRecord.week_start == week_start,
            ).order_by(BucketTransferRecord.created_at), BucketTransfer)

    async def insert_transfer(self, transfer: BucketTransfer) -> BucketTransfer:
        with self._session() as session:
            session.add(BucketTransferRecord(**_columns(transfer)))
            self._flush(session)
            return transfer

    async def delete_transfers(self, user_id: str, week_start: date) -> int:
        with self._session() as session:
            result = self._execute(session, delete(BucketTransferRecord).where(
                BucketTransferRecord.user_id == user_id,
                BucketTransferRecord.week_start == week_start,
            ))
            return result.rowcount

    # -- category mappings ---------------------------------------------

    async def list_mappings(self, user_id: str) -> list[CategoryMapping]:
        with self._session() as session:
            return self._all(session, select(CategoryMappingRecord).where(
                CategoryMappingRecord.user_id == user_id,
            ).order_by(CategoryMappingRecord.raw_category), CategoryMapping)

    async def upsert_mapping(self, mapping: CategoryMapping) -> CategoryMapping:
        with self._session() as session:
            record = self._execute(session, select(CategoryMappingRecord).where(
                CategoryMappingRecord.user_id == mapping.user_id,
                CategoryMappingRecord.raw_category == mapping.raw_category,
            )).scalars().first()
            if record is None:
                record = CategoryMappingRecord(**_columns(mapping))
                session.add(record)
            else:
                record.bucket = mapping.bucket.value
            self._flush(session)
            return CategoryMapping.model_validate(record)

    # -- collections ---------------------------------------------------

    async def list_collections(
        self,
        user_id: str,
        week_start: Optional[date] = None,
        bucket: Optional[Bucket] = None,
        active_only: bool = False,
    ) -> list[BucketCollection]:
        statement = select(BucketCollectionRecord).where(
            BucketCollectionRecord.user_id == user_id,
        )
        if week_start is not None:
            statement = statement.where(BucketCollectionRecord.week_start == week_start)
        if bucket is not None:
            statement = statement.where(BucketCollectionRecord.bucket == bucket.value)
        if active_only:
            statement = statement.where(BucketCollectionRecord.undone_at.is_(None))

        with self._session() as session:
            return self._all(
                session,
                statement.order_by(BucketCollectionRecord.created_at),
                BucketCollection,
            )

    async def insert_collection(self, collection: BucketCollection) -> BucketCollection:
        with self._session() as session:
            session.add(BucketCollectionRecord(**_columns(collection)))
            self._flush(session)
            return collection

    async def update_collection(self, collection: BucketCollection) -> BucketCollection:
        with self._session() as session:
            record = session.get(BucketCollectionRecord, collection.id)
            if record is None or record.user_id != collection.user_id:
                raise NotFoundError(f"Collection {collection.id} not found")
            _assign(record, _columns(collection), skip=("id", "user_id", "created_at"))
            self._flush(session)
            return BucketCollection.model_validate(record)

    # -- goals ---------------------------------------------------------

    async def list_goals(self, user_id: str) -> list[Goal]:
        with self._session() as session:
            return self._all(session, select(GoalRecord).where(
                GoalRecord.user_id == user_id,
            ).order_by(GoalRecord.sort_order, GoalRecord.created_at), Goal)

    async def get_goal(self, user_id: str, key: TrackerBucket) -> Optional[Goal]:
        with self._session() as session:
            return self._first(session, select(GoalRecord).where(
                GoalRecord.user_id == user_id,
                GoalRecord.key == key.value,
            ), Goal)

    async def upsert_goal(self, goal: Goal) -> Goal:
        with self._session() as session:
            record = self._execute(session, select(GoalRecord).where(
                GoalRecord.user_id == goal.user_id,
                GoalRecord.key == goal.key.value,
            )).scalars().first()
            if record is None:
                record = GoalRecord(**_columns(goal))
                session.add(record)
            else:
                _assign(record, _columns(goal), skip=("id", "user_id", "key", "created_at"))
            self._flush(session)
            return Goal.model_validate(record)

    async def delete_goal(self, user_id: str, key: TrackerBucket) -> bool:
        with self._session() as session:
            result = self._execute(session, delete(GoalRecord).where(
                GoalRecord.user_id == user_id,
                GoalRecord.key == key.value,
            ))
            return result.rowcount > 0

    # -- preferences ---------------------------------------------------

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        with self._session() as session:
            record = session.get(UserPreferencesRecord, user_id)
            return UserPreferences.model_validate(record) if record is not None else None

    async def upsert_preferences(self, preferences: UserPreferences) -> UserPreferences:
        with self._session() as session:
            record = session.get(UserPreferencesRecord, preferences.user_id)
            if record is None:
                record = UserPreferencesRecord(**_columns(preferences))
                session.add(record)
            else:
                _assign(record, _columns(preferences), skip=("user_id",))
            self._flush(session)
            return UserPreferences.model_validate(record)
