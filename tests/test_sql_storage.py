"""
SQL store tests against in-memory SQLite.

Each test gets a fresh database.
"""

import asyncio
import pytest
from datetime import date, datetime
from decimal import Decimal

from bucketwise.engine.allocation import build_budget_rows
from bucketwise.models.budget import (
    Bucket,
    BucketCollection,
    BucketTransfer,
    CategoryMapping,
    CollectionKind,
    Goal,
    TrackerBucket,
    Transaction,
    UserPreferences,
    WeeklyIncome,
)
from bucketwise.orchestrator import WeekFlow
from bucketwise.services.storage import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    SqlBudgetStorage,
)
from bucketwise.session import UserSession

WEEK = date(2024, 1, 5)
USER = "user-1"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def storage():
    store = SqlBudgetStorage("sqlite://")
    store.connect()
    yield store
    store.close()


class TestConnection:
    """Tests for engine setup."""

    def test_unknown_backend_raises_connection_error(self):
        store = SqlBudgetStorage("notadb://nowhere")
        with pytest.raises(ConnectionError):
            store.connect()

    def test_sqlite_file_directory_is_created(self, tmp_path):
        path = tmp_path / "nested" / "budget.db"
        store = SqlBudgetStorage(f"sqlite:///{path}")
        store.connect()
        store.close()
        assert path.exists()


class TestWeekRows:
    """Tests for income, budgets and transfers."""

    def test_income_upsert_keeps_identity(self, storage):
        first = run(storage.upsert_weekly_income(
            WeeklyIncome(user_id=USER, week_start=WEEK, amount=Decimal("100.00"))
        ))
        second = run(storage.upsert_weekly_income(
            WeeklyIncome(user_id=USER, week_start=WEEK, amount=Decimal("250.50"))
        ))

        assert second.id == first.id
        loaded = run(storage.get_weekly_income(USER, WEEK))
        assert loaded.amount == Decimal("250.50")
        assert run(storage.get_weekly_income("someone-else", WEEK)) is None

    def test_budgets_round_trip(self, storage):
        run(storage.insert_budgets(build_budget_rows(USER, WEEK, Decimal("33.33"))))

        rows = {r.category: r.amount for r in run(storage.list_budgets(USER, WEEK))}
        assert rows[Bucket.STUDENT_LOANS] == Decimal("8.33")
        assert rows[Bucket.EXPENSES] == Decimal("11.67")
        assert sum(rows.values()) == Decimal("33.33")

    def test_duplicate_budget_rejected(self, storage):
        run(storage.insert_budgets(build_budget_rows(USER, WEEK, Decimal("10"))))
        with pytest.raises(DuplicateError):
            run(storage.insert_budgets(build_budget_rows(USER, WEEK, Decimal("10"))))
        assert len(run(storage.list_budgets(USER, WEEK))) == 5

    def test_delete_is_scoped_to_week(self, storage):
        run(storage.insert_budgets(build_budget_rows(USER, WEEK, Decimal("10"))))
        run(storage.insert_budgets(build_budget_rows(USER, date(2024, 1, 12), Decimal("10"))))

        assert run(storage.delete_budgets(USER, WEEK)) == 5
        assert run(storage.list_budgets(USER, WEEK)) == []
        assert len(run(storage.list_budgets(USER, date(2024, 1, 12)))) == 5

    def test_transfers(self, storage):
        run(storage.insert_transfer(BucketTransfer(
            user_id=USER, week_start=WEEK,
            from_bucket=Bucket.WANTS, to_bucket=Bucket.EXPENSES, amount=Decimal("4.50"),
        )))
        transfers = run(storage.list_transfers(USER, WEEK))
        assert transfers[0].from_bucket == Bucket.WANTS
        assert transfers[0].amount == Decimal("4.50")

        assert run(storage.delete_transfers(USER, WEEK)) == 1
        assert run(storage.list_transfers(USER, WEEK)) == []


class TestTransactionBoundary:
    """Tests for transaction()."""

    def test_rollback_on_error(self, storage):
        async def scenario():
            async with storage.transaction():
                await storage.insert_budgets(build_budget_rows(USER, WEEK, Decimal("10")))
                await storage.upsert_weekly_income(
                    WeeklyIncome(user_id=USER, week_start=WEEK, amount=Decimal("10"))
                )
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run(scenario())
        assert run(storage.list_budgets(USER, WEEK)) == []
        assert run(storage.get_weekly_income(USER, WEEK)) is None

    def test_reads_see_uncommitted_writes(self, storage):
        async def scenario():
            async with storage.transaction():
                await storage.insert_budgets(build_budget_rows(USER, WEEK, Decimal("10")))
                async with storage.transaction():
                    return len(await storage.list_budgets(USER, WEEK))

        assert run(scenario()) == 5


class TestTransactions:
    """Tests for the transactions table."""

    def test_date_range_inclusive(self, storage):
        for day in (date(2024, 1, 4), WEEK, date(2024, 1, 11), date(2024, 1, 12)):
            run(storage.insert_transaction(Transaction(
                user_id=USER, date=day, amount=Decimal("-1.00"), category="wants::x",
            )))
        found = run(storage.list_transactions(USER, WEEK, date(2024, 1, 11)))
        assert [tx.date for tx in found] == [WEEK, date(2024, 1, 11)]

    def test_update_and_delete(self, storage):
        tx = run(storage.insert_transaction(Transaction(
            user_id=USER, date=WEEK, amount=Decimal("-3.00"), category="Coffee",
            description="morning",
        )))

        updated = run(storage.update_transaction(tx.model_copy(update={
            "amount": Decimal("12.00"),
            "category": "Refund",
            "description": None,
        })))
        assert updated.amount == Decimal("12.00")
        assert updated.created_at == tx.created_at

        loaded = run(storage.get_transaction(USER, tx.id))
        assert loaded.category == "Refund"
        assert loaded.description is None

        assert run(storage.delete_transaction(USER, tx.id)) is True
        assert run(storage.delete_transaction(USER, tx.id)) is False

    def test_update_missing(self, storage):
        tx = Transaction(user_id=USER, date=WEEK, amount=Decimal("-1"), category="x")
        with pytest.raises(NotFoundError):
            run(storage.update_transaction(tx))

    def test_other_users_rows_invisible(self, storage):
        tx = run(storage.insert_transaction(Transaction(
            user_id=USER, date=WEEK, amount=Decimal("-1"), category="x",
        )))
        assert run(storage.get_transaction("user-2", tx.id)) is None
        assert run(storage.delete_transaction("user-2", tx.id)) is False


class TestMappingsAndCollections:
    """Tests for category mappings and tracker rows."""

    def test_mapping_upsert(self, storage):
        run(storage.upsert_mapping(CategoryMapping(user_id=USER, raw_category="Rent", bucket=Bucket.WANTS)))
        run(storage.upsert_mapping(CategoryMapping(user_id=USER, raw_category="Rent", bucket=Bucket.EXPENSES)))

        mappings = run(storage.list_mappings(USER))
        assert len(mappings) == 1
        assert mappings[0].bucket == Bucket.EXPENSES

    def test_collection_filters(self, storage):
        rows = [
            BucketCollection(user_id=USER, week_start=WEEK, bucket="wants",
                             amount=Decimal("5.00"), created_at=datetime(2024, 1, 6, 9)),
            BucketCollection(user_id=USER, week_start=WEEK, bucket="save",
                             amount=Decimal("2.00"), created_at=datetime(2024, 1, 6, 10)),
            BucketCollection(user_id=USER, week_start=date(2024, 1, 12), bucket="wants",
                             amount=Decimal("-1.00"), kind=CollectionKind.ADJUSTMENT,
                             created_at=datetime(2024, 1, 13, 9)),
        ]
        for row in rows:
            run(storage.insert_collection(row))

        assert len(run(storage.list_collections(USER))) == 3
        assert len(run(storage.list_collections(USER, week_start=WEEK))) == 2
        wants = run(storage.list_collections(USER, bucket=Bucket.WANTS))
        assert [r.amount for r in wants] == [Decimal("5.00"), Decimal("-1.00")]
        assert wants[1].kind == CollectionKind.ADJUSTMENT

        run(storage.update_collection(rows[0].model_copy(update={"undone_at": datetime(2024, 1, 7)})))
        active = run(storage.list_collections(USER, week_start=WEEK, active_only=True))
        assert [r.bucket for r in active] == ["save"]


class TestGoalsAndPreferences:
    """Tests for goals and the pay schedule."""

    def test_goals_ordered_and_upserted(self, storage):
        run(storage.upsert_goal(Goal(
            user_id=USER, key=TrackerBucket.EMERGENCY, title="Rainy day",
            target=Decimal("40"), sort_order=10,
        )))
        run(storage.upsert_goal(Goal(
            user_id=USER, key=TrackerBucket.SAVINGS, title="Savings Goal",
            target=Decimal("500"), sort_order=0,
        )))
        run(storage.upsert_goal(Goal(
            user_id=USER, key=TrackerBucket.EMERGENCY, title="Rainy day",
            target=Decimal("80"), sort_order=10, is_active=False,
        )))

        goals = run(storage.list_goals(USER))
        assert [g.key for g in goals] == [TrackerBucket.SAVINGS, TrackerBucket.EMERGENCY]
        assert goals[1].target == Decimal("80.00")
        assert goals[1].is_active is False

        assert run(storage.delete_goal(USER, TrackerBucket.EMERGENCY)) is True
        assert run(storage.get_goal(USER, TrackerBucket.EMERGENCY)) is None

    def test_preferences(self, storage):
        assert run(storage.get_preferences(USER)) is None
        run(storage.upsert_preferences(UserPreferences(user_id=USER, week_start_dow=5, notice_dow=4)))
        run(storage.upsert_preferences(UserPreferences(user_id=USER, week_start_dow=1, notice_dow=None)))

        prefs = run(storage.get_preferences(USER))
        assert prefs.week_start_dow == 1
        assert prefs.notice_dow is None


class TestFlowsOnSql:
    """The week flow end to end on a real database."""

    def test_rebuild_collect_load(self, storage):
        flow = WeekFlow(storage)
        session = UserSession(user_id=USER)

        run(flow.rebuild_week(session, WEEK, "100"))
        run(flow.add_transaction(session, WEEK, Bucket.EXPENSES, "40", "Groceries", WEEK))
        run(flow.cover_overspend(session, WEEK, Bucket.EXPENSES, Bucket.EMERGENCY))
        run(flow.collect_bucket(session, WEEK, Bucket.WANTS))
        run(flow.rebuild_week(session, WEEK, "100"))

        view = run(flow.load_week(session, WEEK))
        assert view.transfers == []
        assert view.summary.row_for(Bucket.EXPENSES).variance == Decimal("-5.00")
        assert view.collected == [Bucket.WANTS]
