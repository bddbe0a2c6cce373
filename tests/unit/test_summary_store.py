"""
Unit tests for SummaryStore.

Run: pytest tests/unit/test_summary_store.py -v
"""

import pytest
from datetime import date

from services.summary_store import (
    SummaryStore,
    MASTER_TABLE,
    DAILY_TABLE,
    is_unique_violation,
)
from exceptions import DuplicateKeyError, SummaryWriteConflictError, DatabaseError

from tests.conftest import FakeAPIError
from tests.factories import SummaryFactory


DAY = date(2025, 12, 2)


def set_field(name, value):
    def mutate(row):
        row[name] = value
        return row
    return mutate


class TestFind:

    def test_find_master_absent_returns_none(self, mock_db):
        store = SummaryStore()

        assert store.find_master("item-1", "company-1") is None

    def test_find_master_is_company_scoped(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(company_id="company-2")])
        store = SummaryStore()

        assert store.find_master("item-1", "company-1") is None
        assert store.find_master("item-1", "company-2") is not None

    def test_find_daily_matches_day(self, mock_db, mock_supabase):
        mock_supabase.seed(DAILY_TABLE, [SummaryFactory.daily(day=DAY)])
        store = SummaryStore()

        assert store.find_daily("item-1", "company-1", DAY) is not None
        assert store.find_daily("item-1", "company-1", date(2025, 12, 3)) is None

    def test_find_failure_raises_database_error(self, mock_db, mock_supabase):
        mock_supabase.fail(MASTER_TABLE)
        store = SummaryStore()

        with pytest.raises(DatabaseError):
            store.find_master("item-1", "company-1")


class TestUpsert:

    def test_creates_row_with_defaults_and_key(self, mock_db, mock_supabase):
        store = SummaryStore()

        row = store.upsert_master("item-1", "company-1", set_field("packing", 3), {"packing": 0, "status": "pending"})

        assert row["product_id"] == "item-1"
        assert row["company_id"] == "company-1"
        assert row["packing"] == 3
        assert row["version"] == 0
        assert len(mock_supabase.rows(MASTER_TABLE)) == 1

    def test_updates_existing_row_in_place(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(packing=1)])
        store = SummaryStore()

        row = store.upsert_master("item-1", "company-1", set_field("packing", 9))

        assert row["packing"] == 9
        assert row["version"] == 1
        assert len(mock_supabase.rows(MASTER_TABLE)) == 1

    def test_unchanged_mutation_skips_write(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(packing=1)])
        store = SummaryStore()

        row = store.upsert_master("item-1", "company-1", lambda r: r)

        assert row["version"] == 0
        assert ("update", MASTER_TABLE) not in mock_supabase.calls

    def test_key_columns_cannot_be_rewritten(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master()])
        store = SummaryStore()

        def hijack(row):
            row["company_id"] = "company-2"
            row["packing"] = 2
            return row

        store.upsert_master("item-1", "company-1", hijack)

        rows = mock_supabase.rows(MASTER_TABLE)
        assert rows[0]["company_id"] == "company-1"
        assert rows[0]["packing"] == 2

    def test_only_changed_columns_written(self, mock_db, mock_supabase):
        """A concurrent write to another column survives."""
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(packing=1, physical_stock=5)])
        store = SummaryStore()

        # Another writer changes physical_stock after our read
        mock_supabase.before("update", MASTER_TABLE, lambda db: db.update_rows(
            MASTER_TABLE, {"product_id": "item-1"}, {"physical_stock": 8, "version": 1}
        ))

        row = store.upsert_master("item-1", "company-1", set_field("packing", 2))

        assert row["packing"] == 2
        assert row["physical_stock"] == 8
        assert row["version"] == 2

    def test_daily_key_includes_date(self, mock_db, mock_supabase):
        store = SummaryStore()

        store.upsert_daily("item-1", "company-1", DAY, set_field("packing", 1))
        store.upsert_daily("item-1", "company-1", date(2025, 12, 3), set_field("packing", 2))

        rows = mock_supabase.rows(DAILY_TABLE)
        assert sorted(r["date"] for r in rows) == ["2025-12-02", "2025-12-03"]


class TestCreationRace:

    def test_duplicate_key_retried_as_update(self, mock_db, mock_supabase):
        """Another writer creates the row between our read and insert."""
        winner = SummaryFactory.master(physical_stock=7)
        mock_supabase.before("insert", MASTER_TABLE, lambda db: db.seed(MASTER_TABLE, [winner]))
        store = SummaryStore()

        row = store.upsert_master("item-1", "company-1", set_field("packing", 4), {"packing": 0})

        rows = mock_supabase.rows(MASTER_TABLE)
        assert len(rows) == 1
        assert row["id"] == winner["id"]
        assert row["packing"] == 4
        assert row["physical_stock"] == 7

    def test_duplicate_key_surfaces_when_retry_finds_nothing(self, mock_db, mock_supabase):
        store = SummaryStore()

        def always_duplicate(table, key, row):
            raise DuplicateKeyError(table, key)

        store._insert = always_duplicate

        with pytest.raises(DuplicateKeyError):
            store.upsert_master("item-1", "company-1", set_field("packing", 4))

    def test_other_insert_failures_raise_database_error(self, mock_db, mock_supabase):
        mock_supabase.before("insert", MASTER_TABLE, lambda db: db.fail(MASTER_TABLE))
        store = SummaryStore()

        with pytest.raises(DatabaseError):
            store.upsert_master("item-1", "company-1", set_field("packing", 4))


class TestVersionConflict:

    def test_conflict_reapplies_mutation_on_fresh_row(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(packing=1)])
        mock_supabase.before("update", MASTER_TABLE, lambda db: db.update_rows(
            MASTER_TABLE, {"product_id": "item-1"}, {"packing": 5, "version": 1}
        ))
        store = SummaryStore()

        def add_one(row):
            row["packing"] = row["packing"] + 1
            return row

        row = store.upsert_master("item-1", "company-1", add_one)

        assert row["packing"] == 6
        assert row["version"] == 2

    def test_gives_up_after_max_attempts(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(packing=1)])
        store = SummaryStore()
        store.max_update_attempts = 2

        store._conditional_update = lambda *args, **kwargs: None

        with pytest.raises(SummaryWriteConflictError) as exc_info:
            store.upsert_master("item-1", "company-1", set_field("packing", 2))

        assert exc_info.value.status_code == 409

    def test_update_daily_absent_returns_none(self, mock_db, mock_supabase):
        store = SummaryStore()

        assert store.update_daily("item-1", "company-1", DAY, set_field("packing", 1)) is None
        assert mock_supabase.rows(DAILY_TABLE) == []


class TestFindOrCreateDaily:

    def test_new_daily_links_master_and_inherits_batch_size(self, mock_db, mock_supabase):
        master = SummaryFactory.master(qty_per_batch=25)
        mock_supabase.seed(MASTER_TABLE, [master])
        store = SummaryStore()

        daily = store.find_or_create_daily("item-1", "company-1", DAY, master)

        assert daily["product_daily_summary_id"] == master["id"]
        assert daily["qty_per_batch"] == 25
        assert daily["status"] == "pending"
        assert daily["date"] == "2025-12-02"

    def test_existing_daily_returned_unchanged(self, mock_db, mock_supabase):
        existing = SummaryFactory.daily(day=DAY, qty_per_batch=10, status="approved")
        mock_supabase.seed(DAILY_TABLE, [existing])
        store = SummaryStore()

        daily = store.find_or_create_daily("item-1", "company-1", DAY, SummaryFactory.master(qty_per_batch=99))

        assert daily["id"] == existing["id"]
        assert daily["qty_per_batch"] == 10
        assert daily["status"] == "approved"


class TestListing:

    def test_latest_approved_daily_picks_most_recent_approved(self, mock_db, mock_supabase):
        mock_supabase.seed(DAILY_TABLE, [
            SummaryFactory.daily(day=date(2025, 12, 1), status="approved", batch_adjusted=1),
            SummaryFactory.daily(day=date(2025, 12, 3), status="approved", batch_adjusted=3),
            SummaryFactory.daily(day=date(2025, 12, 4), status="pending", batch_adjusted=4),
        ])
        store = SummaryStore()

        latest = store.latest_approved_daily(["item-1"], "company-1")
        assert latest["item-1"]["batch_adjusted"] == 3

        bounded = store.latest_approved_daily(["item-1"], "company-1", on_or_before=date(2025, 12, 2))
        assert bounded["item-1"]["batch_adjusted"] == 1

    def test_list_daily_filters_status(self, mock_db, mock_supabase):
        mock_supabase.seed(DAILY_TABLE, [
            SummaryFactory.daily(product_id="a", status="approved"),
            SummaryFactory.daily(product_id="b", status="pending"),
        ])
        store = SummaryStore()

        rows = store.list_daily("company-1", day=DAY, status="pending")

        assert [r["product_id"] for r in rows] == ["b"]

    def test_list_masters_ordered_by_name(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [
            SummaryFactory.master(product_id="b", product_name="Zeera"),
            SummaryFactory.master(product_id="a", product_name="Amla"),
        ])
        store = SummaryStore()

        assert [r["product_name"] for r in store.list_masters("company-1")] == ["Amla", "Zeera"]


class TestCascadeDelete:

    def test_deletes_daily_and_master_across_companies(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [
            SummaryFactory.master(company_id="company-1"),
            SummaryFactory.master(company_id="company-2"),
            SummaryFactory.master(product_id="item-2"),
        ])
        mock_supabase.seed(DAILY_TABLE, [SummaryFactory.daily(), SummaryFactory.daily(day=date(2025, 12, 3))])
        store = SummaryStore()

        deleted = store.delete_all_for_product("item-1")

        assert deleted == {DAILY_TABLE: 2, MASTER_TABLE: 2}
        assert [r["product_id"] for r in mock_supabase.rows(MASTER_TABLE)] == ["item-2"]

    def test_failure_is_reported_not_raised(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master()])
        mock_supabase.fail(DAILY_TABLE)
        store = SummaryStore()

        deleted = store.delete_all_for_product("item-1")

        assert deleted[DAILY_TABLE] is None
        assert deleted[MASTER_TABLE] == 1


class TestUniqueViolation:

    def test_detects_postgres_code(self):
        assert is_unique_violation(FakeAPIError("boom", code="23505"))

    def test_detects_message(self):
        assert is_unique_violation(Exception('duplicate key value violates unique constraint "x"'))

    def test_ignores_other_errors(self):
        assert not is_unique_violation(FakeAPIError("timeout", code="57014"))
