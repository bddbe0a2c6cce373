"""
Unit tests for ProductionGroupService.

Run: pytest tests/unit/test_production_group_service.py -v
"""

import pytest
from datetime import date

from services.production_group_service import ProductionGroupService, available_batches
from services.summary_store import MASTER_TABLE, DAILY_TABLE
from models.production_group import BatchBasis, BatchSource
from exceptions import ProductionGroupNotFoundError

from tests.factories import ItemFactory, ProductionGroupFactory, SummaryFactory


def seed_group(db, **kwargs):
    group, members = ProductionGroupFactory.create(**kwargs)
    db.seed("production_groups", [group])
    db.seed("production_group_items", members)
    return group


class TestAvailableBatches:
    """The fallback chain on a single row."""

    def test_batch_adjusted_wins(self):
        basis, value = available_batches({"batch_adjusted": 4, "production_final_batches": 200, "qty_per_batch": 50})

        assert basis == BatchBasis.BATCH_ADJUSTED
        assert value == 4

    def test_production_final_batches_second(self):
        basis, value = available_batches({"batch_adjusted": 0, "production_final_batches": 2.5, "qty_per_batch": 50})

        assert basis == BatchBasis.PRODUCTION_FINAL_BATCHES
        assert value == 2.5

    def test_configured_batch_size_gives_one(self):
        basis, value = available_batches({"batch_adjusted": 0, "production_final_batches": 0, "qty_per_batch": 20})

        assert basis == BatchBasis.CONFIGURED_BATCH_SIZE
        assert value == 1

    def test_nothing_configured_gives_zero(self):
        basis, value = available_batches({"batch_adjusted": None, "production_final_batches": None, "qty_per_batch": 0})

        assert basis == BatchBasis.NONE
        assert value == 0

    def test_missing_row(self):
        assert available_batches(None) == (BatchBasis.NONE, 0)


class TestComputeAvailableBatches:

    def test_fallback_rollup(self, mock_db, mock_supabase):
        """Two members with empty figures: qty 20 runs 1 batch, qty 0 runs none."""
        mock_supabase.seed(MASTER_TABLE, [
            SummaryFactory.master(product_id="p1", product_name="Chilli", qty_per_batch=20),
            SummaryFactory.master(product_id="p2", product_name="Cumin", qty_per_batch=0),
        ])
        group = seed_group(mock_supabase, id="g1", item_ids=["p1", "p2"])
        service = ProductionGroupService()

        rollup = service.compute_available_batches(service.get_group(group["id"], "company-1"))

        assert rollup.total_available_batches == 1
        by_product = {p.product_id: p for p in rollup.products}
        assert by_product["p1"].available_batches == 1
        assert by_product["p1"].source == BatchSource.MASTER
        assert by_product["p2"].available_batches == 0

    def test_approved_daily_overrides_master(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(product_id="p1", batch_adjusted=9)])
        mock_supabase.seed(DAILY_TABLE, [
            SummaryFactory.daily(product_id="p1", day=date(2025, 12, 1), status="approved", batch_adjusted=2),
            SummaryFactory.daily(product_id="p1", day=date(2025, 12, 2), status="pending", batch_adjusted=5),
        ])
        group = seed_group(mock_supabase, id="g1", item_ids=["p1"])
        service = ProductionGroupService()

        rollup = service.compute_available_batches(service.get_group(group["id"], "company-1"), date(2025, 12, 2))

        assert rollup.total_available_batches == 2
        assert rollup.products[0].source == BatchSource.DAILY
        assert rollup.products[0].detail_date == date(2025, 12, 1)

    def test_daily_after_requested_day_ignored(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [SummaryFactory.master(product_id="p1", batch_adjusted=9)])
        mock_supabase.seed(DAILY_TABLE, [
            SummaryFactory.daily(product_id="p1", day=date(2025, 12, 5), status="approved", batch_adjusted=2),
        ])
        group = seed_group(mock_supabase, id="g1", item_ids=["p1"])
        service = ProductionGroupService()

        rollup = service.compute_available_batches(service.get_group(group["id"], "company-1"), date(2025, 12, 2))

        assert rollup.products[0].source == BatchSource.MASTER
        assert rollup.total_available_batches == 9

    def test_member_without_summary_uses_item_name(self, mock_db, mock_supabase):
        mock_supabase.seed("items", [ItemFactory.create(id="p3", name="Turmeric")])
        group = seed_group(mock_supabase, id="g1", item_ids=["p3"])
        service = ProductionGroupService()

        rollup = service.compute_available_batches(service.get_group(group["id"], "company-1"))

        assert rollup.products[0].source == BatchSource.NONE
        assert rollup.products[0].product_name == "Turmeric"
        assert rollup.total_available_batches == 0

    def test_empty_group(self, mock_db, mock_supabase):
        group = seed_group(mock_supabase, id="g1", item_ids=[])
        service = ProductionGroupService()

        rollup = service.compute_available_batches(service.get_group(group["id"], "company-1"))

        assert rollup.products == []
        assert rollup.total_available_batches == 0


class TestGroups:

    def test_get_group_other_company_not_found(self, mock_db, mock_supabase):
        seed_group(mock_supabase, id="g1", company_id="company-2")
        service = ProductionGroupService()

        with pytest.raises(ProductionGroupNotFoundError):
            service.get_group("g1", "company-1")

    def test_list_groups_skips_inactive(self, mock_db, mock_supabase):
        seed_group(mock_supabase, id="g1", name="Line A", item_ids=["p1"])
        seed_group(mock_supabase, id="g2", name="Line B", is_active=False)
        service = ProductionGroupService()

        groups = service.list_groups("company-1")

        assert [g.id for g in groups] == ["g1"]
        assert groups[0].item_ids == ["p1"]
        assert len(service.list_groups("company-1", active_only=False)) == 2

    def test_membership_overlaps_reported(self, mock_db, mock_supabase):
        seed_group(mock_supabase, id="g1", name="Line A", item_ids=["p1", "p2"])
        seed_group(mock_supabase, id="g2", name="Line B", item_ids=["p2", "p3"])
        seed_group(mock_supabase, id="g3", name="Line C", is_active=False, item_ids=["p1"])
        service = ProductionGroupService()

        overlaps = service.find_membership_overlaps("company-1")

        assert len(overlaps) == 1
        assert overlaps[0].item_id == "p2"
        assert overlaps[0].group_names == ["Line A", "Line B"]

    def test_production_dashboard(self, mock_db, mock_supabase):
        mock_supabase.seed(MASTER_TABLE, [
            SummaryFactory.master(product_id="p1", batch_adjusted=2),
            SummaryFactory.master(product_id="p2", production_final_batches=3),
        ])
        seed_group(mock_supabase, id="g1", name="Line A", item_ids=["p1"])
        seed_group(mock_supabase, id="g2", name="Line B", item_ids=["p1", "p2"])
        service = ProductionGroupService()

        dashboard = service.production_dashboard("company-1")

        assert dashboard.total_groups == 2
        assert dashboard.total_items == 2
        assert [g.total_available_batches for g in dashboard.groups] == [2, 5]
