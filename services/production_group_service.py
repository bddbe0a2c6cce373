"""
Production group rollup.

A production group batches several items together on the floor. For each
member the number of batches it can run comes from the latest approved
daily detail (on or before the requested day), falling back to the master
summary, using the first rule that applies:

    batch_adjusted > 0            -> batch_adjusted
    production_final_batches > 0  -> production_final_batches
    qty_per_batch > 0             -> 1 (a configured item can run one batch)
    otherwise                     -> 0

Groups are read-only here.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional
import structlog

from config import get_supabase_client
from models.production_group import (
    BatchSource,
    BatchBasis,
    ProductionGroupResponse,
    ProductAvailability,
    GroupRollup,
    ProductionDashboardResponse,
    GroupOverlap,
)
from services.summary_store import get_summary_store
from services.catalog_service import get_catalog_service
from services.formula_service import to_decimal, round2
from exceptions import ProductionGroupNotFoundError, DatabaseError

logger = structlog.get_logger(__name__)


def available_batches(row: Optional[dict]) -> tuple[BatchBasis, Decimal]:
    """Apply the fallback chain to one summary row."""
    if row is None:
        return BatchBasis.NONE, Decimal("0")

    batch_adjusted = to_decimal(row.get("batch_adjusted"))
    if batch_adjusted > 0:
        return BatchBasis.BATCH_ADJUSTED, batch_adjusted

    production_final = to_decimal(row.get("production_final_batches"))
    if production_final > 0:
        return BatchBasis.PRODUCTION_FINAL_BATCHES, production_final

    if to_decimal(row.get("qty_per_batch")) > 0:
        return BatchBasis.CONFIGURED_BATCH_SIZE, Decimal("1")

    return BatchBasis.NONE, Decimal("0")


class ProductionGroupService:
    """Reads production groups and rolls up their available batches."""

    def __init__(self):
        self.db = get_supabase_client()
        self.store = get_summary_store()
        self.catalog = get_catalog_service()

    # ===================
    # GROUPS
    # ===================

    def list_groups(self, company_id: str, active_only: bool = True) -> list[ProductionGroupResponse]:
        """
        Get the production groups of a company with their member item ids.

        Args:
            company_id: Company scope
            active_only: Skip inactive groups
        """
        try:
            query = (
                self.db.table("production_groups")
                .select("*")
                .eq("company_id", company_id)
            )
            if active_only:
                query = query.eq("is_active", True)
            result = query.order("name").execute()
            groups = result.data or []

            members = self._fetch_members([g["id"] for g in groups])

        except Exception as e:
            logger.error("list_production_groups_failed", company_id=company_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [
            ProductionGroupResponse(**group, item_ids=members.get(group["id"], []))
            for group in groups
        ]

    def get_group(self, group_id: str, company_id: str) -> ProductionGroupResponse:
        """
        Get one production group.

        Raises:
            ProductionGroupNotFoundError: If it doesn't exist in the company
        """
        try:
            result = (
                self.db.table("production_groups")
                .select("*")
                .eq("id", group_id)
                .eq("company_id", company_id)
                .limit(1)
                .execute()
            )
            if not result.data:
                raise ProductionGroupNotFoundError(group_id)

            members = self._fetch_members([group_id])

        except ProductionGroupNotFoundError:
            raise
        except Exception as e:
            logger.error("get_production_group_failed", group_id=group_id, error=str(e))
            raise DatabaseError("select", str(e))

        return ProductionGroupResponse(**result.data[0], item_ids=members.get(group_id, []))

    def find_membership_overlaps(self, company_id: str) -> list[GroupOverlap]:
        """
        Items that belong to more than one active group.

        Membership is meant to be exclusive but nothing enforces it, so
        overlaps are reported rather than rejected.
        """
        groups = self.list_groups(company_id)

        memberships: dict[str, list[ProductionGroupResponse]] = defaultdict(list)
        for group in groups:
            for item_id in group.item_ids:
                memberships[item_id].append(group)

        overlaps = [
            GroupOverlap(
                item_id=item_id,
                group_ids=[g.id for g in owners],
                group_names=[g.name for g in owners],
            )
            for item_id, owners in sorted(memberships.items())
            if len(owners) > 1
        ]

        if overlaps:
            logger.warning(
                "production_group_overlaps",
                company_id=company_id,
                items=[o.item_id for o in overlaps]
            )
        return overlaps

    # ===================
    # ROLLUP
    # ===================

    def compute_available_batches(
        self,
        group: ProductionGroupResponse,
        day: Optional[date] = None
    ) -> GroupRollup:
        """
        Sum the available batches of a group's members.

        Args:
            group: The production group
            day: Use approved daily details on or before this day;
                without it, the latest approved detail of any day

        Returns:
            GroupRollup with per-product figures and their total
        """
        item_ids = list(dict.fromkeys(group.item_ids))
        if not item_ids:
            return GroupRollup(group_id=group.id, group_name=group.name, date=day)

        daily = self.store.latest_approved_daily(item_ids, group.company_id, on_or_before=day)
        masters = {
            row["product_id"]: row
            for row in self.store.list_masters(group.company_id, product_ids=item_ids)
        }
        names = self._product_names(item_ids, masters)

        products = []
        total = Decimal("0")
        for pid in item_ids:
            if pid in daily:
                source, row = BatchSource.DAILY, daily[pid]
            elif pid in masters:
                source, row = BatchSource.MASTER, masters[pid]
            else:
                source, row = BatchSource.NONE, None

            basis, batches = available_batches(row)
            total += batches

            products.append(ProductAvailability(
                product_id=pid,
                product_name=names.get(pid),
                source=source,
                basis=basis,
                available_batches=float(round2(batches)),
                detail_date=daily[pid]["date"] if source == BatchSource.DAILY else None,
            ))

        logger.debug(
            "group_rollup_computed",
            group_id=group.id,
            company_id=group.company_id,
            products=len(products),
            total=float(round2(total))
        )

        return GroupRollup(
            group_id=group.id,
            group_name=group.name,
            date=day,
            total_available_batches=float(round2(total)),
            products=products,
        )

    def production_dashboard(
        self,
        company_id: str,
        day: Optional[date] = None
    ) -> ProductionDashboardResponse:
        """Rollup of every active group of a company."""
        groups = self.list_groups(company_id)
        rollups = [self.compute_available_batches(group, day) for group in groups]

        distinct_items = {pid for group in groups for pid in group.item_ids}

        logger.info(
            "production_dashboard_computed",
            company_id=company_id,
            day=day.isoformat() if day else None,
            groups=len(rollups),
            items=len(distinct_items)
        )

        return ProductionDashboardResponse(
            company_id=company_id,
            date=day,
            groups=rollups,
            total_groups=len(rollups),
            total_items=len(distinct_items),
        )

    # ===================
    # HELPERS
    # ===================

    def _fetch_members(self, group_ids: list[str]) -> dict[str, list[str]]:
        if not group_ids:
            return {}

        result = (
            self.db.table("production_group_items")
            .select("group_id, item_id")
            .in_("group_id", group_ids)
            .execute()
        )

        members: dict[str, list[str]] = defaultdict(list)
        for row in result.data or []:
            members[row["group_id"]].append(row["item_id"])
        return members

    def _product_names(self, item_ids: list[str], masters: dict[str, dict]) -> dict[str, str]:
        names = {
            pid: row["product_name"]
            for pid, row in masters.items()
            if row.get("product_name")
        }
        missing = [pid for pid in item_ids if pid not in names]
        if missing:
            for pid, item in self.catalog.get_items(missing).items():
                names[pid] = item.name
        return names


# Singleton instance for convenience
_production_group_service: Optional[ProductionGroupService] = None

def get_production_group_service() -> ProductionGroupService:
    """Get or create ProductionGroupService instance."""
    global _production_group_service
    if _production_group_service is None:
        _production_group_service = ProductionGroupService()
    return _production_group_service
