"""
Dashboard read API.

Per product: the master figures, overlaid by that day's daily detail only
once it is approved, plus the approved indent and its salesperson
breakdown. Products are grouped by production group; products outside
every group are listed separately.

Indent is optional on this view. If aggregation fails for a product its
total_indent is None and indent_available is False; the rest of the
response is unaffected.
"""

from datetime import date
from typing import Optional
import structlog

from models.summary import (
    SummaryStatus,
    SummaryFigures,
    SummaryBlock,
    MasterSummaryResponse,
    ProductSummaryView,
    ProductSummaryGroup,
    ProductSummaryListResponse,
)
from models.indent import IndentResult
from services.summary_store import get_summary_store
from services.indent_service import get_indent_service
from services.production_group_service import get_production_group_service
from exceptions import AggregationFailureError, SummaryNotFoundError

logger = structlog.get_logger(__name__)


class DashboardService:
    """Builds the product summary views consumed by the dashboards."""

    def __init__(self):
        self.store = get_summary_store()
        self.indent = get_indent_service()
        self.groups = get_production_group_service()

    def get_master(self, product_id: str, company_id: str) -> MasterSummaryResponse:
        """
        Get the master summary of a product.

        Raises:
            SummaryNotFoundError: If the product has no summary in the company
        """
        row = self.store.find_master(product_id, company_id)
        if row is None:
            raise SummaryNotFoundError(product_id, company_id)
        return MasterSummaryResponse(**row)

    def get_indent(self, product_id: str, company_id: str, day: Optional[date] = None) -> IndentResult:
        """Indent with salesperson breakdown for one product."""
        return self.indent.compute_indent(product_id, company_id, day)

    def get_product_summaries(
        self,
        company_id: str,
        day: Optional[date] = None
    ) -> ProductSummaryListResponse:
        """
        Build the dashboard view of every product of a company.

        Args:
            company_id: Company scope
            day: Overlay approved daily details of this day and restrict
                indent to orders of this day; without it, master figures and
                all-time indent
        """
        masters = self.store.list_masters(company_id)
        product_ids = [m["product_id"] for m in masters]

        daily = {}
        if day is not None and product_ids:
            daily = {row["product_id"]: row for row in self.store.list_daily(company_id, day=day)}

        indent = self._indent_by_product(product_ids, company_id, day)

        views = {
            master["product_id"]: self._build_view(
                master,
                daily.get(master["product_id"]),
                indent.get(master["product_id"])
            )
            for master in masters
        }

        grouped_ids: set[str] = set()
        groups = []
        for group in self.groups.list_groups(company_id):
            products = [views[pid] for pid in group.item_ids if pid in views]
            grouped_ids.update(p.product_id for p in products)
            groups.append(ProductSummaryGroup(
                group_id=group.id,
                group_name=group.name,
                group_description=group.description or "",
                products=products,
            ))

        ungrouped = [view for pid, view in views.items() if pid not in grouped_ids]

        logger.info(
            "product_summaries_built",
            company_id=company_id,
            day=day.isoformat() if day else None,
            products=len(views),
            groups=len(groups),
            indent_unavailable=sum(1 for v in views.values() if not v.indent_available)
        )

        return ProductSummaryListResponse(
            date=day,
            company_id=company_id,
            total_products=len(views),
            production_groups=groups,
            ungrouped_products=ungrouped,
        )

    # ===================
    # HELPERS
    # ===================

    def _indent_by_product(
        self,
        product_ids: list[str],
        company_id: str,
        day: Optional[date]
    ) -> dict[str, Optional[IndentResult]]:
        """
        Bulk indent, degrading to per-product queries when the bulk query
        fails. Products that still fail map to None.
        """
        if not product_ids:
            return {}

        try:
            return self.indent.compute_indent_bulk(product_ids, company_id, day)
        except AggregationFailureError as e:
            logger.warning(
                "bulk_indent_failed_retrying_per_product",
                company_id=company_id,
                products=len(product_ids),
                error=e.message
            )

        results: dict[str, Optional[IndentResult]] = {}
        for pid in product_ids:
            try:
                results[pid] = self.indent.compute_indent(pid, company_id, day)
            except AggregationFailureError as e:
                logger.warning(
                    "indent_unavailable",
                    product_id=pid,
                    company_id=company_id,
                    error=e.message
                )
                results[pid] = None
        return results

    @staticmethod
    def _build_view(
        master: dict,
        detail: Optional[dict],
        indent: Optional[IndentResult]
    ) -> ProductSummaryView:
        approved = (
            detail is not None
            and detail.get("status") == SummaryStatus.APPROVED.value
        )
        figures = SummaryFigures(**(detail if approved else master))

        summary = SummaryBlock(
            total_indent=indent.total_indent if indent else None,
            physical_stock=figures.physical_stock,
            packing=figures.packing,
            batch_adjusted=figures.batch_adjusted,
            production_final_batches=figures.production_final_batches,
            to_be_produced_day=figures.to_be_produced_day,
            to_be_produced_batches=figures.to_be_produced_batches,
            expiry_shortage=figures.expiry_shortage,
            produce_batches=figures.produce_batches,
        )

        return ProductSummaryView(
            summary_id=master["id"],
            product_id=master["product_id"],
            product_name=master.get("product_name"),
            company_id=master["company_id"],
            qty_per_batch=figures.qty_per_batch,
            total_quantity=SummaryFigures(**master).total_quantity,
            status=(detail or master).get("status") or SummaryStatus.PENDING.value,
            has_daily_data=detail is not None,
            daily_detail_id=detail["id"] if detail else None,
            indent_available=indent is not None,
            summary=summary,
            sales_breakdown=indent.breakdown if indent else [],
        )


# Singleton instance for convenience
_dashboard_service: Optional[DashboardService] = None

def get_dashboard_service() -> DashboardService:
    """Get or create DashboardService instance."""
    global _dashboard_service
    if _dashboard_service is None:
        _dashboard_service = DashboardService()
    return _dashboard_service
