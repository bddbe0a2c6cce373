"""
Indent aggregation.

Indent is the quantity of a product requested by approved sales orders.
The dashboard total and the per-salesperson breakdown come out of the same
query and the same grouping, so they cannot drift apart.

Grouping is two-stage:
    1. per (product, order): sum the order's lines for the product
    2. per (product, salesperson): sum the order totals, count orders

Orders that are pending, rejected, cancelled or in any other state are
ignored. With a day, only orders placed on that UTC day count; without
one, all time.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional
import structlog

from config import get_supabase_client
from models.indent import IndentResult, OrderStatus
from models.summary import SalesPersonLine
from exceptions import AggregationFailureError
from services.formula_service import to_decimal, round2
from utils.date_utils import day_bounds

logger = structlog.get_logger(__name__)

# PostgREST encodes in_() filters in the URL
IN_FILTER_CHUNK = 200

# Must not exceed the PostgREST max_rows cap (1000 by default)
PAGE_SIZE = 1000

UNKNOWN_SALES_PERSON = "Unknown"


def _chunks(values: list[str], size: int = IN_FILTER_CHUNK):
    for start in range(0, len(values), size):
        yield values[start:start + size]


class IndentService:
    """Read-only aggregation over orders, order_items and users."""

    page_size = PAGE_SIZE

    def __init__(self):
        self.db = get_supabase_client()

    def compute_indent(
        self,
        product_id: str,
        company_id: str,
        day: Optional[date] = None
    ) -> IndentResult:
        """
        Compute approved indent for one product.

        Args:
            product_id: Item id
            company_id: Company scope
            day: Restrict to orders placed on this UTC day

        Returns:
            IndentResult with total and per-salesperson breakdown

        Raises:
            AggregationFailureError: If any underlying query fails
        """
        return self.compute_indent_bulk([product_id], company_id, day)[product_id]

    def compute_indent_bulk(
        self,
        product_ids: list[str],
        company_id: str,
        day: Optional[date] = None
    ) -> dict[str, IndentResult]:
        """
        Compute approved indent for several products in one pass.

        Every requested product gets an entry; products without approved
        orders get a zero total and an empty breakdown.

        Raises:
            AggregationFailureError: If any underlying query fails
        """
        product_ids = list(dict.fromkeys(product_ids))
        logger.info(
            "computing_indent",
            company_id=company_id,
            products=len(product_ids),
            day=day.isoformat() if day else "all"
        )

        if not product_ids:
            return {}

        try:
            orders = self._fetch_approved_orders(company_id, day)
            lines = self._fetch_lines(list(orders), product_ids)
            names = self._fetch_sales_person_names(
                {o["sales_person_id"] for o in orders.values() if o.get("sales_person_id")}
            )
        except Exception as e:
            logger.error(
                "indent_aggregation_failed",
                company_id=company_id,
                products=len(product_ids),
                error=str(e),
                error_type=type(e).__name__
            )
            raise AggregationFailureError(company_id, str(e), product_ids) from e

        results = self._aggregate(product_ids, orders, lines, names)

        logger.info(
            "indent_computed",
            company_id=company_id,
            products_with_orders=sum(1 for r in results.values() if r.order_count),
        )
        return results

    # ===================
    # QUERIES
    # ===================

    def _fetch_all_pages(self, build_query) -> list[dict]:
        """
        Read every page of a query.

        PostgREST silently truncates a response at max_rows, so a single
        select would undercount busy companies. Pages are read in id order
        until a short page comes back.
        """
        rows: list[dict] = []
        offset = 0
        while True:
            result = (
                build_query()
                .order("id")
                .range(offset, offset + self.page_size - 1)
                .execute()
            )
            page = result.data or []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            offset += self.page_size

    def _fetch_approved_orders(self, company_id: str, day: Optional[date]) -> dict[str, dict]:
        def build_query():
            query = (
                self.db.table("orders")
                .select("id, sales_person_id, order_date")
                .eq("company_id", company_id)
                .eq("status", OrderStatus.APPROVED.value)
            )
            if day is not None:
                start, end = day_bounds(day)
                query = query.gte("order_date", start).lt("order_date", end)
            return query

        return {row["id"]: row for row in self._fetch_all_pages(build_query)}

    def _fetch_lines(self, order_ids: list[str], product_ids: list[str]) -> list[dict]:
        if not order_ids:
            return []

        lines: list[dict] = []
        for chunk in _chunks(order_ids):
            lines.extend(self._fetch_all_pages(
                lambda chunk=chunk: (
                    self.db.table("order_items")
                    .select("id, order_id, product_id, quantity")
                    .in_("order_id", chunk)
                    .in_("product_id", product_ids)
                )
            ))
        return lines

    def _fetch_sales_person_names(self, user_ids: set[str]) -> dict[str, str]:
        if not user_ids:
            return {}

        names: dict[str, str] = {}
        for chunk in _chunks(sorted(user_ids)):
            result = (
                self.db.table("users")
                .select("id, full_name, username")
                .in_("id", chunk)
                .execute()
            )
            for row in result.data or []:
                names[row["id"]] = row.get("full_name") or row.get("username") or UNKNOWN_SALES_PERSON
        return names

    # ===================
    # GROUPING
    # ===================

    @staticmethod
    def _aggregate(
        product_ids: list[str],
        orders: dict[str, dict],
        lines: list[dict],
        names: dict[str, str]
    ) -> dict[str, IndentResult]:
        # Stage 1: per (product, order)
        per_order: dict[tuple[str, str], Decimal] = defaultdict(Decimal)
        for line in lines:
            order_id = line.get("order_id")
            pid = line.get("product_id")
            if order_id not in orders or pid not in product_ids:
                continue
            per_order[(pid, order_id)] += to_decimal(line.get("quantity"))

        # Stage 2: per (product, salesperson)
        per_person: dict[str, dict[Optional[str], dict]] = defaultdict(dict)
        for (pid, order_id), quantity in per_order.items():
            sp_id = orders[order_id].get("sales_person_id")
            bucket = per_person[pid].setdefault(sp_id, {"quantity": Decimal("0"), "orders": 0})
            bucket["quantity"] += quantity
            bucket["orders"] += 1

        results: dict[str, IndentResult] = {}
        for pid in product_ids:
            breakdown = [
                SalesPersonLine(
                    sales_person_id=sp_id,
                    sales_person_name=names.get(sp_id, UNKNOWN_SALES_PERSON) if sp_id else UNKNOWN_SALES_PERSON,
                    total_quantity=float(round2(bucket["quantity"])),
                    order_count=bucket["orders"],
                )
                for sp_id, bucket in per_person.get(pid, {}).items()
            ]
            breakdown.sort(key=lambda line: (-line.total_quantity, line.sales_person_name))

            total = sum((b["quantity"] for b in per_person.get(pid, {}).values()), Decimal("0"))
            results[pid] = IndentResult(
                product_id=pid,
                total_indent=float(round2(total)),
                order_count=sum(line.order_count for line in breakdown),
                breakdown=breakdown,
            )

        return results


# Singleton instance for convenience
_indent_service: Optional[IndentService] = None

def get_indent_service() -> IndentService:
    """Get or create IndentService instance."""
    global _indent_service
    if _indent_service is None:
        _indent_service = IndentService()
    return _indent_service
