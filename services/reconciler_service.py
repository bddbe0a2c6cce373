"""
Summary reconciler.

Reacts to item, order and manual-edit events and keeps the master
summaries and daily details consistent with them. Every handler resolves
the product and company first, so an unresolved reference fails the event
before anything is written.

Writes go through SummaryStore upserts, which are safe against concurrent
writers on the same key.
"""

import math
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional
import structlog

from config import settings
from models.summary import (
    SummaryStatus,
    EDITABLE_FIELDS,
    FIELD_ALIASES,
    zero_figures,
)
from models.indent import OrderEvent, OrderStatus
from models.catalog import ItemReference
from services.summary_store import get_summary_store
from services.catalog_service import get_catalog_service
from services.indent_service import get_indent_service
from services.formula_service import apply_formulas
from utils.date_utils import to_utc_day
from exceptions import (
    ValidationError,
    InvalidSummaryFieldsError,
    ProductNotFoundError,
)

logger = structlog.get_logger(__name__)


def validate_manual_fields(fields: Any) -> dict[str, float]:
    """
    Validate and normalize a manual edit.

    camelCase names are mapped to their column names. Values must be
    finite, non-negative numbers (numeric strings from form inputs are
    accepted). Every offending field is reported, not just the first.

    Returns:
        Dict of column name to float

    Raises:
        InvalidSummaryFieldsError: If any field is unknown or invalid
    """
    if not isinstance(fields, Mapping) or not fields:
        raise InvalidSummaryFieldsError({"updates": "at least one field is required"})

    normalized: dict[str, float] = {}
    errors: dict[str, str] = {}

    for name, value in fields.items():
        column = FIELD_ALIASES.get(name, name)
        if column not in EDITABLE_FIELDS:
            errors[name] = "not an editable field"
            continue

        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
            errors[name] = "must be a number"
            continue

        try:
            number = float(value)
        except (TypeError, ValueError):
            errors[name] = "must be a number"
            continue

        if not math.isfinite(number):
            errors[name] = "must be finite"
        elif number < 0:
            errors[name] = "must be zero or greater"
        else:
            normalized[column] = number

    if errors:
        raise InvalidSummaryFieldsError(errors)

    return normalized


class SummaryReconciler:
    """
    Event handlers for production summaries.

    Uses:
    - SummaryStore for master/daily persistence
    - CatalogService to resolve items and companies
    - IndentService for approved order demand
    """

    def __init__(self):
        self.store = get_summary_store()
        self.catalog = get_catalog_service()
        self.indent = get_indent_service()

        self.day_scoped_edits = settings.day_scoped_edits

    # ===================
    # INVENTORY EVENTS
    # ===================

    def on_item_created(self, product_id: str, company_id: str) -> dict:
        """
        Create the zero-valued master summary of a new item.

        A master that already exists is left untouched.

        Returns:
            The master summary row

        Raises:
            ProductNotFoundError: If the item doesn't resolve in the company
            CompanyNotFoundError: If the company doesn't exist
        """
        item, _ = self.catalog.resolve(product_id, company_id)

        existing = self.store.find_master(product_id, company_id)
        if existing is not None:
            logger.debug("summary_exists", product_id=product_id, company_id=company_id)
            return existing

        master = self._ensure_master(item, company_id)
        logger.info("summary_created", product_id=product_id, company_id=company_id)
        return master

    def sync_item(self, product_id: str, company_id: str) -> dict:
        """
        Bring the master in line with the item: create it if missing and
        carry over the item's configured batch size.
        """
        master = self.on_item_created(product_id, company_id)

        item = self.catalog.get_item(product_id)
        if item.qty_per_batch > 0:
            master = self.on_batch_size_changed(product_id, company_id, item.qty_per_batch)

        return master

    def on_batch_size_changed(
        self,
        product_id: str,
        company_id: str,
        qty_per_batch: float
    ) -> dict:
        """
        Set the batch size on the master summary, whatever day it was last
        touched, and recompute derived fields.

        Only qty_per_batch and the cached product name change; every other
        manual field is preserved.

        Raises:
            InvalidSummaryFieldsError: If qty_per_batch is not a finite number >= 0
        """
        qty = validate_manual_fields({"qty_per_batch": qty_per_batch})["qty_per_batch"]
        item, _ = self.catalog.resolve(product_id, company_id)

        def mutate(row: dict) -> dict:
            row["qty_per_batch"] = qty
            row["product_name"] = item.name
            return apply_formulas(row)

        master = self.store.upsert_master(
            product_id, company_id, mutate, self._master_defaults(item)
        )

        logger.info(
            "batch_size_updated",
            product_id=product_id,
            company_id=company_id,
            qty_per_batch=qty
        )
        return master

    def on_item_deleted(self, product_id: str) -> dict[str, Optional[int]]:
        """Remove every summary row of a deleted item."""
        return self.store.delete_all_for_product(product_id)

    # ===================
    # ORDER EVENTS
    # ===================

    def on_order_approved(self, order: OrderEvent) -> dict:
        """
        Recompute indent for every product of an approved order.

        The master's total_indent becomes the all-time approved demand.
        A daily detail already present for the order's day gets that day's
        demand; none is created.

        Returns:
            Dict with the updated masters and daily details

        Raises:
            ValidationError: If the order is not approved
            NotFoundError: If the company or any product doesn't resolve
            AggregationFailureError: If indent can't be computed
        """
        if order.status != OrderStatus.APPROVED:
            raise ValidationError(
                message=f"Order {order.id} is {order.status.value}, not approved",
                details={"order_id": order.id, "status": order.status.value}
            )

        company_id = order.company_id
        product_ids = order.product_ids
        day = to_utc_day(order.order_date)

        logger.info(
            "order_approved_received",
            order_id=order.id,
            company_id=company_id,
            products=len(product_ids),
            day=day.isoformat()
        )

        # Resolve everything before the first write
        self.catalog.get_company(company_id)
        items = self.catalog.get_items(product_ids)
        for pid in product_ids:
            item = items.get(pid)
            if item is None or (item.company_id and item.company_id != company_id):
                raise ProductNotFoundError(pid)

        all_time = self.indent.compute_indent_bulk(product_ids, company_id)
        day_rows = {}
        for pid in product_ids:
            row = self.store.find_daily(pid, company_id, day)
            if row is not None:
                day_rows[pid] = row
        day_indent = (
            self.indent.compute_indent_bulk(list(day_rows), company_id, day)
            if day_rows else {}
        )

        masters = []
        for pid in product_ids:
            masters.append(self._set_master_indent(items[pid], company_id, all_time[pid].total_indent))

        details = []
        for pid in day_rows:
            total = day_indent[pid].total_indent
            updated = self.store.update_daily(
                pid, company_id, day, lambda row, total=total: {**row, "total_indent": total}
            )
            if updated is not None:
                details.append(updated)

        logger.info(
            "order_indent_reconciled",
            order_id=order.id,
            company_id=company_id,
            masters=len(masters),
            daily_details=len(details)
        )

        return {
            "order_id": order.id,
            "company_id": company_id,
            "date": day,
            "masters": masters,
            "daily_details": details,
        }

    def refresh_indent(self, product_id: str, company_id: str) -> dict:
        """Recompute the all-time indent of one product on its master."""
        item, _ = self.catalog.resolve(product_id, company_id)
        result = self.indent.compute_indent(product_id, company_id)
        return self._set_master_indent(item, company_id, result.total_indent)

    # ===================
    # MANUAL EDITS
    # ===================

    def on_manual_field_edit(
        self,
        product_id: str,
        company_id: str,
        fields: Mapping[str, Any],
        day: Optional[date] = None
    ) -> dict:
        """
        Apply a manual edit from the dashboards.

        With a day (and day-scoped editing on), the edit lands on that day's
        detail, created on demand from the master. Otherwise it lands on the
        master. Derived fields are recomputed before the write.

        Returns:
            The persisted master or daily detail row

        Raises:
            InvalidSummaryFieldsError: If any field is unknown or invalid
            NotFoundError: If the product or company doesn't resolve
        """
        updates = validate_manual_fields(fields)
        item, _ = self.catalog.resolve(product_id, company_id)
        master = self._ensure_master(item, company_id)

        if day is not None and self.day_scoped_edits:
            # Seeds qty_per_batch from the master on creation only
            self.store.find_or_create_daily(product_id, company_id, day, master)

            def merge_daily(row: dict) -> dict:
                row.update(updates)
                return apply_formulas(row)

            record = self.store.upsert_daily(product_id, company_id, day, merge_daily)
            target = "daily"
        else:
            def merge_master(row: dict) -> dict:
                row.update(updates)
                return apply_formulas(row)

            record = self.store.upsert_master(
                product_id, company_id, merge_master, self._master_defaults(item)
            )
            target = "master"

        logger.info(
            "summary_fields_updated",
            product_id=product_id,
            company_id=company_id,
            target=target,
            day=day.isoformat() if day else None,
            fields=sorted(updates)
        )
        return record

    # ===================
    # HELPERS
    # ===================

    @staticmethod
    def _master_defaults(item: ItemReference) -> dict:
        return apply_formulas({
            **zero_figures(),
            "product_name": item.name,
            "total_indent": 0.0,
            "total_quantity": item.qty,
            "status": SummaryStatus.PENDING.value,
        })

    def _ensure_master(self, item: ItemReference, company_id: str) -> dict:
        existing = self.store.find_master(item.id, company_id)
        if existing is not None:
            return existing
        return self.store.upsert_master(
            item.id, company_id, apply_formulas, self._master_defaults(item)
        )

    def _set_master_indent(self, item: ItemReference, company_id: str, total_indent: float) -> dict:
        def mutate(row: dict) -> dict:
            row["total_indent"] = total_indent
            row["product_name"] = item.name
            return apply_formulas(row)

        master = self.store.upsert_master(item.id, company_id, mutate, self._master_defaults(item))
        logger.info(
            "indent_refreshed",
            product_id=item.id,
            company_id=company_id,
            total_indent=total_indent
        )
        return master


# Singleton instance for convenience
_reconciler_service: Optional[SummaryReconciler] = None

def get_reconciler_service() -> SummaryReconciler:
    """Get or create SummaryReconciler instance."""
    global _reconciler_service
    if _reconciler_service is None:
        _reconciler_service = SummaryReconciler()
    return _reconciler_service
