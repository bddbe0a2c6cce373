"""
Production summary schemas.

Two record kinds share one field shape:
    MasterSummary: one per (product, company), date-independent
    DailyDetail:   one per (product, company, day), approval-gated
"""

from pydantic import Field, field_validator
from typing import Any, Optional
from enum import Enum
import datetime

from models.base import BaseSchema, TimestampMixin


class SummaryStatus(str, Enum):
    """Approval status of a summary record."""
    PENDING = "pending"
    APPROVED = "approved"


# Inputs to the formula engine
MANUAL_FIELDS = (
    "qty_per_batch",
    "packing",
    "physical_stock",
    "batch_adjusted",
    "to_be_produced_day",
)

# Recomputed after every manual edit
DERIVED_FIELDS = (
    "production_final_batches",
    "to_be_produced_batches",
    "produce_batches",
    "expiry_shortage",
    "balance_final_batches",
)

# Accepted by the manual edit endpoint. produce_batches is accepted for
# UI compatibility but is overwritten by the formula engine.
EDITABLE_FIELDS = frozenset({
    "packing",
    "physical_stock",
    "batch_adjusted",
    "qty_per_batch",
    "to_be_produced_day",
    "produce_batches",
})

# camelCase names sent by the existing dashboards
FIELD_ALIASES = {
    "qtyPerBatch": "qty_per_batch",
    "physicalStock": "physical_stock",
    "batchAdjusted": "batch_adjusted",
    "toBeProducedDay": "to_be_produced_day",
    "produceBatches": "produce_batches",
}


def zero_figures() -> dict[str, float]:
    """Manual and derived fields of a freshly created record."""
    return {name: 0.0 for name in MANUAL_FIELDS + DERIVED_FIELDS}


class SummaryFigures(BaseSchema):
    """Manual and derived figures shared by both record kinds."""

    qty_per_batch: float = Field(0, ge=0, description="Units produced per batch")
    packing: float = Field(0, ge=0, description="Packed quantity entered manually")
    physical_stock: float = Field(0, ge=0, description="Counted stock")
    batch_adjusted: float = Field(0, ge=0, description="Manually adjusted batch count")
    to_be_produced_day: float = Field(0, ge=0, description="Quantity to produce for the day")

    production_final_batches: float = Field(0, description="batch_adjusted × qty_per_batch")
    to_be_produced_batches: float = Field(0, description="Mirrors produce_batches")
    produce_batches: float = Field(0, description="to_be_produced_day ÷ qty_per_batch")
    expiry_shortage: float = Field(0, description="production_final_batches − to_be_produced_day")
    balance_final_batches: float = Field(0, description="Carried through unchanged")

    total_indent: float = Field(0, ge=0, description="Approved order demand")
    total_quantity: float = Field(0, description="Auxiliary running stock figure")
    status: SummaryStatus = Field(SummaryStatus.PENDING)

    @field_validator(*MANUAL_FIELDS, *DERIVED_FIELDS, "total_indent", "total_quantity", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        """Columns added after a row was written come back as NULL."""
        return 0 if v is None else v


class MasterSummaryResponse(SummaryFigures, TimestampMixin):
    """Canonical per-(product, company) record."""

    id: str
    product_id: str
    company_id: str
    product_name: Optional[str] = None
    version: int = 0


class DailyDetailResponse(SummaryFigures, TimestampMixin):
    """Day-scoped, approval-gated record."""

    id: str
    product_id: str
    company_id: str
    date: datetime.date
    product_daily_summary_id: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime.datetime] = None
    version: int = 0


# ===================
# REQUESTS
# ===================

class SummaryUpdateRequest(BaseSchema):
    """
    Manual edit from the sales/production dashboards.

    `updates` is validated by the reconciler so every offending field is
    reported in one response.
    """

    date: Optional[datetime.date] = Field(None, description="Day to edit (UTC); omitted edits the master")
    product_id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)
    updates: dict[str, Any] = Field(..., description="Subset of editable fields")


class BatchSizeUpdate(BaseSchema):
    """Batch size change pushed by inventory."""

    company_id: str = Field(..., min_length=1)
    qty_per_batch: float = Field(..., ge=0)


class ItemSyncRequest(BaseSchema):
    """Item creation event pushed by inventory."""

    product_id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)


# ===================
# DASHBOARD READ API
# ===================

class SummaryBlock(BaseSchema):
    """The `summary` object rendered per product."""

    total_indent: Optional[float] = None
    physical_stock: float = 0
    packing: float = 0
    batch_adjusted: float = 0
    production_final_batches: float = 0
    to_be_produced_day: float = 0
    to_be_produced_batches: float = 0
    expiry_shortage: float = 0
    produce_batches: float = 0


class SalesPersonLine(BaseSchema):
    """One salesperson's share of a product's indent."""

    sales_person_id: Optional[str] = None
    sales_person_name: str = "Unknown"
    total_quantity: float = 0
    order_count: int = 0


class ProductSummaryView(BaseSchema):
    """Per-product row of the dashboard read API."""

    summary_id: str
    product_id: str
    product_name: Optional[str] = None
    company_id: str
    qty_per_batch: float = 0
    total_quantity: float = 0
    status: SummaryStatus = SummaryStatus.PENDING
    has_daily_data: bool = False
    daily_detail_id: Optional[str] = None
    indent_available: bool = True
    summary: SummaryBlock
    sales_breakdown: list[SalesPersonLine] = Field(default_factory=list)


class ProductSummaryGroup(BaseSchema):
    """Products of one production group."""

    group_id: str
    group_name: str
    group_description: str = ""
    products: list[ProductSummaryView]


class ProductSummaryListResponse(BaseSchema):
    """Dashboard read API response."""

    date: Optional[datetime.date] = None
    company_id: str
    total_products: int
    production_groups: list[ProductSummaryGroup]
    ungrouped_products: list[ProductSummaryView]
