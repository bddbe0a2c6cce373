"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, TimestampMixin
from models.summary import (
    SummaryStatus,
    MANUAL_FIELDS,
    DERIVED_FIELDS,
    EDITABLE_FIELDS,
    FIELD_ALIASES,
    SummaryFigures,
    MasterSummaryResponse,
    DailyDetailResponse,
    SummaryUpdateRequest,
    BatchSizeUpdate,
    ItemSyncRequest,
    SummaryBlock,
    SalesPersonLine,
    ProductSummaryView,
    ProductSummaryGroup,
    ProductSummaryListResponse,
)
from models.indent import (
    OrderStatus,
    OrderLineItem,
    OrderEvent,
    IndentResult,
    OrderReconciliationResponse,
)
from models.catalog import ItemReference, CompanyReference
from models.production_group import (
    BatchSource,
    BatchBasis,
    ProductionGroupResponse,
    ProductAvailability,
    GroupRollup,
    ProductionDashboardResponse,
    GroupOverlap,
)
from models.approval import (
    Actor,
    ApprovalRequest,
    DayApprovalRequest,
    StatusHistoryEntry,
    DayApprovalResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Summary
    "SummaryStatus",
    "MANUAL_FIELDS",
    "DERIVED_FIELDS",
    "EDITABLE_FIELDS",
    "FIELD_ALIASES",
    "SummaryFigures",
    "MasterSummaryResponse",
    "DailyDetailResponse",
    "SummaryUpdateRequest",
    "BatchSizeUpdate",
    "ItemSyncRequest",
    "SummaryBlock",
    "SalesPersonLine",
    "ProductSummaryView",
    "ProductSummaryGroup",
    "ProductSummaryListResponse",

    # Indent
    "OrderStatus",
    "OrderLineItem",
    "OrderEvent",
    "IndentResult",
    "OrderReconciliationResponse",

    # Catalog
    "ItemReference",
    "CompanyReference",

    # Production groups
    "BatchSource",
    "BatchBasis",
    "ProductionGroupResponse",
    "ProductAvailability",
    "GroupRollup",
    "ProductionDashboardResponse",
    "GroupOverlap",

    # Approval
    "Actor",
    "ApprovalRequest",
    "DayApprovalRequest",
    "StatusHistoryEntry",
    "DayApprovalResponse",
]
