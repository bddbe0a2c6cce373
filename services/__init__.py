"""
Business logic services.

Each service handles one domain area.
"""

from services.summary_store import SummaryStore, get_summary_store
from services.catalog_service import CatalogService, get_catalog_service
from services.indent_service import IndentService, get_indent_service
from services.reconciler_service import (
    SummaryReconciler,
    get_reconciler_service,
    validate_manual_fields,
)
from services.approval_service import ApprovalService, get_approval_service
from services.production_group_service import (
    ProductionGroupService,
    get_production_group_service,
    available_batches,
)
from services.dashboard_service import DashboardService, get_dashboard_service
from services.formula_service import apply_formulas, compute_derived

__all__ = [
    "SummaryStore",
    "get_summary_store",
    "CatalogService",
    "get_catalog_service",
    "IndentService",
    "get_indent_service",
    "SummaryReconciler",
    "get_reconciler_service",
    "validate_manual_fields",
    "ApprovalService",
    "get_approval_service",
    "ProductionGroupService",
    "get_production_group_service",
    "available_batches",
    "DashboardService",
    "get_dashboard_service",
    "apply_formulas",
    "compute_derived",
]
