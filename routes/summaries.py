"""
Production summary API routes.

Dashboard reads, manual edits and indent lookups. Callers bound to a
company (X-Company-Id) only reach that company's summaries.
"""

from fastapi import APIRouter, Query, Header
from fastapi.responses import JSONResponse
from datetime import date
from typing import Optional
import structlog

from models.summary import (
    SummaryUpdateRequest,
    MasterSummaryResponse,
    DailyDetailResponse,
    ProductSummaryListResponse,
)
from models.indent import IndentResult
from services.dashboard_service import get_dashboard_service
from services.reconciler_service import get_reconciler_service
from routes.identity import build_actor, ensure_company_scope
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("", response_model=ProductSummaryListResponse)
async def list_product_summaries(
    company_id: str = Query(..., min_length=1, description="Company scope"),
    day: Optional[date] = Query(None, alias="date", description="Day (UTC) to overlay and filter indent by"),
    x_company_id: Optional[str] = Header(None)
):
    """
    Product summaries grouped by production group.

    Approved daily details of `date` overlay the master figures. If indent
    can't be computed for a product its total_indent is null.
    """
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_dashboard_service()
        return service.get_product_summaries(company_id, day)

    except Exception as e:
        return handle_error(e)


@router.get("/indent/{product_id}", response_model=IndentResult)
async def get_product_indent(
    product_id: str,
    company_id: str = Query(..., min_length=1),
    day: Optional[date] = Query(None, alias="date", description="Only orders of this day (UTC)"),
    x_company_id: Optional[str] = Header(None)
):
    """
    Approved indent of a product with its salesperson breakdown.

    Raises:
        403: Caller bound to another company
        503: Indent aggregation failed
    """
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_dashboard_service()
        return service.get_indent(product_id, company_id, day)

    except Exception as e:
        return handle_error(e)


@router.get("/{product_id}", response_model=MasterSummaryResponse)
async def get_master_summary(
    product_id: str,
    company_id: str = Query(..., min_length=1),
    x_company_id: Optional[str] = Header(None)
):
    """
    Get the master summary of a product.

    Raises:
        403: Caller bound to another company
        404: No summary for the product in the company
    """
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_dashboard_service()
        return service.get_master(product_id, company_id)

    except Exception as e:
        return handle_error(e)


@router.post("/update")
async def update_summary_fields(
    data: SummaryUpdateRequest,
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_company_id: Optional[str] = Header(None)
):
    """
    Manual edit from the dashboards.

    With `date`, the edit lands on that day's detail (created on demand);
    without it, on the master. Derived fields are recomputed.

    Raises:
        403: Caller identity missing or bound to another company
        404: Product or company not found
        422: Unknown or invalid fields (all listed in details.fields)
    """
    try:
        actor = build_actor(x_user_id, x_user_role, x_company_id)
        ensure_company_scope(actor.company_id, data.company_id)

        service = get_reconciler_service()
        record = service.on_manual_field_edit(
            product_id=data.product_id,
            company_id=data.company_id,
            fields=data.updates,
            day=data.date
        )

        logger.info(
            "manual_edit_accepted",
            product_id=data.product_id,
            company_id=data.company_id,
            user_id=actor.user_id,
            role=actor.role
        )

        if "date" in record:
            return DailyDetailResponse(**record)
        return MasterSummaryResponse(**record)

    except Exception as e:
        return handle_error(e)


@router.post("/{product_id}/refresh-indent", response_model=MasterSummaryResponse)
async def refresh_product_indent(
    product_id: str,
    company_id: str = Query(..., min_length=1),
    x_company_id: Optional[str] = Header(None)
):
    """
    Recompute the all-time indent on the master summary.

    Raises:
        403: Caller bound to another company
        404: Product or company not found
        503: Indent aggregation failed
    """
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_reconciler_service()
        return MasterSummaryResponse(**service.refresh_indent(product_id, company_id))

    except Exception as e:
        return handle_error(e)
