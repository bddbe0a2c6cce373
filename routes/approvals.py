"""
Approval gate API routes.

The caller's identity comes from headers set by the auth gateway:
X-User-Id, X-User-Role and, for company-bound roles, X-Company-Id.
"""

from fastapi import APIRouter, Query, Header
from fastapi.responses import JSONResponse
from datetime import date
from typing import Optional
import structlog

from models.summary import SummaryStatus, DailyDetailResponse
from models.approval import (
    ApprovalRequest,
    DayApprovalRequest,
    DayApprovalResponse,
    StatusHistoryEntry,
)
from services.approval_service import get_approval_service
from routes.identity import build_actor, ensure_company_scope
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
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

@router.get("", response_model=list[DailyDetailResponse])
async def list_daily_details(
    company_id: str = Query(..., min_length=1),
    day: Optional[date] = Query(None, alias="date"),
    status: Optional[SummaryStatus] = Query(None, description="pending or approved"),
    x_company_id: Optional[str] = Header(None)
):
    """Daily details for the approver's view, newest day first."""
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_approval_service()
        return [DailyDetailResponse(**row) for row in service.list_daily(company_id, day, status)]

    except Exception as e:
        return handle_error(e)


@router.get("/history/{product_id}", response_model=list[StatusHistoryEntry])
async def get_status_history(
    product_id: str,
    company_id: str = Query(..., min_length=1),
    day: date = Query(..., alias="date"),
    x_company_id: Optional[str] = Header(None)
):
    """
    Status transitions of one daily detail, oldest first.

    Raises:
        403: Caller bound to another company
        404: No daily detail for that day
    """
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_approval_service()
        return [StatusHistoryEntry(**row) for row in service.get_history(product_id, company_id, day)]

    except Exception as e:
        return handle_error(e)


@router.post("/approve", response_model=DailyDetailResponse)
async def approve_daily_detail(
    data: ApprovalRequest,
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_company_id: Optional[str] = Header(None)
):
    """
    Approve a product's daily detail.

    Raises:
        403: Role not allowed or other company
        404: No daily detail for that day
        422: Already approved
    """
    try:
        actor = build_actor(x_user_id, x_user_role, x_company_id)
        service = get_approval_service()
        detail = service.approve(data.product_id, data.company_id, data.date, actor, data.remarks)
        return DailyDetailResponse(**detail)

    except Exception as e:
        return handle_error(e)


@router.post("/revert", response_model=DailyDetailResponse)
async def revert_daily_detail(
    data: ApprovalRequest,
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_company_id: Optional[str] = Header(None)
):
    """
    Send an approved daily detail back to pending.

    Raises:
        403: Role not allowed or other company
        404: No daily detail for that day
        422: Already pending
    """
    try:
        actor = build_actor(x_user_id, x_user_role, x_company_id)
        service = get_approval_service()
        detail = service.revert_to_pending(
            data.product_id, data.company_id, data.date, actor, data.remarks
        )
        return DailyDetailResponse(**detail)

    except Exception as e:
        return handle_error(e)


@router.post("/approve-day", response_model=DayApprovalResponse)
async def approve_day(
    data: DayApprovalRequest,
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_company_id: Optional[str] = Header(None)
):
    """
    Approve every pending daily detail of a day.

    Raises:
        403: Role not allowed or other company
    """
    try:
        actor = build_actor(x_user_id, x_user_role, x_company_id)
        service = get_approval_service()
        return service.approve_day(data.company_id, data.date, actor)

    except Exception as e:
        return handle_error(e)
