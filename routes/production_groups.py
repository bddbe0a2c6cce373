"""
Production group API routes.
"""

from fastapi import APIRouter, Query, Header
from fastapi.responses import JSONResponse
from datetime import date
from typing import Optional
import structlog

from models.production_group import (
    ProductionGroupResponse,
    GroupRollup,
    ProductionDashboardResponse,
    GroupOverlap,
)
from services.production_group_service import get_production_group_service
from routes.identity import ensure_company_scope
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


@router.get("", response_model=list[ProductionGroupResponse])
async def list_production_groups(
    company_id: str = Query(..., min_length=1),
    include_inactive: bool = Query(False, description="Include inactive groups"),
    x_company_id: Optional[str] = Header(None)
):
    """Production groups of a company with their member item ids."""
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_production_group_service()
        return service.list_groups(company_id, active_only=not include_inactive)

    except Exception as e:
        return handle_error(e)


@router.get("/dashboard", response_model=ProductionDashboardResponse)
async def production_dashboard(
    company_id: str = Query(..., min_length=1),
    day: Optional[date] = Query(None, alias="date"),
    x_company_id: Optional[str] = Header(None)
):
    """Available batches for every active group, for the production floor."""
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_production_group_service()
        return service.production_dashboard(company_id, day)

    except Exception as e:
        return handle_error(e)


@router.get("/overlaps", response_model=list[GroupOverlap])
async def membership_overlaps(
    company_id: str = Query(..., min_length=1),
    x_company_id: Optional[str] = Header(None)
):
    """Items that belong to more than one active group."""
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_production_group_service()
        return service.find_membership_overlaps(company_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{group_id}/available-batches", response_model=GroupRollup)
async def group_available_batches(
    group_id: str,
    company_id: str = Query(..., min_length=1),
    day: Optional[date] = Query(None, alias="date"),
    x_company_id: Optional[str] = Header(None)
):
    """
    Available batches of one group.

    Raises:
        403: Caller bound to another company
        404: Group not found in the company
    """
    try:
        ensure_company_scope(x_company_id, company_id)
        service = get_production_group_service()
        group = service.get_group(group_id, company_id)
        return service.compute_available_batches(group, day)

    except Exception as e:
        return handle_error(e)
