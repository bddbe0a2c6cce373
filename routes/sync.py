"""
Event intake from inventory and order management.

Each endpoint is the HTTP form of one reconciler event.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.summary import (
    ItemSyncRequest,
    BatchSizeUpdate,
    MasterSummaryResponse,
)
from models.indent import OrderEvent, OrderReconciliationResponse
from services.reconciler_service import get_reconciler_service
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
# ITEMS
# ===================

@router.post("/items", response_model=MasterSummaryResponse, status_code=201)
async def item_created(data: ItemSyncRequest):
    """
    Item created (or re-synced) in inventory.

    Creates the master summary if missing and carries over the item's
    batch size.

    Raises:
        404: Item or company not found
    """
    try:
        service = get_reconciler_service()
        return MasterSummaryResponse(**service.sync_item(data.product_id, data.company_id))

    except Exception as e:
        return handle_error(e)


@router.put("/items/{product_id}/batch-size", response_model=MasterSummaryResponse)
async def batch_size_changed(product_id: str, data: BatchSizeUpdate):
    """
    Batch size changed on an item.

    Raises:
        404: Item or company not found
    """
    try:
        service = get_reconciler_service()
        master = service.on_batch_size_changed(product_id, data.company_id, data.qty_per_batch)
        return MasterSummaryResponse(**master)

    except Exception as e:
        return handle_error(e)


@router.delete("/items/{product_id}")
async def item_deleted(product_id: str):
    """
    Item deleted in inventory. Removes its summaries in every company.

    Per-table counts are null where the delete failed.
    """
    try:
        service = get_reconciler_service()
        deleted = service.on_item_deleted(product_id)
        return {"product_id": product_id, "deleted": deleted}

    except Exception as e:
        return handle_error(e)


# ===================
# ORDERS
# ===================

@router.post("/orders/approved", response_model=OrderReconciliationResponse)
async def order_approved(order: OrderEvent):
    """
    Order approved. Recomputes indent for each of its products.

    Raises:
        404: Company or product not found
        422: Order is not in approved status
        503: Indent aggregation failed
    """
    try:
        service = get_reconciler_service()
        return service.on_order_approved(order)

    except Exception as e:
        return handle_error(e)
