"""
Approval gate schemas.
"""

from pydantic import Field
from typing import Optional
import datetime

from models.base import BaseSchema
from models.summary import SummaryStatus, DailyDetailResponse


class Actor(BaseSchema):
    """Authenticated caller, built from the headers set by the auth gateway."""

    user_id: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    company_id: Optional[str] = Field(None, description="None for cross-company roles")


class ApprovalRequest(BaseSchema):
    """Approve or revert one product's daily detail."""

    company_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    date: datetime.date
    remarks: Optional[str] = Field(None, max_length=500)


class DayApprovalRequest(BaseSchema):
    """Approve every pending detail of one day."""

    company_id: str = Field(..., min_length=1)
    date: datetime.date


class StatusHistoryEntry(BaseSchema):
    """Append-only record of a status transition."""

    daily_detail_id: str
    product_id: str
    company_id: str
    date: datetime.date
    from_status: SummaryStatus
    to_status: SummaryStatus
    changed_by: str
    changed_by_role: str
    remarks: Optional[str] = None
    changed_at: datetime.datetime


class DayApprovalResponse(BaseSchema):
    """Result of a bulk approval."""

    company_id: str
    date: datetime.date
    approved_count: int
    details: list[DailyDetailResponse]
