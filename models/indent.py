"""
Order and indent schemas.

Orders are owned by order management; this service only reads approved
orders and receives approval events.
"""

from pydantic import Field, field_validator
from typing import Optional
from enum import Enum
import datetime

from models.base import BaseSchema
from models.summary import SalesPersonLine, MasterSummaryResponse, DailyDetailResponse


class OrderStatus(str, Enum):
    """Order lifecycle states owned by order management."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderLineItem(BaseSchema):
    """One product line of an order."""

    product_id: str = Field(..., min_length=1)
    quantity: float = Field(..., ge=0)


class OrderEvent(BaseSchema):
    """
    Order payload pushed when an order is approved.

    Only the fields the indent needs are required.
    """

    id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)
    order_date: datetime.datetime
    status: OrderStatus
    sales_person_id: Optional[str] = None
    line_items: list[OrderLineItem] = Field(default_factory=list)

    @field_validator("line_items")
    @classmethod
    def at_least_one_line(cls, v: list[OrderLineItem]) -> list[OrderLineItem]:
        """An approved order always carries products."""
        if not v:
            raise ValueError("order has no line items")
        return v

    @property
    def product_ids(self) -> list[str]:
        """Distinct product ids in line order."""
        seen: dict[str, None] = {}
        for line in self.line_items:
            seen.setdefault(line.product_id, None)
        return list(seen)


class IndentResult(BaseSchema):
    """Approved demand for one product, split by salesperson."""

    product_id: str
    total_indent: float = 0
    order_count: int = 0
    breakdown: list[SalesPersonLine] = Field(default_factory=list)


class OrderReconciliationResponse(BaseSchema):
    """Records touched by an order approval."""

    order_id: str
    company_id: str
    date: datetime.date
    masters: list[MasterSummaryResponse] = Field(default_factory=list)
    daily_details: list[DailyDetailResponse] = Field(default_factory=list)
