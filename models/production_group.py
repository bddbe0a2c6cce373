"""
Production group schemas.

Groups batch products together on the production floor. The rollup
reports how many batches each member can run.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
import datetime

from models.base import BaseSchema, TimestampMixin


class BatchSource(str, Enum):
    """Which record a member's available batches were read from."""
    DAILY = "daily"
    MASTER = "master"
    NONE = "none"


class BatchBasis(str, Enum):
    """Which rule of the fallback chain produced the figure."""
    BATCH_ADJUSTED = "batch_adjusted"
    PRODUCTION_FINAL_BATCHES = "production_final_batches"
    CONFIGURED_BATCH_SIZE = "configured_batch_size"
    NONE = "none"


class ProductionGroupResponse(BaseSchema, TimestampMixin):
    """Production group with its member item ids."""

    id: str
    company_id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
    item_ids: list[str] = Field(default_factory=list)


class ProductAvailability(BaseSchema):
    """Available batches for one group member."""

    product_id: str
    product_name: Optional[str] = None
    source: BatchSource
    basis: BatchBasis
    available_batches: float = 0
    detail_date: Optional[datetime.date] = None


class GroupRollup(BaseSchema):
    """Available batches across a group."""

    group_id: str
    group_name: str
    date: Optional[datetime.date] = None
    total_available_batches: float = 0
    products: list[ProductAvailability] = Field(default_factory=list)


class ProductionDashboardResponse(BaseSchema):
    """Rollup of every active group of a company."""

    company_id: str
    date: Optional[datetime.date] = None
    groups: list[GroupRollup]
    total_groups: int
    total_items: int


class GroupOverlap(BaseSchema):
    """An item that belongs to more than one active group."""

    item_id: str
    group_ids: list[str]
    group_names: list[str]
