"""
Reference schemas for records owned by other subsystems.

Items belong to inventory management, companies to tenant management.
Both are read-only here.
"""

from pydantic import Field, field_validator
from typing import Optional

from models.base import BaseSchema


class ItemReference(BaseSchema):
    """Inventory item as seen by the reconciler."""

    id: str
    name: str
    company_id: Optional[str] = None
    qty_per_batch: float = Field(0, ge=0, description="Batch size configured on the item")
    qty: float = Field(0, description="Current stock quantity")

    @field_validator("qty_per_batch", "qty", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        """Inventory leaves unset quantities NULL."""
        return 0 if v is None else v


class CompanyReference(BaseSchema):
    """Tenant company."""

    id: str
    name: Optional[str] = None
