"""
Read-only lookups of items and companies.

Both belong to other subsystems. The reconciler resolves them before any
write so a dangling reference aborts the mutation without side effects.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.catalog import ItemReference, CompanyReference
from exceptions import (
    ProductNotFoundError,
    CompanyNotFoundError,
    DatabaseError
)

logger = structlog.get_logger(__name__)


class CatalogService:
    """Lookups against the `items` and `companies` tables."""

    def __init__(self):
        self.db = get_supabase_client()

    def get_item(self, product_id: str) -> ItemReference:
        """
        Get an inventory item by id.

        Raises:
            ProductNotFoundError: If the item doesn't exist
        """
        logger.debug("getting_item", product_id=product_id)

        try:
            result = (
                self.db.table("items")
                .select("id, name, company_id, qty_per_batch, qty")
                .eq("id", product_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_item_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ProductNotFoundError(product_id)

        return ItemReference(**result.data[0])

    def get_items(self, product_ids: list[str]) -> dict[str, ItemReference]:
        """
        Get several items at once.

        Returns:
            Dict of id to item (missing ids are absent)
        """
        if not product_ids:
            return {}

        try:
            result = (
                self.db.table("items")
                .select("id, name, company_id, qty_per_batch, qty")
                .in_("id", product_ids)
                .execute()
            )
        except Exception as e:
            logger.error("get_items_failed", count=len(product_ids), error=str(e))
            raise DatabaseError("select", str(e))

        return {row["id"]: ItemReference(**row) for row in result.data or []}

    def get_company(self, company_id: str) -> CompanyReference:
        """
        Get a company by id.

        Raises:
            CompanyNotFoundError: If the company doesn't exist
        """
        try:
            result = (
                self.db.table("companies")
                .select("id, name")
                .eq("id", company_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_company_failed", company_id=company_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise CompanyNotFoundError(company_id)

        return CompanyReference(**result.data[0])

    def resolve(self, product_id: str, company_id: str) -> tuple[ItemReference, CompanyReference]:
        """
        Resolve both references of a summary key.

        An item assigned to a different company does not resolve in this one.

        Raises:
            CompanyNotFoundError: If the company doesn't exist
            ProductNotFoundError: If the item doesn't exist in the company
        """
        company = self.get_company(company_id)
        item = self.get_item(product_id)

        if item.company_id and item.company_id != company_id:
            logger.warning(
                "item_company_mismatch",
                product_id=product_id,
                item_company_id=item.company_id,
                company_id=company_id
            )
            raise ProductNotFoundError(product_id)

        return item, company


# Singleton instance for convenience
_catalog_service: Optional[CatalogService] = None

def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
