"""
Persistence for production summary records.

Two tables, each with a composite unique index:
    product_daily_summaries          (product_id, company_id)
    product_details_daily_summaries  (product_id, company_id, date)

Writes go through `_upsert`: read the row, apply a mutation to a copy,
then either insert (row absent) or update conditionally on the `version`
that was read (row present). Only changed columns are written, so two
writers touching different fields of the same key never overwrite each
other. An insert that loses a creation race is retried once as an update.
"""

from datetime import date, datetime, timezone
from typing import Any, Callable, Optional
import structlog

from config import get_supabase_client, settings
from models.summary import zero_figures
from exceptions import (
    DatabaseError,
    DuplicateKeyError,
    SummaryWriteConflictError,
)

logger = structlog.get_logger(__name__)

MASTER_TABLE = "product_daily_summaries"
DAILY_TABLE = "product_details_daily_summaries"
HISTORY_TABLE = "summary_status_history"

# PostgreSQL unique_violation
UNIQUE_VIOLATION = "23505"

# Never written by a mutation
IMMUTABLE_COLUMNS = frozenset({
    "id", "product_id", "company_id", "date", "version", "created_at", "updated_at",
})

Mutation = Callable[[dict[str, Any]], dict[str, Any]]


def is_unique_violation(error: Exception) -> bool:
    """True if a database error came from a unique index."""
    if getattr(error, "code", None) == UNIQUE_VIOLATION:
        return True
    text = str(error).lower()
    return UNIQUE_VIOLATION in text or "duplicate key" in text


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SummaryStore:
    """
    Store for master summaries, daily details and their status history.

    Every query is scoped by company_id except the cascade delete, which
    follows an item deletion across all companies.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.max_update_attempts = settings.summary_update_attempts

    # ===================
    # READ OPERATIONS
    # ===================

    def find_master(self, product_id: str, company_id: str) -> Optional[dict]:
        """Get the master summary for a product in a company, ignoring date."""
        return self._find(MASTER_TABLE, self._master_key(product_id, company_id))

    def list_masters(
        self,
        company_id: str,
        product_ids: Optional[list[str]] = None
    ) -> list[dict]:
        """Get all master summaries of a company, ordered by product name."""
        try:
            query = (
                self.db.table(MASTER_TABLE)
                .select("*")
                .eq("company_id", company_id)
            )
            if product_ids is not None:
                query = query.in_("product_id", product_ids)
            result = query.order("product_name").execute()
            return result.data or []

        except Exception as e:
            logger.error("list_masters_failed", company_id=company_id, error=str(e))
            raise DatabaseError("select", str(e))

    def find_daily(self, product_id: str, company_id: str, day: date) -> Optional[dict]:
        """Get the daily detail for one product on one day."""
        return self._find(DAILY_TABLE, self._daily_key(product_id, company_id, day))

    def list_daily(
        self,
        company_id: str,
        day: Optional[date] = None,
        status: Optional[str] = None,
        product_ids: Optional[list[str]] = None
    ) -> list[dict]:
        """
        Get daily details of a company.

        Args:
            company_id: Company scope
            day: Only this day
            status: Only this approval status
            product_ids: Only these products
        """
        try:
            query = (
                self.db.table(DAILY_TABLE)
                .select("*")
                .eq("company_id", company_id)
            )
            if day is not None:
                query = query.eq("date", day.isoformat())
            if status is not None:
                query = query.eq("status", status)
            if product_ids is not None:
                query = query.in_("product_id", product_ids)
            result = query.order("date", desc=True).execute()
            return result.data or []

        except Exception as e:
            logger.error(
                "list_daily_failed",
                company_id=company_id,
                day=str(day),
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def latest_approved_daily(
        self,
        product_ids: list[str],
        company_id: str,
        on_or_before: Optional[date] = None
    ) -> dict[str, dict]:
        """
        Get the most recent approved daily detail per product.

        Returns:
            Dict of product_id to daily detail row (products without an
            approved detail are absent)
        """
        if not product_ids:
            return {}

        try:
            query = (
                self.db.table(DAILY_TABLE)
                .select("*")
                .eq("company_id", company_id)
                .eq("status", "approved")
                .in_("product_id", product_ids)
            )
            if on_or_before is not None:
                query = query.lte("date", on_or_before.isoformat())
            result = query.order("date", desc=True).execute()

        except Exception as e:
            logger.error(
                "latest_approved_daily_failed",
                company_id=company_id,
                count=len(product_ids),
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        latest: dict[str, dict] = {}
        for row in result.data or []:
            pid = row.get("product_id")
            if pid and pid not in latest:
                latest[pid] = row
        return latest

    # ===================
    # WRITE OPERATIONS
    # ===================

    def upsert_master(
        self,
        product_id: str,
        company_id: str,
        mutate_fn: Mutation,
        defaults: Optional[dict] = None
    ) -> dict:
        """
        Find-or-create the master summary and apply `mutate_fn` to it.

        Args:
            product_id: Item id
            company_id: Company id
            mutate_fn: Receives a copy of the current row (or of `defaults`
                plus the key when absent) and returns the desired row
            defaults: Column values for a new row

        Returns:
            The persisted row

        Raises:
            DuplicateKeyError: Creation race lost and the retry found no row
            SummaryWriteConflictError: Update kept losing to other writers
        """
        return self._upsert(
            MASTER_TABLE,
            self._master_key(product_id, company_id),
            mutate_fn,
            defaults
        )

    def upsert_daily(
        self,
        product_id: str,
        company_id: str,
        day: date,
        mutate_fn: Mutation,
        defaults: Optional[dict] = None
    ) -> dict:
        """Find-or-create the daily detail for one day and apply `mutate_fn`."""
        return self._upsert(
            DAILY_TABLE,
            self._daily_key(product_id, company_id, day),
            mutate_fn,
            defaults
        )

    def update_daily(
        self,
        product_id: str,
        company_id: str,
        day: date,
        mutate_fn: Mutation
    ) -> Optional[dict]:
        """
        Apply `mutate_fn` to an existing daily detail.

        Returns:
            The persisted row, or None if no detail exists for that day
        """
        return self._upsert(
            DAILY_TABLE,
            self._daily_key(product_id, company_id, day),
            mutate_fn,
            create=False
        )

    def find_or_create_daily(
        self,
        product_id: str,
        company_id: str,
        day: date,
        master: dict
    ) -> dict:
        """
        Get the daily detail for a day, creating it from the master if absent.

        The new row is linked to the master and inherits its batch size.
        """
        defaults = {
            **zero_figures(),
            "total_indent": 0.0,
            "total_quantity": master.get("total_quantity") or 0,
            "product_daily_summary_id": master.get("id"),
            "qty_per_batch": master.get("qty_per_batch") or 0,
            "status": "pending",
        }
        return self.upsert_daily(product_id, company_id, day, lambda row: row, defaults)

    def insert_history(self, entry: dict) -> dict:
        """Append a status history row."""
        try:
            result = self.db.table(HISTORY_TABLE).insert(entry).execute()
            return result.data[0] if result.data else entry

        except Exception as e:
            logger.error(
                "insert_status_history_failed",
                daily_detail_id=entry.get("daily_detail_id"),
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

    def list_history(self, daily_detail_id: str) -> list[dict]:
        """Status history of one daily detail, oldest first."""
        try:
            result = (
                self.db.table(HISTORY_TABLE)
                .select("*")
                .eq("daily_detail_id", daily_detail_id)
                .order("changed_at")
                .execute()
            )
            return result.data or []

        except Exception as e:
            logger.error(
                "list_status_history_failed",
                daily_detail_id=daily_detail_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def delete_all_for_product(self, product_id: str) -> dict[str, Optional[int]]:
        """
        Delete every summary row of a product, across companies.

        Best effort: a failing table is logged and reported as None,
        never raised, so the item deletion that triggered it still succeeds.

        Returns:
            Dict of table name to deleted row count (None on failure)
        """
        logger.info("deleting_summaries_for_product", product_id=product_id)

        deleted: dict[str, Optional[int]] = {}
        for table in (DAILY_TABLE, MASTER_TABLE):
            try:
                result = (
                    self.db.table(table)
                    .delete()
                    .eq("product_id", product_id)
                    .execute()
                )
                deleted[table] = len(result.data or [])
            except Exception as e:
                logger.error(
                    "summary_cascade_delete_failed",
                    table=table,
                    product_id=product_id,
                    error=str(e)
                )
                deleted[table] = None

        logger.info("summaries_deleted_for_product", product_id=product_id, deleted=deleted)
        return deleted

    # ===================
    # INTERNALS
    # ===================

    @staticmethod
    def _master_key(product_id: str, company_id: str) -> dict:
        return {"product_id": product_id, "company_id": company_id}

    @staticmethod
    def _daily_key(product_id: str, company_id: str, day: date) -> dict:
        return {"product_id": product_id, "company_id": company_id, "date": day.isoformat()}

    def _find(self, table: str, key: dict) -> Optional[dict]:
        try:
            query = self.db.table(table).select("*")
            for column, value in key.items():
                query = query.eq(column, value)
            result = query.limit(1).execute()
            return result.data[0] if result.data else None

        except Exception as e:
            logger.error("find_summary_failed", table=table, key=key, error=str(e))
            raise DatabaseError("select", str(e))

    def _insert(self, table: str, key: dict, row: dict) -> dict:
        try:
            result = self.db.table(table).insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise DuplicateKeyError(table, key) from e
            logger.error("insert_summary_failed", table=table, key=key, error=str(e))
            raise DatabaseError("insert", str(e))
        return result.data[0] if result.data else row

    def _conditional_update(
        self,
        table: str,
        key: dict,
        version: Optional[int],
        changes: dict
    ) -> Optional[dict]:
        """Update only if the row still carries `version`; None if it moved on."""
        payload = {**changes, "version": (version or 0) + 1, "updated_at": _now()}
        try:
            query = self.db.table(table).update(payload)
            for column, value in key.items():
                query = query.eq(column, value)
            if version is None:
                query = query.is_("version", "null")
            else:
                query = query.eq("version", version)
            result = query.execute()
        except Exception as e:
            logger.error("update_summary_failed", table=table, key=key, error=str(e))
            raise DatabaseError("update", str(e))
        return result.data[0] if result.data else None

    def _upsert(
        self,
        table: str,
        key: dict,
        mutate_fn: Mutation,
        defaults: Optional[dict] = None,
        create: bool = True
    ) -> Optional[dict]:
        existing = self._find(table, key)

        if existing is None:
            if not create:
                return None

            row = mutate_fn({**(defaults or {}), **key})
            row.update(key)
            row["version"] = 0
            try:
                created = self._insert(table, key, row)
                logger.info("summary_row_created", table=table, **key)
                return created
            except DuplicateKeyError:
                # Lost the creation race: the winner's row is there now
                logger.warning("duplicate_key_retry", table=table, **key)
                existing = self._find(table, key)
                if existing is None:
                    raise

        return self._update_existing(table, key, existing, mutate_fn)

    def _update_existing(
        self,
        table: str,
        key: dict,
        existing: dict,
        mutate_fn: Mutation
    ) -> dict:
        for attempt in range(1, self.max_update_attempts + 1):
            desired = mutate_fn(dict(existing))
            changes = {
                column: value
                for column, value in desired.items()
                if column not in IMMUTABLE_COLUMNS and existing.get(column) != value
            }
            if not changes:
                return existing

            updated = self._conditional_update(table, key, existing.get("version"), changes)
            if updated is not None:
                logger.debug(
                    "summary_row_updated",
                    table=table,
                    fields=sorted(changes),
                    attempt=attempt,
                    **key
                )
                return updated

            logger.warning("summary_version_conflict", table=table, attempt=attempt, **key)
            refreshed = self._find(table, key)
            if refreshed is None:
                break
            existing = refreshed

        raise SummaryWriteConflictError(table, key, self.max_update_attempts)


# Singleton instance for convenience
_summary_store: Optional[SummaryStore] = None

def get_summary_store() -> SummaryStore:
    """Get or create SummaryStore instance."""
    global _summary_store
    if _summary_store is None:
        _summary_store = SummaryStore()
    return _summary_store
