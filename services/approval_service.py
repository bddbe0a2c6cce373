"""
Approval gate for daily details.

Daily details start pending. An approver moves them to approved (they then
overlay the master on the dashboards) or back to pending. Every transition
is appended to summary_status_history.
"""

from datetime import date, datetime, timezone
from typing import Optional
import structlog

from config import settings
from models.summary import SummaryStatus
from models.approval import Actor
from services.summary_store import get_summary_store
from exceptions import (
    ForbiddenError,
    DailyDetailNotFoundError,
    InvalidStatusTransitionError,
    DatabaseError,
)

logger = structlog.get_logger(__name__)


class ApprovalService:
    """Status transitions of daily details."""

    def __init__(self):
        self.store = get_summary_store()
        self.approval_roles = frozenset(settings.approval_roles)

    def list_daily(
        self,
        company_id: str,
        day: Optional[date] = None,
        status: Optional[SummaryStatus] = None
    ) -> list[dict]:
        """Daily details awaiting (or past) approval, newest day first."""
        return self.store.list_daily(
            company_id,
            day=day,
            status=status.value if status else None
        )

    def get_history(self, product_id: str, company_id: str, day: date) -> list[dict]:
        """
        Status history of one daily detail, oldest first.

        Raises:
            DailyDetailNotFoundError: If there is no detail for that day
        """
        detail = self.store.find_daily(product_id, company_id, day)
        if detail is None:
            raise DailyDetailNotFoundError(product_id, company_id, day.isoformat())
        return self.store.list_history(detail["id"])

    def approve(
        self,
        product_id: str,
        company_id: str,
        day: date,
        actor: Actor,
        remarks: Optional[str] = None
    ) -> dict:
        """
        Approve one product's daily detail.

        Raises:
            ForbiddenError: If the actor may not approve in this company
            DailyDetailNotFoundError: If there is no detail for that day
            InvalidStatusTransitionError: If it is already approved
        """
        self._authorize(actor, company_id)
        return self._transition(product_id, company_id, day, SummaryStatus.APPROVED, actor, remarks)

    def revert_to_pending(
        self,
        product_id: str,
        company_id: str,
        day: date,
        actor: Actor,
        remarks: Optional[str] = None
    ) -> dict:
        """
        Send an approved daily detail back to pending.

        History rows are kept.
        """
        self._authorize(actor, company_id)
        return self._transition(product_id, company_id, day, SummaryStatus.PENDING, actor, remarks)

    def approve_day(self, company_id: str, day: date, actor: Actor) -> dict:
        """
        Approve every pending daily detail of a company on one day.

        Details approved concurrently by someone else are skipped.

        Returns:
            Dict with company_id, date, approved_count and the approved rows
        """
        self._authorize(actor, company_id)

        pending = self.store.list_daily(company_id, day=day, status=SummaryStatus.PENDING.value)
        approved = []
        for detail in pending:
            try:
                approved.append(self._transition(
                    detail["product_id"], company_id, day, SummaryStatus.APPROVED, actor
                ))
            except InvalidStatusTransitionError:
                logger.info(
                    "daily_detail_already_approved",
                    product_id=detail["product_id"],
                    company_id=company_id,
                    day=day.isoformat()
                )

        logger.info(
            "day_approved",
            company_id=company_id,
            day=day.isoformat(),
            approved_count=len(approved),
            pending_found=len(pending)
        )

        return {
            "company_id": company_id,
            "date": day,
            "approved_count": len(approved),
            "details": approved,
        }

    # ===================
    # INTERNALS
    # ===================

    def _authorize(self, actor: Actor, company_id: str) -> None:
        if actor.role not in self.approval_roles:
            logger.warning(
                "approval_forbidden_role",
                user_id=actor.user_id,
                role=actor.role,
                company_id=company_id
            )
            raise ForbiddenError(
                message=f"Role '{actor.role}' cannot change approval status",
                details={"role": actor.role, "allowed_roles": sorted(self.approval_roles)}
            )

        # No company on the actor means a cross-company role
        if actor.company_id and actor.company_id != company_id:
            logger.warning(
                "approval_forbidden_company",
                user_id=actor.user_id,
                actor_company_id=actor.company_id,
                company_id=company_id
            )
            raise ForbiddenError(
                message="Cannot change approval status in another company",
                details={"company_id": company_id}
            )

    def _transition(
        self,
        product_id: str,
        company_id: str,
        day: date,
        new_status: SummaryStatus,
        actor: Actor,
        remarks: Optional[str] = None
    ) -> dict:
        current = self.store.find_daily(product_id, company_id, day)
        if current is None:
            raise DailyDetailNotFoundError(product_id, company_id, day.isoformat())

        from_status = current.get("status") or SummaryStatus.PENDING.value
        if from_status == new_status.value:
            raise InvalidStatusTransitionError(from_status, new_status.value)

        changed_at = datetime.now(timezone.utc).isoformat()

        def mutate(row: dict) -> dict:
            status = row.get("status") or SummaryStatus.PENDING.value
            if status == new_status.value:
                raise InvalidStatusTransitionError(status, new_status.value)
            row["status"] = new_status.value
            if new_status == SummaryStatus.APPROVED:
                row["approved_by"] = actor.user_id
                row["approved_at"] = changed_at
            else:
                row["approved_by"] = None
                row["approved_at"] = None
            return row

        updated = self.store.update_daily(product_id, company_id, day, mutate)
        if updated is None:
            raise DailyDetailNotFoundError(product_id, company_id, day.isoformat())

        # Status is committed at this point; a failed history write is logged, not raised
        try:
            self.store.insert_history({
                "daily_detail_id": updated["id"],
                "product_id": product_id,
                "company_id": company_id,
                "date": day.isoformat(),
                "from_status": from_status,
                "to_status": new_status.value,
                "changed_by": actor.user_id,
                "changed_by_role": actor.role,
                "remarks": remarks,
                "changed_at": changed_at,
            })
        except DatabaseError as e:
            logger.error(
                "status_history_not_recorded",
                product_id=product_id,
                company_id=company_id,
                day=day.isoformat(),
                to_status=new_status.value,
                changed_by=actor.user_id,
                error=e.message
            )

        logger.info(
            "daily_detail_status_changed",
            product_id=product_id,
            company_id=company_id,
            day=day.isoformat(),
            from_status=from_status,
            to_status=new_status.value,
            changed_by=actor.user_id
        )
        return updated


# Singleton instance for convenience
_approval_service: Optional[ApprovalService] = None

def get_approval_service() -> ApprovalService:
    """Get or create ApprovalService instance."""
    global _approval_service
    if _approval_service is None:
        _approval_service = ApprovalService()
    return _approval_service
