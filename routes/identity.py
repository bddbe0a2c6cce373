"""
Caller identity from the auth gateway headers.

X-User-Id and X-User-Role identify the caller. X-Company-Id carries the
company of company-bound roles and is absent for cross-company roles.
"""

from typing import Optional
import structlog

from models.approval import Actor
from exceptions import ForbiddenError

logger = structlog.get_logger(__name__)


def build_actor(
    user_id: Optional[str],
    role: Optional[str],
    company_id: Optional[str]
) -> Actor:
    """Actor from gateway headers; both id and role are required."""
    if not user_id or not role:
        raise ForbiddenError(
            message="Caller identity missing",
            code="IDENTITY_REQUIRED"
        )
    return Actor(user_id=user_id, role=role, company_id=company_id or None)


def ensure_company_scope(caller_company_id: Optional[str], company_id: str) -> None:
    """
    Reject access to another company's records.

    A caller without a company is cross-company and passes.

    Raises:
        ForbiddenError: If the caller is bound to a different company
    """
    if caller_company_id and caller_company_id != company_id:
        logger.warning(
            "company_scope_forbidden",
            caller_company_id=caller_company_id,
            company_id=company_id
        )
        raise ForbiddenError(
            message="Cannot access records of another company",
            details={"company_id": company_id}
        )
