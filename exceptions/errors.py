"""
Custom exception classes for the application.

Every error carries a machine-readable code, an HTTP status and a details
dict that routes serialize unchanged.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ForbiddenError(AppError):
    """Caller may not perform the action (403)."""

    def __init__(
        self,
        message: str,
        code: str = "FORBIDDEN",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=403,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# REFERENCE ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Inventory item not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class CompanyNotFoundError(NotFoundError):
    """Company not found."""

    def __init__(self, company_id: str):
        super().__init__(
            resource="Company",
            identifier=company_id,
            code="COMPANY_NOT_FOUND"
        )


# ===================
# SUMMARY ERRORS
# ===================

class SummaryNotFoundError(NotFoundError):
    """No master summary for the product in the company."""

    def __init__(self, product_id: str, company_id: str):
        super().__init__(
            resource="Product summary",
            identifier=product_id,
            code="SUMMARY_NOT_FOUND"
        )
        self.details["company_id"] = company_id


class DailyDetailNotFoundError(NotFoundError):
    """No daily detail for the product on the given day."""

    def __init__(self, product_id: str, company_id: str, day: str):
        super().__init__(
            resource="Daily detail",
            identifier=product_id,
            code="DAILY_DETAIL_NOT_FOUND"
        )
        self.details.update({"company_id": company_id, "date": day})


class DuplicateKeyError(ConflictError):
    """
    Insert rejected by a unique index.

    Raised by the store when a concurrent writer created the same key
    first. The store retries once as an update before surfacing it.
    """

    def __init__(self, table: str, key: dict):
        super().__init__(
            code="DUPLICATE_KEY",
            message=f"A {table} row with this key already exists",
            details={"table": table, "key": key}
        )


class SummaryWriteConflictError(ConflictError):
    """Conditional update kept losing to concurrent writers."""

    def __init__(self, table: str, key: dict, attempts: int):
        super().__init__(
            code="SUMMARY_WRITE_CONFLICT",
            message="Record was modified concurrently, please retry",
            details={"table": table, "key": key, "attempts": attempts}
        )


class InvalidSummaryFieldsError(ValidationError):
    """Manual field edit rejected; details list each field at fault."""

    def __init__(self, fields: dict[str, str]):
        super().__init__(
            code="INVALID_SUMMARY_FIELDS",
            message=f"Invalid value for {', '.join(sorted(fields))}",
            details={"fields": fields}
        )


class AggregationFailureError(ExternalServiceError):
    """Indent aggregation query failed."""

    def __init__(self, company_id: str, message: str, product_ids: Optional[list[str]] = None):
        super().__init__(
            service="indent_aggregation",
            message=message,
            details={"company_id": company_id, "product_ids": product_ids or []}
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid approval status transition."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status
            }
        )


# ===================
# PRODUCTION GROUP ERRORS
# ===================

class ProductionGroupNotFoundError(NotFoundError):
    """Production group not found."""

    def __init__(self, group_id: str):
        super().__init__(
            resource="Production group",
            identifier=group_id,
            code="PRODUCTION_GROUP_NOT_FOUND"
        )
