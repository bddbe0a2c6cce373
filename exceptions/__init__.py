"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ForbiddenError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # References
    ProductNotFoundError,
    CompanyNotFoundError,

    # Summaries
    SummaryNotFoundError,
    DailyDetailNotFoundError,
    DuplicateKeyError,
    SummaryWriteConflictError,
    InvalidSummaryFieldsError,
    AggregationFailureError,
    InvalidStatusTransitionError,

    # Production groups
    ProductionGroupNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ForbiddenError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # References
    "ProductNotFoundError",
    "CompanyNotFoundError",

    # Summaries
    "SummaryNotFoundError",
    "DailyDetailNotFoundError",
    "DuplicateKeyError",
    "SummaryWriteConflictError",
    "InvalidSummaryFieldsError",
    "AggregationFailureError",
    "InvalidStatusTransitionError",

    # Production groups
    "ProductionGroupNotFoundError",
]
