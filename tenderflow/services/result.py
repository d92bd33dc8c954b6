"""
Typed operation results.

Service operations never raise business-rule exceptions across their
boundary; they return a ServiceResult carrying either a value or a
ServiceError with a machine-readable code.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    DUPLICATE = "duplicate"


class ErrorCode(str, Enum):
    # validation
    INVALID_REQUEST = "invalid_request"
    INVALID_TITLE = "invalid_title"
    INVALID_CRITERIA = "invalid_criteria"
    INVALID_MINIMUM_SCORE = "invalid_minimum_score"
    INVALID_DATES = "invalid_dates"
    INVALID_COMMITTEE = "invalid_committee"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_CURRENCY = "invalid_currency"
    MISSING_DELIVERY_DATE = "missing_delivery_date"
    MISSING_PROPOSAL = "missing_proposal"
    DOCUMENTS_INCOMPLETE = "documents_incomplete"
    DOCUMENTS_INVALID = "documents_invalid"
    INPUTS_INCOMPLETE = "inputs_incomplete"
    INVALID_SIGNATURE = "invalid_signature"
    # not found / access
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    # state conflicts
    INVALID_STATUS = "invalid_status"
    NOT_PUBLISHED = "not_published"
    ALREADY_APPROVED = "already_approved"
    ALREADY_CLOSED = "already_closed"
    REFERENCE_CONFLICT = "reference_conflict"
    # uniqueness
    DUPLICATE = "duplicate"


# invalid_status is a validation failure when it refers to request input
# (an unknown status value) and a conflict when it refers to entity state.
# Callers pick the category explicitly in those cases.
_DEFAULT_CATEGORY = {
    ErrorCode.NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.FORBIDDEN: ErrorCategory.FORBIDDEN,
    ErrorCode.UNAUTHORIZED: ErrorCategory.UNAUTHORIZED,
    ErrorCode.INVALID_STATUS: ErrorCategory.CONFLICT,
    ErrorCode.NOT_PUBLISHED: ErrorCategory.CONFLICT,
    ErrorCode.ALREADY_APPROVED: ErrorCategory.CONFLICT,
    ErrorCode.ALREADY_CLOSED: ErrorCategory.CONFLICT,
    ErrorCode.REFERENCE_CONFLICT: ErrorCategory.CONFLICT,
    ErrorCode.DUPLICATE: ErrorCategory.DUPLICATE,
}


@dataclass
class ServiceError:
    code: ErrorCode
    message: str
    category: ErrorCategory = ErrorCategory.VALIDATION
    details: List[Any] = field(default_factory=list)

    def to_dict(self) -> dict:
        body = {"error": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


@dataclass
class ServiceResult(Generic[T]):
    success: bool
    value: Optional[T] = None
    error: Optional[ServiceError] = None

    @property
    def code(self) -> Optional[str]:
        return self.error.code.value if self.error else None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None

    @classmethod
    def ok(cls, value: T = None) -> "ServiceResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(
        cls,
        code: ErrorCode,
        message: str,
        category: Optional[ErrorCategory] = None,
        details: Optional[List[Any]] = None,
    ) -> "ServiceResult[T]":
        category = category or _DEFAULT_CATEGORY.get(code, ErrorCategory.VALIDATION)
        return cls(
            success=False,
            error=ServiceError(code=code, message=message, category=category, details=details or []),
        )
