"""
Translation of service results into HTTP responses.
"""
from fastapi import HTTPException, status

from tenderflow.services.result import ServiceResult, ErrorCategory

STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCategory.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.DUPLICATE: status.HTTP_409_CONFLICT,
}


def unwrap(result: ServiceResult):
    """Return the result value or raise the matching HTTPException."""
    if result.success:
        return result.value
    raise HTTPException(
        status_code=STATUS_BY_CATEGORY.get(result.error.category, status.HTTP_400_BAD_REQUEST),
        detail=result.error.to_dict(),
    )
