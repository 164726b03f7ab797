"""
Custom exception classes and error handling.

HTTP-facing errors subclass APIException so the global handler renders
them with a stable `error_code`. Service-layer errors are plain exceptions
that routers translate.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class BadRequestError(APIException):
    """Structurally unusable input (empty file, oversized upload)."""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class ConflictError(APIException):
    """Resource conflict (e.g., duplicate entry)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


class UpstreamServiceError(APIException):
    """A third-party API failed after retries."""

    def __init__(self, detail: str, service: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code=f"UPSTREAM_{service.upper()}"
        )


# ---------------------------------------------------------------------------
# Service-layer errors
# ---------------------------------------------------------------------------

class EmptyFileError(Exception):
    """CSV input had no lines at all."""


class MissingMappingError(Exception):
    """A required canonical field has no source column at commit time."""

    def __init__(self, field: str):
        super().__init__(f"Required column '{field}' is not mapped")
        self.field = field


class RecommendationNotFoundError(Exception):
    """Checklist toggle against an unknown card or a card of another gym."""
