"""Error codes and error payloads surfaced to callers."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes surfaced by the orchestration core."""
    INVALID_INPUT = "INVALID_INPUT"
    DATABASE_ERROR = "DATABASE_ERROR"
    ACCESSIBILITY_ERROR = "ACCESSIBILITY_ERROR"
    IMAGE_PROCESSING_ERROR = "IMAGE_PROCESSING_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    # Task-level only
    MALFORMED_OUTPUT = "MALFORMED_OUTPUT"
    CANCELLED = "CANCELLED"


class OrchestrationError(BaseModel):
    """Typed error payload carried by every ``Err``."""
    code: ErrorCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


def error(code: ErrorCode, message: str, **details: Any) -> OrchestrationError:
    """Shorthand constructor for an OrchestrationError."""
    return OrchestrationError(code=code, message=message, details=details)


# HTTP status used by the API layer for each code
HTTP_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.ACCESSIBILITY_ERROR: 400,
    ErrorCode.IMAGE_PROCESSING_ERROR: 400,
    ErrorCode.MALFORMED_OUTPUT: 502,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.PROVIDER_UNAVAILABLE: 503,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.UNEXPECTED_ERROR: 500,
    ErrorCode.CANCELLED: 409,
}
