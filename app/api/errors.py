"""Translate OrchestrationError values into HTTP responses."""

from typing import NoReturn

from fastapi import HTTPException

from app.core.errors import HTTP_STATUS_BY_CODE, ErrorCode, OrchestrationError


def raise_for_error(err: OrchestrationError) -> NoReturn:
    """Raise the HTTPException matching an error code."""
    headers = {"WWW-Authenticate": "Bearer"} if err.code == ErrorCode.UNAUTHORIZED else None
    raise HTTPException(
        status_code=HTTP_STATUS_BY_CODE.get(err.code, 500),
        detail=err.model_dump(mode="json"),
        headers=headers,
    )
