"""Success/error result values used across the orchestration core.

Expected outcomes (authorization denial, provider fallback, task failure,
validation) are returned as ``Ok``/``Err`` instead of raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result carrying an error."""

    error: E

    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
