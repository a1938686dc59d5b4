"""Read-through cache for the active provider settings record.

Readers never wait on a refresh once a value is cached: a stale read returns
the previous record and schedules one background reload. Admin writes call
``invalidate`` (or ``prime`` with the stored record).
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from app.core.logging import get_logger
from app.core.schemas_orchestration import ProviderSettings

logger = get_logger(__name__)

SettingsLoader = Callable[[], Awaitable[ProviderSettings]]


class ProviderSettingsCache:
    """Bounded-staleness accessor for ProviderSettings."""

    def __init__(
        self,
        loader: SettingsLoader,
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            loader: Async callable returning the current record from the store
            ttl_seconds: How long a loaded record is considered fresh
            clock: Monotonic time source (injectable for tests)
        """
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._value: Optional[ProviderSettings] = None
        self._loaded_at: Optional[float] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._initial_lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._loaded_at is not None and (self._clock() - self._loaded_at) < self._ttl

    async def get(self) -> ProviderSettings:
        """Return the cached record, loading it on first use."""
        if self._value is None:
            async with self._initial_lock:
                if self._value is None:
                    self._store(await self._loader())
            return self._value

        if not self._is_fresh() and self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh())

        return self._value

    async def _refresh(self) -> None:
        try:
            self._store(await self._loader())
            logger.debug("Provider settings refreshed")
        except Exception as e:
            # Keep serving the previous record; next stale read retries
            logger.warning(f"Provider settings refresh failed, serving previous value: {e}")
        finally:
            self._refresh_task = None

    def _store(self, value: ProviderSettings) -> None:
        self._value = value
        self._loaded_at = self._clock()

    def invalidate(self) -> None:
        """Mark the cached record stale; the next read triggers a reload."""
        self._loaded_at = None

    def prime(self, value: ProviderSettings) -> None:
        """Replace the cached record with one just written by an admin."""
        self._store(value)

    @property
    def current(self) -> Optional[ProviderSettings]:
        return self._value
