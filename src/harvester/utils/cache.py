"""Single-value cache with a maximum age.

Holds one ``{value, fetched_at}`` entry. The clock is injectable so tests can
move time forward without sleeping.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class _Entry(Generic[T]):
    value: T
    fetched_at: float


class TTLCache(Generic[T]):
    """Cache one value for ``max_age_s`` seconds.

    Args:
        max_age_s: Lifetime of an entry. If <= 0, nothing is ever served from cache.
        clock: Monotonic time source in seconds.
    """

    def __init__(self, max_age_s: float, clock: Callable[[], float] = time.monotonic):
        self._max_age_s = float(max_age_s)
        self._clock = clock
        self._entry: Optional[_Entry[T]] = None

    def is_fresh(self) -> bool:
        if self._entry is None or self._max_age_s <= 0:
            return False
        return self._clock() - self._entry.fetched_at < self._max_age_s

    def get(self) -> Optional[T]:
        """Return the cached value, or None when absent or expired."""
        return self._entry.value if self.is_fresh() else None

    def set(self, value: T) -> None:
        self._entry = _Entry(value=value, fetched_at=self._clock())

    def invalidate(self) -> None:
        self._entry = None

    async def get_or_load(self, loader: Callable[[], Awaitable[T]]) -> T:
        if self.is_fresh():
            return self._entry.value  # type: ignore[union-attr]
        value = await loader()
        self.set(value)
        return value
