"""TTL memoization for token and LP prices.

Entries are keyed by ``(namespace, address, chain)`` with addresses compared
case-insensitively. Only successful results are stored. There is no locking
and no single-flight de-duplication: two concurrent misses for the same key
both compute, and the later write wins.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from .constants import DEFAULT_PRICE_TTL_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, str, str]


@dataclass(frozen=True)
class _Entry:
    value: Any
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int


def _chain_key(chain: object) -> str:
    return str(getattr(chain, "value", chain))


class PriceCache:
    """In-memory price cache shared by the LP calculator and the pipeline."""

    def __init__(
        self,
        default_ttl_seconds: float = DEFAULT_PRICE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(namespace: str, address: str, chain: object) -> CacheKey:
        return (namespace, address.lower(), _chain_key(chain))

    def get(self, namespace: str, address: str, chain: object) -> Any | None:
        """Return the cached value, or None on a miss or an expired entry."""
        key = self.make_key(namespace, address, chain)
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() >= entry.expires_at:
            # pop with default: a concurrent writer may have replaced it
            self._entries.pop(key, None)
            self._misses += 1
            return None
        self._hits += 1
        return entry.value

    def set(
        self,
        namespace: str,
        address: str,
        chain: object,
        value: Any,
        ttl_seconds: float | None = None,
    ) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        key = self.make_key(namespace, address, chain)
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    async def get_or_compute(
        self,
        namespace: str,
        address: str,
        chain: object,
        compute: Callable[[], Awaitable[T]],
        ttl_seconds: float | None = None,
    ) -> T:
        """Return a cached value or await ``compute`` and store its result.

        Exceptions raised by ``compute`` propagate and nothing is cached.
        """
        cached = self.get(namespace, address, chain)
        if cached is not None:
            logger.debug("Cache hit for %s:%s on %s", namespace, address, chain)
            return cached

        value = await compute()
        self.set(namespace, address, chain, value, ttl_seconds)
        return value

    def invalidate(self, namespace: str, address: str, chain: object) -> bool:
        """Drop one entry. Returns True if something was removed."""
        key = self.make_key(namespace, address, chain)
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.debug("Price cache cleared")

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))
