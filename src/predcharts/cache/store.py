"""In-memory TTL caches. One instance per tier, constructed once per process and passed around."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from predcharts.config.settings import Settings

V = TypeVar("V")

_MISSING = object()


class TTLCache(Generic[V]):
    """Expiry cache: an entry is served until ttl_sec has elapsed since it was stored.

    Values are never mutated after insertion; set() always replaces.
    """

    def __init__(self, name: str, ttl_sec: float, clock: Callable[[], float] = time.time) -> None:
        self.name = name
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._store: dict[str, tuple[V, float]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> V | Any:
        """Return the value, or default on absent or expired key. Expired entries are evicted."""
        entry = self._store.get(key, _MISSING)
        if entry is _MISSING:
            self.misses += 1
            return default
        value, stored_at = entry
        if self._clock() - stored_at > self.ttl_sec:
            del self._store[key]
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: str, value: V) -> None:
        self._store[key] = (value, self._clock())

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._store)

    def clear(self) -> None:
        self._store.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict[str, Any]:
        total = self.hits + self.misses
        return {
            "name": self.name,
            "entries": len(self._store),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total, 3) if total else 0.0,
            "ttl_sec": self.ttl_sec,
        }


@dataclass
class CacheTiers:
    """The four independent cache layers plus the on-chain rate cache."""

    registry: TTLCache
    candles: TTLCache
    spot: TTLCache
    response: TTLCache
    rate: TTLCache

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], float] = time.time) -> CacheTiers:
        return cls(
            registry=TTLCache("registry", settings.registry_ttl_sec, clock),
            candles=TTLCache("candles", settings.candles_ttl_sec, clock),
            spot=TTLCache("spot", settings.spot_ttl_sec, clock),
            response=TTLCache("response", settings.response_ttl_sec, clock),
            rate=TTLCache("rate", settings.rate_ttl_sec, clock),
        )

    def all(self) -> list[TTLCache]:
        return [self.registry, self.candles, self.spot, self.response, self.rate]

    def stats(self) -> list[dict[str, Any]]:
        return [c.stats() for c in self.all()]

    def clear(self) -> None:
        for c in self.all():
            c.clear()
