"""Demand-driven cache warmer - re-runs recently served queries before their response expires."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import structlog

from predcharts.cache.store import TTLCache

log = structlog.get_logger(__name__)


@dataclass
class WarmListEntry:
    params: Any
    registered_at: float
    last_seen: float


class WarmList:
    """Bounded set of recently served queries keyed by their response-cache key."""

    def __init__(
        self,
        max_entries: int = 50,
        retention_sec: float = 7 * 24 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_entries = max_entries
        self.retention_sec = retention_sec
        self._clock = clock
        self._entries: dict[str, WarmListEntry] = {}

    def register(self, key: str, params: Any) -> None:
        """Track a query. Known keys only get last_seen bumped; a full list drops its oldest last_seen."""
        if self.max_entries <= 0:
            return
        now = self._clock()
        existing = self._entries.get(key)
        if existing is not None:
            existing.last_seen = now
            return
        if len(self._entries) >= self.max_entries:
            oldest_key = min(self._entries, key=lambda k: self._entries[k].last_seen)
            del self._entries[oldest_key]
            log.debug("warmer_evicted", key=oldest_key)
        self._entries[key] = WarmListEntry(params=params, registered_at=now, last_seen=now)
        log.info("warmer_registered", key=key, active=len(self._entries))

    def prune(self) -> list[str]:
        """Drop entries registered longer ago than the retention window. Returns dropped keys."""
        cutoff = self._clock() - self.retention_sec
        expired = [k for k, e in self._entries.items() if e.registered_at < cutoff]
        for k in expired:
            del self._entries[k]
        if expired:
            log.info("warmer_expired", count=len(expired), remaining=len(self._entries))
        return expired

    def items(self) -> list[tuple[str, WarmListEntry]]:
        return list(self._entries.items())

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CacheWarmer:
    """Background loop refreshing warm-list entries whose response-cache slot is empty."""

    def __init__(
        self,
        warm_list: WarmList,
        response_cache: TTLCache,
        refresh: Callable[[Any], Awaitable[Any]],
        interval_sec: float,
    ) -> None:
        self.warm_list = warm_list
        self.response_cache = response_cache
        self.refresh = refresh
        self.interval_sec = interval_sec
        self._task: asyncio.Task | None = None
        self._stop: asyncio.Event | None = None
        self.runs = 0
        self.last_refreshed = 0

    async def run_once(self) -> int:
        """One pass: prune, then refresh every entry with no cached response. Returns refresh count."""
        self.warm_list.prune()
        refreshed = 0
        for key, entry in self.warm_list.items():
            if key in self.response_cache:
                continue
            try:
                await self.refresh(entry.params)
                refreshed += 1
            except Exception as e:
                log.warning("warmer_refresh_failed", key=key, error=str(e))
        self.runs += 1
        self.last_refreshed = refreshed
        if refreshed:
            log.info("warmer_refreshed", refreshed=refreshed, active=len(self.warm_list))
        return refreshed

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Run until stop_event is set, one pass per interval."""
        stop = stop_event or asyncio.Event()
        log.info("warmer_started", interval_sec=self.interval_sec, max_entries=self.warm_list.max_entries)
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval_sec)
                break
            except asyncio.TimeoutError:
                pass
            await self.run_once()
        log.info("warmer_stopped")

    def start(self) -> asyncio.Task:
        """Schedule run() on the current event loop."""
        if self._task is None or self._task.done():
            self._stop = asyncio.Event()
            self._task = asyncio.create_task(self.run(self._stop))
        return self._task

    async def stop(self) -> None:
        if self._task is None or self._stop is None:
            return
        self._stop.set()
        await self._task
        self._task = None

    def get_status(self) -> dict[str, Any]:
        now = time.time()
        entries = [
            {
                "key": key,
                "last_seen": entry.last_seen,
                "age_hours": round((now - entry.registered_at) / 3600, 1),
            }
            for key, entry in self.warm_list.items()
        ]
        return {
            "active": len(self.warm_list),
            "max_entries": self.warm_list.max_entries,
            "refresh_interval_sec": self.interval_sec,
            "retention_days": round(self.warm_list.retention_sec / 86400, 2),
            "runs": self.runs,
            "last_refreshed": self.last_refreshed,
            "entries": entries,
        }
