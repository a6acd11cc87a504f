"""Tiered expiry caches and the background warmer."""

from predcharts.cache.store import CacheTiers, TTLCache
from predcharts.cache.warmer import CacheWarmer, WarmList

__all__ = ["CacheTiers", "CacheWarmer", "TTLCache", "WarmList"]
