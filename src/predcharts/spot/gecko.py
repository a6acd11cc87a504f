"""GeckoTerminal REST client - pool search and OHLCV series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from predcharts.errors import PoolNotFound, RateLimited, UpstreamUnavailable
from predcharts.models import PricePoint
from predcharts.spot.rate_limit import TokenBucket
from predcharts.spot.ticker import gecko_network, timeframe

log = structlog.get_logger(__name__)

GECKO_API = "https://api.geckoterminal.com/api/v2"


@dataclass(frozen=True)
class GeckoPool:
    address: str
    name: str
    network: str


def _parse_ohlcv(rows: list[Any]) -> list[PricePoint]:
    """[[ts, o, h, l, c, v], ...] newest first -> ascending close series, duplicates dropped."""
    points: list[PricePoint] = []
    for row in reversed(rows or []):
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            continue
        try:
            points.append(PricePoint(time=int(row[0]), value=float(row[4])))
        except (TypeError, ValueError):
            continue
    seen: set[int] = set()
    unique = []
    for p in points:
        if p.time in seen:
            continue
        seen.add(p.time)
        unique.append(p)
    unique.sort(key=lambda p: p.time)
    return unique


class GeckoTerminalClient:
    """Async client for the rate-limited OHLCV provider. Every call spends one bucket token."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = GECKO_API,
        bucket: TokenBucket | None = None,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket or TokenBucket.per_minute(30)

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        self.bucket.acquire(source=url)
        try:
            resp = await self.client.get(url, params=params, headers={"accept": "application/json"})
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"GeckoTerminal transport error: {e}", source=url) from e
        if resp.status_code == 429:
            log.warning("gecko_rate_limited", url=url)
            raise RateLimited("GeckoTerminal rate limit (429)", source=url, status_code=429)
        if resp.status_code >= 400:
            raise UpstreamUnavailable(
                f"GeckoTerminal HTTP {resp.status_code}", source=url, status_code=resp.status_code
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable("GeckoTerminal response is not JSON", source=url) from e
        return data if isinstance(data, dict) else {}

    async def search_pool(self, network: str, base: str, quote: str) -> GeckoPool:
        """First pool on the network whose name mentions both symbols (case-insensitive)."""
        net = gecko_network(network)
        data = await self._get("/search/pools", {"query": f"{base} {quote}", "network": net})
        b, q = base.lower(), quote.lower()
        for pool in data.get("data") or []:
            attrs = pool.get("attributes") or {}
            name = (attrs.get("name") or "").lower()
            if b in name and q in name and attrs.get("address"):
                network_id = ((pool.get("relationships") or {}).get("network") or {}).get("data") or {}
                found = GeckoPool(
                    address=attrs["address"],
                    name=attrs.get("name") or "",
                    network=network_id.get("id") or net,
                )
                log.debug("gecko_pool_found", base=base, quote=quote, pool=found.name)
                return found
        raise PoolNotFound(base, quote)

    async def fetch_ohlcv(
        self, pool_address: str, network: str, interval: str, limit: int
    ) -> list[PricePoint]:
        """Close series priced in the quote token (currency=token), ascending."""
        net = gecko_network(network)
        data = await self._get(
            f"/networks/{net}/pools/{pool_address}/ohlcv/{timeframe(interval)}",
            {"aggregate": 1, "limit": limit, "currency": "token"},
        )
        rows = ((data.get("data") or {}).get("attributes") or {}).get("ohlcv_list") or []
        return _parse_ohlcv(rows)
