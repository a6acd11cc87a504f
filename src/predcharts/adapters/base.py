"""Abstract market-data adapter: one contract over two GraphQL backends (Graph Node, Checkpoint)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from predcharts.adapters.normalize import normalize_address
from predcharts.cache.store import CacheTiers
from predcharts.models import DEFAULT_CHAIN_ID, Candle, Pool, ProposalConfig, ProposalIdentity

log = structlog.get_logger(__name__)

SNAPSHOT_ID_KEY = "snapshot_id"

_MISS = object()


class MarketDataAdapter(ABC):
    """Resolve proposals, list pools, fetch candles. Implement once per backend schema."""

    backend_id: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient,
        registry_url: str,
        candles_url: str,
        aggregator_address: str,
        tiers: CacheTiers,
        default_chain_id: int = DEFAULT_CHAIN_ID,
    ) -> None:
        self.client = client
        self.registry_url = registry_url
        self.candles_url = candles_url
        self.aggregator_address = aggregator_address.lower()
        self.tiers = tiers
        self.default_chain_id = default_chain_id

    # --- public contract ---

    async def resolve_proposal(self, identifier: str) -> ProposalIdentity:
        """
        Resolve a snapshot proposal id or trading address.

        Order: snapshot_id metadata under our aggregator, then legacy org metadata
        keyed by the identifier, then the identifier itself as the trading address.
        """
        normalized = identifier.strip().lower()
        cached = self.tiers.registry.get(normalized)
        if cached is not None:
            log.debug("registry_cache_hit", identifier=normalized)
            return cached

        result = await self._lookup_by_snapshot_id(normalized)
        if result is None:
            result = await self._lookup_in_org_metadata(normalized)
        if result is None:
            log.info("registry_passthrough", identifier=normalized)
            result = ProposalIdentity.build(
                proposal_id=normalized,
                trading_address=normalize_address(normalized),
                original_proposal_id=identifier.strip(),
                default_chain_id=self.default_chain_id,
            )
        self.tiers.registry.set(normalized, result)
        return result

    async def lookup_org_metadata(self, org_id: str | None, key: str) -> str | None:
        """Organization-level metadata value, or None. Cached in the registry tier."""
        if not org_id:
            return None
        cache_key = f"org:{org_id.lower()}:{key}"
        cached = self.tiers.registry.get(cache_key, _MISS)
        if cached is not _MISS:
            return cached
        value = await self._query_org_metadata(org_id, key)
        self.tiers.registry.set(cache_key, value)
        return value

    async def list_pools(self, trading_address: str, chain_id: int = 100) -> list[Pool]:
        pools = await self._query_pools(normalize_address(trading_address), chain_id)
        log.debug("pools_listed", backend=self.backend_id, proposal=trading_address, count=len(pools))
        return pools

    async def fetch_candle_series(
        self,
        pool_id: str,
        min_time: int,
        max_time: int,
        chain_id: int = 100,
    ) -> list[Candle]:
        """Hourly candles for one pool, ascending, plain period starts. Cached in the candles tier."""
        pool = normalize_address(pool_id)
        cache_key = f"{pool}:{min_time}:{max_time}:{chain_id}"
        cached = self.tiers.candles.get(cache_key)
        if cached is not None:
            return list(cached)
        candles = await self._query_candles(pool, min_time, max_time, chain_id)
        self.tiers.candles.set(cache_key, tuple(candles))
        return candles

    async def get_latest_price(
        self, pool_id: str, max_time: int | None = None, chain_id: int = 100
    ) -> float | None:
        """Close of the newest hourly candle at or before max_time; None when there is none."""
        candle = await self._query_latest_candle(normalize_address(pool_id), max_time, chain_id)
        if candle is None:
            return None
        try:
            return float(candle.close)
        except ValueError:
            return None

    # --- shared helpers ---

    def _proposal_from_record(self, proposal: dict[str, Any]) -> ProposalIdentity:
        org = proposal.get("organization") or {}
        pid = proposal.get("id") or ""
        return ProposalIdentity.build(
            proposal_id=normalize_address(pid),
            trading_address=normalize_address(proposal.get("proposalAddress") or pid),
            original_proposal_id=pid,
            organization_id=org.get("id"),
            organization_name=org.get("name"),
            config=ProposalConfig.from_metadata(proposal.get("metadata")),
            default_chain_id=self.default_chain_id,
        )

    def _from_our_aggregator(self, entry: dict[str, Any]) -> bool:
        proposal = entry.get("proposal") or {}
        aggregator = ((proposal.get("organization") or {}).get("aggregator") or {}).get("id")
        return (aggregator or "").lower() == self.aggregator_address

    # --- backend-specific ---

    @abstractmethod
    async def _lookup_by_snapshot_id(self, snapshot_id: str) -> ProposalIdentity | None:
        """Proposal whose snapshot_id metadata equals snapshot_id, under our aggregator."""
        ...

    @abstractmethod
    async def _lookup_in_org_metadata(self, snapshot_id: str) -> ProposalIdentity | None:
        """Legacy: org metadata entry keyed by snapshot_id whose value is the trading address."""
        ...

    @abstractmethod
    async def _query_org_metadata(self, org_id: str, key: str) -> str | None: ...

    @abstractmethod
    async def _query_pools(self, trading_address: str, chain_id: int) -> list[Pool]: ...

    @abstractmethod
    async def _query_candles(
        self, pool_id: str, min_time: int, max_time: int, chain_id: int
    ) -> list[Candle]: ...

    @abstractmethod
    async def _query_latest_candle(
        self, pool_id: str, max_time: int | None, chain_id: int
    ) -> Candle | None: ...
