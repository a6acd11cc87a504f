"""Schema adapter layer - one MarketDataAdapter per upstream GraphQL backend."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from predcharts.adapters.base import MarketDataAdapter
from predcharts.adapters.checkpoint import CheckpointAdapter
from predcharts.adapters.graph_node import GraphNodeAdapter

if TYPE_CHECKING:
    from predcharts.cache.store import CacheTiers
    from predcharts.config.settings import Settings

log = structlog.get_logger(__name__)

ADAPTERS: dict[str, type[MarketDataAdapter]] = {
    GraphNodeAdapter.backend_id: GraphNodeAdapter,
    CheckpointAdapter.backend_id: CheckpointAdapter,
}


def create_adapter(settings: Settings, client: httpx.AsyncClient, tiers: CacheTiers) -> MarketDataAdapter:
    """Pick the backend variant once, from configuration."""
    cls = ADAPTERS[settings.backend_mode]
    log.info(
        "adapter_selected",
        backend=cls.backend_id,
        registry=settings.registry_url,
        candles=settings.candles_url,
    )
    return cls(
        client=client,
        registry_url=settings.registry_url,
        candles_url=settings.candles_url,
        aggregator_address=settings.aggregator_address,
        tiers=tiers,
        default_chain_id=settings.default_chain_id,
    )


__all__ = ["ADAPTERS", "CheckpointAdapter", "GraphNodeAdapter", "MarketDataAdapter", "create_adapter"]
