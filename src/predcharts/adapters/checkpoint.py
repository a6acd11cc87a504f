"""Checkpoint backend (api.futarchy.fi): flat foreign keys, integer filters, chain-prefixed ids."""

from __future__ import annotations

import structlog

from predcharts.adapters.base import SNAPSHOT_ID_KEY, MarketDataAdapter
from predcharts.adapters.graphql import gql_fetch
from predcharts.adapters.normalize import (
    WEI_DECIMALS,
    add_chain_prefix,
    build_candles,
    build_pool,
    gql_string,
    normalize_address,
)
from predcharts.models import Candle, Pool, ProposalIdentity

log = structlog.get_logger(__name__)


class CheckpointAdapter(MarketDataAdapter):
    """Provider B. Registry ids are plain addresses; candle-side ids carry a '<chainId>-' prefix."""

    backend_id = "checkpoint"

    async def _lookup_by_snapshot_id(self, snapshot_id: str) -> ProposalIdentity | None:
        # One nested query; value_contains_nocase can return partial matches, so match exactly here.
        query = f"""{{
            metadataentries(where: {{
                key: {gql_string(SNAPSHOT_ID_KEY)},
                value_contains_nocase: {gql_string(snapshot_id)}
            }}, first: 5) {{
                value
                proposal {{
                    id
                    proposalAddress
                    title
                    metadata
                    organization {{
                        id
                        name
                        aggregator {{ id }}
                    }}
                }}
            }}
        }}"""
        data = await gql_fetch(self.client, self.registry_url, query)
        entries = [
            e for e in data.get("metadataentries") or []
            if (e.get("value") or "").lower() == snapshot_id
        ]
        match = next((e for e in entries if self._from_our_aggregator(e)), None)
        if match is None:
            return None
        log.info("registry_snapshot_match", backend=self.backend_id, snapshot_id=snapshot_id)
        return self._proposal_from_record(match["proposal"])

    async def _lookup_in_org_metadata(self, snapshot_id: str) -> ProposalIdentity | None:
        org_query = f"""{{
            organizations(where: {{ aggregator: {gql_string(self.aggregator_address)} }}) {{
                id
                name
            }}
        }}"""
        orgs = (await gql_fetch(self.client, self.registry_url, org_query)).get("organizations") or []
        for org in orgs:
            query = f"""{{
                metadataentries(where: {{
                    key: {gql_string(snapshot_id)},
                    organization: {gql_string(org.get("id"))}
                }}) {{
                    value
                }}
            }}"""
            entries = (await gql_fetch(self.client, self.registry_url, query)).get("metadataentries") or []
            if entries and entries[0].get("value"):
                value = entries[0]["value"]
                log.info("registry_org_match", backend=self.backend_id, org=org.get("name"))
                return ProposalIdentity.build(
                    proposal_id=normalize_address(value),
                    trading_address=normalize_address(value),
                    original_proposal_id=value,
                    organization_id=org.get("id"),
                    organization_name=org.get("name"),
                    default_chain_id=self.default_chain_id,
                )
        return None

    async def _query_org_metadata(self, org_id: str, key: str) -> str | None:
        query = f"""{{
            metadataentries(where: {{ key: {gql_string(key)}, organization: {gql_string(org_id)} }}) {{
                value
            }}
        }}"""
        data = await gql_fetch(self.client, self.registry_url, query)
        entries = data.get("metadataentries") or []
        return (entries[0].get("value") or None) if entries else None

    async def _query_pools(self, trading_address: str, chain_id: int) -> list[Pool]:
        query = f"""{{
            pools(where: {{ proposal: {gql_string(add_chain_prefix(trading_address, chain_id))} }}) {{
                id
                name
                type
                outcomeSide
                price
                isInverted
                volumeToken0
                volumeToken1
                token0
                token1
                proposal
            }}
        }}"""
        data = await gql_fetch(self.client, self.candles_url, query)
        # Volumes come in raw 18-decimal units
        return [build_pool(raw, volume_decimals=WEI_DECIMALS) for raw in data.get("pools") or []]

    async def _query_candles(
        self, pool_id: str, min_time: int, max_time: int, chain_id: int
    ) -> list[Candle]:
        # `time` is the raw swap timestamp; periodStartUnix is already snapped to the hour.
        query = f"""{{
            candles(
                first: 1000
                orderBy: time
                orderDirection: asc
                where: {{
                    pool: {gql_string(add_chain_prefix(pool_id, chain_id))},
                    period: 3600,
                    time_gte: {int(min_time)},
                    time_lte: {int(max_time)}
                }}
            ) {{
                periodStartUnix
                close
            }}
        }}"""
        data = await gql_fetch(self.client, self.candles_url, query)
        return build_candles(data.get("candles") or [])

    async def _query_latest_candle(
        self, pool_id: str, max_time: int | None, chain_id: int
    ) -> Candle | None:
        bound = f", time_lte: {int(max_time)}" if max_time else ""
        query = f"""{{
            candles(
                first: 1
                orderBy: time
                orderDirection: desc
                where: {{ pool: {gql_string(add_chain_prefix(pool_id, chain_id))}, period: 3600{bound} }}
            ) {{
                periodStartUnix
                close
            }}
        }}"""
        data = await gql_fetch(self.client, self.candles_url, query)
        candles = build_candles(data.get("candles") or [])
        return candles[-1] if candles else None
