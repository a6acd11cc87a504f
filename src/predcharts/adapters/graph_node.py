"""Graph Node backend (legacy subgraphs): nested relation objects, string-typed numeric filters."""

from __future__ import annotations

import structlog

from predcharts.adapters.base import SNAPSHOT_ID_KEY, MarketDataAdapter
from predcharts.adapters.graphql import gql_fetch
from predcharts.adapters.normalize import build_candles, build_pool, gql_string, normalize_address
from predcharts.models import Candle, Pool, ProposalIdentity

log = structlog.get_logger(__name__)

_PROPOSAL_FIELDS = """
    id
    proposalAddress
    title
    metadata
    organization {
        id
        name
        aggregator { id }
    }
"""

_POOL_FIELDS = """
    id
    name
    type
    outcomeSide
    price
    isInverted
    volumeToken0
    volumeToken1
    token0 { id symbol role }
    token1 { id symbol role }
    proposal {
        id
        marketName
        companyToken { id symbol }
        currencyToken { id symbol }
    }
"""


class GraphNodeAdapter(MarketDataAdapter):
    """Provider A."""

    backend_id = "graph_node"

    async def _lookup_by_snapshot_id(self, snapshot_id: str) -> ProposalIdentity | None:
        query = f"""{{
            metadataEntries(where: {{ key: {gql_string(SNAPSHOT_ID_KEY)}, value: {gql_string(snapshot_id)} }}) {{
                value
                proposal {{ {_PROPOSAL_FIELDS} }}
            }}
        }}"""
        data = await gql_fetch(self.client, self.registry_url, query)
        entries = data.get("metadataEntries") or []
        match = next((e for e in entries if self._from_our_aggregator(e)), None)
        if match is None:
            return None
        log.info("registry_snapshot_match", backend=self.backend_id, snapshot_id=snapshot_id)
        return self._proposal_from_record(match["proposal"])

    async def _lookup_in_org_metadata(self, snapshot_id: str) -> ProposalIdentity | None:
        query = f"""{{
            metadataEntries(where: {{
                key: {gql_string(snapshot_id)},
                organization_: {{ aggregator: {gql_string(self.aggregator_address)} }}
            }}) {{
                value
                organization {{ id name }}
            }}
        }}"""
        data = await gql_fetch(self.client, self.registry_url, query)
        entries = data.get("metadataEntries") or []
        if not entries or not entries[0].get("value"):
            return None
        entry = entries[0]
        org = entry.get("organization") or {}
        log.info("registry_org_match", backend=self.backend_id, org=org.get("name"))
        return ProposalIdentity.build(
            proposal_id=normalize_address(entry["value"]),
            trading_address=normalize_address(entry["value"]),
            original_proposal_id=entry["value"],
            organization_id=org.get("id"),
            organization_name=org.get("name"),
            default_chain_id=self.default_chain_id,
        )

    async def _query_org_metadata(self, org_id: str, key: str) -> str | None:
        query = f"""{{
            metadataEntries(where: {{ key: {gql_string(key)}, organization: {gql_string(org_id)} }}) {{
                value
            }}
        }}"""
        data = await gql_fetch(self.client, self.registry_url, query)
        entries = data.get("metadataEntries") or []
        return (entries[0].get("value") or None) if entries else None

    async def _query_pools(self, trading_address: str, chain_id: int) -> list[Pool]:
        query = f"""{{
            pools(where: {{ proposal: {gql_string(trading_address)} }}) {{ {_POOL_FIELDS} }}
        }}"""
        data = await gql_fetch(self.client, self.candles_url, query)
        return [build_pool(raw) for raw in data.get("pools") or []]

    async def _query_candles(
        self, pool_id: str, min_time: int, max_time: int, chain_id: int
    ) -> list[Candle]:
        query = f"""{{
            candles(
                first: 1000
                orderBy: periodStartUnix
                orderDirection: asc
                where: {{
                    pool: {gql_string(pool_id)},
                    period: "3600",
                    periodStartUnix_gte: "{int(min_time)}",
                    periodStartUnix_lte: "{int(max_time)}"
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
        bound = f', periodStartUnix_lte: "{int(max_time)}"' if max_time else ""
        query = f"""{{
            candles(
                first: 1
                orderBy: periodStartUnix
                orderDirection: desc
                where: {{ pool: {gql_string(pool_id)}, period: "3600"{bound} }}
            ) {{
                periodStartUnix
                close
            }}
        }}"""
        data = await gql_fetch(self.client, self.candles_url, query)
        candles = build_candles(data.get("candles") or [])
        return candles[-1] if candles else None
