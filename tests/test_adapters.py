"""Schema adapters: resolution order, caching, equivalence of both backends, error surfacing."""

import json

import httpx
import pytest

from predcharts.adapters import CheckpointAdapter, GraphNodeAdapter, create_adapter
from predcharts.adapters.normalize import (
    add_chain_prefix,
    build_pool,
    decimal_str,
    parse_pool_name,
    strip_chain_prefix,
)
from predcharts.cache import CacheTiers
from predcharts.config.settings import Settings
from predcharts.errors import UpstreamUnavailable

AGG = "0xc5eb43d53e2fe5fdde5faf400cc4167e5b5d4fc1"
SNAP = "0xabc123snapshot"
PROPOSAL = {
    "id": "0xProp",
    "proposalAddress": "0xProp",
    "title": "Should we?",
    "metadata": json.dumps({"coingecko_ticker": "PNK/WETH-hour-50-xdai", "chain": "100", "price_precision": "x"}),
    "organization": {"id": "org1", "name": "Kleros DAO", "aggregator": {"id": AGG}},
}
FOREIGN = {**PROPOSAL, "id": "0xother", "organization": {"id": "org9", "name": "X", "aggregator": {"id": "0xdead"}}}


def _adapter(cls, gql_client, tiers, routes, calls=None):
    return cls(
        client=gql_client(routes, calls),
        registry_url="https://registry.test/graphql",
        candles_url="https://candles.test/graphql",
        aggregator_address=AGG,
        tiers=tiers,
    )


# --- resolution ---


@pytest.mark.asyncio
async def test_resolve_by_snapshot_id_scoped_to_aggregator(gql_client, tiers):
    routes = [
        ('key: "snapshot_id"', {"metadataEntries": [{"value": SNAP, "proposal": FOREIGN}, {"value": SNAP, "proposal": PROPOSAL}]}),
    ]
    adapter = _adapter(GraphNodeAdapter, gql_client, tiers, routes)
    identity = await adapter.resolve_proposal(SNAP.upper())
    assert identity.trading_address == "0xprop"
    assert identity.proposal_id == "0xprop"
    assert identity.original_proposal_id == "0xProp"
    assert identity.organization_id == "org1"
    assert identity.ticker_spec == "PNK/WETH-hour-50-xdai"
    assert identity.chain_id == 100
    # unparsable field dropped on its own
    assert identity.price_precision is None


@pytest.mark.asyncio
async def test_resolve_falls_back_to_org_metadata(gql_client, tiers):
    routes = [
        ('key: "snapshot_id"', {"metadataEntries": []}),
        ("organization_:", {"metadataEntries": [{"value": "0xLegacy", "organization": {"id": "org1", "name": "K"}}]}),
    ]
    identity = await _adapter(GraphNodeAdapter, gql_client, tiers, routes).resolve_proposal(SNAP)
    assert identity.trading_address == "0xlegacy"
    assert identity.organization_name == "K"
    assert identity.ticker_spec is None


@pytest.mark.asyncio
async def test_resolve_pass_through(gql_client, tiers):
    identity = await _adapter(GraphNodeAdapter, gql_client, tiers, []).resolve_proposal(" 0xDirectAddr ")
    assert identity.trading_address == "0xdirectaddr"
    assert identity.original_proposal_id == "0xDirectAddr"
    assert identity.organization_id is None


@pytest.mark.asyncio
async def test_resolve_is_cached(gql_client, tiers):
    calls = []
    routes = [('key: "snapshot_id"', {"metadataEntries": [{"value": SNAP, "proposal": PROPOSAL}]})]
    adapter = _adapter(GraphNodeAdapter, gql_client, tiers, routes, calls)
    first = await adapter.resolve_proposal(SNAP)
    n = len(calls)
    second = await adapter.resolve_proposal(SNAP)
    assert second == first
    assert second.model_dump_json() == first.model_dump_json()
    assert len(calls) == n


@pytest.mark.asyncio
async def test_pass_through_is_cached_too(gql_client, tiers):
    calls = []
    adapter = _adapter(CheckpointAdapter, gql_client, tiers, [], calls)
    await adapter.resolve_proposal("0xnothing")
    n = len(calls)
    await adapter.resolve_proposal("0xNOTHING")
    assert len(calls) == n


@pytest.mark.asyncio
async def test_checkpoint_snapshot_exact_match(gql_client, tiers):
    routes = [
        (
            "value_contains_nocase",
            {
                "metadataentries": [
                    {"value": SNAP + "ff", "proposal": PROPOSAL},
                    {"value": SNAP.upper(), "proposal": PROPOSAL},
                ]
            },
        ),
    ]
    calls = []
    identity = await _adapter(CheckpointAdapter, gql_client, tiers, routes, calls).resolve_proposal(SNAP)
    assert identity.trading_address == "0xprop"
    assert "first: 5" in calls[0]


@pytest.mark.asyncio
async def test_checkpoint_org_fallback_iterates_organizations(gql_client, tiers):
    routes = [
        ("value_contains_nocase", {"metadataentries": []}),
        ("organizations(", {"organizations": [{"id": "orgA", "name": "A"}, {"id": "orgB", "name": "B"}]}),
        ('organization: "orgB"', {"metadataentries": [{"value": "0xFromB"}]}),
    ]
    identity = await _adapter(CheckpointAdapter, gql_client, tiers, routes).resolve_proposal(SNAP)
    assert identity.trading_address == "0xfromb"
    assert identity.organization_id == "orgB"


@pytest.mark.asyncio
async def test_lookup_org_metadata_caches_missing_value(gql_client, tiers):
    calls = []
    adapter = _adapter(GraphNodeAdapter, gql_client, tiers, [("price_precision", {"metadataEntries": []})], calls)
    assert await adapter.lookup_org_metadata("org1", "price_precision") is None
    assert await adapter.lookup_org_metadata("org1", "price_precision") is None
    assert len(calls) == 1
    assert await adapter.lookup_org_metadata(None, "price_precision") is None


# --- pools and candles: both backends agree ---

GRAPH_NODE_POOLS = {
    "pools": [
        {
            "id": "0xYesPool",
            "name": "YES_PNK / YES_sDAI",
            "type": "CONDITIONAL",
            "outcomeSide": "YES",
            "price": "0.4200",
            "isInverted": False,
            "volumeToken0": "1.5",
            "volumeToken1": "0.63",
            "token0": {"id": "0xT0", "symbol": "YES_PNK", "role": "YES_COMPANY"},
            "token1": {"id": "0xT1", "symbol": "YES_sDAI", "role": "YES_CURRENCY"},
            "proposal": {
                "id": "0xProp",
                "marketName": "m",
                "companyToken": {"id": "0xc", "symbol": "PNK"},
                "currencyToken": {"id": "0xd", "symbol": "sDAI"},
            },
        },
        {
            "id": "0xNoPool",
            "name": "NO_sDAI / NO_PNK",
            "type": "CONDITIONAL",
            "outcomeSide": "NO",
            "price": "0.38",
            "isInverted": True,
            "volumeToken0": "2",
            "volumeToken1": "7.25",
            "token0": {"id": "0xT2", "symbol": "NO_sDAI", "role": "NO_CURRENCY"},
            "token1": {"id": "0xT3", "symbol": "NO_PNK", "role": "NO_COMPANY"},
            "proposal": {
                "id": "0xProp",
                "marketName": "m",
                "companyToken": {"id": "0xc", "symbol": "PNK"},
                "currencyToken": {"id": "0xd", "symbol": "sDAI"},
            },
        },
    ]
}

CHECKPOINT_POOLS = {
    "pools": [
        {
            "id": "100-0xyespool",
            "name": "YES_PNK / YES_sDAI",
            "type": "CONDITIONAL",
            "outcomeSide": "YES",
            "price": "0.42",
            "isInverted": False,
            "volumeToken0": "1500000000000000000",
            "volumeToken1": "630000000000000000",
            "token0": "100-0xt0",
            "token1": "100-0xt1",
            "proposal": "100-0xprop",
        },
        {
            "id": "100-0xnopool",
            # display name is always company / currency; token order follows isInverted
            "name": "NO_PNK / NO_sDAI",
            "type": "CONDITIONAL",
            "outcomeSide": "NO",
            "price": "0.380",
            "isInverted": True,
            "volumeToken0": "2000000000000000000",
            "volumeToken1": "7250000000000000000",
            "token0": "100-0xt2",
            "token1": "100-0xt3",
            "proposal": "100-0xprop",
        },
    ]
}

GRAPH_NODE_CANDLES = {"candles": [{"periodStartUnix": "3600", "close": "0.41"}, {"periodStartUnix": "7200", "close": "0.420"}]}
CHECKPOINT_CANDLES = {"candles": [{"periodStartUnix": 7200, "close": "0.42"}, {"periodStartUnix": 3600, "close": "0.41"}]}


@pytest.mark.asyncio
async def test_list_pools_equivalent_across_backends(gql_client, tiers):
    gn_calls, cp_calls = [], []
    gn = _adapter(GraphNodeAdapter, gql_client, tiers, [("pools(", GRAPH_NODE_POOLS)], gn_calls)
    cp = _adapter(CheckpointAdapter, gql_client, tiers, [("pools(", CHECKPOINT_POOLS)], cp_calls)
    gn_pools = await gn.list_pools("0xProp")
    cp_pools = await cp.list_pools("0xprop", chain_id=100)

    assert [p.id for p in gn_pools] == ["0xyespool", "0xnopool"]
    assert [p.volume_token0 for p in gn_pools] == ["1.5", "2"]
    assert [(p.volume_base, p.volume_quote) for p in gn_pools] == [("1.5", "0.63"), ("7.25", "2")]
    assert [p.model_dump(exclude={"name"}) for p in gn_pools] == [p.model_dump(exclude={"name"}) for p in cp_pools]
    assert '"0xprop"' in gn_calls[0]
    assert '"100-0xprop"' in cp_calls[0]


@pytest.mark.asyncio
async def test_candles_equivalent_across_backends(gql_client, tiers, settings, clock):
    gn_calls, cp_calls = [], []
    gn = _adapter(GraphNodeAdapter, gql_client, tiers, [("candles(", GRAPH_NODE_CANDLES)], gn_calls)
    cp = _adapter(
        CheckpointAdapter, gql_client, CacheTiers.from_settings(settings, clock), [("candles(", CHECKPOINT_CANDLES)], cp_calls
    )
    gn_candles = await gn.fetch_candle_series("0xYesPool", 0, 10000)
    cp_candles = await cp.fetch_candle_series("100-0xyespool", 0, 10000, chain_id=100)
    assert gn_candles == cp_candles
    assert [(c.period_start, c.close) for c in gn_candles] == [(3600, "0.41"), (7200, "0.42")]

    assert 'periodStartUnix_gte: "0"' in gn_calls[0]
    assert 'period: "3600"' in gn_calls[0]
    assert 'pool: "100-0xyespool"' in cp_calls[0]
    assert "time_gte: 0" in cp_calls[0]
    assert "time_lte: 10000" in cp_calls[0]


@pytest.mark.asyncio
async def test_candle_series_cached(gql_client, tiers):
    calls = []
    adapter = _adapter(GraphNodeAdapter, gql_client, tiers, [("candles(", GRAPH_NODE_CANDLES)], calls)
    await adapter.fetch_candle_series("0xpool", 0, 100)
    await adapter.fetch_candle_series("0xpool", 0, 100)
    assert len(calls) == 1
    await adapter.fetch_candle_series("0xpool", 0, 200)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_latest_price(gql_client, tiers):
    adapter = _adapter(GraphNodeAdapter, gql_client, tiers, [("candles(", {"candles": [{"periodStartUnix": "7200", "close": "0.5"}]})])
    assert await adapter.get_latest_price("0xpool") == 0.5
    empty = _adapter(GraphNodeAdapter, gql_client, tiers, [("candles(", {"candles": []})])
    assert await empty.get_latest_price("0xpool", max_time=100) is None


@pytest.mark.asyncio
async def test_empty_pools_and_candles(gql_client, tiers):
    adapter = _adapter(CheckpointAdapter, gql_client, tiers, [("pools(", {"pools": []}), ("candles(", {"candles": []})])
    assert await adapter.list_pools("0xprop") == []
    assert await adapter.fetch_candle_series("0xpool", 0, 1) == []


# --- failures ---


@pytest.mark.asyncio
async def test_graphql_errors_payload_raises(gql_client, tiers):
    routes = [("pools(", httpx.Response(200, json={"errors": [{"message": "bad field"}]}))]
    adapter = _adapter(GraphNodeAdapter, gql_client, tiers, routes)
    with pytest.raises(UpstreamUnavailable, match="bad field"):
        await adapter.list_pools("0xprop")


@pytest.mark.asyncio
async def test_http_error_raises_and_is_not_cached(gql_client, tiers):
    calls = []
    routes = [("candles(", httpx.Response(503, text="down"))]
    adapter = _adapter(CheckpointAdapter, gql_client, tiers, routes, calls)
    for _ in range(2):
        with pytest.raises(UpstreamUnavailable) as exc:
            await adapter.fetch_candle_series("0xpool", 0, 1)
        assert exc.value.status_code == 503
    assert len(calls) == 2


def test_create_adapter_by_mode(gql_client, tiers):
    client = gql_client([])
    cp = create_adapter(Settings.from_dict({"backend": {"mode": "checkpoint"}}), client, tiers)
    assert isinstance(cp, CheckpointAdapter)
    assert cp.registry_url.startswith("https://api.futarchy.fi")
    gn = create_adapter(Settings.from_dict({"backend": {"mode": "nonsense"}}), client, tiers)
    assert isinstance(gn, GraphNodeAdapter)


@pytest.mark.asyncio
async def test_configured_default_chain_applies_when_metadata_has_none(gql_client, tiers):
    no_chain = {**PROPOSAL, "metadata": json.dumps({"coingecko_ticker": "PNK/WETH-hour-50-xdai"})}
    routes = [('key: "snapshot_id"', {"metadataEntries": [{"value": SNAP, "proposal": no_chain}]})]
    settings = Settings.from_dict({"backend": {"mode": "graph_node", "default_chain_id": 8453}})
    adapter = create_adapter(settings, gql_client(routes), tiers)
    assert adapter.default_chain_id == 8453
    assert (await adapter.resolve_proposal(SNAP)).chain_id == 8453

    passthrough = create_adapter(settings, gql_client([]), CacheTiers.from_settings(settings))
    assert (await passthrough.resolve_proposal("0xABC")).chain_id == 8453

    # an explicit chain in the proposal metadata still wins
    routes = [('key: "snapshot_id"', {"metadataEntries": [{"value": SNAP, "proposal": PROPOSAL}]})]
    explicit = create_adapter(settings, gql_client(routes), CacheTiers.from_settings(settings))
    assert (await explicit.resolve_proposal(SNAP)).chain_id == 100


# --- normalization helpers ---


def test_chain_prefix_helpers():
    assert strip_chain_prefix("100-0xabc") == "0xabc"
    assert strip_chain_prefix("0xabc") == "0xabc"
    assert add_chain_prefix("0xabc", 8453) == "8453-0xabc"
    assert add_chain_prefix("100-0xabc", 1) == "100-0xabc"


def test_decimal_str():
    assert decimal_str("1500000000000000000", 18) == "1.5"
    assert decimal_str("0.4200") == "0.42"
    assert decimal_str("120") == "120"
    assert decimal_str(None) == "0"
    assert decimal_str("garbage") == "0"
    assert decimal_str("0", 18) == "0"


def test_parse_pool_name():
    assert parse_pool_name("YES_PNK / YES_sDAI") == ("YES", "PNK", "sDAI")
    assert parse_pool_name("NO_GNO/NO_wxDAI") == ("NO", "GNO", "wxDAI")
    assert parse_pool_name("YES_PNK / NO_sDAI") is None
    assert parse_pool_name("PNK/sDAI") is None


def test_build_pool_without_roles_uses_name():
    pool = build_pool({"id": "100-0xp", "name": "YES_GNO / YES_sDAI", "token0": "100-0xa", "token1": "100-0xb", "isInverted": True})
    assert pool.id == "0xp"
    assert pool.token0.role == "YES_CURRENCY"
    assert pool.token1.role == "YES_COMPANY"
    assert pool.token1.id == "0xb"
    assert (pool.company_symbol, pool.currency_symbol) == ("GNO", "sDAI")
