"""Ticker grammar - compact composite price expressions.

    HOP ('+' HOP)* '-' INTERVAL '-' LIMIT '-' NETWORK ['-invert']
    HOP := ['!'] ( POOLADDR | BASE ['::' RATEPROVIDER] '/' QUOTE )

Examples:
    PNK/WETH+!sDAI/WETH-hour-500-xdai
    waGnoGNO::0xbbb4966335677ea24f7b86dc19a423412390e1fb/sDAI-hour-500-xdai
    0x8189c4c96826d016a99986394103dfa9ae41e7ee-hour-500-xdai
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import unquote

from predcharts.errors import TickerParseError
from predcharts.models import HopSpec, TickerSpec

DEFAULT_INTERVAL = "hour"
DEFAULT_LIMIT = 500
DEFAULT_NETWORK = "xdai"


@dataclass(frozen=True)
class Network:
    key: str
    gecko_id: str
    chain_id: int
    rpc_url: str


NETWORKS: dict[str, Network] = {
    "xdai": Network("xdai", "xdai", 100, "https://rpc.gnosischain.com"),
    "gnosis": Network("gnosis", "xdai", 100, "https://rpc.gnosischain.com"),
    "eth": Network("eth", "eth", 1, "https://eth.llamarpc.com"),
    "base": Network("base", "base", 8453, "https://mainnet.base.org"),
}


def gecko_network(network: str) -> str:
    """Upstream network id for a network key; unknown keys pass through."""
    info = NETWORKS.get(network)
    return info.gecko_id if info else network


def chain_id_for(network: str) -> int | None:
    info = NETWORKS.get(network)
    return info.chain_id if info else None


def timeframe(interval: str) -> str:
    """'hour' / 'minute' / 'day' by substring."""
    lowered = (interval or "").lower()
    if "hour" in lowered:
        return "hour"
    if "min" in lowered:
        return "minute"
    return "day"


def _is_pool_address(token: str) -> bool:
    return token.lower().startswith("0x") and "/" not in token


def _parse_hop(text: str) -> HopSpec:
    invert = text.startswith("!")
    body = text[1:] if invert else text
    if not body:
        raise TickerParseError(f"Empty hop in ticker: {text!r}")
    if _is_pool_address(body):
        address, _, rate = body.partition("::")
        return HopSpec(pool_address=address, rate_provider=rate or None, invert=invert)
    if "/" not in body:
        raise TickerParseError(f"Hop needs BASE/QUOTE or a pool address: {text!r}")
    base_part, _, quote = body.partition("/")
    base, _, rate = base_part.partition("::")
    if not base or not quote:
        raise TickerParseError(f"Hop needs BASE/QUOTE or a pool address: {text!r}")
    return HopSpec(base=base, quote=quote, rate_provider=rate or None, invert=invert)


def parse_ticker(text: str | None, default_limit: int = DEFAULT_LIMIT) -> TickerSpec:
    """Parse a ticker string into a TickerSpec. Missing trailing parts take defaults."""
    if not text or not text.strip():
        raise TickerParseError("Empty ticker")
    decoded = unquote(text) if "%" in text else text
    parts = decoded.strip().split("-")

    invert = parts[-1].lower() == "invert"
    if invert:
        parts = parts[:-1]
    token_part = parts[0]

    interval = parts[1] if len(parts) > 1 and parts[1] else DEFAULT_INTERVAL
    try:
        limit = int(parts[2]) if len(parts) > 2 and parts[2] else default_limit
    except ValueError as e:
        raise TickerParseError(f"Sample limit must be an integer: {parts[2]!r}") from e
    if limit <= 0:
        raise TickerParseError(f"Sample limit must be positive: {limit}")
    network = parts[3].lower() if len(parts) > 3 and parts[3] else DEFAULT_NETWORK

    multi_hop = "+" in token_part
    hops = tuple(_parse_hop(h) for h in token_part.split("+"))
    return TickerSpec(
        hops=hops,
        interval=interval,
        limit=limit,
        network=network,
        invert=invert,
        multi_hop=multi_hop,
    )
