"""On-chain rate provider: read getRate() (uint256, 18 decimals) with a single eth_call."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from predcharts.cache.store import TTLCache

log = structlog.get_logger(__name__)

# getRate() selector
GET_RATE_SELECTOR = "0x679aefce"
RATE_DECIMALS = 18


@dataclass(frozen=True)
class Chain:
    name: str
    rpc_url: str
    default_rate_provider: str | None = None


CHAINS: dict[int, Chain] = {
    1: Chain("Ethereum", "https://eth.llamarpc.com"),
    100: Chain("Gnosis", "https://rpc.gnosischain.com", "0x89C80A4540A00b5270347E02e2E144c71da2EceD"),  # sDAI
    8453: Chain("Base", "https://mainnet.base.org"),
}


def decode_uint256(result: str) -> int:
    """Hex ABI word -> int."""
    if not isinstance(result, str) or not result.startswith("0x") or len(result) <= 2:
        raise ValueError(f"Not a hex word: {result!r}")
    return int(result, 16)


class RateProvider:
    """Neutral 1.0 on unknown chain, missing address (without a chain default) or any failure."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache | None = None,
        chains: dict[int, Chain] | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.chains = chains if chains is not None else CHAINS

    async def read_rate(self, provider_address: str | None, chain_id: int = 100) -> float | None:
        """Rate as a decimal, or None when it could not be read."""
        chain = self.chains.get(chain_id)
        if chain is None:
            log.warning("rate_unknown_chain", chain_id=chain_id)
            return None
        address = provider_address or chain.default_rate_provider
        if not address:
            return None
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [{"to": address, "data": GET_RATE_SELECTOR}, "latest"],
        }
        try:
            resp = await self.client.post(chain.rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
            if body.get("error"):
                log.warning("rate_rpc_error", chain=chain.name, error=body["error"])
                return None
            rate = decode_uint256(body.get("result")) / 10**RATE_DECIMALS
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            log.warning("rate_fetch_failed", chain=chain.name, provider=address, error=str(e))
            return None
        log.debug("rate_read", chain=chain.name, provider=address, rate=rate)
        return rate

    async def get_rate(self, provider_address: str | None, chain_id: int = 100) -> float:
        """Cached rate; failed reads return 1.0 and are not cached."""
        key = f"{(provider_address or 'default').lower()}-{chain_id}"
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
        rate = await self.read_rate(provider_address, chain_id)
        if rate is None or rate <= 0:
            return 1.0
        if self.cache is not None:
            self.cache.set(key, rate)
        return rate
