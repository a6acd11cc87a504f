"""ProposalIdentity, ProposalConfig - resolved market identity and its embedded configuration."""

from __future__ import annotations

import json
import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CHAIN_ID = 100

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_optional_int(value: Any) -> int | None:
    """Best-effort integer from a metadata value; None when absent or unparsable.

    Strings are read up to the first non-digit ("12.5" -> 12, "7h" -> 7).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        m = _LEADING_INT.match(value)
        return int(m.group(1)) if m else None
    return None


def parse_optional_str(value: Any) -> str | None:
    """Non-empty string or None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    s = str(value).strip()
    return s or None


def parse_precision(value: Any) -> int | None:
    """Display precision is only meaningful in [0, 10]."""
    p = parse_optional_int(value)
    if p is None or not 0 <= p <= 10:
        return None
    return p


def parse_rate_provider(value: Any) -> str | None:
    """Rate provider must look like an address."""
    s = parse_optional_str(value)
    if s is None or not s.lower().startswith("0x"):
        return None
    return s


class ProposalConfig(BaseModel):
    """Optional settings embedded as a JSON blob in the proposal's metadata field."""

    model_config = ConfigDict(frozen=True)

    ticker_spec: str | None = None
    close_timestamp: int | None = None
    start_timestamp: int | None = None
    twap_start_timestamp: int | None = None
    twap_duration_hours: int | None = None
    twap_description: str | None = None
    chain_id: int | None = None
    price_precision: int | None = None
    rate_provider_address: str | None = None
    stable_symbol: str | None = None

    @classmethod
    def from_metadata(cls, blob: str | dict[str, Any] | None) -> ProposalConfig:
        """Parse the metadata blob field by field; a bad field is dropped, never the whole blob."""
        if isinstance(blob, dict):
            raw = blob
        elif blob:
            try:
                raw = json.loads(blob)
            except (json.JSONDecodeError, TypeError):
                raw = {}
        else:
            raw = {}
        if not isinstance(raw, dict):
            raw = {}
        return cls(
            ticker_spec=parse_optional_str(raw.get("coingecko_ticker")),
            close_timestamp=parse_optional_int(raw.get("closeTimestamp")),
            start_timestamp=parse_optional_int(raw.get("startCandleUnix")),
            twap_start_timestamp=parse_optional_int(raw.get("twapStartTimestamp")),
            twap_duration_hours=parse_optional_int(raw.get("twapDurationHours")),
            twap_description=parse_optional_str(raw.get("twapDescription")),
            chain_id=parse_optional_int(raw.get("chain")),
            price_precision=parse_optional_int(raw.get("price_precision")),
            rate_provider_address=parse_optional_str(raw.get("currency_stable_rate")),
            stable_symbol=parse_optional_str(raw.get("currency_stable_symbol")),
        )


class ProposalIdentity(BaseModel):
    """A market resolved from an external short identifier to internal addresses."""

    model_config = ConfigDict(frozen=True)

    proposal_id: str
    trading_address: str = Field(..., description="Lowercase address, never chain-prefixed")
    original_proposal_id: str | None = None
    organization_id: str | None = None
    organization_name: str | None = None
    chain_id: int = DEFAULT_CHAIN_ID
    ticker_spec: str | None = None
    close_timestamp: int | None = None
    start_timestamp: int | None = None
    twap_start_timestamp: int | None = None
    twap_duration_hours: int | None = None
    twap_description: str | None = None
    price_precision: int | None = None
    rate_provider_address: str | None = None
    stable_symbol: str | None = None

    @classmethod
    def build(
        cls,
        *,
        proposal_id: str,
        trading_address: str,
        original_proposal_id: str | None = None,
        organization_id: str | None = None,
        organization_name: str | None = None,
        config: ProposalConfig | None = None,
        default_chain_id: int = DEFAULT_CHAIN_ID,
    ) -> ProposalIdentity:
        cfg = config or ProposalConfig()
        return cls(
            proposal_id=proposal_id.lower(),
            trading_address=trading_address.lower(),
            original_proposal_id=original_proposal_id,
            organization_id=organization_id,
            organization_name=organization_name,
            chain_id=cfg.chain_id or default_chain_id,
            ticker_spec=cfg.ticker_spec,
            close_timestamp=cfg.close_timestamp,
            start_timestamp=cfg.start_timestamp,
            twap_start_timestamp=cfg.twap_start_timestamp,
            twap_duration_hours=cfg.twap_duration_hours,
            twap_description=cfg.twap_description,
            price_precision=cfg.price_precision,
            rate_provider_address=cfg.rate_provider_address,
            stable_symbol=cfg.stable_symbol,
        )
