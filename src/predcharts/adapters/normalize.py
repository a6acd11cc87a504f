"""Backend payload -> canonical Pool / Candle. Shared by both GraphQL backends."""

from __future__ import annotations

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from predcharts.candles.fill import dedupe_sorted
from predcharts.models import Candle, Pool, TokenRef

_CHAIN_PREFIX = re.compile(r"^\d+-(.+)$")
_POOL_NAME = re.compile(r"^(YES|NO)_(\w+)\s*/\s*(YES|NO)_(\w+)$", re.IGNORECASE)

WEI_DECIMALS = 18


def strip_chain_prefix(id_: str | None) -> str | None:
    """'100-0xf834...' -> '0xf834...'; plain ids pass through."""
    if not id_:
        return id_
    m = _CHAIN_PREFIX.match(id_)
    return m.group(1) if m else id_


def add_chain_prefix(id_: str, chain_id: int = 100) -> str:
    """'0xf834...' -> '100-0xf834...'; never double-prefixes."""
    if not id_ or _CHAIN_PREFIX.match(id_):
        return id_
    return f"{chain_id}-{id_}"


def normalize_address(id_: str | None) -> str:
    return (strip_chain_prefix((id_ or "").strip()) or "").lower()


def decimal_str(value: Any, decimals: int = 0, default: str = "0") -> str:
    """Decimal string of value / 10**decimals without exponent or trailing zeros."""
    if value is None or value == "":
        return default
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    if not d.is_finite():
        return default
    if decimals:
        d = d.scaleb(-decimals)
    if d == 0:
        return "0"
    text = format(d.normalize(), "f")
    return text


def gql_string(value: Any) -> str:
    """GraphQL string literal (JSON quoting is valid GraphQL)."""
    return json.dumps(str(value))


def parse_pool_name(name: str | None) -> tuple[str, str, str] | None:
    """'YES_PNK / YES_sDAI' -> ('YES', 'PNK', 'sDAI'). None when the name does not follow the pattern."""
    if not name:
        return None
    m = _POOL_NAME.match(name.strip())
    if not m or m.group(1).upper() != m.group(3).upper():
        return None
    return m.group(1).upper(), m.group(2), m.group(4)


def tokens_from_name(
    name: str | None,
    token0_id: str | None,
    token1_id: str | None,
    is_inverted: bool,
) -> tuple[TokenRef, TokenRef]:
    """Rebuild token legs from the pool display name. Company token is token0 unless the pool is inverted."""
    parsed = parse_pool_name(name)
    if parsed is None:
        return TokenRef(id=token0_id), TokenRef(id=token1_id)
    side, company, currency = parsed
    company_ref = (f"{side}_{company}", f"{side}_COMPANY")
    currency_ref = (f"{side}_{currency}", f"{side}_CURRENCY")
    first, second = (currency_ref, company_ref) if is_inverted else (company_ref, currency_ref)
    return (
        TokenRef(id=token0_id, symbol=first[0], role=first[1]),
        TokenRef(id=token1_id, symbol=second[0], role=second[1]),
    )


def _token_ref(raw: Any) -> TokenRef | None:
    if not isinstance(raw, dict):
        return None
    return TokenRef(
        id=normalize_address(raw.get("id")) or None,
        symbol=raw.get("symbol"),
        role=raw.get("role"),
    )


def build_pool(raw: dict[str, Any], volume_decimals: int = 0) -> Pool:
    """Canonical Pool from either backend's pool object.

    Nested token/proposal objects are used when present, otherwise token roles and
    symbols are rebuilt from the pool name.
    """
    name = raw.get("name") or ""
    is_inverted = bool(raw.get("isInverted"))
    token0 = _token_ref(raw.get("token0"))
    token1 = _token_ref(raw.get("token1"))
    if token0 is None or token1 is None or not (token0.role or token1.role):
        t0_id = token0.id if token0 else normalize_address(raw.get("token0")) or None
        t1_id = token1.id if token1 else normalize_address(raw.get("token1")) or None
        token0, token1 = tokens_from_name(name, t0_id, t1_id, is_inverted)

    proposal = raw.get("proposal")
    company_symbol = currency_symbol = None
    if isinstance(proposal, dict):
        proposal_id = normalize_address(proposal.get("id")) or None
        company_symbol = (proposal.get("companyToken") or {}).get("symbol")
        currency_symbol = (proposal.get("currencyToken") or {}).get("symbol")
    else:
        proposal_id = normalize_address(proposal) or None
    if not company_symbol or not currency_symbol:
        parsed = parse_pool_name(name)
        if parsed:
            company_symbol = company_symbol or parsed[1]
            currency_symbol = currency_symbol or parsed[2]

    return Pool(
        id=normalize_address(raw.get("id")),
        name=name,
        kind=raw.get("type"),
        outcome_side=(raw.get("outcomeSide") or None),
        price=decimal_str(raw.get("price")),
        is_inverted=is_inverted,
        volume_token0=decimal_str(raw.get("volumeToken0"), volume_decimals),
        volume_token1=decimal_str(raw.get("volumeToken1"), volume_decimals),
        token0=token0,
        token1=token1,
        proposal_id=proposal_id,
        company_symbol=company_symbol,
        currency_symbol=currency_symbol,
    )


def build_candles(rows: list[dict[str, Any]]) -> list[Candle]:
    """Canonical candles from {periodStartUnix, close} rows; malformed rows are skipped."""
    out = []
    for row in rows or []:
        ts = row.get("periodStartUnix")
        if ts is None:
            ts = row.get("time")
        try:
            period_start = int(ts)
        except (TypeError, ValueError):
            continue
        out.append(Candle(period_start=period_start, close=decimal_str(row.get("close"))))
    return dedupe_sorted(out)
