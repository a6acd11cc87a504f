"""Embedded proposal configuration parsing."""

import json

import pytest

from predcharts.models import ProposalConfig, ProposalIdentity, parse_optional_int, parse_optional_str
from predcharts.models.proposal import parse_precision, parse_rate_provider


def test_from_metadata_full_blob():
    blob = json.dumps(
        {
            "coingecko_ticker": "PNK/WETH+!sDAI/WETH-hour-500-xdai",
            "closeTimestamp": 1769990400,
            "startCandleUnix": "1769385600",
            "twapStartTimestamp": 1769900000,
            "twapDurationHours": "48",
            "twapDescription": "48h TWAP",
            "chain": 100,
            "price_precision": "4",
            "currency_stable_rate": "0x89C80A4540A00b5270347E02e2E144c71da2EceD",
            "currency_stable_symbol": "xDAI",
        }
    )
    cfg = ProposalConfig.from_metadata(blob)
    assert cfg.ticker_spec == "PNK/WETH+!sDAI/WETH-hour-500-xdai"
    assert cfg.close_timestamp == 1769990400
    assert cfg.start_timestamp == 1769385600
    assert cfg.twap_duration_hours == 48
    assert cfg.twap_description == "48h TWAP"
    assert cfg.chain_id == 100
    assert cfg.price_precision == 4
    assert cfg.rate_provider_address.startswith("0x89C8")
    assert cfg.stable_symbol == "xDAI"


@pytest.mark.parametrize("blob", [None, "", "not json", "[1, 2]", "42"])
def test_from_metadata_unparsable_gives_empty(blob):
    assert ProposalConfig.from_metadata(blob) == ProposalConfig()


def test_bad_field_does_not_drop_others():
    cfg = ProposalConfig.from_metadata({"closeTimestamp": "soon", "chain": "8453", "coingecko_ticker": {"x": 1}})
    assert cfg.close_timestamp is None
    assert cfg.chain_id == 8453
    assert cfg.ticker_spec is None


def test_parse_optional_int():
    assert parse_optional_int("12.5") == 12
    assert parse_optional_int("7h") == 7
    assert parse_optional_int(3.9) == 3
    assert parse_optional_int("abc") is None
    assert parse_optional_int(True) is None
    assert parse_optional_int(float("nan")) is None


def test_parse_optional_str():
    assert parse_optional_str("  x ") == "x"
    assert parse_optional_str("") is None
    assert parse_optional_str(5) == "5"


def test_precision_and_rate_provider_guards():
    assert parse_precision("2") == 2
    assert parse_precision("11") is None
    assert parse_precision("-1") is None
    assert parse_rate_provider("0xabc") == "0xabc"
    assert parse_rate_provider("sDAI") is None


def test_identity_build_lowercases_and_defaults_chain():
    identity = ProposalIdentity.build(proposal_id="0xAB", trading_address="0xCD")
    assert identity.proposal_id == "0xab"
    assert identity.trading_address == "0xcd"
    assert identity.chain_id == 100
