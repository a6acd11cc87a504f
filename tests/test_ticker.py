"""Ticker grammar parsing."""

import pytest

from predcharts.errors import TickerParseError
from predcharts.spot.ticker import chain_id_for, gecko_network, parse_ticker, timeframe


def test_parse_multi_hop_with_inversion():
    spec = parse_ticker("PNK/WETH+!sDAI/WETH-hour-50-xdai")
    assert spec.multi_hop is True
    assert len(spec.hops) == 2
    first, second = spec.hops
    assert (first.base, first.quote, first.invert) == ("PNK", "WETH", False)
    assert (second.base, second.quote, second.invert) == ("sDAI", "WETH", True)
    assert spec.interval == "hour"
    assert spec.limit == 50
    assert spec.network == "xdai"
    assert spec.invert is False
    assert spec.rate_provider is None


def test_parse_rate_provider_pair():
    spec = parse_ticker("waGnoGNO::0xbbb4966335677ea24f7b86dc19a423412390e1fb/sDAI-hour-500-xdai")
    assert spec.multi_hop is False
    hop = spec.hops[0]
    assert hop.base == "waGnoGNO"
    assert hop.quote == "sDAI"
    assert spec.rate_provider == "0xbbb4966335677ea24f7b86dc19a423412390e1fb"


def test_parse_pool_address_with_invert():
    spec = parse_ticker("0x8189c4c96826d016a99986394103dfa9ae41e7ee-hour-100-xdai-invert")
    assert spec.hops[0].pool_address == "0x8189c4c96826d016a99986394103dfa9ae41e7ee"
    assert spec.invert is True
    assert spec.limit == 100


def test_parse_defaults_for_missing_parts():
    spec = parse_ticker("GNO/sDAI")
    assert (spec.interval, spec.limit, spec.network) == ("hour", 500, "xdai")


def test_parse_default_limit_override():
    assert parse_ticker("GNO/sDAI", default_limit=25).limit == 25
    assert parse_ticker("GNO/sDAI-hour-40", default_limit=25).limit == 40


def test_parse_url_encoded():
    spec = parse_ticker("PNK%2FWETH%2B!sDAI%2FWETH-hour-50-xdai")
    assert spec.multi_hop is True
    assert spec.hops[1].invert is True


@pytest.mark.parametrize(
    "text",
    ["", "   ", "PNK-hour-50-xdai", "PNK/WETH-hour-abc-xdai", "PNK/WETH-hour-0-xdai", "PNK/WETH+-hour-5"],
)
def test_parse_rejects_malformed(text):
    with pytest.raises(TickerParseError):
        parse_ticker(text)


def test_ticker_parse_error_is_value_error():
    with pytest.raises(ValueError):
        parse_ticker("PNK")


def test_network_helpers():
    assert gecko_network("gnosis") == "xdai"
    assert gecko_network("polygon_pos") == "polygon_pos"
    assert chain_id_for("xdai") == 100
    assert chain_id_for("base") == 8453
    assert chain_id_for("unknown") is None


def test_timeframe_by_substring():
    assert timeframe("hour") == "hour"
    assert timeframe("15min") == "minute"
    assert timeframe("day") == "day"
    assert timeframe("") == "day"
