"""Exceptions raised across adapters, the spot engine and the chart service."""


class PredChartsError(Exception):
    """Base exception for predcharts errors."""


class UpstreamUnavailable(PredChartsError):
    """An upstream call failed: network error, non-success status or an error payload."""

    def __init__(self, message: str, *, source: str = "", status_code: int | None = None):
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class RateLimited(UpstreamUnavailable):
    """The rate-limited external provider refused the call, or the local budget is spent."""


class PoolNotFound(PredChartsError):
    """No pool matched a fuzzy search."""

    def __init__(self, base: str, quote: str):
        super().__init__(f"Pool not found: {base}/{quote}")
        self.base = base
        self.quote = quote


class TickerParseError(PredChartsError, ValueError):
    """A composite price expression could not be parsed."""
