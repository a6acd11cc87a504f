"""Request orchestration: chart, market prices, spot candles, and process wiring."""

from predcharts.service.chart import ChartQuery, ChartService
from predcharts.service.runtime import Runtime, build_runtime, open_runtime

__all__ = ["ChartQuery", "ChartService", "Runtime", "build_runtime", "open_runtime"]
