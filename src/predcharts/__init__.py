"""predcharts - futarchy chart aggregator: normalized market data, composite spot pricing, warm caches."""

__version__ = "0.1.0"
