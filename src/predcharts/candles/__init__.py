"""Pool candle series helpers."""

from predcharts.candles.fill import ONE_HOUR, clip_range, forward_fill

__all__ = ["ONE_HOUR", "clip_range", "forward_fill"]
