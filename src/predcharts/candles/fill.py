"""Candle continuity - turn sparse trade-driven hourly candles into a gap-free series."""

from __future__ import annotations

import time
from typing import Iterable

from predcharts.models.candle import Candle

ONE_HOUR = 3600


def dedupe_sorted(candles: Iterable[Candle]) -> list[Candle]:
    """Ascending by period_start, first occurrence of a bucket wins."""
    seen: set[int] = set()
    out: list[Candle] = []
    for c in sorted(candles, key=lambda c: c.period_start):
        if c.period_start in seen:
            continue
        seen.add(c.period_start)
        out.append(c)
    return out


def forward_fill(
    candles: Iterable[Candle],
    max_timestamp: int,
    *,
    bucket: int = ONE_HOUR,
    now: int | None = None,
) -> list[Candle]:
    """
    Fill every missing bucket with the previous real candle's close.

    The ceiling is min(max_timestamp, now) so nothing is fabricated in the future.
    Buckets after the last real candle are filled up to the ceiling.
    """
    series = dedupe_sorted(candles)
    if not series:
        return series
    now_sec = int(time.time()) if now is None else now
    ceiling = min(max_timestamp, now_sec)

    filled: list[Candle] = []
    for i, current in enumerate(series):
        if current.period_start <= ceiling:
            filled.append(current)
        if i + 1 < len(series):
            stop = series[i + 1].period_start
        else:
            stop = ceiling + 1
        t = current.period_start + bucket
        while t < stop and t <= ceiling:
            filled.append(Candle(period_start=t, close=current.close))
            t += bucket
    return filled


def clip_range(candles: Iterable[Candle], min_timestamp: int, max_timestamp: int) -> list[Candle]:
    """Keep candles with min_timestamp <= period_start <= max_timestamp."""
    return [c for c in candles if min_timestamp <= c.period_start <= max_timestamp]
