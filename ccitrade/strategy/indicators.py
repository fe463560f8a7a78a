"""Technical indicators — Commodity Channel Index. Pure functions, no I/O."""

import math
from collections.abc import Iterator, Sequence

from ccitrade.errors import InsufficientDataError, InvalidConfigurationError
from ccitrade.strategy.models import CandleData, IndicatorSample

# Lambert's constant: scales CCI so ~70–80 % of values fall within ±100.
CCI_CONSTANT = 0.015


def typical_price(candle: CandleData) -> float:
    """``(high + low + close) / 3``."""
    return (candle.high + candle.low + candle.close) / 3.0


def iter_cci(
    candles: Sequence[CandleData], period: int = 20,
) -> Iterator[IndicatorSample]:
    """Lazily yield one ``IndicatorSample`` per candle.

    Algorithm:
        1. T   = typical price of each candle.
        2. SMA = mean of T over the trailing *period* candles.
        3. MD  = mean of |T_i − SMA| over the same window.
        4. CCI = (T − SMA) / (0.015 × MD)

    A flat window (``MD == 0``) yields ``0.0``.  The first ``period - 1``
    samples carry ``float('nan')``.

    Raises ``InsufficientDataError`` if fewer than *period* candles are
    provided.
    """
    if period < 1:
        raise InvalidConfigurationError(f"CCI period must be >= 1, got {period}")
    if len(candles) < period:
        raise InsufficientDataError(required=period, available=len(candles))
    return _cci_samples(candles, period)


def _cci_samples(
    candles: Sequence[CandleData], period: int,
) -> Iterator[IndicatorSample]:
    window: list[float] = []
    for candle in candles:
        tp = typical_price(candle)
        window.append(tp)
        if len(window) > period:
            window.pop(0)
        if len(window) < period:
            yield IndicatorSample(candle.open_time, float("nan"))
            continue

        sma = sum(window) / period
        mean_dev = sum(abs(x - sma) for x in window) / period
        if mean_dev == 0:
            cci = 0.0
        else:
            cci = (tp - sma) / (CCI_CONSTANT * mean_dev)
        yield IndicatorSample(candle.open_time, cci)


def calculate_cci(candles: Sequence[CandleData], period: int = 20) -> list[float]:
    """Calculate the full CCI series (same length as *candles*).

    Entries before the window fills are ``float('nan')``.

    Raises ``InsufficientDataError`` if fewer than *period* candles are
    provided.
    """
    return [s.cci_value for s in iter_cci(candles, period)]


def latest_cci(candles: Sequence[CandleData], period: int = 20) -> float:
    """CCI of the most recent candle."""
    value = math.nan
    for sample in iter_cci(candles, period):
        value = sample.cci_value
    return value
