"""Strategy data models — typed representations for strategy inputs and outputs."""

from dataclasses import dataclass
from enum import Enum


class Direction(str, Enum):
    """Trade direction of a signal or position."""

    LONG = "LONG"
    SHORT = "SHORT"


@dataclass(frozen=True)
class CandleData:
    """A single candlestick bar for strategy consumption.

    ``open_time`` is the bar open in milliseconds since the Unix epoch.
    """

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_document(self) -> dict:
        return {
            "openTime": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "CandleData":
        return cls(
            open_time=int(doc["openTime"]),
            open=float(doc["open"]),
            high=float(doc["high"]),
            low=float(doc["low"]),
            close=float(doc["close"]),
            volume=float(doc.get("volume", 0.0)),
        )


@dataclass(frozen=True)
class IndicatorSample:
    """CCI value for one candle.  ``cci_value`` is NaN until the window fills."""

    timestamp: int
    cci_value: float


@dataclass(frozen=True)
class EntrySignal:
    """An entry signal produced by the breakout → recovery detector."""

    direction: Direction
    index: int  # candle index in the evaluated series
    timestamp: int
    price: float
    cci_value: float
    reason: str


# ── Timeframes ───────────────────────────────────────────────────────────

TIMEFRAME_MILLIS: dict[str, int] = {
    "15m": 15 * 60 * 1000,
    "1h": 60 * 60 * 1000,
    "4h": 4 * 60 * 60 * 1000,
    "1d": 24 * 60 * 60 * 1000,
    "1w": 7 * 24 * 60 * 60 * 1000,
}

# Backtest history length → number of days covered.
TEST_PERIOD_DAYS: dict[str, int] = {
    "1w": 7,
    "3m": 90,
    "6m": 180,
    "1y": 365,
    "2y": 730,
}


def candles_for_period(test_period: str, timeframe: str) -> int:
    """Number of *timeframe* candles needed to cover *test_period*.

    Raises ``KeyError`` for an unknown period or timeframe.
    """
    days = TEST_PERIOD_DAYS[test_period]
    per_day = TIMEFRAME_MILLIS["1d"] / TIMEFRAME_MILLIS[timeframe]
    return max(1, int(days * per_day))
