"""Tests for the CCI indicator."""

import math

import pytest

from ccitrade.errors import InsufficientDataError, InvalidConfigurationError
from ccitrade.strategy.indicators import (
    calculate_cci,
    iter_cci,
    latest_cci,
    typical_price,
)
from ccitrade.strategy.models import CandleData


# ── Helpers ──────────────────────────────────────────────────────────────


def _flat(price: float, i: int = 0) -> CandleData:
    """Candle with high == low == close, so typical price == *price*."""
    return CandleData(
        open_time=i * 3_600_000, open=price, high=price, low=price, close=price,
    )


def _series(prices: list[float]) -> list[CandleData]:
    return [_flat(p, i) for i, p in enumerate(prices)]


# ── Tests ────────────────────────────────────────────────────────────────


class TestTypicalPrice:
    def test_mean_of_high_low_close(self):
        c = CandleData(open_time=0, open=10, high=12, low=6, close=9)
        assert typical_price(c) == pytest.approx(9.0)


class TestCalculateCCI:
    def test_constant_series_is_zero(self):
        """A flat window has zero mean deviation; CCI is 0, not a division error."""
        cci = calculate_cci(_series([50.0] * 30), period=20)
        defined = cci[19:]
        assert len(defined) == 11
        assert all(v == 0.0 for v in defined)

    def test_warmup_is_nan(self):
        cci = calculate_cci(_series([50.0] * 25), period=20)
        assert all(math.isnan(v) for v in cci[:19])
        assert not math.isnan(cci[19])

    def test_output_length_matches_input(self):
        candles = _series([float(i) for i in range(1, 41)])
        assert len(calculate_cci(candles, period=20)) == 40

    def test_hand_computed_value(self):
        # T = 1, 2, 3 → SMA 2, MD 2/3 → (3 - 2) / (0.015 × 2/3) = 100
        cci = calculate_cci(_series([1.0, 2.0, 3.0]), period=3)
        assert cci[2] == pytest.approx(100.0)

    def test_falling_series_is_negative(self):
        cci = calculate_cci(_series([3.0, 2.0, 1.0]), period=3)
        assert cci[2] == pytest.approx(-100.0)

    def test_window_slides(self):
        # Second window is 2, 3, 3 → SMA 8/3, MD 4/9
        cci = calculate_cci(_series([1.0, 2.0, 3.0, 3.0]), period=3)
        expected = (3.0 - 8 / 3) / (0.015 * 4 / 9)
        assert cci[3] == pytest.approx(expected)

    def test_insufficient_data_raises(self):
        with pytest.raises(InsufficientDataError, match="Need at least 20 candles, got 5"):
            calculate_cci(_series([1.0] * 5), period=20)

    def test_empty_series_raises(self):
        with pytest.raises(InsufficientDataError):
            calculate_cci([], period=20)

    def test_insufficient_data_is_value_error(self):
        with pytest.raises(ValueError):
            calculate_cci([], period=20)

    def test_invalid_period_raises(self):
        with pytest.raises(InvalidConfigurationError):
            calculate_cci(_series([1.0] * 5), period=0)


class TestIterCCI:
    def test_validates_before_iteration(self):
        """Errors surface at the call, not on first next()."""
        with pytest.raises(InsufficientDataError):
            iter_cci(_series([1.0, 2.0]), period=3)

    def test_samples_carry_candle_timestamps(self):
        candles = _series([1.0, 2.0, 3.0])
        samples = list(iter_cci(candles, period=3))
        assert [s.timestamp for s in samples] == [c.open_time for c in candles]

    def test_latest_cci(self):
        assert latest_cci(_series([1.0, 2.0, 3.0]), period=3) == pytest.approx(100.0)
