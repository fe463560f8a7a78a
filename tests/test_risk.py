"""Tests for drawdown tracking."""

import pytest

from ccitrade.risk.drawdown import DrawdownTracker, max_drawdown_pct


class TestDrawdownTracker:
    def test_initial_state(self):
        dd = DrawdownTracker(initial_equity=1000.0)
        assert dd.peak_equity == 1000.0
        assert dd.drawdown_pct == 0.0

    def test_drawdown_from_peak(self):
        dd = DrawdownTracker(initial_equity=1000.0)
        dd.update(1200.0)
        dd.update(900.0)
        assert dd.peak_equity == 1200.0
        assert dd.drawdown_pct == pytest.approx(25.0)

    def test_max_drawdown_survives_recovery(self):
        dd = DrawdownTracker(initial_equity=1000.0)
        dd.update(800.0)
        dd.update(1100.0)
        assert dd.drawdown_pct == 0.0
        assert dd.max_drawdown_pct == pytest.approx(20.0)

    def test_rejects_non_positive_equity(self):
        with pytest.raises(ValueError, match="initial_equity"):
            DrawdownTracker(initial_equity=0)


class TestMaxDrawdownPct:
    def test_curve(self):
        assert max_drawdown_pct([100, 120, 90, 130, 117]) == pytest.approx(25.0)

    def test_monotonic_curve(self):
        assert max_drawdown_pct([100, 101, 102]) == 0.0

    def test_empty(self):
        assert max_drawdown_pct([]) == 0.0
