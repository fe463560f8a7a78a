"""Drawdown tracking — pure math, no I/O.

Tracks peak equity, current drawdown percentage and the deepest
peak-to-trough decline seen so far.
"""

from collections.abc import Iterable


class DrawdownTracker:
    """Tracks equity peaks and computes drawdown metrics.

    Args:
        initial_equity: Starting equity (the seed money of a backtest).
    """

    def __init__(self, initial_equity: float) -> None:
        if initial_equity <= 0:
            raise ValueError(
                f"initial_equity must be positive, got {initial_equity}"
            )
        self._peak_equity: float = initial_equity
        self._current_equity: float = initial_equity
        self._max_drawdown_pct: float = 0.0

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> None:
        """Update with the latest equity value.

        If *equity* exceeds the current peak, the peak is raised.
        """
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        dd = self.drawdown_pct
        if dd > self._max_drawdown_pct:
            self._max_drawdown_pct = dd

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def current_equity(self) -> float:
        """Most recently recorded equity."""
        return self._current_equity

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown as a percentage of peak equity."""
        if self._peak_equity <= 0:
            return 0.0
        return (
            (self._peak_equity - self._current_equity) / self._peak_equity
        ) * 100.0

    @property
    def max_drawdown_pct(self) -> float:
        """Largest drawdown percentage recorded."""
        return self._max_drawdown_pct


def max_drawdown_pct(equity_curve: Iterable[float]) -> float:
    """Largest peak-to-trough decline of *equity_curve*, in percent.

    The first point seeds the tracker.  An empty curve returns ``0.0``.
    """
    points = iter(equity_curve)
    first = next(points, None)
    if first is None:
        return 0.0
    tracker = DrawdownTracker(first)
    for equity in points:
        tracker.update(equity)
    return tracker.max_drawdown_pct
