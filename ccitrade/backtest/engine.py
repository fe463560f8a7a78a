"""Backtest engine — replays historical candles through the CCI strategy.

Iterates candle data chronologically, running both signal detectors and
simulating one position at a time.  No real orders are placed.
"""

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from ccitrade.backtest.stats import BacktestStats, calculate_stats, equity_curve
from ccitrade.errors import InsufficientDataError
from ccitrade.position.manager import PositionManager
from ccitrade.position.models import Position
from ccitrade.strategy.indicators import calculate_cci
from ccitrade.strategy.models import CandleData, Direction, EntrySignal
from ccitrade.strategy.settings import StrategySettings
from ccitrade.strategy.signals import SignalDetector, signal_reason

logger = logging.getLogger("ccitrade.backtest")


@dataclass(frozen=True)
class BacktestResult:
    """Outcome of one backtest run, handed to the caller as a value."""

    settings: StrategySettings
    positions: tuple[Position, ...]
    equity_curve: tuple[float, ...]
    stats: BacktestStats
    candle_count: int
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    cancelled: bool = False
    skipped_signals: int = field(default=0)

    def to_document(self) -> dict:
        return {
            "settings": self.settings.to_document(),
            "positions": [p.to_document() for p in self.positions],
            "equityCurve": list(self.equity_curve),
            "stats": self.stats.to_document(),
            "candleCount": self.candle_count,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "cancelled": self.cancelled,
            "skippedSignals": self.skipped_signals,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "BacktestResult":
        return cls(
            settings=StrategySettings.from_document(doc["settings"]),
            positions=tuple(Position.from_document(p) for p in doc["positions"]),
            equity_curve=tuple(doc.get("equityCurve", ())),
            stats=BacktestStats.from_document(doc["stats"]),
            candle_count=int(doc.get("candleCount", 0)),
            start_time=doc.get("startTime"),
            end_time=doc.get("endTime"),
            cancelled=bool(doc.get("cancelled", False)),
            skipped_signals=int(doc.get("skippedSignals", 0)),
        )


class BacktestEngine:
    """Simulates the CCI averaging-down strategy on historical candles.

    Args:
        settings: Validated strategy settings.
    """

    def __init__(self, settings: StrategySettings) -> None:
        self._settings = settings
        self._manager = PositionManager(settings)

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        candles: Sequence[CandleData],
        cancel_event: Optional[threading.Event] = None,
    ) -> BacktestResult:
        """Execute a full backtest.

        Args:
            candles: Chronological candles (oldest first).
            cancel_event: Optional event checked once per candle.  When set,
                the run stops and any open position is force-closed at the
                last processed candle.

        Returns:
            ``BacktestResult`` with the closed positions, equity curve and
            summary statistics.

        Raises:
            InsufficientDataError: fewer candles than ``cci_length``.
        """
        settings = self._settings
        if len(candles) < settings.cci_length:
            raise InsufficientDataError(
                required=settings.cci_length, available=len(candles),
            )

        cci = calculate_cci(candles, settings.cci_length)
        detectors = [
            SignalDetector.from_settings(Direction.LONG, settings),
            SignalDetector.from_settings(Direction.SHORT, settings),
        ]

        logger.info(
            "Backtest %s %s: %d candles, CCI(%d) %g/%g",
            settings.symbol, settings.timeframe, len(candles),
            settings.cci_length, settings.entry_threshold,
            settings.breakout_threshold,
        )

        closed: list[Position] = []
        open_position: Optional[Position] = None
        next_id = 1
        skipped = 0
        cancelled = False
        last_index = -1

        for i, candle in enumerate(candles):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.info("Backtest cancelled at candle %d", i)
                break
            last_index = i
            value = cci[i]

            # Detectors always advance, even while a position is open
            fired = [d.direction for d in detectors if d.update(value)]

            # Manage the open position
            if open_position is not None:
                self._manager.on_candle(open_position, candle, value)
                if not open_position.is_open:
                    closed.append(open_position)
                    open_position = None
                skipped += len(fired)
                continue

            # Open a new position on a fresh signal
            if not fired:
                continue
            direction = fired[0]
            skipped += len(fired) - 1
            signal = EntrySignal(
                direction=direction,
                index=i,
                timestamp=candle.open_time,
                price=candle.close,
                cci_value=value,
                reason=signal_reason(direction, value, settings),
            )
            open_position = self._manager.open_position(next_id, signal)
            next_id += 1
            logger.debug(
                "Entry %s @ %.4f (CCI %.1f)", direction.value, candle.close, value,
            )

        # Close any remaining position at the last processed candle
        if open_position is not None:
            last = candles[last_index]
            self._manager.force_close(open_position, last, cci[last_index])
            closed.append(open_position)

        stats = calculate_stats(closed, settings.seed_money)
        logger.info(
            "Backtest complete: %d positions, profit %.2f, win rate %.1f%%",
            stats.total_positions, stats.total_profit, stats.win_rate,
        )
        processed = candles[: last_index + 1]
        return BacktestResult(
            settings=settings,
            positions=tuple(closed),
            equity_curve=tuple(equity_curve(closed, settings.seed_money)),
            stats=stats,
            candle_count=len(processed),
            start_time=processed[0].open_time if processed else None,
            end_time=processed[-1].open_time if processed else None,
            cancelled=cancelled,
            skipped_signals=skipped,
        )


def run_backtest(
    settings: StrategySettings,
    candles: Sequence[CandleData],
    cancel_event: Optional[threading.Event] = None,
) -> BacktestResult:
    """Run one backtest of *settings* over *candles*."""
    return BacktestEngine(settings).run(candles, cancel_event=cancel_event)
