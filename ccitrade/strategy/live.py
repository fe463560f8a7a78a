"""Live signal evaluation — one stateless check over a fresh candle window.

Detector state is never carried between polls.  Every evaluation replays
both detectors from ``IDLE`` over the fetched window and only reports a
signal that fires on the most recent candle, so repeated polls of an
unchanged window never alert twice for older candles.
"""

from collections.abc import Sequence
from typing import Optional

from ccitrade.errors import InsufficientDataError
from ccitrade.models.market_signal import MarketSignal
from ccitrade.strategy.indicators import iter_cci
from ccitrade.strategy.models import CandleData, EntrySignal
from ccitrade.strategy.settings import StrategySettings
from ccitrade.strategy.signals import detect_signals


def latest_signal(
    settings: StrategySettings, recent_candles: Sequence[CandleData],
) -> Optional[EntrySignal]:
    """Return the entry signal on the last candle of the window, if any."""
    if len(recent_candles) < settings.cci_length:
        raise InsufficientDataError(
            required=settings.cci_length, available=len(recent_candles),
        )
    last_index = len(recent_candles) - 1
    found: Optional[EntrySignal] = None
    samples = iter_cci(recent_candles, settings.cci_length)
    for signal in detect_signals(recent_candles, samples, settings):
        if signal.index == last_index:
            found = signal
            break
    return found


def evaluate_live_signal(
    settings: StrategySettings,
    recent_candles: Sequence[CandleData],
    config_id: str = "",
    username: str = "",
) -> Optional[MarketSignal]:
    """Evaluate the newest candle of *recent_candles* for an entry alert.

    Args:
        settings: Strategy settings of the monitor.
        recent_candles: Most recent candles, oldest first, newest last.
        config_id: Monitor config the alert belongs to.
        username: Owner of the monitor config.

    Returns:
        ``MarketSignal`` when a signal fires on the newest candle, else
        ``None``.

    Raises:
        InsufficientDataError: fewer candles than ``cci_length``.
    """
    signal = latest_signal(settings, recent_candles)
    if signal is None:
        return None
    candle = recent_candles[signal.index]
    return MarketSignal(
        config_id=config_id,
        username=username,
        symbol=settings.symbol,
        timeframe=settings.timeframe,
        direction=signal.direction,
        price=signal.price,
        volume=candle.volume,
        cci_value=signal.cci_value,
        breakout_threshold=settings.breakout_threshold,
        entry_threshold=settings.entry_threshold,
        timestamp=signal.timestamp,
        reason=signal.reason,
    )
