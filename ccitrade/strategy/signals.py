"""Entry signal detection — breakout → recovery state machine. Pure, no I/O.

Each direction runs its own two-state machine over the CCI series:

* **LONG** watches the negative side.  ``IDLE`` → ``BREACHED`` once CCI
  falls to ``-breakout_threshold`` or below.  While breached, CCI climbing
  back to ``-entry_threshold`` or above fires a LONG signal and resets to
  ``IDLE``.
* **SHORT** is the mirror image on the positive side.

A breached detector stays breached until the entry threshold recovers;
there is no timeout and no neutral-zone reset.
"""

import math
from collections.abc import Iterable, Iterator, Sequence
from enum import Enum

from ccitrade.strategy.models import CandleData, Direction, EntrySignal, IndicatorSample
from ccitrade.strategy.settings import StrategySettings


class DetectorState(str, Enum):
    IDLE = "IDLE"
    BREACHED = "BREACHED"


def advance(
    state: DetectorState,
    direction: Direction,
    cci: float,
    entry_threshold: float,
    breakout_threshold: float,
) -> tuple[DetectorState, bool]:
    """Apply one CCI value to a detector state.

    Returns ``(new_state, fired)``.  NaN values leave the state untouched.
    """
    if math.isnan(cci):
        return state, False

    if direction is Direction.LONG:
        breached = cci <= -breakout_threshold
        recovered = cci >= -entry_threshold
    else:
        breached = cci >= breakout_threshold
        recovered = cci <= entry_threshold

    if state is DetectorState.IDLE:
        if breached:
            return DetectorState.BREACHED, False
        return DetectorState.IDLE, False

    if recovered:
        return DetectorState.IDLE, True
    return DetectorState.BREACHED, False


class SignalDetector:
    """One direction's breakout → recovery detector.

    Args:
        direction: ``Direction.LONG`` or ``Direction.SHORT``.
        entry_threshold: CCI magnitude whose recovery fires the signal.
        breakout_threshold: CCI magnitude that arms the detector.
    """

    def __init__(
        self,
        direction: Direction,
        entry_threshold: float,
        breakout_threshold: float,
    ) -> None:
        self.direction = direction
        self._entry = entry_threshold
        self._breakout = breakout_threshold
        self.state = DetectorState.IDLE

    @classmethod
    def from_settings(
        cls, direction: Direction, settings: StrategySettings,
    ) -> "SignalDetector":
        return cls(direction, settings.entry_threshold, settings.breakout_threshold)

    def update(self, cci: float) -> bool:
        """Feed one CCI value; return ``True`` if a signal fires."""
        self.state, fired = advance(
            self.state, self.direction, cci, self._entry, self._breakout,
        )
        return fired

    def reset(self) -> None:
        self.state = DetectorState.IDLE


def signal_reason(direction: Direction, cci: float, settings: StrategySettings) -> str:
    if direction is Direction.LONG:
        return (
            f"CCI recovered to {cci:.1f} (>= -{settings.entry_threshold:g}) "
            f"after breaking -{settings.breakout_threshold:g}, oversold recovery"
        )
    return (
        f"CCI fell back to {cci:.1f} (<= {settings.entry_threshold:g}) "
        f"after breaking {settings.breakout_threshold:g}, overbought recovery"
    )


def detect_signals(
    candles: Sequence[CandleData],
    samples: Iterable[IndicatorSample],
    settings: StrategySettings,
) -> Iterator[EntrySignal]:
    """Yield every entry signal over the series, in candle order.

    Both directions run independently over the same CCI series.  When
    both would fire on one candle (impossible with valid thresholds) LONG
    is yielded first.
    """
    detectors = [
        SignalDetector.from_settings(Direction.LONG, settings),
        SignalDetector.from_settings(Direction.SHORT, settings),
    ]
    for i, (candle, sample) in enumerate(zip(candles, samples)):
        for detector in detectors:
            if detector.update(sample.cci_value):
                yield EntrySignal(
                    direction=detector.direction,
                    index=i,
                    timestamp=candle.open_time,
                    price=candle.close,
                    cci_value=sample.cci_value,
                    reason=signal_reason(detector.direction, sample.cci_value, settings),
                )
