"""Signal monitor — polling loop for one live CCI alert config.

Fetches the recent candle window from Binance, evaluates it and hands any
entry alert to the configured sinks.  No orders are placed.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional, Union

from ccitrade.config import Config
from ccitrade.errors import DataSourceError
from ccitrade.market.binance_client import BinanceClient
from ccitrade.models.market_signal import MarketSignal
from ccitrade.models.signal_config import SignalConfig
from ccitrade.repos.signal_repo import SignalRepo
from ccitrade.strategy.live import evaluate_live_signal

logger = logging.getLogger("ccitrade.monitor")


# ── Poll states ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PollIdle:
    """No poll in progress."""


@dataclass(frozen=True)
class PollFetching:
    """Candle fetch in flight."""

    started_at: float


@dataclass(frozen=True)
class PollEvaluated:
    """Poll finished; ``signal`` is the alert it produced, if any."""

    finished_at: float
    candle_count: int
    signal: Optional[MarketSignal] = None


@dataclass(frozen=True)
class PollFailed:
    finished_at: float
    error: str


PollState = Union[PollIdle, PollFetching, PollEvaluated, PollFailed]


def describe_poll_state(state: PollState) -> dict:
    """Flatten a poll state for status endpoints."""
    if isinstance(state, PollFetching):
        return {"state": "fetching", "started_at": state.started_at}
    if isinstance(state, PollEvaluated):
        return {
            "state": "evaluated",
            "finished_at": state.finished_at,
            "candle_count": state.candle_count,
            "signal_id": state.signal.signal_id if state.signal else None,
        }
    if isinstance(state, PollFailed):
        return {
            "state": "failed",
            "finished_at": state.finished_at,
            "error": state.error,
        }
    return {"state": "idle"}


class SignalMonitor:
    """Polls the market for one ``SignalConfig`` and emits alerts.

    Args:
        config: Application configuration (interval floor, candle limit).
        client: A ``BinanceClient`` (or compatible duck-type / mock).
        signal_config: The monitor definition.
        signal_repo: Optional repository receiving every alert.
        on_signal: Optional callback receiving every alert.
    """

    def __init__(
        self,
        config: Config,
        client: BinanceClient,
        signal_config: SignalConfig,
        signal_repo: Optional[SignalRepo] = None,
        on_signal: Optional[Callable[[MarketSignal], None]] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._signal_config = signal_config
        self._signal_repo = signal_repo
        self._on_signal = on_signal
        self._running: bool = False
        self._poll_count: int = 0
        self._signal_count: int = 0
        self._last_alert_time: Optional[int] = None
        self.poll_state: PollState = PollIdle()

    @property
    def name(self) -> str:
        return self._signal_config.name

    @property
    def signal_config(self) -> SignalConfig:
        return self._signal_config

    @property
    def running(self) -> bool:
        return self._running

    @property
    def poll_count(self) -> int:
        return self._poll_count

    @property
    def signal_count(self) -> int:
        return self._signal_count

    @property
    def interval_seconds(self) -> int:
        """Seconds between polls, never below the configured floor."""
        minutes = max(
            self._signal_config.check_interval,
            self._config.min_check_interval_minutes,
        )
        return minutes * 60

    @property
    def candle_limit(self) -> int:
        return max(
            self._config.signal_candle_limit,
            self._signal_config.settings.cci_length,
        )

    # ── Lifecycle ────────────────────────────────────────────────────────

    def stop(self) -> None:
        """Stop scheduling polls.  A poll already in flight completes."""
        self._running = False

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(self, max_polls: int = 0) -> list[PollState]:
        """Poll until stopped.

        Args:
            max_polls: Stop after this many polls (0 = unlimited).

        Returns:
            The terminal state of every poll, in order.
        """
        self._running = True
        results: list[PollState] = []
        polls = 0

        while self._running:
            polls += 1
            try:
                state = await self.run_once()
            except Exception as exc:
                logger.exception("Monitor '%s' poll %d crashed", self.name, polls)
                state = PollFailed(finished_at=time.time(), error=str(exc))
                self.poll_state = state
            results.append(state)

            if max_polls > 0 and polls >= max_polls:
                break

            # Interruptible sleep, checks _running every second
            for _ in range(self.interval_seconds):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        return results

    # ── Single poll ──────────────────────────────────────────────────────

    async def run_once(self) -> PollState:
        """Fetch, evaluate and emit once.

        A ``DataSourceError`` ends the poll as ``PollFailed``; the next
        attempt waits for the regular interval.
        """
        cfg = self._signal_config
        settings = cfg.settings
        self._poll_count += 1
        self.poll_state = PollFetching(started_at=time.time())

        try:
            candles = await self._client.fetch_candles(
                settings.symbol, settings.timeframe, self.candle_limit,
            )
        except DataSourceError as exc:
            logger.warning("Monitor '%s' fetch failed: %s", self.name, exc)
            self.poll_state = PollFailed(finished_at=time.time(), error=str(exc))
            return self.poll_state

        if len(candles) < settings.cci_length:
            error = (
                f"Need at least {settings.cci_length} candles, "
                f"got {len(candles)}"
            )
            logger.warning("Monitor '%s': %s", self.name, error)
            self.poll_state = PollFailed(finished_at=time.time(), error=error)
            return self.poll_state

        signal = evaluate_live_signal(
            settings, candles, config_id=cfg.config_id, username=cfg.username,
        )
        if signal is not None and signal.timestamp == self._last_alert_time:
            logger.debug(
                "Monitor '%s': candle %d already alerted", self.name, signal.timestamp,
            )
            signal = None

        if signal is not None:
            self._emit(signal)

        self.poll_state = PollEvaluated(
            finished_at=time.time(), candle_count=len(candles), signal=signal,
        )
        return self.poll_state

    def _emit(self, signal: MarketSignal) -> None:
        self._last_alert_time = signal.timestamp
        self._signal_count += 1
        logger.info(
            "Monitor '%s': %s signal @ %.4f (CCI %.1f)",
            self.name, signal.direction.value, signal.price, signal.cci_value,
        )
        if self._signal_repo is not None:
            self._signal_repo.insert_signal(signal)
        if self._on_signal is not None:
            self._on_signal(signal)
