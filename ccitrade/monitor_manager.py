"""MonitorManager — orchestrates multiple SignalMonitor tasks concurrently.

Each active ``SignalConfig`` gets its own ``SignalMonitor``.  Monitors run
as concurrent ``asyncio`` tasks and can be stopped individually or en
masse.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from ccitrade.config import Config
from ccitrade.market.binance_client import BinanceClient
from ccitrade.models.market_signal import MarketSignal
from ccitrade.models.signal_config import SignalConfig
from ccitrade.monitor import PollFailed, PollState, SignalMonitor, describe_poll_state
from ccitrade.repos.signal_repo import SignalRepo

logger = logging.getLogger("ccitrade.monitor_manager")


class MonitorManager:
    """Lifecycle manager for one-or-many signal monitors.

    Args:
        config:  Global ``Config`` loaded from ``.env``.
        client:  Shared ``BinanceClient`` instance.
        signal_configs: Monitor definitions; inactive ones are ignored.
        signal_repo: Optional repository every monitor writes alerts to.
        on_signal: Optional callback every monitor calls per alert.
    """

    def __init__(
        self,
        config: Config,
        client: BinanceClient,
        signal_configs: list[SignalConfig],
        signal_repo: Optional[SignalRepo] = None,
        on_signal: Optional[Callable[[MarketSignal], None]] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._signal_configs = [c for c in signal_configs if c.is_active]
        self._signal_repo = signal_repo
        self._on_signal = on_signal
        self._monitors: dict[str, SignalMonitor] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def monitors(self) -> dict[str, SignalMonitor]:
        """Map of monitor-name → ``SignalMonitor``."""
        return dict(self._monitors)

    @property
    def monitor_names(self) -> list[str]:
        return list(self._monitors.keys())

    def build_monitors(self) -> None:
        """Instantiate a ``SignalMonitor`` per active config.

        Call **once** before :meth:`run_all`.
        """
        for cfg in self._signal_configs:
            monitor = SignalMonitor(
                config=self._config,
                client=self._client,
                signal_config=cfg,
                signal_repo=self._signal_repo,
                on_signal=self._on_signal,
            )
            self._monitors[monitor.name] = monitor
            logger.info(
                "Registered monitor '%s' → every %ds",
                monitor.name, monitor.interval_seconds,
            )

    async def run_all(self, max_polls: int = 0) -> dict[str, list[PollState]]:
        """Launch all monitors concurrently and wait for them to finish.

        Returns:
            ``{monitor_name: [poll_states]}`` for every monitor.
        """
        if not self._monitors:
            self.build_monitors()

        tasks = {
            name: asyncio.create_task(mon.run(max_polls=max_polls))
            for name, mon in self._monitors.items()
        }
        self._tasks = tasks

        results: dict[str, list[PollState]] = {}
        for name, task in tasks.items():
            try:
                results[name] = await task
            except asyncio.CancelledError:
                logger.info("Monitor '%s' cancelled.", name)
                results[name] = []
            except Exception as exc:  # pragma: no cover
                logger.error("Monitor '%s' crashed: %s", name, exc)
                results[name] = [PollFailed(finished_at=0.0, error=str(exc))]

        return results

    def stop_all(self) -> None:
        """Signal every monitor to stop after its current poll."""
        for name, monitor in self._monitors.items():
            monitor.stop()
            logger.info("Stop signal sent to monitor '%s'.", name)

    def stop_monitor(self, name: str) -> bool:
        """Stop a single monitor by name.  Returns ``False`` if unknown."""
        monitor = self._monitors.get(name)
        if monitor is None:
            return False
        monitor.stop()
        logger.info("Stop signal sent to monitor '%s'.", name)
        return True

    def get_status(self, name: Optional[str] = None) -> dict:
        """Return aggregated or per-monitor status.

        Args:
            name: If given, return status for that monitor only.
        """
        if name is not None:
            monitor = self._monitors.get(name)
            if monitor is None:
                return {"error": f"Unknown monitor: {name}"}
            return {"monitor_name": name, **self._describe(monitor)}

        return {
            "monitors": {
                n: self._describe(m) for n, m in self._monitors.items()
            }
        }

    @staticmethod
    def _describe(monitor: SignalMonitor) -> dict:
        cfg = monitor.signal_config
        return {
            "symbol": cfg.symbol,
            "timeframe": cfg.timeframe,
            "running": monitor.running,
            "interval_seconds": monitor.interval_seconds,
            "poll_count": monitor.poll_count,
            "signal_count": monitor.signal_count,
            "poll": describe_poll_state(monitor.poll_state),
        }
