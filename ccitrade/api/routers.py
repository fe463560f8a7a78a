"""Internal API routers — /backtest, /signals, /monitors endpoints.

No business logic, no SQL.  Delegates to the backtest engine, the live
evaluator, repos and the monitor manager.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from ccitrade.backtest.engine import run_backtest
from ccitrade.errors import InsufficientDataError, InvalidConfigurationError
from ccitrade.strategy.live import evaluate_live_signal
from ccitrade.strategy.models import CandleData
from ccitrade.strategy.settings import StrategySettings

logger = logging.getLogger("ccitrade.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_backtest_repo = None   # Set via configure_routers()
_signal_repo = None     # Set via configure_routers()
_monitor_manager = None  # Set via configure_routers()


def configure_routers(
    backtest_repo=None,
    signal_repo=None,
    monitor_manager=None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        backtest_repo: A ``BacktestRepo`` instance (or duck-type for tests).
        signal_repo: A ``SignalRepo`` instance (or duck-type for tests).
        monitor_manager: A ``MonitorManager`` for status queries.
    """
    global _backtest_repo, _signal_repo, _monitor_manager  # noqa: PLW0603
    _backtest_repo = backtest_repo
    _signal_repo = signal_repo
    _monitor_manager = monitor_manager


def _parse_request(body: dict) -> tuple[StrategySettings, list[CandleData]]:
    """Split a ``{"settings": {...}, "candles": [...]}`` body."""
    try:
        settings = StrategySettings.from_document(body.get("settings", {}))
        candles = [CandleData.from_document(c) for c in body.get("candles", [])]
    except InvalidConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=422, detail=f"Malformed candle: {exc}",
        ) from exc
    return settings, candles


# ── Backtest ─────────────────────────────────────────────────────────────


@router.post("/backtest")
async def post_backtest(body: dict):
    """Run a backtest over the posted candles.

    Body: ``{"settings": {...camelCase...}, "candles": [...], "persist": bool}``.
    Returns the full result document plus ``runId`` when persisted.
    """
    settings, candles = _parse_request(body)
    try:
        result = run_backtest(settings, candles)
    except InsufficientDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    doc = result.to_document()
    if body.get("persist") and _backtest_repo is not None:
        doc["runId"] = _backtest_repo.insert_run(result)
    return doc


@router.get("/backtest/runs")
async def get_backtest_runs(limit: int = Query(default=10, ge=1, le=100)):
    """Return recent stored backtest summaries."""
    if _backtest_repo is None:
        return {"runs": []}
    return {"runs": _backtest_repo.get_runs(limit=limit)}


# ── Signals ──────────────────────────────────────────────────────────────


@router.post("/signals/evaluate")
async def post_evaluate_signal(body: dict):
    """Evaluate the newest posted candle for an entry alert.

    Body: ``{"settings": {...}, "candles": [...], "configId": str,
    "username": str}``.  The signal is stored when a repo is configured.
    """
    settings, candles = _parse_request(body)
    try:
        signal = evaluate_live_signal(
            settings,
            candles,
            config_id=str(body.get("configId", "")),
            username=str(body.get("username", "")),
        )
    except InsufficientDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if signal is None:
        return {"signal": None}
    if _signal_repo is not None:
        _signal_repo.insert_signal(signal)
    return {"signal": signal.to_document(), "strength": signal.signal_strength()}


@router.get("/signals")
async def get_signals(
    username: Optional[str] = Query(default=None),
    unread: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=500),
):
    """Return stored signals, newest first."""
    if _signal_repo is None:
        return {"signals": [], "total": 0}
    found = _signal_repo.get_signals(
        username=username, unread_only=unread, limit=limit,
    )
    return {
        "signals": [s.to_document() for s in found["signals"]],
        "total": found["total"],
    }


@router.post("/signals/{signal_id}/read")
async def mark_signal_read(signal_id: str):
    """Flag a stored signal as read."""
    if _signal_repo is None or not _signal_repo.mark_read(signal_id):
        raise HTTPException(status_code=404, detail=f"Unknown signal: {signal_id}")
    return {"signalId": signal_id, "isRead": True}


# ── Monitors ─────────────────────────────────────────────────────────────


@router.get("/monitors")
async def get_monitors():
    """Return status for all running signal monitors."""
    if _monitor_manager is None:
        return {"monitors": {}}
    return _monitor_manager.get_status()


@router.get("/monitors/{name}")
async def get_monitor(name: str):
    """Return status for a single monitor."""
    if _monitor_manager is None:
        raise HTTPException(status_code=404, detail=f"Unknown monitor: {name}")
    status = _monitor_manager.get_status(name)
    if "error" in status:
        raise HTTPException(status_code=404, detail=status["error"])
    return status


@router.post("/monitors/{name}/stop")
async def stop_monitor(name: str):
    """Stop a single monitor after its current poll."""
    if _monitor_manager is None or not _monitor_manager.stop_monitor(name):
        raise HTTPException(status_code=404, detail=f"Unknown monitor: {name}")
    logger.info("Monitor '%s' stopped via API.", name)
    return {"status": "stopped", "monitor": name}
