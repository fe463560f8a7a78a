"""Application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
the backtest and monitor modes.
"""

import logging

from fastapi import FastAPI

from ccitrade.api.routers import router

app = FastAPI(title="CCI Trade Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("ccitrade")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import signal
    import sys

    from ccitrade.api.routers import configure_routers
    from ccitrade.config import load_config, load_signal_configs
    from ccitrade.errors import CCITradeError
    from ccitrade.market.binance_client import BinanceClient
    from ccitrade.monitor_manager import MonitorManager
    from ccitrade.repos.backtest_repo import BacktestRepo
    from ccitrade.repos.db import init_db
    from ccitrade.repos.signal_repo import SignalRepo
    from ccitrade.strategy.models import TEST_PERIOD_DAYS, TIMEFRAME_MILLIS

    parser = argparse.ArgumentParser(description="CCI averaging-down engine")
    parser.add_argument(
        "--mode",
        choices=["backtest", "monitor"],
        default="monitor",
        help="Run mode (default: monitor)",
    )
    parser.add_argument("--symbol", default="BTCUSDT", help="Backtest symbol")
    parser.add_argument(
        "--timeframe",
        choices=list(TIMEFRAME_MILLIS),
        default="4h",
        help="Backtest timeframe",
    )
    parser.add_argument(
        "--period",
        choices=list(TEST_PERIOD_DAYS),
        default="1y",
        help="Backtest history length",
    )
    parser.add_argument(
        "--seed", type=float, default=10000.0, help="Backtest seed money",
    )
    parser.add_argument(
        "--no-api",
        action="store_true",
        help="Run monitors without the API server",
    )
    args = parser.parse_args(argv)

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    init_db(config.db_path)

    client = BinanceClient(config)
    backtest_repo = BacktestRepo(config.db_path)
    signal_repo = SignalRepo(config.db_path)

    if args.mode == "backtest":
        try:
            asyncio.run(_run_backtest(client, backtest_repo, args))
        except CCITradeError as exc:
            logger.error("Backtest failed: %s", exc)
            sys.exit(1)
        return

    signal_configs = load_signal_configs(config.signal_config_path)
    manager = MonitorManager(
        config=config,
        client=client,
        signal_configs=signal_configs,
        signal_repo=signal_repo,
    )
    manager.build_monitors()
    configure_routers(
        backtest_repo=backtest_repo,
        signal_repo=signal_repo,
        monitor_manager=manager,
    )

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping monitors.")
        manager.stop_all()

    signal.signal(signal.SIGINT, handle_shutdown)

    if args.no_api:
        asyncio.run(_run_monitors_only(manager))
    else:
        asyncio.run(_run_monitor_manager(manager, config.api_port))


async def _run_monitor_manager(manager, port: int = 8080) -> None:
    """Start the API server and all signal monitors concurrently."""
    import asyncio

    import uvicorn

    logger.info(
        "Starting API on port %d with %d monitor(s).",
        port, len(manager.monitor_names),
    )

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    async def _run_monitors():
        await manager.run_all()

    results = await asyncio.gather(
        server.serve(),
        _run_monitors(),
        return_exceptions=True,
    )
    logger.info("Stopped. Results: %s", results)


async def _run_monitors_only(manager) -> None:
    """Run signal monitors without starting the API server."""
    logger.info("Starting %d monitor(s) (no API).", len(manager.monitor_names))
    await manager.run_all()
    logger.info("Monitors stopped.")


async def _run_backtest(client, backtest_repo, args) -> None:
    """Fetch historical candles from Binance, backtest, persist, print."""
    from ccitrade.backtest.engine import run_backtest
    from ccitrade.backtest.stats import format_summary
    from ccitrade.strategy.models import candles_for_period
    from ccitrade.strategy.settings import StrategySettings

    settings = StrategySettings(
        symbol=args.symbol,
        timeframe=args.timeframe,
        test_period=args.period,
        seed_money=args.seed,
    )
    # Extra cci_length candles cover the CCI warm-up window
    limit = candles_for_period(settings.test_period, settings.timeframe)
    candles = await client.fetch_candles(
        settings.symbol, settings.timeframe, limit + settings.cci_length,
    )
    result = run_backtest(settings, candles)
    run_id = backtest_repo.insert_run(result)
    logger.info("Backtest stored as run #%d", run_id)
    print(format_summary(result.stats))


if __name__ == "__main__":
    _run_cli()
