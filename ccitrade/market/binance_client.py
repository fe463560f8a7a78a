"""Binance public REST API async client.

Read-only market data: kline (candlestick) history for backtests and the
recent window evaluated by live signal monitors.  No account access.
"""

import asyncio
import logging
from typing import Optional

import httpx

from ccitrade.config import Config
from ccitrade.errors import DataSourceError
from ccitrade.market.models import MAX_KLINES_PER_REQUEST, parse_kline
from ccitrade.strategy.models import TIMEFRAME_MILLIS, CandleData

logger = logging.getLogger("ccitrade.market")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {500, 502, 503, 504, 429}


class BinanceClient:
    """Async client wrapping the Binance spot klines endpoint."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.binance_base_url

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors and rate-limits (429).  Any
        failure left after the last attempt, or a non-retryable status, is
        raised as ``DataSourceError``.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        timeout=30.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Binance %s %s returned %d, retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.HTTPStatusError as exc:
                raise DataSourceError(
                    f"Binance {method.upper()} {url} failed: "
                    f"{exc.response.status_code}"
                ) from exc
            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Binance %s %s transport error (%s), retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise DataSourceError(
            f"Binance {method.upper()} {url} failed after {_MAX_RETRIES} attempts"
        ) from last_exc

    # ── Candle data ──────────────────────────────────────────────────────

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        limit: int = 200,
    ) -> list[CandleData]:
        """Fetch the most recent *limit* klines for *symbol*.

        Requests above Binance's per-call cap are split into pages walking
        backwards with ``endTime``.

        Args:
            symbol: e.g. ``"BTCUSDT"``
            interval: one of ``15m 1h 4h 1d 1w``
            limit: number of candles wanted

        Returns:
            List of ``CandleData`` ordered oldest-first.  May be shorter
            than *limit* when the symbol has less history.

        Raises:
            DataSourceError: request failed or the payload was malformed.
        """
        if interval not in TIMEFRAME_MILLIS:
            raise DataSourceError(f"Unsupported interval {interval!r}")
        if limit <= 0:
            return []

        url = f"{self._base_url}/api/v3/klines"
        candles: list[CandleData] = []
        end_time: Optional[int] = None

        while len(candles) < limit:
            params = {
                "symbol": symbol,
                "interval": interval,
                "limit": min(limit - len(candles), MAX_KLINES_PER_REQUEST),
            }
            if end_time is not None:
                params["endTime"] = end_time

            resp = await self._request_with_retry("get", url, params=params)
            try:
                rows = resp.json()
            except ValueError as exc:
                raise DataSourceError(f"Binance returned non-JSON body: {exc}") from exc
            if not isinstance(rows, list):
                raise DataSourceError(f"Unexpected klines payload: {rows!r}")

            page = [parse_kline(r) for r in rows]
            if not page:
                break
            candles = page + candles
            end_time = page[0].open_time - 1
            if len(page) < params["limit"]:
                break

        logger.debug(
            "Fetched %d %s %s candles", len(candles), symbol, interval,
        )
        return candles[-limit:]
