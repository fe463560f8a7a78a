"""Tests for ccitrade.market — Binance client with mocked HTTP responses."""

import httpx
import pytest

from ccitrade.config import Config
from ccitrade.errors import DataSourceError
from ccitrade.market import binance_client as client_module
from ccitrade.market.binance_client import BinanceClient
from ccitrade.market.models import parse_kline
from ccitrade.strategy.models import CandleData


def _make_config(**overrides) -> Config:
    defaults = dict(
        binance_base_url="https://api.binance.test",
        db_path=":memory:",
        log_level="WARNING",
        api_port=8080,
        min_check_interval_minutes=15,
        signal_candle_limit=200,
        signal_config_path="signals.json",
    )
    defaults.update(overrides)
    return Config(**defaults)


_HOUR = 3_600_000


def _kline(open_time: int, close: float = 100.0) -> list:
    return [
        open_time, "99.5", "101.0", "99.0", f"{close:.2f}", "12.5",
        open_time + _HOUR - 1, "1250.0", 42, "6.0", "600.0", "0",
    ]


def _klines(start: int, count: int) -> list[list]:
    return [_kline(start + i * _HOUR) for i in range(count)]


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    """Skip retry delays."""
    monkeypatch.setattr(client_module, "_RETRY_BASE_DELAY", 0.0)


# ── Parsing ──────────────────────────────────────────────────────────────


def test_parse_kline():
    candle = parse_kline(_kline(1_700_000_000_000, close=101.25))
    assert candle == CandleData(
        open_time=1_700_000_000_000,
        open=99.5, high=101.0, low=99.0, close=101.25, volume=12.5,
    )


def test_parse_kline_malformed():
    with pytest.raises(DataSourceError, match="Malformed"):
        parse_kline(["oops"])


# ── fetch_candles ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fetch_candles(monkeypatch):
    """Klines parsed oldest-first with the request params Binance expects."""
    captured = {}

    async def _mock_get(self, url, *, params=None, timeout=None):
        captured["url"] = url
        captured["params"] = dict(params)
        return httpx.Response(200, json=_klines(0, 3), request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    candles = await BinanceClient(_make_config()).fetch_candles("BTCUSDT", "1h", 3)
    assert [c.open_time for c in candles] == [0, _HOUR, 2 * _HOUR]
    assert captured["url"] == "https://api.binance.test/api/v3/klines"
    assert captured["params"] == {"symbol": "BTCUSDT", "interval": "1h", "limit": 3}


@pytest.mark.asyncio
async def test_fetch_candles_pages_backwards(monkeypatch):
    """1500 candles need two requests; the second ends before the first page."""
    calls = []
    newest_start = 10_000 * _HOUR

    async def _mock_get(self, url, *, params=None, timeout=None):
        calls.append(dict(params))
        if "endTime" not in params:
            rows = _klines(newest_start - 999 * _HOUR, 1000)
        else:
            end = params["endTime"]
            first = end + 1 - params["limit"] * _HOUR
            rows = _klines(first, params["limit"])
        return httpx.Response(200, json=rows, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    candles = await BinanceClient(_make_config()).fetch_candles("BTCUSDT", "1h", 1500)
    assert len(candles) == 1500
    assert len(calls) == 2
    assert calls[0]["limit"] == 1000
    assert calls[1]["limit"] == 500
    assert calls[1]["endTime"] == newest_start - 999 * _HOUR - 1
    times = [c.open_time for c in candles]
    assert times == sorted(times)
    assert len(set(times)) == 1500
    assert times[-1] == newest_start


@pytest.mark.asyncio
async def test_fetch_candles_short_history(monkeypatch):
    """A symbol with less history than requested returns what exists."""
    async def _mock_get(self, url, *, params=None, timeout=None):
        rows = _klines(0, 5) if "endTime" not in params else []
        return httpx.Response(200, json=rows, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    candles = await BinanceClient(_make_config()).fetch_candles("NEWUSDT", "1d", 50)
    assert len(candles) == 5


@pytest.mark.asyncio
async def test_retries_on_server_error(monkeypatch):
    attempts = []

    async def _mock_get(self, url, *, params=None, timeout=None):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503, request=httpx.Request("GET", url))
        return httpx.Response(200, json=_klines(0, 2), request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    candles = await BinanceClient(_make_config()).fetch_candles("BTCUSDT", "1h", 2)
    assert len(candles) == 2
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_retries_exhausted_raises(monkeypatch):
    async def _mock_get(self, url, *, params=None, timeout=None):
        return httpx.Response(429, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(DataSourceError, match="after 3 attempts"):
        await BinanceClient(_make_config()).fetch_candles("BTCUSDT", "1h", 2)


@pytest.mark.asyncio
async def test_transport_error_raises_data_source_error(monkeypatch):
    async def _mock_get(self, url, *, params=None, timeout=None):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(DataSourceError):
        await BinanceClient(_make_config()).fetch_candles("BTCUSDT", "1h", 2)


@pytest.mark.asyncio
async def test_client_error_not_retried(monkeypatch):
    attempts = []

    async def _mock_get(self, url, *, params=None, timeout=None):
        attempts.append(1)
        return httpx.Response(
            400, json={"code": -1121, "msg": "Invalid symbol."},
            request=httpx.Request("GET", url),
        )

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(DataSourceError, match="400"):
        await BinanceClient(_make_config()).fetch_candles("NOPE", "1h", 2)
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_unsupported_interval():
    with pytest.raises(DataSourceError, match="interval"):
        await BinanceClient(_make_config()).fetch_candles("BTCUSDT", "3m", 2)
