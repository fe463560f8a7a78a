"""Market data models — Binance kline payloads mapped to ``CandleData``."""

from ccitrade.errors import DataSourceError
from ccitrade.strategy.models import CandleData

# Binance caps ``/api/v3/klines`` at this many rows per request
MAX_KLINES_PER_REQUEST = 1000


def parse_kline(row: list) -> CandleData:
    """Convert one Binance kline array into a ``CandleData``.

    Binance returns ``[openTime, open, high, low, close, volume, closeTime,
    ...]`` with prices as decimal strings.
    """
    try:
        return CandleData(
            open_time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )
    except (IndexError, TypeError, ValueError) as exc:
        raise DataSourceError(f"Malformed kline row: {row!r}") from exc
