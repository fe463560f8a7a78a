"""Signal repository — SQLite CRUD for the market_signals table."""

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from ccitrade.models.market_signal import MarketSignal
from ccitrade.repos.db import get_connection
from ccitrade.strategy.models import Direction


class SignalRepo:
    """Data access layer for market signal records.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_signal(self, signal: MarketSignal) -> str:
        """Insert a new signal and return its ``signal_id``."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO market_signals
                    (signal_id, config_id, username, symbol, timeframe,
                     direction, price, volume, cci_value, breakout_threshold,
                     entry_threshold, timestamp, reason, is_read, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    signal.signal_id, signal.config_id, signal.username,
                    signal.symbol, signal.timeframe, signal.direction.value,
                    signal.price, signal.volume, signal.cci_value,
                    signal.breakout_threshold, signal.entry_threshold,
                    signal.timestamp, signal.reason, int(signal.is_read),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return signal.signal_id
        finally:
            conn.close()

    def mark_read(self, signal_id: str) -> bool:
        """Flag a signal as read.  Returns ``False`` if it does not exist."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                "UPDATE market_signals SET is_read = 1 WHERE signal_id = ?",
                (signal_id,),
            )
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_signals(
        self,
        username: Optional[str] = None,
        unread_only: bool = False,
        limit: int = 50,
    ) -> dict:
        """Return recent signals, newest first.

        Returns:
            ``{"signals": [MarketSignal, ...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            conditions: list[str] = []
            params: list = []

            if username:
                conditions.append("username = ?")
                params.append(username)
            if unread_only:
                conditions.append("is_read = 0")

            where_clause = ""
            if conditions:
                where_clause = "WHERE " + " AND ".join(conditions)

            rows = conn.execute(
                f"SELECT * FROM market_signals {where_clause} "
                "ORDER BY timestamp DESC, created_at DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM market_signals {where_clause}",
                params,
            ).fetchone()[0]

            return {"signals": [_row_to_signal(r) for r in rows], "total": total}
        finally:
            conn.close()

    def get_signal(self, signal_id: str) -> Optional[MarketSignal]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT * FROM market_signals WHERE signal_id = ?",
                (signal_id,),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_signal(row) if row is not None else None


def _row_to_signal(row: sqlite3.Row) -> MarketSignal:
    return MarketSignal(
        signal_id=row["signal_id"],
        config_id=row["config_id"],
        username=row["username"],
        symbol=row["symbol"],
        timeframe=row["timeframe"],
        direction=Direction(row["direction"]),
        price=row["price"],
        volume=row["volume"],
        cci_value=row["cci_value"],
        breakout_threshold=row["breakout_threshold"],
        entry_threshold=row["entry_threshold"],
        timestamp=row["timestamp"],
        reason=row["reason"],
        is_read=bool(row["is_read"]),
    )
