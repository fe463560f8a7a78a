"""Backtest run repository — persists backtest results to SQLite."""

import json
from datetime import datetime, timezone
from typing import Optional

from ccitrade.backtest.engine import BacktestResult
from ccitrade.repos.db import get_connection


class BacktestRepo:
    """Data access layer for the ``backtest_runs`` table.

    Summary columns are queryable; the full result document is kept in
    ``result_json`` so a run can be loaded back as a ``BacktestResult``.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert_run(self, result: BacktestResult) -> int:
        """Persist a backtest run.  Returns the row id."""
        stats = result.stats
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO backtest_runs
                    (symbol, timeframe, start_time, end_time, candle_count,
                     total_positions, win_rate, profit_factor, max_drawdown,
                     total_profit, total_fees, final_seed_money, cancelled,
                     result_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.settings.symbol,
                    result.settings.timeframe,
                    result.start_time,
                    result.end_time,
                    result.candle_count,
                    stats.total_positions,
                    stats.win_rate,
                    stats.profit_factor,
                    stats.max_drawdown,
                    stats.total_profit,
                    stats.total_fees,
                    stats.final_seed_money,
                    int(result.cancelled),
                    json.dumps(result.to_document()),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def get_runs(self, limit: int = 10) -> list[dict]:
        """Return recent backtest run summaries (without the full result)."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM backtest_runs ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
            runs = []
            for r in rows:
                run = dict(r)
                run.pop("result_json")
                run["cancelled"] = bool(run["cancelled"])
                runs.append(run)
            return runs
        finally:
            conn.close()

    def get_result(self, run_id: int) -> Optional[BacktestResult]:
        """Load the full ``BacktestResult`` of a stored run."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT result_json FROM backtest_runs WHERE id = ?",
                (run_id,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return BacktestResult.from_document(json.loads(row["result_json"]))
