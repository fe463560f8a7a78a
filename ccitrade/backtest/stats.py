"""Backtest statistics — pure functions over completed positions."""

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Optional

from ccitrade.position.models import Position
from ccitrade.risk.drawdown import max_drawdown_pct


@dataclass(frozen=True)
class BacktestStats:
    """Summary metrics of one backtest run.

    ``win_rate`` and ``max_drawdown`` are percentages.  ``profit_factor``
    is ``None`` when there is no gross loss to divide by.
    """

    total_positions: int = 0
    completed_positions: int = 0
    winning_positions: int = 0
    losing_positions: int = 0
    total_trades: int = 0
    total_profit: float = 0.0
    total_fees: float = 0.0
    win_rate: float = 0.0
    profit_factor: Optional[float] = None
    avg_holding_time: float = 0.0  # hours
    max_drawdown: float = 0.0
    max_stage_reached: int = 0
    final_seed_money: float = 0.0

    def to_document(self) -> dict:
        return {_CAMEL[k]: v for k, v in asdict(self).items()}

    @classmethod
    def from_document(cls, doc: dict) -> "BacktestStats":
        reverse = {v: k for k, v in _CAMEL.items()}
        return cls(**{reverse[k]: v for k, v in doc.items() if k in reverse})


_CAMEL = {
    "total_positions": "totalPositions",
    "completed_positions": "completedPositions",
    "winning_positions": "winningPositions",
    "losing_positions": "losingPositions",
    "total_trades": "totalTrades",
    "total_profit": "totalProfit",
    "total_fees": "totalFees",
    "win_rate": "winRate",
    "profit_factor": "profitFactor",
    "avg_holding_time": "avgHoldingTime",
    "max_drawdown": "maxDrawdown",
    "max_stage_reached": "maxStageReached",
    "final_seed_money": "finalSeedMoney",
}


def calculate_stats(
    positions: Sequence[Position], seed_money: float,
) -> BacktestStats:
    """Compute summary statistics from closed backtest positions.

    Win/loss counts are taken over completed positions (anything but
    ``INCOMPLETE``).  Profit totals, profit factor and drawdown include
    every position, force-closed ones too.
    """
    if not positions:
        return BacktestStats(final_seed_money=seed_money)

    completed = [p for p in positions if p.is_complete]
    winning = sum(1 for p in completed if p.total_profit > 0)
    losing = len(completed) - winning

    total_profit = sum(p.total_profit for p in positions)
    total_fees = sum(p.total_fees for p in positions)

    win_rate = winning / len(completed) * 100 if completed else 0.0

    gross_profit = sum(p.total_profit for p in positions if p.total_profit > 0)
    gross_loss = abs(sum(p.total_profit for p in positions if p.total_profit <= 0))
    profit_factor: Optional[float] = (
        gross_profit / gross_loss if gross_loss > 0 else None
    )

    avg_holding = sum(p.holding_hours for p in positions) / len(positions)

    return BacktestStats(
        total_positions=len(positions),
        completed_positions=len(completed),
        winning_positions=winning,
        losing_positions=losing,
        total_trades=sum(p.trade_count for p in positions),
        total_profit=round(total_profit, 8),
        total_fees=round(total_fees, 8),
        win_rate=round(win_rate, 2),
        profit_factor=round(profit_factor, 4) if profit_factor is not None else None,
        avg_holding_time=round(avg_holding, 4),
        max_drawdown=round(max_drawdown_pct(equity_curve(positions, seed_money)), 4),
        max_stage_reached=max(p.stage for p in positions),
        final_seed_money=round(seed_money + total_profit - total_fees, 8),
    )


def equity_curve(positions: Sequence[Position], seed_money: float) -> list[float]:
    """Running equity: *seed_money*, then one point per closed position."""
    curve = [seed_money]
    equity = seed_money
    for p in positions:
        equity += p.net_profit
        curve.append(equity)
    return curve


def format_summary(stats: BacktestStats) -> str:
    """Human-readable multi-line report for the CLI."""
    pf = f"{stats.profit_factor:.2f}" if stats.profit_factor is not None else "n/a"
    lines = [
        "=" * 44,
        "CCI averaging-down backtest",
        "=" * 44,
        f"Positions:        {stats.total_positions:>10d} "
        f"({stats.completed_positions} completed)",
        f"Wins / losses:    {stats.winning_positions:>10d} / {stats.losing_positions}",
        f"Trades:           {stats.total_trades:>10d}",
        f"Win rate:         {stats.win_rate:>10.2f}%",
        f"Profit factor:    {pf:>10}",
        f"Total profit:     {stats.total_profit:>10.2f}",
        f"Total fees:       {stats.total_fees:>10.2f}",
        f"Max drawdown:     {stats.max_drawdown:>10.2f}%",
        f"Avg holding:      {stats.avg_holding_time:>10.1f}h",
        f"Max stage:        {stats.max_stage_reached:>10d}",
        f"Final seed money: {stats.final_seed_money:>10.2f}",
        "=" * 44,
    ]
    return "\n".join(lines)
