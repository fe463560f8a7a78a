"""Position manager — simulates the averaging-down stage machine.

LONG positions move through stages 0–3 on the candle close, measured
against the volume-weighted average entry price:

=====  ==============================  ===================================
Stage  Loss trigger                    Profit trigger
=====  ==============================  ===================================
0      ``stage1_loss`` → add, stage 1  ``profit_target`` → sell all, close
1      ``stage2_loss`` → add, stage 2  ``half_sell_profit`` → sell half
2      ``stage3_loss`` → add, stage 3  ``half_sell_profit`` → sell half
3      ``final_stop_loss`` → stop out  ``half_sell_profit`` → sell half
=====  ==============================  ===================================

Each add buys as much again as is currently held, so the held size after
*k* adds is ``start_amount × 2^k``.  A stop-out moves the position to the
final stage 4 before closing it.

SHORT positions never average down: one entry, then a full exit at
``profit_target`` favourable or ``stop_loss_percent`` adverse move.
"""

import logging
from typing import Optional

from ccitrade.position.models import (
    INCOMPLETE,
    MAX_STAGE,
    Position,
    TradeExecution,
    TradeType,
)
from ccitrade.strategy.models import CandleData, Direction, EntrySignal
from ccitrade.strategy.settings import StrategySettings

logger = logging.getLogger("ccitrade.position")

_LAST_ADD_STAGE = 3


class PositionManager:
    """Opens positions from entry signals and advances them candle by candle.

    Args:
        settings: Validated strategy settings (amounts, thresholds, fees).
    """

    def __init__(self, settings: StrategySettings) -> None:
        self._settings = settings

    # ── Public API ───────────────────────────────────────────────────────

    def open_position(self, position_id: int, signal: EntrySignal) -> Position:
        """Create a position and record its first entry at the signal candle."""
        position = Position(
            position_id=position_id,
            symbol=self._settings.symbol,
            direction=signal.direction,
            start_time=signal.timestamp,
        )
        if signal.direction is Direction.LONG:
            trade_type = TradeType.LONG_BUY
            reason = f"Stage 0 entry: {signal.reason}"
        else:
            trade_type = TradeType.SHORT_SELL_ENTRY
            reason = f"Short entry: {signal.reason}"

        self._buy(
            position,
            amount=self._settings.start_amount,
            price=signal.price,
            timestamp=signal.timestamp,
            trade_type=trade_type,
            cci=signal.cci_value,
            reason=reason,
        )
        logger.debug(
            "Opened %s #%d @ %.4f amount=%.2f",
            signal.direction.value, position_id, signal.price,
            self._settings.start_amount,
        )
        return position

    def on_candle(
        self, position: Position, candle: CandleData, cci: float,
    ) -> list[TradeExecution]:
        """Evaluate *candle* against an open position.

        Returns the executions recorded on this candle (empty if none).
        The position is closed in place when an exit rule fires.
        """
        if not position.is_open:
            raise RuntimeError(f"Position {position.position_id} is closed")
        if position.direction is Direction.LONG:
            trade = self._manage_long(position, candle, cci)
        else:
            trade = self._manage_short(position, candle, cci)
        return [trade] if trade is not None else []

    def force_close(
        self, position: Position, candle: CandleData, cci: float,
    ) -> TradeExecution:
        """Sell everything at *candle* close and mark the position ``INCOMPLETE``."""
        trade = self._sell(
            position,
            coins=position.held_coins,
            price=candle.close,
            timestamp=candle.open_time,
            trade_type=TradeType.FORCE_CLOSE,
            cci=cci,
            reason="Forced close at end of data",
        )
        position.close(INCOMPLETE, candle.open_time)
        logger.debug("Force-closed #%d @ %.4f", position.position_id, candle.close)
        return trade

    # ── LONG ─────────────────────────────────────────────────────────────

    def _manage_long(
        self, position: Position, candle: CandleData, cci: float,
    ) -> Optional[TradeExecution]:
        s = self._settings
        price = candle.close
        profit_rate = _profit_rate(position, price)
        loss_rate = -profit_rate

        if position.stage == 0 and profit_rate >= s.profit_target:
            return self._close_all(
                position, candle, cci, TradeType.LONG_PROFIT_EXIT,
                f"Profit target {s.profit_target:g}% reached ({profit_rate:.2f}%)",
            )

        if position.stage > 0 and profit_rate >= s.half_sell_profit:
            return self._half_sell(position, candle, cci, profit_rate)

        if position.stage < _LAST_ADD_STAGE:
            threshold = s.stage_losses[position.stage]
            if loss_rate >= threshold:
                next_stage = position.stage + 1
                trade = self._buy(
                    position,
                    amount=position.held_amount,
                    price=price,
                    timestamp=candle.open_time,
                    trade_type=TradeType.LONG_BUY,
                    cci=cci,
                    reason=(
                        f"{threshold:g}% loss vs average price "
                        f"({loss_rate:.2f}%), stage {next_stage} add"
                    ),
                    stage=next_stage,
                )
                logger.debug(
                    "#%d stage %d add @ %.4f, held=%.2f avg=%.4f",
                    position.position_id, next_stage, price,
                    position.held_amount, position.average_price,
                )
                return trade
            return None

        if loss_rate >= s.final_stop_loss:
            position.stage = MAX_STAGE
            return self._close_all(
                position, candle, cci, TradeType.LONG_STOP_LOSS,
                f"Final stop loss {s.final_stop_loss:g}% reached ({loss_rate:.2f}%)",
            )
        return None

    def _half_sell(
        self,
        position: Position,
        candle: CandleData,
        cci: float,
        profit_rate: float,
    ) -> TradeExecution:
        s = self._settings
        half = position.held_coins / 2
        remaining_amount = (position.held_coins - half) * position.average_price
        if remaining_amount < s.min_order_amount:
            return self._close_all(
                position, candle, cci, TradeType.LONG_HALF_SELL_EXIT,
                f"{s.half_sell_profit:g}% profit at stage {position.stage}, "
                f"remainder below minimum order, selling all",
            )
        trade = self._sell(
            position,
            coins=half,
            price=candle.close,
            timestamp=candle.open_time,
            trade_type=TradeType.LONG_HALF_SELL,
            cci=cci,
            reason=(
                f"{s.half_sell_profit:g}% profit at stage {position.stage} "
                f"({profit_rate:.2f}%), selling half"
            ),
        )
        logger.debug(
            "#%d half sell @ %.4f, held=%.2f",
            position.position_id, candle.close, position.held_amount,
        )
        return trade

    # ── SHORT ────────────────────────────────────────────────────────────

    def _manage_short(
        self, position: Position, candle: CandleData, cci: float,
    ) -> Optional[TradeExecution]:
        s = self._settings
        profit_rate = _profit_rate(position, candle.close)

        if profit_rate >= s.profit_target:
            return self._close_all(
                position, candle, cci, TradeType.SHORT_PROFIT_EXIT,
                f"Short profit target {s.profit_target:g}% reached "
                f"({profit_rate:.2f}%, price fell)",
            )
        if -profit_rate >= s.stop_loss_percent:
            return self._close_all(
                position, candle, cci, TradeType.SHORT_STOP_LOSS,
                f"Short stop loss {s.stop_loss_percent:g}% reached "
                f"({-profit_rate:.2f}%, price rose)",
            )
        return None

    # ── Execution helpers ────────────────────────────────────────────────

    def _close_all(
        self,
        position: Position,
        candle: CandleData,
        cci: float,
        trade_type: TradeType,
        reason: str,
    ) -> TradeExecution:
        trade = self._sell(
            position,
            coins=position.held_coins,
            price=candle.close,
            timestamp=candle.open_time,
            trade_type=trade_type,
            cci=cci,
            reason=reason,
        )
        position.close(trade_type.value, candle.open_time)
        logger.debug(
            "Closed #%d %s, profit=%.2f fees=%.2f",
            position.position_id, trade_type.value,
            position.total_profit, position.total_fees,
        )
        return trade

    def _buy(
        self,
        position: Position,
        amount: float,
        price: float,
        timestamp: int,
        trade_type: TradeType,
        cci: float,
        reason: str,
        stage: int = 0,
    ) -> TradeExecution:
        """Add *amount* (quote) at *price* and re-average the position."""
        coins = amount / price
        fees = amount * self._settings.fee_rate / 100

        position.held_amount += amount
        position.held_coins += coins
        position.average_price = position.held_amount / position.held_coins
        position.stage = stage
        position.total_fees += fees

        trade = TradeExecution(
            timestamp=timestamp,
            type=trade_type,
            stage=stage,
            price=price,
            amount=amount,
            coins=coins,
            fees=fees,
            average_price=position.average_price,
            entry_cci=cci,
            reason=reason,
        )
        position.entries.append(trade)
        return trade

    def _sell(
        self,
        position: Position,
        coins: float,
        price: float,
        timestamp: int,
        trade_type: TradeType,
        cci: float,
        reason: str,
    ) -> TradeExecution:
        """Reduce the position by *coins* at *price*, realising P&L."""
        if coins > position.held_coins:
            raise ValueError(
                f"Cannot exit {coins} coins, only {position.held_coins} held"
            )
        amount = coins * price
        fees = amount * self._settings.fee_rate / 100
        cost = coins * position.average_price
        if position.direction is Direction.LONG:
            profit = amount - cost
        else:
            profit = cost - amount

        profit_rate = _profit_rate(position, price)
        position.held_coins -= coins
        position.held_amount = position.held_coins * position.average_price
        position.total_profit += profit
        position.total_fees += fees

        trade = TradeExecution(
            timestamp=timestamp,
            type=trade_type,
            stage=position.stage,
            price=price,
            amount=amount,
            coins=coins,
            fees=fees,
            average_price=position.average_price,
            exit_cci=cci,
            profit_rate=profit_rate,
            reason=reason,
        )
        position.exits.append(trade)
        return trade


def _profit_rate(position: Position, price: float) -> float:
    """Percent move of *price* vs. the average entry, signed for direction."""
    avg = position.average_price
    if position.direction is Direction.LONG:
        return (price - avg) / avg * 100
    return (avg - price) / avg * 100
