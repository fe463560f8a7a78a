"""Position data models — trade executions and simulated positions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ccitrade.strategy.models import Direction

MAX_STAGE = 4


class TradeType(str, Enum):
    LONG_BUY = "LONG_BUY"
    LONG_HALF_SELL = "LONG_HALF_SELL"
    LONG_PROFIT_EXIT = "LONG_PROFIT_EXIT"
    LONG_HALF_SELL_EXIT = "LONG_HALF_SELL_EXIT"
    LONG_STOP_LOSS = "LONG_STOP_LOSS"
    SHORT_SELL_ENTRY = "SHORT_SELL_ENTRY"
    SHORT_PROFIT_EXIT = "SHORT_PROFIT_EXIT"
    SHORT_STOP_LOSS = "SHORT_STOP_LOSS"
    FORCE_CLOSE = "FORCE_CLOSE"


INCOMPLETE = "INCOMPLETE"


@dataclass(frozen=True)
class TradeExecution:
    """One simulated fill.

    ``amount`` is quote currency, ``coins`` the base-currency quantity.
    ``profit_rate`` is the percent move vs. the average entry price at the
    time of an exit (0.0 for entries).
    """

    timestamp: int
    type: TradeType
    stage: int
    price: float
    amount: float
    coins: float
    fees: float
    average_price: float
    entry_cci: Optional[float] = None
    exit_cci: Optional[float] = None
    profit_rate: float = 0.0
    reason: str = ""

    def to_document(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "type": self.type.value,
            "stage": self.stage,
            "price": self.price,
            "amount": self.amount,
            "coins": self.coins,
            "fees": self.fees,
            "averagePrice": self.average_price,
            "entryCCI": self.entry_cci,
            "exitCCI": self.exit_cci,
            "profitRate": self.profit_rate,
            "reason": self.reason,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "TradeExecution":
        return cls(
            timestamp=int(doc["timestamp"]),
            type=TradeType(doc["type"]),
            stage=int(doc["stage"]),
            price=float(doc["price"]),
            amount=float(doc["amount"]),
            coins=float(doc["coins"]),
            fees=float(doc["fees"]),
            average_price=float(doc.get("averagePrice", doc["price"])),
            entry_cci=doc.get("entryCCI"),
            exit_cci=doc.get("exitCCI"),
            profit_rate=float(doc.get("profitRate", 0.0)),
            reason=doc.get("reason", ""),
        )


@dataclass
class Position:
    """A simulated position.

    Mutated only by ``PositionManager`` while open.  ``close()`` stamps
    ``end_time`` and ``final_result`` exactly once.
    """

    position_id: int
    symbol: str
    direction: Direction
    start_time: int
    stage: int = 0
    entries: list[TradeExecution] = field(default_factory=list)
    exits: list[TradeExecution] = field(default_factory=list)
    end_time: Optional[int] = None
    final_result: Optional[str] = None
    total_profit: float = 0.0  # realised, before fees
    total_fees: float = 0.0

    # Running book-keeping while open
    held_amount: float = 0.0  # cost basis of held coins, quote currency
    held_coins: float = 0.0
    average_price: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.final_result is None

    @property
    def net_profit(self) -> float:
        return self.total_profit - self.total_fees

    @property
    def is_complete(self) -> bool:
        return self.final_result not in (None, INCOMPLETE)

    @property
    def trade_count(self) -> int:
        return len(self.entries) + len(self.exits)

    @property
    def holding_hours(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) / 3_600_000

    def close(self, result: str, timestamp: int) -> None:
        if not self.is_open:
            raise RuntimeError(
                f"Position {self.position_id} already closed ({self.final_result})"
            )
        self.final_result = result
        self.end_time = timestamp
        self.held_amount = 0.0
        self.held_coins = 0.0

    def to_document(self) -> dict:
        return {
            "positionId": self.position_id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "stage": self.stage,
            "entries": [t.to_document() for t in self.entries],
            "exits": [t.to_document() for t in self.exits],
            "startTime": self.start_time,
            "endTime": self.end_time,
            "finalResult": self.final_result,
            "totalProfit": self.total_profit,
            "totalFees": self.total_fees,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "Position":
        return cls(
            position_id=int(doc["positionId"]),
            symbol=doc["symbol"],
            direction=Direction(doc["direction"]),
            start_time=int(doc["startTime"]),
            stage=int(doc["stage"]),
            entries=[TradeExecution.from_document(t) for t in doc.get("entries", [])],
            exits=[TradeExecution.from_document(t) for t in doc.get("exits", [])],
            end_time=doc.get("endTime"),
            final_result=doc.get("finalResult"),
            total_profit=float(doc.get("totalProfit", 0.0)),
            total_fees=float(doc.get("totalFees", 0.0)),
        )
