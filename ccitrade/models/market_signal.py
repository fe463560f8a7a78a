"""Market signal record — the output of a live signal evaluation."""

import uuid
from dataclasses import dataclass, field, replace

from ccitrade.strategy.models import Direction


@dataclass(frozen=True)
class MarketSignal:
    """A live entry alert for external persistence / notification."""

    config_id: str
    username: str
    symbol: str
    timeframe: str
    direction: Direction
    price: float
    cci_value: float
    timestamp: int  # candle open time, ms since epoch
    reason: str
    volume: float = 0.0
    breakout_threshold: float = 0.0
    entry_threshold: float = 0.0
    is_read: bool = False
    signal_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def mark_read(self) -> "MarketSignal":
        return replace(self, is_read=True)

    def signal_strength(self) -> int:
        """How far CCI has recovered past the entry level, scaled 0–100.

        ``0`` at the entry threshold, ``100`` once the recovery covers the
        whole breakout–entry band again.
        """
        band = self.breakout_threshold - self.entry_threshold
        if band <= 0:
            return 0
        if self.direction is Direction.LONG:
            moved = self.cci_value + self.entry_threshold
        else:
            moved = self.entry_threshold - self.cci_value
        return int(min(max(moved / band * 100, 0.0), 100.0))

    def to_document(self) -> dict:
        return {
            "signalId": self.signal_id,
            "configId": self.config_id,
            "username": self.username,
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "direction": self.direction.value,
            "price": self.price,
            "volume": self.volume,
            "cciValue": self.cci_value,
            "cciBreakoutValue": self.breakout_threshold,
            "cciEntryValue": self.entry_threshold,
            "timestamp": self.timestamp,
            "reason": self.reason,
            "isRead": self.is_read,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "MarketSignal":
        return cls(
            signal_id=str(doc["signalId"]),
            config_id=str(doc["configId"]),
            username=str(doc["username"]),
            symbol=doc["symbol"],
            timeframe=doc.get("timeframe", ""),
            direction=Direction(doc["direction"]),
            price=float(doc["price"]),
            volume=float(doc.get("volume", 0.0)),
            cci_value=float(doc["cciValue"]),
            breakout_threshold=float(doc.get("cciBreakoutValue", 0.0)),
            entry_threshold=float(doc.get("cciEntryValue", 0.0)),
            timestamp=int(doc["timestamp"]),
            reason=doc.get("reason", ""),
            is_read=bool(doc.get("isRead", False)),
        )
