"""Signal monitor configuration dataclass.

Represents one live alert monitor: a user's CCI strategy settings bound
to a symbol, timeframe and polling interval.
"""

from dataclasses import dataclass, field

from ccitrade.strategy.settings import StrategySettings


@dataclass(frozen=True)
class SignalConfig:
    """Configuration for a single live signal monitor.

    Each config runs its own ``SignalMonitor`` task.  ``check_interval``
    is in minutes; the monitor enforces a configured floor on top of it.
    """

    config_id: str
    username: str
    settings: StrategySettings = field(default_factory=StrategySettings)
    check_interval: int = 15
    is_active: bool = True

    @property
    def symbol(self) -> str:
        return self.settings.symbol

    @property
    def timeframe(self) -> str:
        return self.settings.timeframe

    @property
    def name(self) -> str:
        """Stable monitor name, ``<username>:<symbol>:<timeframe>:<id>``."""
        return f"{self.username}:{self.symbol}:{self.timeframe}:{self.config_id}"

    def to_document(self) -> dict:
        return {
            "configId": self.config_id,
            "username": self.username,
            "checkInterval": self.check_interval,
            "isActive": self.is_active,
            **self.settings.to_document(),
        }

    @classmethod
    def from_document(cls, doc: dict) -> "SignalConfig":
        """Parse a stored config document.

        Strategy options sit next to the monitor fields in one flat dict,
        the way the document store keeps them.
        """
        own = {"configId", "username", "checkInterval", "isActive"}
        settings = StrategySettings.from_document(
            {k: v for k, v in doc.items() if k not in own}
        )
        return cls(
            config_id=str(doc["configId"]),
            username=str(doc["username"]),
            settings=settings,
            check_interval=int(doc.get("checkInterval", 15)),
            is_active=bool(doc.get("isActive", True)),
        )
