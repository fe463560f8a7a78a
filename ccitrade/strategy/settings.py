"""Strategy settings — every option and default of the CCI averaging-down strategy.

Settings are validated once, at construction.  Invalid combinations raise
``InvalidConfigurationError`` instead of being clamped.
"""

import math
from dataclasses import asdict, dataclass, fields
from typing import Optional

from ccitrade.errors import InvalidConfigurationError
from ccitrade.strategy.models import TEST_PERIOD_DAYS, TIMEFRAME_MILLIS

MIN_CCI_LENGTH = 5
DEFAULT_START_FRACTION = 0.2


@dataclass(frozen=True)
class StrategySettings:
    """Typed strategy configuration.

    Percentages (``profit_target``, stage losses, ``fee_rate`` …) are given
    in percent, e.g. ``2.0`` for 2 %.  ``start_amount`` defaults to
    ``seed_money × start_fraction``.
    """

    symbol: str = "BTCUSDT"
    timeframe: str = "4h"
    test_period: str = "1y"
    seed_money: float = 10_000.0
    start_fraction: float = DEFAULT_START_FRACTION
    start_amount: Optional[float] = None

    # CCI
    cci_length: int = 20
    entry_threshold: float = 100.0
    breakout_threshold: float = 110.0

    # Take-profit / stop-loss
    profit_target: float = 3.0
    half_sell_profit: float = 0.5
    stop_loss_percent: float = 10.0

    # Averaging-down loss thresholds (vs. average entry price)
    stage1_loss: float = 2.0
    stage2_loss: float = 4.0
    stage3_loss: float = 8.0
    final_stop_loss: float = 10.0

    fee_rate: float = 0.04
    min_order_amount: float = 10.0

    def __post_init__(self) -> None:
        if self.start_amount is None:
            object.__setattr__(
                self, "start_amount", self.seed_money * self.start_fraction,
            )
        _validate(self)

    @property
    def stage_losses(self) -> tuple[float, float, float, float]:
        """Loss thresholds for stages 1–3 and the final stop, ascending."""
        return (
            self.stage1_loss,
            self.stage2_loss,
            self.stage3_loss,
            self.final_stop_loss,
        )

    # ── Document conversion ──────────────────────────────────────────────

    def to_document(self) -> dict:
        """Return a camelCase dict for the document store."""
        return {_camel(k): v for k, v in asdict(self).items()}

    @classmethod
    def from_document(cls, doc: dict) -> "StrategySettings":
        """Build settings from a camelCase (or snake_case) dict.

        Unknown keys are ignored; missing keys take their defaults.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in doc.items():
            name = _snake(key)
            if name in known:
                kwargs[name] = value
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise InvalidConfigurationError(str(exc)) from exc


_NUMERIC_FIELDS = (
    "seed_money",
    "start_fraction",
    "start_amount",
    "cci_length",
    "entry_threshold",
    "breakout_threshold",
    "profit_target",
    "half_sell_profit",
    "stop_loss_percent",
    "stage1_loss",
    "stage2_loss",
    "stage3_loss",
    "final_stop_loss",
    "fee_rate",
    "min_order_amount",
)


def _validate(s: StrategySettings) -> None:
    """Raise ``InvalidConfigurationError`` naming the first bad option."""
    for name in _NUMERIC_FIELDS:
        value = getattr(s, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidConfigurationError(
                f"{name} must be a number, got {value!r}"
            )
        # NaN compares False against every bound below
        if not math.isfinite(value):
            raise InvalidConfigurationError(f"{name} must be finite, got {value}")
    if not s.symbol:
        raise InvalidConfigurationError("symbol must not be empty")
    if s.timeframe not in TIMEFRAME_MILLIS:
        raise InvalidConfigurationError(
            f"Unknown timeframe '{s.timeframe}'. "
            f"Available: {', '.join(TIMEFRAME_MILLIS)}"
        )
    if s.test_period not in TEST_PERIOD_DAYS:
        raise InvalidConfigurationError(
            f"Unknown test_period '{s.test_period}'. "
            f"Available: {', '.join(TEST_PERIOD_DAYS)}"
        )
    if s.cci_length < MIN_CCI_LENGTH:
        raise InvalidConfigurationError(
            f"cci_length must be >= {MIN_CCI_LENGTH}, got {s.cci_length}"
        )
    if s.entry_threshold <= 0 or s.breakout_threshold <= 0:
        raise InvalidConfigurationError(
            "entry_threshold and breakout_threshold must be positive, got "
            f"{s.entry_threshold} / {s.breakout_threshold}"
        )
    if s.entry_threshold >= s.breakout_threshold:
        raise InvalidConfigurationError(
            f"entry_threshold ({s.entry_threshold}) must be below "
            f"breakout_threshold ({s.breakout_threshold})"
        )
    if s.seed_money <= 0:
        raise InvalidConfigurationError(
            f"seed_money must be positive, got {s.seed_money}"
        )
    if not 0 < s.start_fraction <= 1:
        raise InvalidConfigurationError(
            f"start_fraction must be in (0, 1], got {s.start_fraction}"
        )
    if s.start_amount <= 0:
        raise InvalidConfigurationError(
            f"start_amount must be positive, got {s.start_amount}"
        )
    for name in ("profit_target", "half_sell_profit", "stop_loss_percent"):
        if getattr(s, name) <= 0:
            raise InvalidConfigurationError(
                f"{name} must be positive, got {getattr(s, name)}"
            )
    losses = s.stage_losses
    if losses[0] <= 0 or any(a >= b for a, b in zip(losses, losses[1:])):
        raise InvalidConfigurationError(
            "stage losses must be positive and strictly ascending "
            f"(stage1 < stage2 < stage3 < final), got {losses}"
        )
    if s.fee_rate < 0:
        raise InvalidConfigurationError(
            f"fee_rate must not be negative, got {s.fee_rate}"
        )
    if s.min_order_amount < 0:
        raise InvalidConfigurationError(
            f"min_order_amount must not be negative, got {s.min_order_amount}"
        )


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _snake(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)
