"""Domain errors raised by the CCI engine.

All of them are recoverable at the caller level.  The two validation
errors subclass ``ValueError`` so callers that already guard against bad
input with ``except ValueError`` keep working.
"""


class CCITradeError(Exception):
    """Base class for every error raised by ``ccitrade``."""


class InsufficientDataError(CCITradeError, ValueError):
    """Fewer candles than the CCI length — the indicator cannot be computed."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Need at least {required} candles, got {available}"
        )


class InvalidConfigurationError(CCITradeError, ValueError):
    """Strategy settings rejected before any computation starts."""


class DataSourceError(CCITradeError, RuntimeError):
    """The external candle source failed or returned unusable data."""
