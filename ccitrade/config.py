"""Application configuration.

Loads .env variables into a typed config object and reads the signal
monitor definitions from their JSON file.
"""

import json
import logging
import os
import pathlib
from dataclasses import dataclass

from dotenv import load_dotenv

from ccitrade.errors import InvalidConfigurationError
from ccitrade.models.signal_config import SignalConfig

logger = logging.getLogger("ccitrade.config")


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    binance_base_url: str
    db_path: str
    log_level: str
    api_port: int
    min_check_interval_minutes: int
    signal_candle_limit: int
    signal_config_path: str


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Every variable has a default.  Raises ``InvalidConfigurationError``
    naming the variable when a numeric value does not parse or is not
    positive.
    """
    load_dotenv(dotenv_path=env_path)

    return Config(
        binance_base_url=os.environ.get(
            "BINANCE_BASE_URL", "https://api.binance.com",
        ).rstrip("/"),
        db_path=os.environ.get("DB_PATH", "data/ccitrade.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_positive_int("API_PORT", "8080"),
        min_check_interval_minutes=_positive_int(
            "MIN_CHECK_INTERVAL_MINUTES", "15",
        ),
        signal_candle_limit=_positive_int("SIGNAL_CANDLE_LIMIT", "200"),
        signal_config_path=os.environ.get("SIGNAL_CONFIG_PATH", "signals.json"),
    )


def _positive_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(
            f"{name} must be an integer, got {raw!r}"
        ) from exc
    if value <= 0:
        raise InvalidConfigurationError(f"{name} must be positive, got {value}")
    return value


def load_signal_configs(path: str) -> list[SignalConfig]:
    """Read monitor definitions from a JSON file.

    The file holds ``{"configs": [...]}`` where each entry is a
    ``SignalConfig`` document.  A missing file yields an empty list.
    Inactive configs are returned too; callers decide what to run.

    Raises:
        InvalidConfigurationError: malformed JSON or an invalid entry.
    """
    file = pathlib.Path(path)
    if not file.exists():
        logger.warning("Signal config file %s not found, no monitors", path)
        return []

    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidConfigurationError(
            f"Signal config file {path} is not valid JSON: {exc}"
        ) from exc

    configs: list[SignalConfig] = []
    for i, entry in enumerate(data.get("configs", [])):
        try:
            configs.append(SignalConfig.from_document(entry))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidConfigurationError(
                f"Signal config #{i} in {path} is invalid: {exc}"
            ) from exc
    return configs
