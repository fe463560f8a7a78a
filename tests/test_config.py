"""Tests for ccitrade.config — environment loading and signal config files."""

import json

import pytest

from ccitrade.config import Config, load_config, load_signal_configs
from ccitrade.errors import InvalidConfigurationError
from ccitrade.models.signal_config import SignalConfig
from ccitrade.strategy.settings import StrategySettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure app env vars are cleared between tests."""
    for var in [
        "BINANCE_BASE_URL",
        "DB_PATH",
        "LOG_LEVEL",
        "API_PORT",
        "MIN_CHECK_INTERVAL_MINUTES",
        "SIGNAL_CANDLE_LIMIT",
        "SIGNAL_CONFIG_PATH",
    ]:
        monkeypatch.delenv(var, raising=False)


def _no_env_file(tmp_path) -> str:
    """A non-existent .env so load_dotenv doesn't read the real one."""
    return str(tmp_path / "nonexistent.env")


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        cfg = load_config(env_path=_no_env_file(tmp_path))
        assert isinstance(cfg, Config)
        assert cfg.binance_base_url == "https://api.binance.com"
        assert cfg.db_path == "data/ccitrade.db"
        assert cfg.log_level == "INFO"
        assert cfg.api_port == 8080
        assert cfg.min_check_interval_minutes == 15
        assert cfg.signal_candle_limit == 200
        assert cfg.signal_config_path == "signals.json"

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BINANCE_BASE_URL", "https://testnet.binance.vision/")
        monkeypatch.setenv("MIN_CHECK_INTERVAL_MINUTES", "5")
        monkeypatch.setenv("API_PORT", "9000")
        cfg = load_config(env_path=_no_env_file(tmp_path))
        assert cfg.binance_base_url == "https://testnet.binance.vision"
        assert cfg.min_check_interval_minutes == 5
        assert cfg.api_port == 9000

    def test_reads_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("SIGNAL_CANDLE_LIMIT=300\n", encoding="utf-8")
        cfg = load_config(env_path=str(env))
        assert cfg.signal_candle_limit == 300

    def test_non_integer_rejected(self, monkeypatch, tmp_path):
        monkeypatch.setenv("API_PORT", "eighty")
        with pytest.raises(InvalidConfigurationError, match="API_PORT"):
            load_config(env_path=_no_env_file(tmp_path))

    def test_non_positive_rejected(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIGNAL_CANDLE_LIMIT", "0")
        with pytest.raises(InvalidConfigurationError, match="SIGNAL_CANDLE_LIMIT"):
            load_config(env_path=_no_env_file(tmp_path))


class TestLoadSignalConfigs:
    def test_parses_configs(self, tmp_path):
        path = tmp_path / "signals.json"
        path.write_text(json.dumps({
            "configs": [
                {
                    "configId": "a1",
                    "username": "alice",
                    "symbol": "ETHUSDT",
                    "timeframe": "1h",
                    "checkInterval": 30,
                    "cciLength": 14,
                    "entryThreshold": 90,
                    "breakoutThreshold": 120,
                },
                {"configId": "b2", "username": "bob", "isActive": False},
            ]
        }), encoding="utf-8")

        configs = load_signal_configs(str(path))
        assert len(configs) == 2
        first = configs[0]
        assert first.config_id == "a1"
        assert first.symbol == "ETHUSDT"
        assert first.check_interval == 30
        assert first.settings.cci_length == 14
        assert first.settings.breakout_threshold == 120
        assert configs[1].is_active is False
        assert configs[1].settings == StrategySettings()

    def test_missing_file_is_empty(self, tmp_path):
        assert load_signal_configs(str(tmp_path / "missing.json")) == []

    def test_bad_json(self, tmp_path):
        path = tmp_path / "signals.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidConfigurationError, match="not valid JSON"):
            load_signal_configs(str(path))

    def test_invalid_entry(self, tmp_path):
        path = tmp_path / "signals.json"
        path.write_text(json.dumps({
            "configs": [{"configId": "x", "username": "u", "timeframe": "2h"}]
        }), encoding="utf-8")
        with pytest.raises(InvalidConfigurationError, match="#0"):
            load_signal_configs(str(path))

    def test_missing_id(self, tmp_path):
        path = tmp_path / "signals.json"
        path.write_text(json.dumps({"configs": [{"username": "u"}]}), encoding="utf-8")
        with pytest.raises(InvalidConfigurationError):
            load_signal_configs(str(path))


class TestSignalConfig:
    def test_name(self):
        cfg = SignalConfig(config_id="7", username="alice")
        assert cfg.name == "alice:BTCUSDT:4h:7"

    def test_document_round_trip(self):
        cfg = SignalConfig(
            config_id="7",
            username="alice",
            settings=StrategySettings(symbol="SOLUSDT"),
            check_interval=60,
        )
        assert SignalConfig.from_document(cfg.to_document()) == cfg
