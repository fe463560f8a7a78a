"""Tests for StrategySettings defaults, validation and document conversion."""

import pytest

from ccitrade.errors import InvalidConfigurationError
from ccitrade.strategy.models import candles_for_period
from ccitrade.strategy.settings import StrategySettings


class TestDefaults:
    def test_defaults(self):
        s = StrategySettings()
        assert s.symbol == "BTCUSDT"
        assert s.timeframe == "4h"
        assert s.seed_money == 10_000.0
        assert s.start_amount == pytest.approx(2_000.0)
        assert s.cci_length == 20
        assert s.entry_threshold == 100.0
        assert s.breakout_threshold == 110.0
        assert s.stage_losses == (2.0, 4.0, 8.0, 10.0)

    def test_start_amount_from_fraction(self):
        s = StrategySettings(seed_money=1000, start_fraction=0.5)
        assert s.start_amount == pytest.approx(500.0)

    def test_explicit_start_amount_wins(self):
        s = StrategySettings(seed_money=1000, start_amount=200)
        assert s.start_amount == 200


class TestValidation:
    def test_entry_must_be_below_breakout(self):
        with pytest.raises(InvalidConfigurationError, match="entry_threshold"):
            StrategySettings(entry_threshold=110, breakout_threshold=100)

    def test_equal_thresholds_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            StrategySettings(entry_threshold=100, breakout_threshold=100)

    def test_short_cci_length_rejected(self):
        with pytest.raises(InvalidConfigurationError, match="cci_length"):
            StrategySettings(cci_length=3)

    def test_stage_losses_must_ascend(self):
        with pytest.raises(InvalidConfigurationError, match="ascending"):
            StrategySettings(stage2_loss=1.0)

    def test_unknown_timeframe(self):
        with pytest.raises(InvalidConfigurationError, match="timeframe"):
            StrategySettings(timeframe="3h")

    def test_non_positive_seed(self):
        with pytest.raises(InvalidConfigurationError, match="seed_money"):
            StrategySettings(seed_money=0)

    def test_negative_fee(self):
        with pytest.raises(InvalidConfigurationError, match="fee_rate"):
            StrategySettings(fee_rate=-0.1)

    @pytest.mark.parametrize(
        "field",
        ["entry_threshold", "breakout_threshold", "seed_money", "stage2_loss",
         "final_stop_loss", "profit_target", "fee_rate", "min_order_amount"],
    )
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_rejected(self, field, value):
        with pytest.raises(InvalidConfigurationError, match=field):
            StrategySettings(**{field: value})

    def test_non_finite_start_amount_rejected(self):
        with pytest.raises(InvalidConfigurationError, match="start_amount"):
            StrategySettings(start_amount=float("nan"))

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidConfigurationError, match="cci_length"):
            StrategySettings.from_document({"cciLength": "20"})

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            StrategySettings(symbol="")


class TestDocuments:
    def test_camel_case_keys(self):
        doc = StrategySettings().to_document()
        assert doc["cciLength"] == 20
        assert doc["entryThreshold"] == 100.0
        assert doc["stage1Loss"] == 2.0
        assert doc["finalStopLoss"] == 10.0

    def test_round_trip(self):
        s = StrategySettings(symbol="ETHUSDT", timeframe="1h", seed_money=500)
        assert StrategySettings.from_document(s.to_document()) == s

    def test_unknown_keys_ignored(self):
        s = StrategySettings.from_document({"symbol": "ETHUSDT", "colour": "red"})
        assert s.symbol == "ETHUSDT"

    def test_invalid_document_raises(self):
        with pytest.raises(InvalidConfigurationError):
            StrategySettings.from_document({"cciLength": 2})


class TestCandlesForPeriod:
    def test_year_of_4h(self):
        assert candles_for_period("1y", "4h") == 365 * 6

    def test_week_of_daily(self):
        assert candles_for_period("1w", "1d") == 7

    def test_unknown_period(self):
        with pytest.raises(KeyError):
            candles_for_period("5y", "1d")
