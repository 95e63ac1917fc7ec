"""
Tests: parrain reduction calculator.

Run with:
    pytest tests/test_pricing_calculator.py -v
"""
from datetime import datetime, timezone
from decimal import Decimal
import logging

import pytest

from parrainage.core.exceptions import PricingValidationError
from parrainage.core.pricing_constants import PricingConfig
from parrainage.schemas.pricing import ScheduledPricingCreate
from parrainage.services.pricing_calculator import ParrainPricingCalculator, to_decimal


PRICES = ["0", "0.01", "5", "9.99", "10", "40", "49.99", "100", "250.5", "999.99", "10000"]
FILLEUL_PRICES = ["0.01", "0.02", "1", "3.33", "40", "89.99", "100", "500", "10000"]


class TestCalculateExamples:
    def test_standard_reduction(self, calculator):
        result = calculator.calculate(Decimal("100.00"), Decimal("40.00"))
        assert result.new_price == Decimal("90.00")
        assert result.reduction_amount == Decimal("10.00")
        assert result.reduction_percentage == Decimal("10.0")
        assert result.is_free_subscription is False

    def test_reduction_capped_at_parrain_price(self, calculator):
        result = calculator.calculate(Decimal("10.00"), Decimal("100.00"))
        assert result.new_price == Decimal("0.00")
        assert result.reduction_amount == Decimal("10.00")
        assert result.theoretical_reduction == Decimal("25.00")
        assert result.reduction_percentage == Decimal("100.0")
        assert result.is_free_subscription is True

    def test_free_parrain_stays_free(self, calculator):
        result = calculator.calculate(Decimal("0"), Decimal("50"))
        assert result.new_price == Decimal("0.00")
        assert result.reduction_amount == Decimal("0.00")
        assert result.reduction_percentage == Decimal("0.0")
        assert result.is_free_subscription is True

    def test_half_up_rounding_of_reduction(self, calculator):
        # 0.02 x 25% = 0.005 -> 0.01
        result = calculator.calculate("1.00", "0.02")
        assert result.theoretical_reduction == Decimal("0.01")
        assert result.new_price == Decimal("0.99")

    def test_accepts_int_float_and_str(self, calculator):
        for parrain, filleul in [(100, 40), (100.0, 40.0), ("100", "40")]:
            assert calculator.calculate(parrain, filleul).new_price == Decimal("90.00")

    def test_sub_cent_parrain_price_caps_reduction(self, calculator):
        result = calculator.calculate("0.005", "0.04")
        assert result.theoretical_reduction == Decimal("0.01")
        assert result.reduction_amount == Decimal("0.005")
        assert result.reduction_amount <= result.original_price
        assert result.reduction_percentage == Decimal("100.0")
        assert result.new_price == Decimal("0.00")

    def test_sub_cent_parrain_price_never_rounded_up(self, calculator):
        result = calculator.calculate("0.005", "0.01")
        assert result.theoretical_reduction == Decimal("0.00")
        assert result.new_price <= result.original_price
        assert ParrainPricingCalculator.is_result_consistent(result)

    def test_sub_cent_result_can_be_scheduled(self, calculator):
        result = calculator.calculate("0.005", "0.04")
        data = ScheduledPricingCreate.from_calculation(
            parrain_subscription_id=1,
            filleul_order_id=2,
            result=result,
            scheduled_date=datetime.now(timezone.utc),
        )
        assert data.reduction_percentage <= 100

    def test_float_inputs_keep_printed_value(self):
        assert to_decimal(0.1, "price") == Decimal("0.1")


class TestCalculateValidation:
    @pytest.mark.parametrize("parrain,filleul,field", [
        ("-1", "10", "parrain_current_ht"),
        ("10", "0", "filleul_ht_price"),
        ("10", "-5", "filleul_ht_price"),
        ("10001", "10", "parrain_current_ht"),
        ("10", "10000.01", "filleul_ht_price"),
        ("abc", "10", "parrain_current_ht"),
        ("10", "NaN", "filleul_ht_price"),
        ("Infinity", "10", "parrain_current_ht"),
        (True, "10", "parrain_current_ht"),
        (None, "10", "parrain_current_ht"),
    ])
    def test_invalid_inputs_raise(self, calculator, parrain, filleul, field):
        with pytest.raises(PricingValidationError) as exc_info:
            calculator.calculate(parrain, filleul)
        assert exc_info.value.field == field

    def test_validation_error_is_value_error(self, calculator):
        with pytest.raises(ValueError):
            calculator.calculate("-1", "10")


class TestCalculateProperties:
    @pytest.mark.parametrize("parrain", PRICES)
    def test_invariants_hold_over_price_grid(self, calculator, parrain):
        for filleul in FILLEUL_PRICES:
            result = calculator.calculate(parrain, filleul)
            p = Decimal(parrain)

            assert Decimal("0") <= result.new_price <= p
            assert result.reduction_amount == min(result.theoretical_reduction, p)
            assert result.reduction_amount <= p
            assert result.new_price + result.reduction_amount == p
            assert result.is_free_subscription == (result.new_price == 0)
            assert result.new_price.as_tuple().exponent == -2
            assert ParrainPricingCalculator.is_result_consistent(result)

    def test_deterministic(self, calculator):
        first = calculator.calculate("123.45", "67.89")
        second = calculator.calculate("123.45", "67.89")
        assert first.model_dump(exclude={"calculation_metadata"}) == \
            second.model_dump(exclude={"calculation_metadata"})

    def test_metadata_describes_calculation(self, calculator):
        metadata = calculator.calculate("100", "40").calculation_metadata
        assert metadata.contribution_percentage == 25
        assert metadata.precision_decimals == 2
        assert metadata.min_price_constraint == Decimal("0.00")
        assert metadata.calculation_timestamp > 0

    def test_custom_config(self):
        calculator = ParrainPricingCalculator(config=PricingConfig(contribution_percentage=50))
        assert calculator.calculate("100", "40").new_price == Decimal("80.00")


class TestSimulate:
    def test_valid_simulation(self, calculator):
        simulation = calculator.simulate("100", "40")
        assert simulation.is_simulation is True
        assert simulation.error is False
        assert simulation.result.new_price == Decimal("90.00")

    def test_invalid_simulation_returns_error_payload(self, calculator):
        simulation = calculator.simulate("-10", "40")
        assert simulation.error is True
        assert "parrain" in simulation.error_message
        assert simulation.result is None


class TestIsResultConsistent:
    def test_mapping_from_storage(self):
        assert ParrainPricingCalculator.is_result_consistent(
            {"original_price": "100.00", "new_price": "90.00"}
        )

    def test_new_price_above_original(self):
        assert not ParrainPricingCalculator.is_result_consistent(
            {"original_price": "10", "new_price": "11"}
        )

    def test_negative_new_price(self):
        assert not ParrainPricingCalculator.is_result_consistent(
            {"original_price": "10", "new_price": "-1"}
        )

    def test_missing_fields(self):
        assert not ParrainPricingCalculator.is_result_consistent({"new_price": "1"})
        assert not ParrainPricingCalculator.is_result_consistent(object())

    def test_garbage_values(self):
        assert not ParrainPricingCalculator.is_result_consistent(
            {"original_price": "abc", "new_price": "1"}
        )

    @pytest.mark.parametrize("original,new", [
        ("NaN", "1"),
        ("10", "NaN"),
        ("Infinity", "1"),
        ("10", "-Infinity"),
        ("sNaN", "1"),
    ])
    def test_non_finite_values(self, original, new):
        assert not ParrainPricingCalculator.is_result_consistent(
            {"original_price": original, "new_price": new}
        )


class TestLogging:
    def test_injected_logger_receives_calculation(self, caplog):
        logger = logging.getLogger("tests.pricing")
        calculator = ParrainPricingCalculator(logger=logger)
        with caplog.at_level(logging.INFO, logger="tests.pricing"):
            calculator.calculate("100", "40")
        assert any(record.name == "tests.pricing" for record in caplog.records)
        record = caplog.records[-1]
        assert record.component == "ParrainPricingCalculator"


class TestPricingConfig:
    def test_retry_delays(self):
        config = PricingConfig()
        assert config.get_retry_delay(1) == 60
        assert config.get_retry_delay(3) == 900
        assert config.get_retry_delay(7) == 900
        assert config.get_retry_delay(0) == 0

    def test_to_dict(self):
        data = PricingConfig().to_dict()
        assert data["filleul_contribution_percentage"] == 25
        assert data["retry_delays"] == [60, 300, 900]

    def test_valid_statuses_and_actions(self):
        config = PricingConfig()
        assert config.is_valid_status("pending")
        assert not config.is_valid_status("done")
        assert config.is_valid_action("remove_reduction")
