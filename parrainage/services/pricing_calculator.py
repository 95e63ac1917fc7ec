"""Parrain Pricing Calculator.

Computes the new parrain subscription price after a filleul purchase:

    new HT price = MAX(0, current HT price - round(filleul HT price x 25%, 2))

Example:
- Parrain pays 100.00 HT, filleul subscribes at 40.00 HT
- Theoretical reduction: 40.00 x 25% = 10.00
- New parrain price: 90.00 (10.0% reduction)

- Parrain pays 10.00 HT, filleul subscribes at 100.00 HT
- Theoretical reduction: 25.00, capped at 10.00
- New parrain price: 0.00 (free subscription)
"""
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union
import logging

from parrainage import __version__
from parrainage.core.exceptions import PricingValidationError
from parrainage.core.pricing_constants import PricingConfig, DEFAULT_PRICING_CONFIG
from parrainage.schemas.pricing import (
    CalculationMetadata, PricingCalculationResult, PricingSimulation
)

PriceInput = Union[Decimal, int, float, str]


def to_decimal(value: PriceInput, field: str) -> Decimal:
    """Convert a price input to Decimal, going through str() so floats keep their printed value."""
    if isinstance(value, bool):
        raise PricingValidationError(f"Invalid {field}: {value!r}", field=field, value=value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise PricingValidationError(f"Invalid {field}: {value!r}", field=field, value=value)
    if not amount.is_finite():
        raise PricingValidationError(f"Invalid {field}: {value!r}", field=field, value=value)
    return amount


class ParrainPricingCalculator:
    """Pure calculator for the parrain reduction."""

    FORMULA = "max(0, parrain_price - round(filleul_price * 0.25, 2))"

    def __init__(
        self,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def calculate(
        self,
        parrain_current_ht: PriceInput,
        filleul_ht_price: PriceInput,
    ) -> PricingCalculationResult:
        """
        Calculate the new parrain price.

        Args:
            parrain_current_ht: Current parrain HT price (>= 0)
            filleul_ht_price: Filleul subscription HT price (> 0)

        Returns:
            PricingCalculationResult

        Raises:
            PricingValidationError: If an input is negative, zero (filleul),
                not a number or above the sanity ceiling
        """
        parrain_price, filleul_price = self._validate_inputs(parrain_current_ht, filleul_ht_price)

        theoretical_reduction = self._round_money(filleul_price * self.config.contribution_rate)
        # Rounding a sub-cent price up must not exceed what the parrain paid
        new_price = max(
            self.config.min_parrain_price,
            min(self._round_money(parrain_price - theoretical_reduction), parrain_price),
        )
        # Realized reduction, never more than what the parrain paid
        reduction_amount = min(theoretical_reduction, parrain_price)
        reduction_percentage = self._reduction_percentage(parrain_price, reduction_amount)

        result = PricingCalculationResult(
            original_price=parrain_price,
            new_price=new_price,
            reduction_amount=reduction_amount,
            theoretical_reduction=theoretical_reduction,
            filleul_contribution=filleul_price,
            reduction_percentage=reduction_percentage,
            is_free_subscription=new_price == 0,
            calculation_metadata=self._build_metadata(),
        )

        self.logger.info(
            f"Parrain reduction calculated: {parrain_price} -> {new_price} "
            f"(filleul {filleul_price}, reduction {reduction_amount})",
            extra={
                "component": "ParrainPricingCalculator",
                "parrain_price": str(parrain_price),
                "filleul_price": str(filleul_price),
                "result": result.model_dump(mode="json"),
            },
        )

        return result

    def simulate(
        self,
        parrain_current_ht: PriceInput,
        filleul_ht_price: PriceInput,
    ) -> PricingSimulation:
        """Dry-run of calculate(); invalid input yields an error payload instead of raising."""
        simulation_date = datetime.now(timezone.utc)
        try:
            result = self.calculate(parrain_current_ht, filleul_ht_price)
        except PricingValidationError as e:
            return PricingSimulation(
                simulation_date=simulation_date,
                error=True,
                error_message=str(e),
            )
        return PricingSimulation(simulation_date=simulation_date, result=result)

    @staticmethod
    def is_result_consistent(result: Union[PricingCalculationResult, Mapping, Any]) -> bool:
        """
        Check 0 <= new_price <= original_price on a result.

        Accepts a fresh PricingCalculationResult, a mapping loaded from
        storage or any object exposing both attributes.
        """
        if isinstance(result, Mapping):
            new_price = result.get("new_price")
            original_price = result.get("original_price")
        else:
            new_price = getattr(result, "new_price", None)
            original_price = getattr(result, "original_price", None)

        if new_price is None or original_price is None:
            return False

        try:
            new_price = Decimal(str(new_price))
            original_price = Decimal(str(original_price))
        except InvalidOperation:
            return False
        if not new_price.is_finite() or not original_price.is_finite():
            return False

        if new_price > original_price:
            return False
        if new_price < 0:
            return False
        return True

    # ==================== Internals ====================

    def _validate_inputs(self, parrain_price: PriceInput, filleul_price: PriceInput):
        parrain = to_decimal(parrain_price, "parrain_current_ht")
        filleul = to_decimal(filleul_price, "filleul_ht_price")

        if parrain < 0:
            raise PricingValidationError(
                f"Invalid parrain price: {parrain}", field="parrain_current_ht", value=parrain
            )
        if filleul <= 0:
            raise PricingValidationError(
                f"Invalid filleul price: {filleul}", field="filleul_ht_price", value=filleul
            )

        ceiling = self.config.max_input_price
        if parrain > ceiling:
            raise PricingValidationError(
                f"Suspiciously high parrain price: {parrain} (max {ceiling})",
                field="parrain_current_ht", value=parrain,
            )
        if filleul > ceiling:
            raise PricingValidationError(
                f"Suspiciously high filleul price: {filleul} (max {ceiling})",
                field="filleul_ht_price", value=filleul,
            )

        return parrain, filleul

    def _round_money(self, amount: Decimal) -> Decimal:
        return amount.quantize(self.config.quantum, rounding=ROUND_HALF_UP)

    def _reduction_percentage(self, original_price: Decimal, reduction_amount: Decimal) -> Decimal:
        if original_price <= 0:
            return Decimal("0.0")
        return (reduction_amount / original_price * 100).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )

    def _build_metadata(self) -> CalculationMetadata:
        now = datetime.now(timezone.utc)
        return CalculationMetadata(
            calculation_date=now,
            calculation_timestamp=int(now.timestamp()),
            contribution_percentage=self.config.contribution_percentage,
            precision_decimals=self.config.precision,
            min_price_constraint=self.config.min_parrain_price,
            tool_version=__version__,
            calculation_formula=self.FORMULA,
        )
