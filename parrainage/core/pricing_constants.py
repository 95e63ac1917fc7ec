"""
Parrain Pricing Constants - Single Source of Truth

Business rules and scheduler policy for the automatic parrain reduction.
Values are fixed and not environment-tunable: services receive a
PricingConfig explicitly instead of reading global option storage.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Tuple


class PricingStatus(str, Enum):
    """Lifecycle status of a scheduled pricing change."""
    PENDING = "pending"         # Waiting to be applied
    APPLIED = "applied"         # Applied on the parrain subscription
    FAILED = "failed"           # Retries exhausted
    CANCELLED = "cancelled"     # e.g. subscription terminated


class PricingAction(str, Enum):
    """Kind of pricing change."""
    APPLY_REDUCTION = "apply_reduction"
    REMOVE_REDUCTION = "remove_reduction"


class ExecutionStatus(str, Enum):
    """Outcome recorded in the pricing history."""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PricingConfig:
    """Constants consumed by the calculator and exposed to the external scheduler."""

    # Calculation rules
    contribution_percentage: int = 25  # % of the filleul HT price deducted
    precision: int = 2  # Decimal places for all monetary fields
    min_parrain_price: Decimal = Decimal("0.00")
    max_input_price: Decimal = Decimal("10000")  # Sanity ceiling against corrupted upstream data

    # External scheduler policy
    retry_max_attempts: int = 3
    retry_delays: Tuple[int, ...] = (60, 300, 900)  # 1min, 5min, 15min
    max_batch_size: int = 50
    max_pending_days: int = 90

    valid_statuses: Tuple[str, ...] = field(
        default=tuple(s.value for s in PricingStatus)
    )
    valid_actions: Tuple[str, ...] = field(
        default=tuple(a.value for a in PricingAction)
    )

    @property
    def contribution_rate(self) -> Decimal:
        return Decimal(self.contribution_percentage) / Decimal(100)

    @property
    def quantum(self) -> Decimal:
        """Smallest monetary unit, e.g. Decimal('0.01') for a precision of 2."""
        return Decimal(1).scaleb(-self.precision)

    def is_valid_status(self, status: str) -> bool:
        return status in self.valid_statuses

    def is_valid_action(self, action: str) -> bool:
        return action in self.valid_actions

    def get_retry_delay(self, attempt: int) -> int:
        """Delay in seconds before retry number `attempt` (1-based); last delay repeats."""
        if attempt < 1:
            return 0
        index = min(attempt, len(self.retry_delays)) - 1
        return self.retry_delays[index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filleul_contribution_percentage": self.contribution_percentage,
            "min_parrain_price": str(self.min_parrain_price),
            "calculation_precision": self.precision,
            "max_input_price": str(self.max_input_price),
            "retry_max_attempts": self.retry_max_attempts,
            "retry_delays": list(self.retry_delays),
            "max_batch_size": self.max_batch_size,
            "max_pending_days": self.max_pending_days,
        }


DEFAULT_PRICING_CONFIG = PricingConfig()
