"""Pydantic schemas for parrain pricing calculations and scheduling."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from pydantic import Field

from parrainage.core.pricing_constants import PricingAction, PricingStatus, ExecutionStatus
from parrainage.schemas.base import BaseCreateSchema, BaseResponseSchema, FrozenSchema


# ==================== Calculation ====================

class CalculationMetadata(FrozenSchema):
    """Audit context of a calculation. No effect on the result."""
    calculation_date: datetime
    calculation_timestamp: int
    contribution_percentage: int
    precision_decimals: int
    min_price_constraint: Decimal
    tool_version: str
    calculation_formula: str


class PricingCalculationResult(FrozenSchema):
    """Result of the parrain reduction calculation."""
    original_price: Decimal
    new_price: Decimal
    reduction_amount: Decimal
    theoretical_reduction: Decimal
    filleul_contribution: Decimal
    reduction_percentage: Decimal
    is_free_subscription: bool
    calculation_metadata: CalculationMetadata


class PricingSimulation(FrozenSchema):
    """Dry-run calculation. Validation failures are reported, not raised."""
    is_simulation: bool = True
    simulation_date: datetime
    error: bool = False
    error_message: Optional[str] = None
    result: Optional[PricingCalculationResult] = None


# ==================== Scheduling ====================

class ScheduledPricingCreate(BaseCreateSchema):
    """Data required to schedule a parrain price change."""
    parrain_subscription_id: int = Field(..., gt=0)
    filleul_order_id: int = Field(..., gt=0)
    action: PricingAction = PricingAction.APPLY_REDUCTION
    original_price: Decimal = Field(..., ge=0)
    new_price: Decimal = Field(..., ge=0)
    reduction_amount: Decimal = Field(..., ge=0)
    filleul_contribution: Decimal = Field(..., ge=0)
    reduction_percentage: Decimal = Field(..., ge=0, le=100)
    scheduled_date: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_calculation(
        cls,
        parrain_subscription_id: int,
        filleul_order_id: int,
        result: PricingCalculationResult,
        scheduled_date: datetime,
        action: PricingAction = PricingAction.APPLY_REDUCTION,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ScheduledPricingCreate":
        """Build scheduling data from a calculation result."""
        extra = dict(metadata or {})
        extra.setdefault(
            "calculation_metadata",
            result.calculation_metadata.model_dump(mode="json"),
        )
        return cls(
            parrain_subscription_id=parrain_subscription_id,
            filleul_order_id=filleul_order_id,
            action=action,
            original_price=result.original_price,
            new_price=result.new_price,
            reduction_amount=result.reduction_amount,
            filleul_contribution=result.filleul_contribution,
            reduction_percentage=result.reduction_percentage,
            scheduled_date=scheduled_date,
            metadata=extra,
        )


class PricingScheduleResponse(BaseResponseSchema):
    """Schedule row as exposed to callers."""
    id: int
    parrain_subscription_id: int
    filleul_order_id: int
    action: str
    original_price: Decimal
    new_price: Decimal
    reduction_amount: Decimal
    filleul_contribution: Decimal
    reduction_percentage: Decimal
    scheduled_date: datetime
    applied_date: Optional[datetime] = None
    status: PricingStatus
    retry_count: int
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="schedule_metadata")
    created_at: datetime
    updated_at: datetime


class SchedulingResult(FrozenSchema):
    """Outcome of PricingStorage.store_scheduled_pricing."""
    success: bool
    pricing_id: Optional[int] = None
    existing_id: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None


# ==================== History ====================

class PricingHistoryCreate(BaseCreateSchema):
    """Audit entry for a schedule transition."""
    parrain_subscription_id: int = Field(..., gt=0)
    filleul_order_id: int = Field(..., gt=0)
    action: str = Field(..., max_length=50)
    price_before: Decimal
    price_after: Decimal
    reduction_amount: Decimal
    execution_status: ExecutionStatus
    execution_details: Dict[str, Any] = Field(default_factory=dict)
    user_notified: bool = False


class PricingHistoryResponse(BaseResponseSchema):
    id: int
    parrain_subscription_id: int
    filleul_order_id: int
    action: str
    price_before: Decimal
    price_after: Decimal
    reduction_amount: Decimal
    execution_status: ExecutionStatus
    execution_details: Optional[Dict[str, Any]] = None
    user_notified: bool
    created_at: datetime


class PricingHistoryListResponse(BaseResponseSchema):
    items: List[PricingHistoryResponse]
    total: int
