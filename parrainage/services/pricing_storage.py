"""
Parrain Pricing Storage

Persistence of scheduled pricing changes and their audit trail.

Schedule rows move pending -> applied | failed | cancelled and are never
deleted. History rows are append-only.

Concurrency: the unique_active_pricing constraint rejects a second row
with the same (parrain_subscription_id, status). A conflicting insert is
reported as "already scheduled", never retried.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parrainage.core.exceptions import SchedulingError
from parrainage.core.pricing_constants import (
    PricingAction, PricingConfig, PricingStatus, DEFAULT_PRICING_CONFIG
)
from parrainage.models.pricing import PricingSchedule, PricingHistory
from parrainage.schemas.pricing import (
    ScheduledPricingCreate, PricingHistoryCreate, SchedulingResult
)


ALREADY_SCHEDULED = "A price change is already scheduled for this subscription"


class ParrainPricingStorage:
    """Service for scheduled parrain price changes and their history."""

    def __init__(
        self,
        db: AsyncSession,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    # ==================== SCHEDULE ====================

    async def store_scheduled_pricing(self, data: ScheduledPricingCreate | dict) -> SchedulingResult:
        """
        Store a scheduled price change in pending status.

        Args:
            data: ScheduledPricingCreate, or a dict validated into one

        Returns:
            SchedulingResult with the new pricing_id, or the existing pending
            row id when the subscription already has one
        """
        try:
            if not isinstance(data, ScheduledPricingCreate):
                data = ScheduledPricingCreate.model_validate(data)
        except ValidationError as e:
            self.logger.error(
                f"Invalid scheduling data: {e.errors()}",
                extra={"component": "ParrainPricingStorage", "action": "store_scheduled_pricing"},
            )
            return SchedulingResult(success=False, error=f"Invalid scheduling data: {e}")

        try:
            self._validate_schedule(data)
        except SchedulingError as e:
            self.logger.error(
                f"Scheduling rejected: {e}",
                extra={"component": "ParrainPricingStorage", "action": "store_scheduled_pricing"},
            )
            return SchedulingResult(success=False, error=str(e))

        existing = await self.get_pending_pricing(data.parrain_subscription_id)
        if existing:
            return SchedulingResult(
                success=False,
                error=ALREADY_SCHEDULED,
                existing_id=existing.id,
            )

        schedule = PricingSchedule(
            parrain_subscription_id=data.parrain_subscription_id,
            filleul_order_id=data.filleul_order_id,
            action=data.action.value,
            original_price=data.original_price,
            new_price=data.new_price,
            reduction_amount=data.reduction_amount,
            filleul_contribution=data.filleul_contribution,
            reduction_percentage=data.reduction_percentage,
            scheduled_date=data.scheduled_date,
            status=PricingStatus.PENDING.value,
            retry_count=0,
            schedule_metadata=data.metadata,
        )

        try:
            self.db.add(schedule)
            await self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent insert for the same subscription
            await self.db.rollback()
            existing = await self.get_pending_pricing(data.parrain_subscription_id)
            self.logger.warning(
                f"Concurrent pending pricing for subscription {data.parrain_subscription_id}",
                extra={"component": "ParrainPricingStorage", "action": "store_scheduled_pricing"},
            )
            return SchedulingResult(
                success=False,
                error=ALREADY_SCHEDULED,
                existing_id=existing.id if existing else None,
            )

        self.logger.info(
            f"Scheduled pricing {schedule.id} stored for subscription {data.parrain_subscription_id}",
            extra={
                "component": "ParrainPricingStorage",
                "action": "store_scheduled_pricing",
                "pricing_id": schedule.id,
                "scheduled_date": data.scheduled_date.isoformat(),
            },
        )

        return SchedulingResult(
            success=True,
            pricing_id=schedule.id,
            message="Price change scheduled",
        )

    def _validate_schedule(self, data: ScheduledPricingCreate) -> None:
        if data.action == PricingAction.APPLY_REDUCTION and data.new_price > data.original_price:
            raise SchedulingError(
                f"New price {data.new_price} exceeds original price {data.original_price}"
            )
        scheduled = data.scheduled_date
        if scheduled.tzinfo is None:
            scheduled = scheduled.replace(tzinfo=timezone.utc)
        horizon = datetime.now(timezone.utc) + timedelta(days=self.config.max_pending_days)
        if scheduled > horizon:
            raise SchedulingError(
                f"Scheduled date {scheduled.isoformat()} is more than "
                f"{self.config.max_pending_days} days ahead"
            )

    async def get_pricing(self, pricing_id: int) -> Optional[PricingSchedule]:
        result = await self.db.execute(
            select(PricingSchedule).where(PricingSchedule.id == pricing_id)
        )
        return result.scalar_one_or_none()

    async def get_pending_pricing(self, subscription_id: int) -> Optional[PricingSchedule]:
        """Get the pending change for a parrain subscription, if any."""
        result = await self.db.execute(
            select(PricingSchedule)
            .where(
                PricingSchedule.parrain_subscription_id == subscription_id,
                PricingSchedule.status == PricingStatus.PENDING.value,
            )
            .order_by(PricingSchedule.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def mark_as_applied(self, pricing_id: int) -> bool:
        """Mark a scheduled change as applied. Returns False if it cannot be updated."""
        return await self._transition(
            pricing_id,
            PricingStatus.APPLIED,
            applied_date=datetime.now(timezone.utc),
        )

    async def mark_as_cancelled(self, pricing_id: int, reason: str = "") -> bool:
        """Cancel a scheduled change, keeping the row for audit."""
        schedule = await self.get_pricing(pricing_id)
        if schedule is None:
            return False

        metadata = dict(schedule.schedule_metadata or {})
        if reason:
            metadata["cancel_reason"] = reason
            metadata["cancelled_at"] = datetime.now(timezone.utc).isoformat()

        return await self._transition(pricing_id, PricingStatus.CANCELLED, schedule_metadata=metadata)

    async def mark_as_failed(self, pricing_id: int, error_message: str = "") -> bool:
        """
        Record a failed attempt.

        retry_count is incremented; the row stays pending until the retry
        budget is exhausted, then becomes failed.
        """
        schedule = await self.get_pricing(pricing_id)
        if schedule is None:
            return False

        retry_count = schedule.retry_count + 1
        metadata = dict(schedule.schedule_metadata or {})
        if error_message:
            metadata["last_error"] = error_message
            metadata["last_error_date"] = datetime.now(timezone.utc).isoformat()

        final_status = (
            PricingStatus.FAILED
            if retry_count >= self.config.retry_max_attempts
            else PricingStatus.PENDING
        )

        updated = await self._transition(
            pricing_id,
            final_status,
            retry_count=retry_count,
            schedule_metadata=metadata,
        )

        if updated:
            self.logger.warning(
                f"Pricing {pricing_id} attempt failed ({retry_count}/"
                f"{self.config.retry_max_attempts}): {error_message}",
                extra={
                    "component": "ParrainPricingStorage",
                    "pricing_id": pricing_id,
                    "retry_count": retry_count,
                    "final_status": final_status.value,
                },
            )
        return updated

    async def get_pending_retries(self) -> List[PricingSchedule]:
        """Pending rows that already failed at least once and still have retries left."""
        result = await self.db.execute(
            select(PricingSchedule)
            .where(
                PricingSchedule.status == PricingStatus.PENDING.value,
                PricingSchedule.retry_count > 0,
                PricingSchedule.retry_count < self.config.retry_max_attempts,
            )
            .order_by(PricingSchedule.updated_at.asc())
        )
        return list(result.scalars().all())

    async def _transition(self, pricing_id: int, status: PricingStatus, **values) -> bool:
        schedule = await self.get_pricing(pricing_id)
        if schedule is None:
            return False
        if schedule.status != PricingStatus.PENDING.value:
            self.logger.warning(
                f"Pricing {pricing_id} is already {schedule.status}, cannot move to {status.value}",
                extra={"component": "ParrainPricingStorage", "pricing_id": pricing_id},
            )
            return False

        schedule.status = status.value
        for key, value in values.items():
            setattr(schedule, key, value)

        try:
            await self.db.commit()
        except IntegrityError as e:
            # unique_active_pricing also holds for applied/failed/cancelled rows
            await self.db.rollback()
            self.logger.error(
                f"Cannot move pricing {pricing_id} to {status.value}: {e.orig}",
                extra={"component": "ParrainPricingStorage", "pricing_id": pricing_id},
            )
            return False

        self.logger.info(
            f"Pricing {pricing_id} marked as {status.value}",
            extra={"component": "ParrainPricingStorage", "pricing_id": pricing_id},
        )
        return True

    # ==================== HISTORY ====================

    async def store_history_record(self, data: PricingHistoryCreate | dict) -> Optional[PricingHistory]:
        """Append an audit entry. Returns the stored row, or None on failure."""
        try:
            if not isinstance(data, PricingHistoryCreate):
                data = PricingHistoryCreate.model_validate(data)
        except ValidationError as e:
            self.logger.error(
                f"Invalid history data: {e.errors()}",
                extra={"component": "ParrainPricingStorage"},
            )
            return None

        record = PricingHistory(
            parrain_subscription_id=data.parrain_subscription_id,
            filleul_order_id=data.filleul_order_id,
            action=data.action,
            price_before=data.price_before,
            price_after=data.price_after,
            reduction_amount=data.reduction_amount,
            execution_status=data.execution_status.value,
            execution_details=data.execution_details,
            user_notified=data.user_notified,
        )
        self.db.add(record)
        await self.db.commit()
        return record

    async def get_pricing_history(self, subscription_id: int, limit: int = 20) -> List[PricingHistory]:
        """Most recent audit entries first."""
        result = await self.db.execute(
            select(PricingHistory)
            .where(PricingHistory.parrain_subscription_id == subscription_id)
            .order_by(PricingHistory.created_at.desc(), PricingHistory.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
