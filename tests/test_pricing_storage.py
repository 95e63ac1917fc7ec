"""
Tests: scheduled pricing storage and history.

Run with:
    pytest tests/test_pricing_storage.py -v
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from parrainage.core.pricing_constants import PricingAction, PricingStatus, ExecutionStatus
from parrainage.schemas.pricing import ScheduledPricingCreate, PricingHistoryCreate
from parrainage.services.pricing_calculator import ParrainPricingCalculator
from parrainage.services.pricing_storage import ParrainPricingStorage, ALREADY_SCHEDULED


pytestmark = pytest.mark.asyncio


def make_schedule(subscription_id: int = 101, order_id: int = 5001, **overrides) -> ScheduledPricingCreate:
    result = ParrainPricingCalculator().calculate("100.00", "40.00")
    data = ScheduledPricingCreate.from_calculation(
        parrain_subscription_id=subscription_id,
        filleul_order_id=order_id,
        result=result,
        scheduled_date=datetime.now(timezone.utc) + timedelta(days=3),
    )
    return data.model_copy(update=overrides)


class TestStoreScheduledPricing:
    async def test_store_pending_row(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        result = await storage.store_scheduled_pricing(make_schedule())

        assert result.success is True
        assert result.pricing_id is not None

        pending = await storage.get_pending_pricing(101)
        assert pending.id == result.pricing_id
        assert pending.status == PricingStatus.PENDING.value
        assert pending.retry_count == 0
        assert pending.new_price == Decimal("90.00")
        assert "calculation_metadata" in pending.schedule_metadata

    async def test_second_pending_row_is_refused(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        first = await storage.store_scheduled_pricing(make_schedule())
        second = await storage.store_scheduled_pricing(make_schedule(order_id=5002))

        assert second.success is False
        assert second.error == ALREADY_SCHEDULED
        assert second.existing_id == first.pricing_id

    async def test_concurrent_insert_reported_as_already_scheduled(self, migrated_db, monkeypatch):
        storage = ParrainPricingStorage(migrated_db)
        first = await storage.store_scheduled_pricing(make_schedule())

        real_lookup = storage.get_pending_pricing
        calls = []

        async def stale_lookup(subscription_id):
            # First lookup misses the row, as if it was inserted concurrently
            calls.append(subscription_id)
            if len(calls) == 1:
                return None
            return await real_lookup(subscription_id)

        monkeypatch.setattr(storage, "get_pending_pricing", stale_lookup)

        second = await storage.store_scheduled_pricing(make_schedule(order_id=5002))

        assert second.success is False
        assert second.error == ALREADY_SCHEDULED
        assert second.existing_id == first.pricing_id

    async def test_other_subscriptions_are_independent(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        assert (await storage.store_scheduled_pricing(make_schedule(101))).success
        assert (await storage.store_scheduled_pricing(make_schedule(102))).success

    async def test_dict_input_is_validated(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        result = await storage.store_scheduled_pricing({"parrain_subscription_id": 0})
        assert result.success is False
        assert "Invalid scheduling data" in result.error

    async def test_reduction_above_original_price_is_refused(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        result = await storage.store_scheduled_pricing(make_schedule(new_price=Decimal("120.00")))
        assert result.success is False
        assert "exceeds original price" in result.error

    async def test_schedule_too_far_ahead_is_refused(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        far = datetime.now(timezone.utc) + timedelta(days=365)
        result = await storage.store_scheduled_pricing(make_schedule(scheduled_date=far))
        assert result.success is False
        assert "days ahead" in result.error

    async def test_remove_reduction_may_raise_price(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        result = await storage.store_scheduled_pricing(make_schedule(
            action=PricingAction.REMOVE_REDUCTION,
            original_price=Decimal("90.00"),
            new_price=Decimal("100.00"),
        ))
        assert result.success is True


class TestStatusTransitions:
    async def test_mark_as_applied(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        stored = await storage.store_scheduled_pricing(make_schedule())

        assert await storage.mark_as_applied(stored.pricing_id) is True

        pricing = await storage.get_pricing(stored.pricing_id)
        assert pricing.status == PricingStatus.APPLIED.value
        assert pricing.applied_date is not None
        assert await storage.get_pending_pricing(101) is None

    async def test_failed_after_third_failure(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        stored = await storage.store_scheduled_pricing(make_schedule())

        for attempt in (1, 2):
            assert await storage.mark_as_failed(stored.pricing_id, f"gateway timeout {attempt}")
            pricing = await storage.get_pricing(stored.pricing_id)
            assert pricing.status == PricingStatus.PENDING.value
            assert pricing.retry_count == attempt

        retries = await storage.get_pending_retries()
        assert [p.id for p in retries] == [stored.pricing_id]

        assert await storage.mark_as_failed(stored.pricing_id, "gateway timeout 3")
        pricing = await storage.get_pricing(stored.pricing_id)
        assert pricing.status == PricingStatus.FAILED.value
        assert pricing.retry_count == 3
        assert pricing.schedule_metadata["last_error"] == "gateway timeout 3"
        assert "last_error_date" in pricing.schedule_metadata
        assert await storage.get_pending_retries() == []

    async def test_mark_as_cancelled_keeps_row(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        stored = await storage.store_scheduled_pricing(make_schedule())

        assert await storage.mark_as_cancelled(stored.pricing_id, "subscription terminated")

        pricing = await storage.get_pricing(stored.pricing_id)
        assert pricing.status == PricingStatus.CANCELLED.value
        assert pricing.schedule_metadata["cancel_reason"] == "subscription terminated"

        # A new change can be scheduled once the previous one is settled
        assert (await storage.store_scheduled_pricing(make_schedule(order_id=5002))).success

    async def test_unknown_pricing_id(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        assert await storage.mark_as_applied(999) is False
        assert await storage.mark_as_failed(999, "boom") is False
        assert await storage.mark_as_cancelled(999) is False

    async def test_second_applied_row_for_subscription_is_refused(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        first = await storage.store_scheduled_pricing(make_schedule())
        await storage.mark_as_applied(first.pricing_id)
        second = await storage.store_scheduled_pricing(make_schedule(order_id=5002))

        assert await storage.mark_as_applied(second.pricing_id) is False

        pricing = await storage.get_pricing(second.pricing_id)
        assert pricing.status == PricingStatus.PENDING.value


class TestHistory:
    async def test_history_is_append_only_and_newest_first(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        for i in range(3):
            record = await storage.store_history_record(PricingHistoryCreate(
                parrain_subscription_id=101,
                filleul_order_id=5000 + i,
                action="apply_reduction",
                price_before=Decimal("100.00"),
                price_after=Decimal("90.00"),
                reduction_amount=Decimal("10.00"),
                execution_status=ExecutionStatus.SUCCESS,
                execution_details={"attempt": i},
            ))
            assert record.id is not None

        history = await storage.get_pricing_history(101)
        assert [h.filleul_order_id for h in history] == [5002, 5001, 5000]
        assert history[0].execution_details == {"attempt": 2}
        assert history[0].user_notified is False

        assert len(await storage.get_pricing_history(101, limit=2)) == 2
        assert await storage.get_pricing_history(999) == []

    async def test_invalid_history_record(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        assert await storage.store_history_record({"parrain_subscription_id": 101}) is None


class TestSettledRows:
    async def test_settled_row_cannot_change_again(self, migrated_db):
        storage = ParrainPricingStorage(migrated_db)
        stored = await storage.store_scheduled_pricing(make_schedule())
        await storage.mark_as_applied(stored.pricing_id)

        assert await storage.mark_as_cancelled(stored.pricing_id) is False
        assert await storage.mark_as_failed(stored.pricing_id, "late error") is False

        pricing = await storage.get_pricing(stored.pricing_id)
        assert pricing.status == PricingStatus.APPLIED.value
        assert pricing.retry_count == 0
