"""Parrain pricing models.

- PricingSchedule: scheduled price changes (mutable, one pending row per parrain subscription)
- PricingHistory: immutable audit trail of executed/failed/cancelled changes

The UNIQUE (parrain_subscription_id, status) constraint is the only
concurrency control: a second pending change for the same subscription is
rejected by the database.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, BigInteger, SmallInteger
from sqlalchemy import UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from parrainage.database import Base
from parrainage.db_types import JSONType, BigIntPK, MoneyType, PercentType


SCHEDULE_TABLE = "tb_parrainage_pricing_schedule"
HISTORY_TABLE = "tb_parrainage_pricing_history"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PricingSchedule(Base):
    """
    Scheduled modification of a parrain subscription price.

    Created when a filleul purchase fires, mutated when the scheduler
    applies, retries or cancels it. Rows are never deleted.
    """
    __tablename__ = SCHEDULE_TABLE
    __table_args__ = (
        UniqueConstraint(
            'parrain_subscription_id', 'status',
            name='unique_active_pricing'
        ),
        CheckConstraint(
            "action IN ('apply_reduction', 'remove_reduction')",
            name='check_pricing_schedule_action'
        ),
        CheckConstraint(
            "status IN ('pending', 'applied', 'failed', 'cancelled')",
            name='check_pricing_schedule_status'
        ),
        Index('idx_parrain_subscription', 'parrain_subscription_id'),
        Index('idx_scheduled_date', 'scheduled_date'),
        Index('idx_status_retry', 'status', 'retry_count'),
        Index('idx_schedule_created_at', 'created_at'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    parrain_subscription_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Parrain subscription ID"
    )
    filleul_order_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Filleul order that triggered the change"
    )
    action: Mapped[str] = mapped_column(String(20), nullable=False)

    # Pricing snapshot
    original_price: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, comment="Parrain HT price before the change"
    )
    new_price: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, comment="Computed parrain HT price"
    )
    reduction_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    filleul_contribution: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, comment="Filleul HT price"
    )
    reduction_percentage: Mapped[Decimal] = mapped_column(PercentType, nullable=False)

    # Scheduling and state
    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    applied_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    retry_count: Mapped[int] = mapped_column(SmallInteger, default=0, nullable=False)

    schedule_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        comment="Additional context (calculation metadata, last error)"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<PricingSchedule(id={self.id}, subscription={self.parrain_subscription_id}, "
            f"status='{self.status}')>"
        )


class PricingHistory(Base):
    """Append-only audit entry, written once per schedule transition."""
    __tablename__ = HISTORY_TABLE
    __table_args__ = (
        CheckConstraint(
            "execution_status IN ('success', 'failed', 'cancelled')",
            name='check_pricing_history_execution_status'
        ),
        Index('idx_parrain_history', 'parrain_subscription_id', 'created_at'),
        Index('idx_execution_status', 'execution_status'),
        Index('idx_history_created_at', 'created_at'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    parrain_subscription_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    filleul_order_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    # Before/after state
    price_before: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    price_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    reduction_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # Execution context
    execution_status: Mapped[str] = mapped_column(String(20), nullable=False)
    execution_details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    user_notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<PricingHistory(id={self.id}, subscription={self.parrain_subscription_id}, "
            f"execution_status='{self.execution_status}')>"
        )
