"""
Parrain Pricing Schema Migration

Creates and versions the tables of the automatic parrain reduction:
- tb_parrainage_pricing_schedule (scheduled changes, SSOT)
- tb_parrainage_pricing_history (immutable audit trail)

State machine over the persisted DB version option:
1. Check: current version >= target -> no-op
2. Migrate: run every version gate above the current version, in order
3. Commit: persist the target version only after all gates succeed

Any failure aborts without writing the version, so a retry re-runs the
same gate from scratch (table creation and verification are idempotent).
Rollback drops both tables and clears the version; it is a manual
recovery path and is never invoked automatically.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, func, or_, inspect
from sqlalchemy.ext.asyncio import AsyncSession

from parrainage.core.exceptions import MigrationError
from parrainage.core.versioning import version_gte, version_lt
from parrainage.models.pricing import PricingSchedule, PricingHistory
from parrainage.schemas.migration import MigrationStatus, TableStatus, IntegrityReport
from parrainage.services.option_service import OptionStore


PRICING_TABLES = {
    "pricing_schedule": PricingSchedule.__table__,
    "pricing_history": PricingHistory.__table__,
}


class ParrainPricingMigration:
    """Version-gated creation of the parrain pricing tables."""

    DB_VERSION = "2.0.0"
    DB_VERSION_OPTION = "wc_tb_parrainage_db_version"
    DEFAULT_VERSION = "0.0.0"

    # (version, method name) in ascending order
    MIGRATION_GATES = [
        ("2.0.0", "_migrate_to_2_0_0"),
    ]

    def __init__(
        self,
        db: AsyncSession,
        options: Optional[OptionStore] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.options = options or OptionStore(db)
        self.logger = logger or logging.getLogger(__name__)

    async def get_current_version(self) -> str:
        return str(await self.options.get(self.DB_VERSION_OPTION, self.DEFAULT_VERSION))

    async def migrate(self) -> bool:
        """
        Run the pending migrations.

        Returns:
            True if migrations ran, False if already up to date

        Raises:
            MigrationError: If a gate failed; the stored version is unchanged
        """
        current_version = await self.get_current_version()

        if version_gte(current_version, self.DB_VERSION):
            return False

        try:
            for gate_version, method_name in self.MIGRATION_GATES:
                if version_lt(current_version, gate_version) and not version_lt(self.DB_VERSION, gate_version):
                    self.logger.info(f"Running pricing migration gate {gate_version}")
                    await getattr(self, method_name)()

            await self.options.update(self.DB_VERSION_OPTION, self.DB_VERSION)
            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            self.options.invalidate()
            self.logger.error(
                f"Pricing database migration failed: {e}",
                extra={
                    "component": "ParrainPricingMigration",
                    "from_version": current_version,
                    "target_version": self.DB_VERSION,
                },
            )
            if isinstance(e, MigrationError):
                raise
            raise MigrationError(
                f"Migration {current_version} -> {self.DB_VERSION} failed: {e}",
                from_version=current_version,
                target_version=self.DB_VERSION,
            ) from e

        self.logger.info(
            f"Pricing database migrated from {current_version} to {self.DB_VERSION}",
            extra={
                "component": "ParrainPricingMigration",
                "from_version": current_version,
                "to_version": self.DB_VERSION,
            },
        )
        return True

    async def _migrate_to_2_0_0(self) -> None:
        """Create the schedule and history tables, then verify them."""
        await self._create_tables()
        await self._verify_tables_creation()

    async def _create_tables(self) -> None:
        # checkfirst gives CREATE TABLE IF NOT EXISTS semantics
        tables = list(PRICING_TABLES.values())
        await self.db.run_sync(
            lambda sync_session: PricingSchedule.metadata.create_all(
                sync_session.connection(), tables=tables, checkfirst=True
            )
        )

    async def _table_exists(self, table_name: str) -> bool:
        return await self.db.run_sync(
            lambda sync_session: inspect(sync_session.connection()).has_table(table_name)
        )

    async def _verify_tables_creation(self) -> None:
        for table in PRICING_TABLES.values():
            if not await self._table_exists(table.name):
                raise MigrationError(
                    f"Table missing after migration: {table.name}",
                    target_version=self.DB_VERSION,
                )

    async def rollback(self) -> bool:
        """
        Drop the pricing tables and clear the DB version.

        Errors are logged, not raised. Returns True on success.
        """
        tables = list(PRICING_TABLES.values())
        try:
            await self.db.run_sync(
                lambda sync_session: PricingSchedule.metadata.drop_all(
                    sync_session.connection(), tables=tables, checkfirst=True
                )
            )
            await self.options.delete(self.DB_VERSION_OPTION)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            self.options.invalidate()
            self.logger.error(
                f"Pricing migration rollback failed: {e}",
                extra={"component": "ParrainPricingMigration"},
            )
            return False

        self.logger.info(
            "Pricing migration rolled back",
            extra={
                "component": "ParrainPricingMigration",
                "tables_dropped": [t.name for t in tables],
            },
        )
        return True

    async def get_status(self) -> MigrationStatus:
        """Current vs target version, table existence and row counts."""
        current_version = await self.get_current_version()

        tables: Dict[str, TableStatus] = {}
        for key, table in PRICING_TABLES.items():
            exists = await self._table_exists(table.name)
            row_count = 0
            if exists:
                result = await self.db.execute(select(func.count()).select_from(table))
                row_count = result.scalar() or 0
            tables[key] = TableStatus(name=table.name, exists=exists, row_count=row_count)

        return MigrationStatus(
            current_version=current_version,
            target_version=self.DB_VERSION,
            is_up_to_date=version_gte(current_version, self.DB_VERSION),
            needs_migration=version_lt(current_version, self.DB_VERSION),
            tables=tables,
        )

    async def check_data_integrity(self) -> IntegrityReport:
        """
        Report anomalies in the schedule table. Nothing is repaired.

        - several pending rows for one parrain subscription (should be
          impossible with unique_active_pricing)
        - negative original/new/reduction amounts
        """
        issues: List[str] = []
        schedule = PricingSchedule.__table__

        if await self._table_exists(schedule.name):
            duplicates = (
                select(schedule.c.parrain_subscription_id)
                .where(schedule.c.status == "pending")
                .group_by(schedule.c.parrain_subscription_id)
                .having(func.count() > 1)
                .subquery()
            )
            result = await self.db.execute(select(func.count()).select_from(duplicates))
            duplicate_pending = result.scalar() or 0
            if duplicate_pending > 0:
                issues.append(
                    f"Subscriptions with several pending reductions: {duplicate_pending}"
                )

            result = await self.db.execute(
                select(func.count()).select_from(schedule).where(
                    or_(
                        schedule.c.original_price < 0,
                        schedule.c.new_price < 0,
                        schedule.c.reduction_amount < 0,
                    )
                )
            )
            invalid_prices = result.scalar() or 0
            if invalid_prices > 0:
                issues.append(f"Records with negative prices: {invalid_prices}")

        if issues:
            self.logger.warning(
                f"Pricing data integrity issues: {issues}",
                extra={"component": "ParrainPricingMigration"},
            )

        return IntegrityReport(
            is_valid=not issues,
            issues=issues,
            checked_at=datetime.now(timezone.utc),
        )
