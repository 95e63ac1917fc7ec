#!/usr/bin/env python3
"""
Create, inspect or drop the parrain pricing tables.

    python3 scripts/migrate_pricing_schema.py migrate
    python3 scripts/migrate_pricing_schema.py status
    python3 scripts/migrate_pricing_schema.py integrity
    python3 scripts/migrate_pricing_schema.py rollback --yes
"""
import asyncio
import sys

from parrainage.core.exceptions import MigrationError
from parrainage.core.logging_config import configure_logging
from parrainage.database import get_db_session
from parrainage.services.pricing_migration import ParrainPricingMigration


async def run_migrate() -> int:
    async with get_db_session() as db:
        migration = ParrainPricingMigration(db)
        try:
            migrated = await migration.migrate()
        except MigrationError as e:
            print(f"❌ {e.message}")
            return 1

    if migrated:
        print(f"✅ Pricing tables migrated to {ParrainPricingMigration.DB_VERSION}")
    else:
        print(f"Already at {ParrainPricingMigration.DB_VERSION}, nothing to do")
    return 0


async def show_status() -> int:
    async with get_db_session() as db:
        status = await ParrainPricingMigration(db).get_status()

    print(f"Current version: {status.current_version}")
    print(f"Target version:  {status.target_version}")
    print(f"Needs migration: {'Yes' if status.needs_migration else 'No'}")
    for key, table in status.tables.items():
        state = f"{table.row_count} rows" if table.exists else "missing"
        print(f"- {table.name}: {state}")
    return 0


async def check_integrity() -> int:
    async with get_db_session() as db:
        report = await ParrainPricingMigration(db).check_data_integrity()

    if report.is_valid:
        print("✅ No integrity issues")
        return 0
    for issue in report.issues:
        print(f"⚠️  {issue}")
    return 1


async def run_rollback() -> int:
    async with get_db_session() as db:
        ok = await ParrainPricingMigration(db).rollback()
    print("✅ Pricing tables dropped" if ok else "❌ Rollback failed, see logs")
    return 0 if ok else 1


COMMANDS = {
    "migrate": run_migrate,
    "status": show_status,
    "integrity": check_integrity,
    "rollback": run_rollback,
}


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Parrain pricing schema migration")
    parser.add_argument("command", choices=sorted(COMMANDS), help="Operation to run")
    parser.add_argument("--yes", action="store_true", help="Confirm a rollback (drops both tables)")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (e.g. DEBUG)")
    args = parser.parse_args()

    if args.command == "rollback" and not args.yes:
        print("⚠️  Rollback drops the pricing tables and their data. Re-run with --yes to confirm.")
        return 1

    configure_logging(args.log_level)
    return asyncio.run(COMMANDS[args.command]())


if __name__ == "__main__":
    sys.exit(main())
