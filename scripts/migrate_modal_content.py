#!/usr/bin/env python3
"""
Migrate the legacy help modal content to the nested metric/language structure.

Run once, after deployment:
    python3 scripts/migrate_modal_content.py migrate
    python3 scripts/migrate_modal_content.py stats
    python3 scripts/migrate_modal_content.py rollback
"""
import asyncio
import sys

from parrainage.core.logging_config import configure_logging
from parrainage.database import get_db_session
from parrainage.services.modal_content_migrator import ModalContentMigrator, BACKUP_OPTION


async def run_migrate() -> int:
    print("🚀 Migrating help modal content...")
    async with get_db_session() as db:
        result = await ModalContentMigrator(db).run()

    for key in result.failed_items:
        print(f"  ⚠️  Conversion failed: {key}")

    if not result.success:
        print(f"❌ {result.message}")
        return 1

    print(f"✅ {result.message}")
    if result.migrated_count:
        print(f"📊 {result.migrated_count} items migrated")
        print(f"💾 Backup created: {BACKUP_OPTION}")
    return 0


async def run_rollback() -> int:
    print("🔄 Rolling back modal content migration...")
    async with get_db_session() as db:
        await ModalContentMigrator(db).rollback()
    print("✅ Rollback complete, legacy content restored when a backup existed")
    return 0


async def show_stats() -> int:
    async with get_db_session() as db:
        stats = await ModalContentMigrator(db).get_stats()

    print("Migration statistics:")
    print(f"- Legacy items: {stats.legacy_items}")
    print(f"- Migrated items: {stats.new_items}")
    print(f"- Migration completed: {'Yes' if stats.migration_completed else 'No'}")
    if stats.migration_date:
        print(f"- Migration date: {stats.migration_date}")
    print(f"- Backup available: {'Yes' if stats.backup_exists else 'No'}")
    return 0


COMMANDS = {
    "migrate": run_migrate,
    "rollback": run_rollback,
    "stats": show_stats,
}


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Help modal content migration")
    parser.add_argument("command", choices=sorted(COMMANDS), help="Operation to run")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (e.g. DEBUG)")
    args = parser.parse_args()

    configure_logging(args.log_level)
    return asyncio.run(COMMANDS[args.command]())


if __name__ == "__main__":
    sys.exit(main())
