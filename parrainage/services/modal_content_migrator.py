"""
Modal Content Migrator

One-shot conversion of the legacy help modal option into the nested
metric -> language -> fields structure.

Legacy keys are "{metric}_{lang}" or a bare "{metric}" (language "fr").
The legacy blob is kept as a backup so the run can be rolled back.
"""

import logging
import re
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from parrainage.core.exceptions import ContentConversionError
from parrainage.core.sanitization import sanitize_text_field, sanitize_textarea_field
from parrainage.schemas.migration import ModalMigrationResult, ModalMigrationStats
from parrainage.services.option_service import OptionStore


LEGACY_OPTION = "wc_tb_parrainage_help_content"
CONTENT_OPTION = "tb_modal_content_analytics"
BACKUP_OPTION = "wc_tb_parrainage_help_content_backup"
COMPLETED_OPTION = "tb_modal_migration_completed"

DEFAULT_LANGUAGE = "fr"
LEGACY_KEY_PATTERN = re.compile(r"^(.+)_([a-z]{2})$")

STANDARD_FIELDS = ("details", "interpretation", "tips", "example", "formula", "precision")
LEVELS_SEPARATOR = " | "


def parse_legacy_key(key: str) -> Tuple[str, str]:
    """Split "nps_en" into ("nps", "en"); "nps" gives ("nps", "fr")."""
    match = LEGACY_KEY_PATTERN.match(key)
    if match:
        return match.group(1), match.group(2)
    return key, DEFAULT_LANGUAGE


def convert_content_format(old_content: Any) -> Dict[str, Any]:
    """
    Convert one legacy content blob.

    Raises:
        ContentConversionError: If the item is not a mapping
    """
    if not isinstance(old_content, Mapping):
        raise ContentConversionError(
            f"Legacy content must be a mapping, got {type(old_content).__name__}"
        )

    new_content: Dict[str, Any] = {}

    if old_content.get("title"):
        new_content["title"] = sanitize_text_field(old_content["title"])
    if old_content.get("definition"):
        new_content["definition"] = sanitize_textarea_field(old_content["definition"])

    for field in STANDARD_FIELDS:
        value = old_content.get(field)
        if not value:
            continue
        if isinstance(value, (list, tuple)):
            new_content[field] = [sanitize_text_field(item) for item in value]
        else:
            new_content[field] = sanitize_textarea_field(value)

    # Health-score items: criteria feed details, levels feed interpretation
    criteria = old_content.get("criteria")
    if criteria and isinstance(criteria, (list, tuple)):
        details = new_content.get("details", [])
        if not isinstance(details, list):
            details = [details]
        new_content["details"] = details + [sanitize_text_field(item) for item in criteria]

    levels = old_content.get("levels")
    if levels and isinstance(levels, (list, tuple)):
        levels_text = LEVELS_SEPARATOR.join(sanitize_text_field(level) for level in levels)
        interpretation = new_content.get("interpretation", "")
        if interpretation:
            new_content["interpretation"] = f"{interpretation} {levels_text}"
        else:
            new_content["interpretation"] = levels_text

    return new_content


class ModalContentMigrator:
    """Migrates, rolls back and reports on the modal content options."""

    def __init__(
        self,
        db: AsyncSession,
        options: Optional[OptionStore] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.options = options or OptionStore(db)
        self.logger = logger or logging.getLogger(__name__)

    convert_content_format = staticmethod(convert_content_format)

    async def run(self) -> ModalMigrationResult:
        """
        Convert the legacy option into the nested structure.

        An empty legacy option still completes the migration with an empty
        structure. A non-empty source where no item converts is a failure
        and nothing is written.
        """
        old_option = await self.options.get(LEGACY_OPTION, {}) or {}

        if not old_option:
            await self.options.update(CONTENT_OPTION, {})
            await self.options.update(COMPLETED_OPTION, int(time.time()))
            await self.db.commit()
            self.logger.warning(
                "No legacy modal content to migrate, initialized an empty structure",
                extra={"component": "ModalContentMigrator"},
            )
            return ModalMigrationResult(
                success=True,
                migrated_count=0,
                message="No legacy content, empty structure initialized",
            )

        if not isinstance(old_option, Mapping):
            self.logger.error(
                f"Legacy modal content is not a mapping: {type(old_option).__name__}",
                extra={"component": "ModalContentMigrator"},
            )
            return ModalMigrationResult(success=False, message="Legacy content is not a mapping")

        self.logger.info(f"{len(old_option)} legacy modal content items found")

        new_option: Dict[str, Dict[str, Any]] = {}
        failed_items: List[str] = []
        migrated_count = 0

        for key, content in old_option.items():
            metric, lang = parse_legacy_key(str(key))
            try:
                converted = convert_content_format(content)
            except ContentConversionError as e:
                self.logger.warning(f"Conversion failed for {metric} ({lang}): {e}")
                failed_items.append(str(key))
                continue

            if not converted:
                self.logger.warning(f"Conversion produced no content for {metric} ({lang})")
                failed_items.append(str(key))
                continue

            new_option.setdefault(metric, {})[lang] = converted
            migrated_count += 1
            self.logger.debug(f"Migrated {metric} ({lang})")

        if migrated_count == 0:
            self.logger.error(
                "No modal content could be migrated",
                extra={"component": "ModalContentMigrator", "failed_items": failed_items},
            )
            return ModalMigrationResult(
                success=False,
                failed_items=failed_items,
                message="No content could be migrated",
            )

        await self.options.update(CONTENT_OPTION, new_option)
        await self.options.update(BACKUP_OPTION, dict(old_option))
        await self.options.update(COMPLETED_OPTION, int(time.time()))
        await self.db.commit()

        self.logger.info(
            f"Modal content migration completed: {migrated_count} items migrated",
            extra={
                "component": "ModalContentMigrator",
                "migrated_count": migrated_count,
                "failed_items": failed_items,
                "backup_option": BACKUP_OPTION,
            },
        )

        return ModalMigrationResult(
            success=True,
            migrated_count=migrated_count,
            failed_items=failed_items,
            message=f"{migrated_count} items migrated, backup stored in {BACKUP_OPTION}",
        )

    async def rollback(self) -> bool:
        """Restore the legacy option from backup and remove the migrated data."""
        backup = await self.options.get(BACKUP_OPTION)
        if backup:
            await self.options.update(LEGACY_OPTION, backup)
            self.logger.info("Legacy modal content restored from backup")
        else:
            self.logger.warning("No modal content backup found")

        await self.options.delete(CONTENT_OPTION)
        await self.options.delete(COMPLETED_OPTION)
        await self.db.commit()

        self.logger.info(
            "Modal content migration rolled back",
            extra={"component": "ModalContentMigrator", "backup_restored": bool(backup)},
        )
        return True

    async def get_stats(self) -> ModalMigrationStats:
        old_content = await self.options.get(LEGACY_OPTION, {}) or {}
        new_content = await self.options.get(CONTENT_OPTION, {}) or {}
        completed_at = await self.options.get(COMPLETED_OPTION)

        migration_date = None
        if completed_at:
            migration_date = datetime.fromtimestamp(int(completed_at), timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        return ModalMigrationStats(
            legacy_items=len(old_content),
            new_items=len(new_content),
            migration_completed=bool(completed_at),
            migration_date=migration_date,
            backup_exists=bool(await self.options.get(BACKUP_OPTION)),
        )
