"""Pydantic schemas for the pricing schema migration and the modal content migration."""
from datetime import datetime
from typing import Optional, List, Dict

from pydantic import Field

from parrainage.schemas.base import FrozenSchema


# ==================== Pricing schema migration ====================

class TableStatus(FrozenSchema):
    name: str
    exists: bool
    row_count: int = 0


class MigrationStatus(FrozenSchema):
    current_version: str
    target_version: str
    is_up_to_date: bool
    needs_migration: bool
    tables: Dict[str, TableStatus]


class IntegrityReport(FrozenSchema):
    is_valid: bool
    issues: List[str] = Field(default_factory=list)
    checked_at: datetime


# ==================== Modal content migration ====================

class ModalMigrationResult(FrozenSchema):
    success: bool
    migrated_count: int = 0
    failed_items: List[str] = Field(default_factory=list)
    message: str = ""


class ModalMigrationStats(FrozenSchema):
    legacy_items: int
    new_items: int
    migration_completed: bool
    migration_date: Optional[str] = None
    backup_exists: bool


class MigrationRunResponse(FrozenSchema):
    migrated: bool
    current_version: str
    target_version: str
