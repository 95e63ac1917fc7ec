"""
Option Store

Persisted key/value options backed by the tb_parrainage_options table.
Holds the pricing DB version marker and the modal content blobs.

The table is created on first write. Reads against a database where it
does not exist yet return the default, so a fresh install reports
version "0.0.0" instead of failing.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select, delete, inspect
from sqlalchemy.ext.asyncio import AsyncSession

from parrainage.models.option import Option, OPTIONS_TABLE

logger = logging.getLogger(__name__)


class OptionStore:
    """Get/update/delete persisted options."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._table_ready = False

    def invalidate(self) -> None:
        """Forget the cached table check, e.g. after a transaction rollback."""
        self._table_ready = False

    async def table_exists(self) -> bool:
        if self._table_ready:
            return True
        exists = await self.db.run_sync(
            lambda sync_session: inspect(sync_session.connection()).has_table(OPTIONS_TABLE)
        )
        self._table_ready = exists
        return exists

    async def ensure_table(self) -> None:
        """Create the options table if it does not exist."""
        if await self.table_exists():
            return
        await self.db.run_sync(
            lambda sync_session: Option.__table__.create(sync_session.connection(), checkfirst=True)
        )
        self._table_ready = True
        logger.info(f"Created options table {OPTIONS_TABLE}")

    async def _get_row(self, name: str) -> Optional[Option]:
        result = await self.db.execute(select(Option).where(Option.option_name == name))
        return result.scalar_one_or_none()

    async def get(self, name: str, default: Any = None) -> Any:
        """Return the option value, or `default` when absent."""
        if not await self.table_exists():
            return default
        row = await self._get_row(name)
        if row is None or row.option_value is None:
            return default
        return row.option_value

    async def exists(self, name: str) -> bool:
        if not await self.table_exists():
            return False
        return await self._get_row(name) is not None

    async def update(self, name: str, value: Any) -> None:
        """Insert or replace an option value. Flushes; the caller commits."""
        await self.ensure_table()
        row = await self._get_row(name)
        if row is None:
            self.db.add(Option(option_name=name, option_value=value))
        else:
            row.option_value = value
        await self.db.flush()

    async def delete(self, name: str) -> bool:
        """Delete an option. Returns True if a row was removed."""
        if not await self.table_exists():
            return False
        result = await self.db.execute(delete(Option).where(Option.option_name == name))
        await self.db.flush()
        return (result.rowcount or 0) > 0
