from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from parrainage.database import Base
from parrainage.db_types import JSONType


OPTIONS_TABLE = "tb_parrainage_options"


class Option(Base):
    """
    Key-value store for persisted options.
    E.g., the pricing DB version marker, modal content blobs and their backup.
    """
    __tablename__ = OPTIONS_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    option_name: Mapped[str] = mapped_column(
        String(191),
        nullable=False,
        unique=True,
        index=True,
        comment="Unique key e.g., 'wc_tb_parrainage_db_version'"
    )
    option_value: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Option(name='{self.option_name}')>"
