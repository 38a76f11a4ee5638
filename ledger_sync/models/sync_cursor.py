# models/sync_cursor.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_sync.db import Base
from ledger_sync.util.time import utcnow


class SyncCursorDB(Base):
    """Resume point of the scheduled backfill (oldest signature seen so far)."""

    __tablename__ = "sync_cursors"

    name: Mapped[str] = mapped_column(Text, primary_key=True)
    last_signature: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
