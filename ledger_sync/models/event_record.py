# models/event_record.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from ledger_sync.db import Base
from ledger_sync.util.time import utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONDoc = JSON().with_variant(JSONB(), "postgresql")


class WideInt(TypeDecorator):
    """
    Integer column that holds the full u64 range (and i64).

    NUMERIC(20, 0) on PostgreSQL. SQLite INTEGER stops at i64, so the exact
    digits are kept as text there.
    """

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(Text())
        return dialect.type_descriptor(Numeric(20, 0))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value)) if dialect.name == "sqlite" else int(value)

    def process_result_value(self, value, dialect):
        return None if value is None else int(value)


class ProgramEventDB(Base):
    """One emitted program event. Append-only apart from idempotent re-ingestion."""

    __tablename__ = "program_events"

    __table_args__ = (
        Index("ix_program_events_signature", "signature"),
        Index("ix_program_events_slot", "slot"),
        Index("ix_program_events_event_type", "event_type"),
        Index("ix_program_events_subject_round", "subject_id", "round"),
        Index("ix_program_events_actor", "actor"),
        Index("ix_program_events_block_time", "block_time"),
    )

    # "{signature}:{ordinal}"
    id: Mapped[str] = mapped_column(Text, primary_key=True)

    signature: Mapped[str] = mapped_column(Text, nullable=False)
    slot: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    event_type: Mapped[str] = mapped_column(Text, nullable=False)

    subject_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    round: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actor: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount: Mapped[Optional[int]] = mapped_column(WideInt(), nullable=True)

    data: Mapped[Dict[str, Any]] = mapped_column(JSONDoc, nullable=False, default=dict)

    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
