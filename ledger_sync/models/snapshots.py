# models/snapshots.py
"""
Latest-known state of on-chain accounts.

Each row is a full overwrite of the account as observed at `slot`. Subjects
and disputes are keyed "{address}:{round}" because their addresses are reused
across rounds; every other table is keyed by account address.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_sync.db import Base
from ledger_sync.models.event_record import JSONDoc
from ledger_sync.util.time import utcnow


class _SnapshotMixin:
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    slot: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class SubjectDB(_SnapshotMixin, Base):
    __tablename__ = "subjects"

    __table_args__ = (
        Index("ix_subjects_subject_id", "subject_id"),
        Index("ix_subjects_status", "status"),
        Index("ix_subjects_creator", "creator"),
    )

    subject_id: Mapped[str] = mapped_column(Text, nullable=False)
    creator: Mapped[str] = mapped_column(Text, nullable=False)
    details_cid: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_bond: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    defender_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    match_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voting_period: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    dispute: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    updated_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    last_dispute_total: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    last_voting_period: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class DisputeDB(_SnapshotMixin, Base):
    __tablename__ = "disputes"

    __table_args__ = (
        Index("ix_disputes_subject_round", "subject_id", "round"),
        Index("ix_disputes_status", "status"),
        Index("ix_disputes_outcome", "outcome"),
    )

    subject_id: Mapped[str] = mapped_column(Text, nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    # none | pending | resolved (a reset dispute with an outcome reads as resolved)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    dispute_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_stake: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    challenger_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bond_at_risk: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    defender_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    votes_for_challenger: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    votes_for_defender: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    voting_starts_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    voting_ends_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    outcome: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    is_restore: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    restore_stake: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    restorer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details_cid: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    # Reward breakdown; filled from escrow round results when available.
    safe_bond: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    winner_pool: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    juror_pool: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class JurorRecordDB(_SnapshotMixin, Base):
    __tablename__ = "juror_records"

    __table_args__ = (
        Index("ix_juror_records_subject_round", "subject_id", "round"),
        Index("ix_juror_records_juror", "juror"),
    )

    subject_id: Mapped[str] = mapped_column(Text, nullable=False)
    juror: Mapped[str] = mapped_column(Text, nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    choice: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    restore_choice: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_restore_vote: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voting_power: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    stake_allocation: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reward_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stake_unlocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voted_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    rationale_cid: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ChallengerRecordDB(_SnapshotMixin, Base):
    __tablename__ = "challenger_records"

    __table_args__ = (
        Index("ix_challenger_records_subject", "subject_id"),
        Index("ix_challenger_records_challenger", "challenger"),
    )

    subject_id: Mapped[str] = mapped_column(Text, nullable=False)
    challenger: Mapped[str] = mapped_column(Text, nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    stake: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    details_cid: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reward_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    challenged_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class DefenderRecordDB(_SnapshotMixin, Base):
    __tablename__ = "defender_records"

    __table_args__ = (
        Index("ix_defender_records_subject", "subject_id"),
        Index("ix_defender_records_defender", "defender"),
    )

    subject_id: Mapped[str] = mapped_column(Text, nullable=False)
    defender: Mapped[str] = mapped_column(Text, nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    bond: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reward_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bonded_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class JurorPoolDB(_SnapshotMixin, Base):
    __tablename__ = "juror_pools"

    owner: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reputation: Mapped[int] = mapped_column(BigInteger, nullable=False, default=50_000_000)
    created_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class ChallengerPoolDB(_SnapshotMixin, Base):
    __tablename__ = "challenger_pools"

    owner: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reputation: Mapped[int] = mapped_column(BigInteger, nullable=False, default=50_000_000)
    created_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class DefenderPoolDB(_SnapshotMixin, Base):
    __tablename__ = "defender_pools"

    owner: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    max_bond: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    updated_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class EscrowDB(_SnapshotMixin, Base):
    __tablename__ = "escrows"

    subject_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    total_collected: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # [{round, creator, outcome, total_stake, safe_bond, winner_pool, ...}]
    round_results: Mapped[List[Dict[str, Any]]] = mapped_column(JSONDoc, nullable=False, default=list)


# entity type (as reported by the reconciler) -> table model
SNAPSHOT_MODELS = {
    "subject": SubjectDB,
    "dispute": DisputeDB,
    "juror_record": JurorRecordDB,
    "challenger_record": ChallengerRecordDB,
    "defender_record": DefenderRecordDB,
    "juror_pool": JurorPoolDB,
    "challenger_pool": ChallengerPoolDB,
    "defender_pool": DefenderPoolDB,
    "escrow": EscrowDB,
}
