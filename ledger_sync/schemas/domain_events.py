"""
Typed program events.

A decoded event is one of the known variants below, or UnknownEvent for an
event the program declares but this service has no column mapping for yet.
Every variant keeps the full snake_case wire map in `raw`.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields as dc_fields
from typing import Any, Dict, Mapping, Optional, Type


@dataclass(frozen=True)
class DomainEvent:
    event_type: str
    ordinal: int
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UnknownEvent(DomainEvent):
    pass


@dataclass(frozen=True)
class SubjectCreatedEvent(DomainEvent):
    subject_id: Optional[str] = None
    creator: Optional[str] = None
    match_mode: Optional[bool] = None
    voting_period: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class BondAddedEvent(DomainEvent):
    subject_id: Optional[str] = None
    defender: Optional[str] = None
    round: Any = None
    amount: Any = None
    source: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class DisputeCreatedEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    creator: Optional[str] = None
    stake: Any = None
    bond_at_risk: Any = None
    voting_ends_at: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class ChallengerJoinedEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    challenger: Optional[str] = None
    stake: Any = None
    total_stake: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class VoteEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    juror: Optional[str] = None
    choice: Any = None
    voting_power: Any = None
    rationale_cid: Optional[str] = None
    timestamp: Any = None


@dataclass(frozen=True)
class RestoreVoteEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    juror: Optional[str] = None
    choice: Any = None
    voting_power: Any = None
    rationale_cid: Optional[str] = None
    timestamp: Any = None


@dataclass(frozen=True)
class AddToVoteEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    juror: Optional[str] = None
    additional_stake: Any = None
    additional_voting_power: Any = None
    total_stake: Any = None
    total_voting_power: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class DisputeResolvedEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    outcome: Any = None
    total_stake: Any = None
    bond_at_risk: Any = None
    winner_pool: Any = None
    juror_pool: Any = None
    resolved_at: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class RestoreSubmittedEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    restorer: Optional[str] = None
    stake: Any = None
    details_cid: Optional[str] = None
    voting_period: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class RewardClaimedEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    claimer: Optional[str] = None
    role: Any = None
    amount: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class StakeUnlockedEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    juror: Optional[str] = None
    amount: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class RecordClosedEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    owner: Optional[str] = None
    role: Any = None
    rent_returned: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class RoundSweptEvent(DomainEvent):
    subject_id: Optional[str] = None
    round: Any = None
    sweeper: Optional[str] = None
    unclaimed: Any = None
    bot_reward: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class PoolDepositEvent(DomainEvent):
    pool_type: Any = None
    owner: Optional[str] = None
    amount: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class PoolWithdrawEvent(DomainEvent):
    pool_type: Any = None
    owner: Optional[str] = None
    amount: Any = None
    slashed: Any = None
    timestamp: Any = None


KNOWN_EVENTS: Dict[str, Type[DomainEvent]] = {
    cls.__name__: cls
    for cls in (
        SubjectCreatedEvent,
        BondAddedEvent,
        DisputeCreatedEvent,
        ChallengerJoinedEvent,
        VoteEvent,
        RestoreVoteEvent,
        AddToVoteEvent,
        DisputeResolvedEvent,
        RestoreSubmittedEvent,
        RewardClaimedEvent,
        StakeUnlockedEvent,
        RecordClosedEvent,
        RoundSweptEvent,
        PoolDepositEvent,
        PoolWithdrawEvent,
    )
}

_BASE_FIELDS = {f.name for f in dc_fields(DomainEvent)}


def build_event(event_type: str, ordinal: int, raw: Mapping[str, Any]) -> DomainEvent:
    """Absent wire fields become None on the typed variant, never an error."""
    cls = KNOWN_EVENTS.get(event_type)
    if cls is None:
        return UnknownEvent(event_type=event_type, ordinal=ordinal, raw=dict(raw))

    typed = {
        f.name: raw.get(f.name)
        for f in dc_fields(cls)
        if f.name not in _BASE_FIELDS
    }
    return cls(event_type=event_type, ordinal=ordinal, raw=dict(raw), **typed)
