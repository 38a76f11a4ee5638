from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional, Type

from ledger_sync.schemas.domain_events import (
    AddToVoteEvent,
    BondAddedEvent,
    ChallengerJoinedEvent,
    DisputeCreatedEvent,
    DisputeResolvedEvent,
    DomainEvent,
    PoolDepositEvent,
    PoolWithdrawEvent,
    RecordClosedEvent,
    RestoreSubmittedEvent,
    RestoreVoteEvent,
    RewardClaimedEvent,
    RoundSweptEvent,
    StakeUnlockedEvent,
    SubjectCreatedEvent,
    UnknownEvent,
    VoteEvent,
)
from ledger_sync.util.logging import get_logger, log_event

logger = get_logger("row_mapper")

# slot / block_time are BIGINT; amount is NUMERIC(20, 0) and holds a full u64
BIGINT_MIN = -(2**63)
BIGINT_MAX = 2**63 - 1


@dataclass(frozen=True)
class EventRecordRow:
    id: str
    signature: str
    slot: int
    block_time: Optional[int]
    event_type: str
    subject_id: Optional[str] = None
    round: Optional[int] = None
    actor: Optional[str] = None
    amount: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def record_id(signature: str, ordinal: int) -> str:
    return f"{signature}:{ordinal}"


def to_int(value: Any, *, field_name: str = "value") -> Optional[int]:
    """
    Normalize a wire number via its decimal string form.

    Values outside the signed 64-bit range are passed through with a warning;
    they are not truncated.
    """
    if value is None or isinstance(value, bool):
        return None if value is None else int(value)
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        log_event(
            logger,
            level="WARN",
            event="row_mapper_not_a_number",
            msg="numeric field is not an integer",
            field=field_name,
            value=str(value),
        )
        return None
    if n < BIGINT_MIN or n > BIGINT_MAX:
        log_event(
            logger,
            level="WARN",
            event="row_mapper_int_overflow",
            msg="value exceeds 64-bit column range",
            field=field_name,
            value=str(n),
        )
    return n


def to_pubkey(value: Any) -> Optional[str]:
    if not value:
        return None
    return str(value)


def enum_variant(value: Any) -> str:
    """Tagged single-key enum object -> its tag."""
    if not isinstance(value, dict) or not value:
        return "unknown"
    return next(iter(value))


@dataclass(frozen=True)
class _Promoted:
    subject_id: Optional[str] = None
    round: Optional[int] = None
    actor: Optional[str] = None
    amount: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)


def _subject_created(e: SubjectCreatedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        actor=to_pubkey(e.creator),
        data={
            "matchMode": e.match_mode,
            "votingPeriod": to_int(e.voting_period, field_name="voting_period"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _bond_added(e: BondAddedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.defender),
        amount=to_int(e.amount, field_name="amount"),
        data={
            "source": enum_variant(e.source),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _dispute_created(e: DisputeCreatedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.creator),
        amount=to_int(e.stake, field_name="stake"),
        data={
            "bondAtRisk": to_int(e.bond_at_risk, field_name="bond_at_risk"),
            "votingEndsAt": to_int(e.voting_ends_at, field_name="voting_ends_at"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _challenger_joined(e: ChallengerJoinedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.challenger),
        amount=to_int(e.stake, field_name="stake"),
        data={
            "totalStake": to_int(e.total_stake, field_name="total_stake"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _vote(e: VoteEvent | RestoreVoteEvent) -> _Promoted:
    voting_power = to_int(e.voting_power, field_name="voting_power")
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.juror),
        amount=voting_power,
        data={
            "choice": enum_variant(e.choice),
            "votingPower": voting_power,
            "rationaleCid": e.rationale_cid or None,
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _add_to_vote(e: AddToVoteEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.juror),
        amount=to_int(e.additional_stake, field_name="additional_stake"),
        data={
            "additionalVotingPower": to_int(e.additional_voting_power, field_name="additional_voting_power"),
            "totalStake": to_int(e.total_stake, field_name="total_stake"),
            "totalVotingPower": to_int(e.total_voting_power, field_name="total_voting_power"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _dispute_resolved(e: DisputeResolvedEvent) -> _Promoted:
    total_stake = to_int(e.total_stake, field_name="total_stake")
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        amount=total_stake,
        data={
            "outcome": enum_variant(e.outcome),
            "totalStake": total_stake,
            "bondAtRisk": to_int(e.bond_at_risk, field_name="bond_at_risk"),
            "winnerPool": to_int(e.winner_pool, field_name="winner_pool"),
            "jurorPool": to_int(e.juror_pool, field_name="juror_pool"),
            "resolvedAt": to_int(e.resolved_at, field_name="resolved_at"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _restore_submitted(e: RestoreSubmittedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.restorer),
        amount=to_int(e.stake, field_name="stake"),
        data={
            "detailsCid": e.details_cid or None,
            "votingPeriod": to_int(e.voting_period, field_name="voting_period"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _reward_claimed(e: RewardClaimedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.claimer),
        amount=to_int(e.amount, field_name="amount"),
        data={
            "role": enum_variant(e.role),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _stake_unlocked(e: StakeUnlockedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.juror),
        amount=to_int(e.amount, field_name="amount"),
        data={"timestamp": to_int(e.timestamp, field_name="timestamp")},
    )


def _record_closed(e: RecordClosedEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.owner),
        amount=to_int(e.rent_returned, field_name="rent_returned"),
        data={
            "role": enum_variant(e.role),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _round_swept(e: RoundSweptEvent) -> _Promoted:
    return _Promoted(
        subject_id=to_pubkey(e.subject_id),
        round=to_int(e.round, field_name="round"),
        actor=to_pubkey(e.sweeper),
        amount=to_int(e.unclaimed, field_name="unclaimed"),
        data={
            "botReward": to_int(e.bot_reward, field_name="bot_reward"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _pool_deposit(e: PoolDepositEvent) -> _Promoted:
    return _Promoted(
        actor=to_pubkey(e.owner),
        amount=to_int(e.amount, field_name="amount"),
        data={
            "poolType": enum_variant(e.pool_type),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _pool_withdraw(e: PoolWithdrawEvent) -> _Promoted:
    return _Promoted(
        actor=to_pubkey(e.owner),
        amount=to_int(e.amount, field_name="amount"),
        data={
            "poolType": enum_variant(e.pool_type),
            "slashed": to_int(e.slashed, field_name="slashed"),
            "timestamp": to_int(e.timestamp, field_name="timestamp"),
        },
    )


def _unknown(e: UnknownEvent) -> _Promoted:
    # Forward compatibility: keep everything, promote nothing.
    return _Promoted(data=dict(e.raw))


# Registry principle: every DomainEvent variant has exactly one converter here.
CONVERTERS: Dict[Type[DomainEvent], Callable[[Any], _Promoted]] = {
    SubjectCreatedEvent: _subject_created,
    BondAddedEvent: _bond_added,
    DisputeCreatedEvent: _dispute_created,
    ChallengerJoinedEvent: _challenger_joined,
    VoteEvent: _vote,
    RestoreVoteEvent: _vote,
    AddToVoteEvent: _add_to_vote,
    DisputeResolvedEvent: _dispute_resolved,
    RestoreSubmittedEvent: _restore_submitted,
    RewardClaimedEvent: _reward_claimed,
    StakeUnlockedEvent: _stake_unlocked,
    RecordClosedEvent: _record_closed,
    RoundSweptEvent: _round_swept,
    PoolDepositEvent: _pool_deposit,
    PoolWithdrawEvent: _pool_withdraw,
    UnknownEvent: _unknown,
}


def to_record(
    event: DomainEvent,
    signature: str,
    ordinal: int,
    slot: int,
    block_time: Optional[int],
) -> EventRecordRow:
    converter = CONVERTERS.get(type(event), _unknown)
    promoted = converter(event)
    return EventRecordRow(
        id=record_id(signature, ordinal),
        signature=signature,
        slot=int(slot or 0),
        block_time=to_int(block_time, field_name="block_time"),
        event_type=event.event_type,
        subject_id=promoted.subject_id,
        round=promoted.round,
        actor=promoted.actor,
        amount=promoted.amount,
        data=promoted.data,
    )


def to_records(events, signature: str, slot: int, block_time: Optional[int]) -> list[EventRecordRow]:
    return [to_record(e, signature, e.ordinal, slot, block_time) for e in events]
