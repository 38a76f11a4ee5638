"""
Decoded account (camelCase wire map) -> snapshot table row.

Enums become their variant name, the all-ones default pubkey becomes None and
u64 values go through row_mapper.to_int like event amounts do.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from ledger_sync.services.row_mapper import enum_variant, to_int

DEFAULT_PUBKEY = "11111111111111111111111111111111"

DEFAULT_REPUTATION = 50_000_000


def _pubkey(value: Any) -> Optional[str]:
    if not value or value == DEFAULT_PUBKEY:
        return None
    return str(value)


def _enum_or_none(value: Any) -> Optional[str]:
    tag = enum_variant(value)
    return None if tag == "unknown" else tag


def _int0(value: Any, name: str) -> int:
    n = to_int(value, field_name=name)
    return 0 if n is None else n


def parse_subject(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    # Subject addresses are reused across rounds; the round is part of the key.
    return {
        "id": f"{address}:{a['round']}",
        "subject_id": str(a["subjectId"]),
        "creator": str(a["creator"]),
        "details_cid": a.get("detailsCid") or None,
        "round": int(a["round"]),
        "available_bond": _int0(a.get("availableBond"), "available_bond"),
        "defender_count": int(a.get("defenderCount") or 0),
        "status": enum_variant(a.get("status")),
        "match_mode": bool(a.get("matchMode")),
        "voting_period": to_int(a.get("votingPeriod"), field_name="voting_period"),
        "dispute": _pubkey(a.get("dispute")),
        "created_at": to_int(a.get("createdAt"), field_name="created_at"),
        "updated_at": to_int(a.get("updatedAt"), field_name="updated_at"),
        "last_dispute_total": to_int(a.get("lastDisputeTotal"), field_name="last_dispute_total"),
        "last_voting_period": to_int(a.get("lastVotingPeriod"), field_name="last_voting_period"),
        "slot": slot,
    }


def parse_dispute(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    status = enum_variant(a.get("status"))
    outcome = _enum_or_none(a.get("outcome"))
    # A dispute account is reset to `none` after some outcomes while the
    # subject lives on; with an outcome recorded it is effectively resolved.
    if status == "none" and outcome and outcome != "none":
        status = "resolved"

    return {
        "id": f"{address}:{a['round']}",
        "subject_id": str(a["subjectId"]),
        "round": int(a["round"]),
        "status": status,
        "dispute_type": _enum_or_none(a.get("disputeType")),
        "total_stake": _int0(a.get("totalStake"), "total_stake"),
        "challenger_count": int(a.get("challengerCount") or 0),
        "bond_at_risk": _int0(a.get("bondAtRisk"), "bond_at_risk"),
        "defender_count": int(a.get("defenderCount") or 0),
        "votes_for_challenger": _int0(a.get("votesForChallenger"), "votes_for_challenger"),
        "votes_for_defender": _int0(a.get("votesForDefender"), "votes_for_defender"),
        "vote_count": int(a.get("voteCount") or 0),
        "voting_starts_at": to_int(a.get("votingStartsAt"), field_name="voting_starts_at"),
        "voting_ends_at": to_int(a.get("votingEndsAt"), field_name="voting_ends_at"),
        "outcome": outcome,
        "resolved_at": to_int(a.get("resolvedAt"), field_name="resolved_at"),
        "is_restore": bool(a.get("isRestore")),
        "restore_stake": _int0(a.get("restoreStake"), "restore_stake"),
        "restorer": _pubkey(a.get("restorer")),
        "details_cid": a.get("detailsCid") or None,
        "created_at": to_int(a.get("createdAt"), field_name="created_at"),
        "safe_bond": 0,
        "winner_pool": 0,
        "juror_pool": 0,
        "slot": slot,
    }


def parse_juror_record(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    return {
        "id": address,
        "subject_id": str(a["subjectId"]),
        "juror": str(a["juror"]),
        "round": int(a["round"]),
        "choice": _enum_or_none(a.get("choice")),
        "restore_choice": _enum_or_none(a.get("restoreChoice")),
        "is_restore_vote": bool(a.get("isRestoreVote")),
        "voting_power": _int0(a.get("votingPower"), "voting_power"),
        "stake_allocation": _int0(a.get("stakeAllocation"), "stake_allocation"),
        "reward_claimed": bool(a.get("rewardClaimed")),
        "stake_unlocked": bool(a.get("stakeUnlocked")),
        "voted_at": to_int(a.get("votedAt"), field_name="voted_at"),
        "rationale_cid": a.get("rationaleCid") or None,
        "slot": slot,
    }


def parse_challenger_record(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    return {
        "id": address,
        "subject_id": str(a["subjectId"]),
        "challenger": str(a["challenger"]),
        "round": int(a["round"]),
        "stake": _int0(a.get("stake"), "stake"),
        "details_cid": a.get("detailsCid") or None,
        "reward_claimed": bool(a.get("rewardClaimed")),
        "challenged_at": to_int(a.get("challengedAt"), field_name="challenged_at"),
        "slot": slot,
    }


def parse_defender_record(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    return {
        "id": address,
        "subject_id": str(a["subjectId"]),
        "defender": str(a["defender"]),
        "round": int(a["round"]),
        "bond": _int0(a.get("bond"), "bond"),
        "source": _enum_or_none(a.get("source")),
        "reward_claimed": bool(a.get("rewardClaimed")),
        "bonded_at": to_int(a.get("bondedAt"), field_name="bonded_at"),
        "slot": slot,
    }


def _parse_staking_pool(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    reputation = to_int(a.get("reputation"), field_name="reputation")
    return {
        "id": address,
        "owner": str(a["owner"]),
        "balance": _int0(a.get("balance"), "balance"),
        "reputation": DEFAULT_REPUTATION if reputation is None else reputation,
        "created_at": to_int(a.get("createdAt"), field_name="created_at"),
        "slot": slot,
    }


parse_juror_pool = _parse_staking_pool
parse_challenger_pool = _parse_staking_pool


def parse_defender_pool(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    return {
        "id": address,
        "owner": str(a["owner"]),
        "balance": _int0(a.get("balance"), "balance"),
        "max_bond": to_int(a.get("maxBond"), field_name="max_bond"),
        "created_at": to_int(a.get("createdAt"), field_name="created_at"),
        "updated_at": to_int(a.get("updatedAt"), field_name="updated_at"),
        "slot": slot,
    }


def _round_result(r: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "round": int(r["round"]),
        "creator": str(r["creator"]),
        "resolved_at": to_int(r.get("resolvedAt"), field_name="resolved_at"),
        "outcome": _enum_or_none(r.get("outcome")),
        "total_stake": to_int(r.get("totalStake"), field_name="total_stake"),
        "bond_at_risk": to_int(r.get("bondAtRisk"), field_name="bond_at_risk"),
        "safe_bond": to_int(r.get("safeBond"), field_name="safe_bond"),
        "total_vote_weight": to_int(r.get("totalVoteWeight"), field_name="total_vote_weight"),
        "winner_pool": to_int(r.get("winnerPool"), field_name="winner_pool"),
        "juror_pool": to_int(r.get("jurorPool"), field_name="juror_pool"),
        "defender_count": r.get("defenderCount"),
        "challenger_count": r.get("challengerCount"),
        "juror_count": r.get("jurorCount"),
        "defender_claims": r.get("defenderClaims"),
        "challenger_claims": r.get("challengerClaims"),
        "juror_claims": r.get("jurorClaims"),
    }


def parse_escrow(address: str, a: Dict[str, Any], slot: Optional[int]) -> Dict[str, Any]:
    return {
        "id": address,
        "subject_id": str(a["subjectId"]),
        "total_collected": _int0(a.get("balance"), "balance"),
        "round_results": [_round_result(r) for r in a.get("rounds") or []],
        "slot": slot,
    }


def enrich_disputes_from_escrows(disputes: List[Dict[str, Any]], escrows: List[Dict[str, Any]]) -> int:
    """
    Copy the reward breakdown of a resolved round from its subject's escrow
    onto the dispute row. Returns the number of rows enriched.
    """
    by_subject = {e["subject_id"]: e for e in escrows}
    enriched = 0
    for d in disputes:
        if d.get("status") != "resolved":
            continue
        escrow = by_subject.get(d["subject_id"])
        if escrow is None:
            continue
        for r in escrow.get("round_results") or []:
            if r.get("round") == d["round"]:
                d["safe_bond"] = r.get("safe_bond") or 0
                d["winner_pool"] = r.get("winner_pool") or 0
                d["juror_pool"] = r.get("juror_pool") or 0
                enriched += 1
                break
    return enriched


# account layout name -> (entity type, mapper)
ACCOUNT_MAPPERS: Dict[str, tuple[str, Callable[[str, Dict[str, Any], Optional[int]], Dict[str, Any]]]] = {
    "Subject": ("subject", parse_subject),
    "Dispute": ("dispute", parse_dispute),
    "JurorRecord": ("juror_record", parse_juror_record),
    "ChallengerRecord": ("challenger_record", parse_challenger_record),
    "DefenderRecord": ("defender_record", parse_defender_record),
    "JurorPool": ("juror_pool", parse_juror_pool),
    "ChallengerPool": ("challenger_pool", parse_challenger_pool),
    "DefenderPool": ("defender_pool", parse_defender_pool),
    "Escrow": ("escrow", parse_escrow),
}
