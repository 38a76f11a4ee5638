from ledger_sync.schemas.domain_events import KNOWN_EVENTS, DisputeResolvedEvent, UnknownEvent, build_event
from ledger_sync.services.row_mapper import CONVERTERS, enum_variant, to_int, to_record

from ledger_fixtures import pk


def test_every_known_event_has_a_converter():
    for cls in KNOWN_EVENTS.values():
        assert cls in CONVERTERS, cls.__name__
    assert UnknownEvent in CONVERTERS


def test_vote_event_promotes_juror_and_voting_power():
    ev = build_event(
        "VoteEvent",
        3,
        {
            "subject_id": pk(1),
            "round": 2,
            "juror": pk(3),
            "choice": {"forDefender": {}},
            "voting_power": 1_000,
            "rationale_cid": "",
            "timestamp": 1_700_000_000,
        },
    )
    row = to_record(ev, "sigA", 3, 42, 1_700_000_001)

    assert row.id == "sigA:3"
    assert row.slot == 42
    assert row.block_time == 1_700_000_001
    assert row.event_type == "VoteEvent"
    assert row.subject_id == pk(1)
    assert row.round == 2
    assert row.actor == pk(3)
    assert row.amount == 1_000
    assert row.data == {
        "choice": "forDefender",
        "votingPower": 1_000,
        "rationaleCid": None,
        "timestamp": 1_700_000_000,
    }


def test_dispute_resolved_has_no_actor():
    ev = DisputeResolvedEvent(
        event_type="DisputeResolvedEvent",
        ordinal=0,
        subject_id=pk(1),
        round=1,
        outcome={"challengerWins": {}},
        total_stake=900,
        bond_at_risk=100,
        winner_pool=700,
        juror_pool=150,
        resolved_at=1_700_000_500,
        timestamp=1_700_000_500,
    )
    row = to_record(ev, "sigB", 0, 7, None)
    assert row.actor is None
    assert row.amount == 900
    assert row.data["outcome"] == "challengerWins"
    assert row.data["winnerPool"] == 700


def test_pool_deposit_has_no_subject():
    ev = build_event("PoolDepositEvent", 0, {"pool_type": {"juror": {}}, "owner": pk(9), "amount": 50, "timestamp": 1})
    row = to_record(ev, "sigC", 0, 1, None)
    assert row.subject_id is None
    assert row.round is None
    assert row.actor == pk(9)
    assert row.data == {"poolType": "juror", "timestamp": 1}


def test_unknown_event_keeps_raw_fields_verbatim():
    raw = {"defender": pk(4), "amount": 7, "nested": {"a": [1, 2]}}
    row = to_record(build_event("BondWithdrawnEvent", 1, raw), "sigD", 1, 5, None)
    assert row.event_type == "BondWithdrawnEvent"
    assert (row.subject_id, row.round, row.actor, row.amount) == (None, None, None, None)
    assert row.data == raw


def test_missing_fields_become_null_not_errors():
    row = to_record(build_event("RewardClaimedEvent", 0, {"subject_id": pk(1)}), "sigE", 0, 1, None)
    assert row.subject_id == pk(1)
    assert row.actor is None
    assert row.amount is None
    assert row.data["role"] == "unknown"


def test_enum_variant_and_to_int():
    assert enum_variant({"pool": {}}) == "pool"
    assert enum_variant(None) == "unknown"
    assert enum_variant("pool") == "unknown"
    assert to_int("123") == 123
    assert to_int(None) is None
    # beyond signed 64-bit: passed through, not truncated
    assert to_int(2**64 - 1) == 2**64 - 1
