from ledger_sync.models import DisputeDB, EscrowDB, JurorPoolDB, SubjectDB
from ledger_sync.services.account_reconciler import AccountReconciler, decode_account

from ledger_fixtures import OTHER_PROGRAM, PROGRAM, SCHEMA, pk, pool_values, stub_client


def subject_values(**overrides):
    values = {
        "subjectId": pk(1),
        "creator": pk(2),
        "detailsCid": "bafysubject",
        "round": 1,
        "availableBond": 7_000,
        "defenderCount": 2,
        "status": "disputed",
        "matchMode": False,
        "votingPeriod": 86_400,
        "dispute": "11111111111111111111111111111111",
        "bump": 254,
        "createdAt": 1_700_000_000,
        "updatedAt": 1_700_000_500,
        "lastDisputeTotal": 0,
        "lastVotingPeriod": 0,
    }
    values.update(overrides)
    return values


def dispute_values(**overrides):
    values = {
        "subjectId": pk(1),
        "round": 1,
        "status": "none",
        "disputeType": "fraud",
        "totalStake": 3_000,
        "challengerCount": 1,
        "bondAtRisk": 2_000,
        "defenderCount": 2,
        "votesForChallenger": 900,
        "votesForDefender": 100,
        "voteCount": 4,
        "votingStartsAt": 1_700_000_000,
        "votingEndsAt": 1_700_086_400,
        "outcome": "challengerWins",
        "resolvedAt": 1_700_090_000,
        "isRestore": False,
        "restoreStake": 0,
        "restorer": "11111111111111111111111111111111",
        "detailsCid": "bafydispute",
        "bump": 253,
        "createdAt": 1_700_000_000,
    }
    values.update(overrides)
    return values


def escrow_values(**overrides):
    round_result = {
        "round": 1,
        "creator": pk(2),
        "resolvedAt": 1_700_090_000,
        "outcome": "challengerWins",
        "totalStake": 3_000,
        "bondAtRisk": 2_000,
        "safeBond": 5_000,
        "totalVoteWeight": 1_000,
        "winnerPool": 4_000,
        "jurorPool": 1_000,
        "defenderCount": 2,
        "challengerCount": 1,
        "jurorCount": 4,
        "defenderClaims": 0,
        "challengerClaims": 0,
        "jurorClaims": 0,
    }
    values = {"subjectId": pk(1), "balance": 10_000, "rounds": [round_result], "bump": 252}
    values.update(overrides)
    return values


def test_discriminator_picks_layout_over_trial_order():
    # JurorPool and ChallengerPool share a byte layout
    name, fields = decode_account(SCHEMA.encode_account("ChallengerPool", pool_values()))
    assert name == "ChallengerPool"
    assert fields["reputation"] == 42


def test_unknown_discriminator_falls_back_to_exact_fit():
    data = b"\xff" * 8 + SCHEMA.encode_account("JurorPool", pool_values())[8:]
    name, fields = decode_account(data)
    assert name == "JurorPool"
    assert fields["owner"] == pk(5)


def test_trailing_zero_padding_is_accepted():
    data = b"\xff" * 8 + SCHEMA.encode_account("JurorPool", pool_values())[8:] + b"\x00" * 10
    name, _ = decode_account(data)
    assert name == "JurorPool"


def test_unrecognised_bytes():
    assert decode_account(b"\x07" * 20) is None
    assert decode_account(b"\x01\x02") is None


def test_reconcile_writes_snapshot(db, ledger, rpc):
    ledger.accounts[pk(9)] = SCHEMA.encode_account("Subject", subject_values())

    res = AccountReconciler(db, rpc).reconcile(pk(9))

    assert res.success is True
    assert res.entity_type == "subject"
    assert res.key == f"{pk(9)}:1"
    row = db.get(SubjectDB, f"{pk(9)}:1")
    assert row.status == "disputed"
    assert row.available_bond == 7_000
    assert row.dispute is None
    assert row.slot == 500


def test_older_slot_does_not_overwrite(db, ledger, rpc):
    ledger.accounts[pk(9)] = SCHEMA.encode_account("JurorPool", pool_values())
    AccountReconciler(db, rpc).reconcile(pk(9))

    ledger.slot = 400
    ledger.accounts[pk(9)] = SCHEMA.encode_account("JurorPool", pool_values(balance=1))
    res = AccountReconciler(db, rpc).reconcile(pk(9))

    assert res.success is True
    assert res.skipped is True
    db.expire_all()
    assert db.get(JurorPoolDB, pk(9)).balance == 1_000


def test_missing_and_unknown_accounts(db, ledger, rpc):
    ledger.accounts[pk(8)] = b"\x07" * 20
    missing, unknown = AccountReconciler(db, rpc).reconcile_many([pk(7), pk(8)])

    assert missing.success is False
    assert missing.error == "account not found"
    assert unknown.success is True
    assert unknown.entity_type is None


def test_rpc_failure_is_reported_per_address(db):
    broken = stub_client(lambda body: (503, {}))
    res = AccountReconciler(db, broken).reconcile(pk(9))
    assert res.success is False
    assert "HTTP 503" in res.error


def test_full_sync_counts_and_enriches_resolved_disputes(db, ledger, rpc):
    ledger.accounts = {
        pk(10): SCHEMA.encode_account("Subject", subject_values()),
        pk(11): SCHEMA.encode_account("Dispute", dispute_values()),
        pk(12): SCHEMA.encode_account("Escrow", escrow_values()),
        pk(13): SCHEMA.encode_account("JurorPool", pool_values()),
        pk(14): b"\x07" * 20,
    }

    result = AccountReconciler(db, rpc, program=PROGRAM).sync_all()

    assert result.accounts == 5
    assert result.unknown == 1
    assert result.by_type["subject"] == {"synced": 1, "errors": 0}
    assert result.by_type["escrow"] == {"synced": 1, "errors": 0}

    dispute = db.get(DisputeDB, f"{pk(11)}:1")
    assert dispute.status == "resolved"
    assert dispute.outcome == "challengerWins"
    assert dispute.safe_bond == 5_000
    assert dispute.winner_pool == 4_000
    assert dispute.juror_pool == 1_000

    escrow = db.get(EscrowDB, pk(12))
    assert escrow.total_collected == 10_000
    assert escrow.round_results[0]["winner_pool"] == 4_000


def test_account_owned_by_another_program_is_unknown(db, ledger, rpc):
    # Same length as a JurorPool, but not ours: never fit by size.
    ledger.accounts[pk(9)] = b"\xff" * 8 + SCHEMA.encode_account("JurorPool", pool_values())[8:]
    ledger.owners[pk(9)] = OTHER_PROGRAM

    res = AccountReconciler(db, rpc).reconcile(pk(9))

    assert res.success is True
    assert res.entity_type is None
    assert db.get(JurorPoolDB, pk(9)) is None


def test_owned_layout_under_foreign_owner_is_not_snapshotted(db, ledger, rpc):
    ledger.accounts[pk(9)] = SCHEMA.encode_account("JurorPool", pool_values())
    ledger.owners[pk(9)] = OTHER_PROGRAM

    res = AccountReconciler(db, rpc, program=PROGRAM).reconcile(pk(9))

    assert res.entity_type is None
    assert db.get(JurorPoolDB, pk(9)) is None
