from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from ledger_sync.models import DisputeDB, ProgramEventDB, SubjectDB
from ledger_sync.services.event_codec import extract_events
from ledger_sync.services.materializer import reset_tables, upsert_events, upsert_snapshot
from ledger_sync.services.row_mapper import to_records

from ledger_fixtures import bond_values, data_line, invoke, pk, vote_values


def _rows(signature="sig1", slot=10):
    logs = invoke(data_line("BondAddedEvent", bond_values()), data_line("VoteEvent", vote_values()))
    return to_records(extract_events(logs), signature, slot, 1_700_000_000)


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_replaying_a_transaction_does_not_duplicate(db):
    first = upsert_events(db, _rows())
    second = upsert_events(db, _rows())

    assert (first.stored_count, first.error_count) == (2, 0)
    assert (second.stored_count, second.error_count) == (2, 0)
    assert _count(db, ProgramEventDB) == 2

    ids = sorted(r.id for r in db.query(ProgramEventDB).all())
    assert ids == ["sig1:0", "sig1:1"]


def test_conflict_overwrites_all_columns(db):
    upsert_events(db, _rows(slot=10))
    upsert_events(db, _rows(slot=11))

    db.expire_all()
    row = db.get(ProgramEventDB, "sig1:1")
    assert row.slot == 11
    assert row.event_type == "VoteEvent"
    assert row.actor == pk(3)
    assert row.data["choice"] == "forChallenger"


def test_empty_batch_is_a_noop(db):
    res = upsert_events(db, [])
    assert (res.stored_count, res.error_count) == (0, 0)


def test_store_failure_counts_whole_batch_as_errors(db, monkeypatch):
    def boom(*a, **kw):
        raise OperationalError("INSERT", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "execute", boom)
    res = upsert_events(db, _rows())
    assert (res.stored_count, res.error_count) == (0, 2)


def test_driver_error_outside_sqlalchemy_stays_in_the_batch(db, monkeypatch):
    def overflow(*a, **kw):
        raise OverflowError("Python int too large to convert to SQLite INTEGER")

    monkeypatch.setattr(db, "execute", overflow)
    res = upsert_events(db, _rows())
    assert (res.stored_count, res.error_count) == (0, 2)


def test_full_u64_amount_is_stored_exactly(db):
    logs = invoke(data_line("BondAddedEvent", bond_values(amount=2**64 - 1)))
    res = upsert_events(db, to_records(extract_events(logs), "sigmax", 10, None))

    assert (res.stored_count, res.error_count) == (1, 0)
    db.expire_all()
    assert db.get(ProgramEventDB, "sigmax:0").amount == 2**64 - 1


def _subject_row(slot, status="valid"):
    return {
        "id": f"{pk(20)}:0",
        "subject_id": pk(21),
        "creator": pk(22),
        "details_cid": None,
        "round": 0,
        "available_bond": 10,
        "defender_count": 1,
        "status": status,
        "match_mode": False,
        "voting_period": 3600,
        "dispute": None,
        "created_at": 1,
        "updated_at": 2,
        "last_dispute_total": None,
        "last_voting_period": None,
        "slot": slot,
    }


def test_snapshot_newer_slot_overwrites(db):
    assert upsert_snapshot(db, "subject", _subject_row(100)).success
    res = upsert_snapshot(db, "subject", _subject_row(120, status="disputed"))
    assert res.success and not res.skipped

    db.expire_all()
    row = db.get(SubjectDB, f"{pk(20)}:0")
    assert row.status == "disputed"
    assert row.slot == 120


def test_snapshot_older_slot_is_skipped(db):
    upsert_snapshot(db, "subject", _subject_row(120, status="disputed"))
    res = upsert_snapshot(db, "subject", _subject_row(100, status="valid"))
    assert res.success
    assert res.skipped

    db.expire_all()
    row = db.get(SubjectDB, f"{pk(20)}:0")
    assert row.status == "disputed"
    assert row.slot == 120


def test_unknown_entity_type_is_an_error(db):
    res = upsert_snapshot(db, "nope", {"id": "x"})
    assert not res.success


def test_reset_clears_tables_in_order(db):
    upsert_events(db, _rows())
    upsert_snapshot(db, "subject", _subject_row(1))

    results = reset_tables(db, ["program_events", "disputes", "subjects", "no_such_table"])

    assert results["program_events"] == {"success": True}
    assert results["subjects"] == {"success": True}
    assert results["no_such_table"]["success"] is False
    assert _count(db, ProgramEventDB) == 0
    assert _count(db, SubjectDB) == 0
    assert _count(db, DisputeDB) == 0
