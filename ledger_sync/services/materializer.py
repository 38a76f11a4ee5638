from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_sync.db import Base
from ledger_sync.models.event_record import ProgramEventDB
from ledger_sync.models.snapshots import SNAPSHOT_MODELS
from ledger_sync.services.row_mapper import EventRecordRow
from ledger_sync.util.logging import error_fields, get_logger, log_event
from ledger_sync.util.time import utcnow

logger = get_logger("materializer")


@dataclass
class UpsertResult:
    stored_count: int = 0
    error_count: int = 0


@dataclass
class SnapshotResult:
    success: bool
    skipped: bool = False
    error: Optional[str] = None


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect for upsert: {dialect!r}")
    return insert


def upsert_events(db: Session, rows: Sequence[EventRecordRow], *, run_id: str | None = None) -> UpsertResult:
    """
    Idempotent write of one batch, keyed by record id.

    A conflicting id overwrites every column, so replaying a transaction
    never duplicates events. The batch succeeds or fails as a whole.
    """
    if not rows:
        return UpsertResult()

    # One INSERT cannot touch the same key twice; the last occurrence wins.
    by_id: Dict[str, Dict[str, Any]] = {}
    now = utcnow()
    for r in rows:
        values = r.as_dict()
        values["synced_at"] = now
        by_id[r.id] = values
    values_list = list(by_id.values())

    try:
        insert = _insert_for(db)
        stmt = insert(ProgramEventDB).values(values_list)
        update_cols = {
            c: stmt.excluded[c]
            for c in ("signature", "slot", "block_time", "event_type", "subject_id", "round", "actor", "amount", "data", "synced_at")
        }
        stmt = stmt.on_conflict_do_update(index_elements=["id"], set_=update_cols)
        db.execute(stmt)
        db.commit()
    except Exception as e:
        # driver errors such as OverflowError fail this batch, not the caller
        db.rollback()
        log_event(
            logger,
            level="ERROR",
            event="events_upsert_failed",
            msg="event batch upsert failed",
            run_id=run_id,
            batch_size=len(rows),
            error=error_fields(e),
        )
        return UpsertResult(stored_count=0, error_count=len(rows))

    log_event(
        logger,
        level="INFO",
        event="events_upserted",
        msg="event batch stored",
        run_id=run_id,
        stored=len(rows),
    )
    return UpsertResult(stored_count=len(rows), error_count=0)


def upsert_snapshot(
    db: Session,
    entity_type: str,
    row: Dict[str, Any],
    *,
    run_id: str | None = None,
) -> SnapshotResult:
    """
    Full-row overwrite of one account snapshot keyed by its natural key.

    An observation older than the stored one (lower slot) does not replace it.
    """
    model = SNAPSHOT_MODELS.get(entity_type)
    if model is None:
        return SnapshotResult(success=False, error=f"unknown entity type {entity_type!r}")

    values = dict(row)
    values["synced_at"] = utcnow()
    incoming_slot = values.get("slot")
    table = model.__table__

    try:
        stored_slot = db.execute(select(table.c.slot).where(table.c.id == values["id"])).scalar_one_or_none()
        if stored_slot is not None and incoming_slot is not None and stored_slot > incoming_slot:
            log_event(
                logger,
                level="INFO",
                event="snapshot_stale_skipped",
                msg="stored snapshot is newer; incoming observation ignored",
                run_id=run_id,
                entity_type=entity_type,
                key=values["id"],
                stored_slot=stored_slot,
                incoming_slot=incoming_slot,
            )
            return SnapshotResult(success=True, skipped=True)

        insert = _insert_for(db)
        stmt = insert(model).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={k: stmt.excluded[k] for k in values if k != "id"},
            where=or_(
                table.c.slot.is_(None),
                stmt.excluded.slot.is_(None),
                table.c.slot <= stmt.excluded.slot,
            ),
        )
        db.execute(stmt)
        db.commit()
    except Exception as e:
        db.rollback()
        log_event(
            logger,
            level="ERROR",
            event="snapshot_upsert_failed",
            msg="snapshot upsert failed",
            run_id=run_id,
            entity_type=entity_type,
            key=values.get("id"),
            error=error_fields(e),
        )
        return SnapshotResult(success=False, error=str(e))

    return SnapshotResult(success=True)


def reset_tables(db: Session, tables: List[str], *, run_id: str | None = None) -> Dict[str, Dict[str, Any]]:
    """Delete every row of each table, in the given order. Each table commits on its own."""
    results: Dict[str, Dict[str, Any]] = {}
    for name in tables:
        table = Base.metadata.tables.get(name)
        if table is None:
            results[name] = {"success": False, "error": f"unknown table {name!r}"}
            continue
        try:
            db.execute(delete(table))
            db.commit()
            results[name] = {"success": True}
        except SQLAlchemyError as e:
            db.rollback()
            results[name] = {"success": False, "error": str(e)}

    log_event(
        logger,
        level="WARN",
        event="tables_reset",
        msg="derived tables cleared",
        run_id=run_id,
        tables=tables,
        failed=[t for t, r in results.items() if not r["success"]],
    )
    return results
