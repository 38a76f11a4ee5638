from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from ledger_sync.services.event_codec import extract_events, mentions_program
from ledger_sync.services.materializer import UpsertResult, upsert_events
from ledger_sync.services.program_schema import ProgramSchema, program_id as default_program_id
from ledger_sync.services.row_mapper import to_records
from ledger_sync.util.logging import get_logger, log_event

logger = get_logger("webhook")


@dataclass(frozen=True)
class TransactionLogBatch:
    signature: str
    slot: int
    block_time: Optional[int]
    logs: List[str] = field(default_factory=list)


@dataclass
class IngestResult:
    events: int = 0
    errors: int = 0
    transactions: int = 0


def _logs_of(tx: dict) -> List[str]:
    meta = tx.get("meta") if isinstance(tx.get("meta"), dict) else {}
    logs = meta.get("logMessages") or tx.get("logs") or []
    return [line for line in logs if isinstance(line, str)] if isinstance(logs, list) else []


def normalize_payload(payload: Any) -> List[TransactionLogBatch]:
    """
    Accept one transaction object or a list of them.

    Entries without a signature or without any log lines are dropped, and so
    are entries whose slot or block time is not an integer.
    """
    items = payload if isinstance(payload, list) else [payload]
    out: List[TransactionLogBatch] = []
    for tx in items:
        if not isinstance(tx, dict) or not tx.get("signature"):
            continue
        logs = _logs_of(tx)
        if not logs:
            continue
        block_time = tx.get("blockTime")
        try:
            slot = int(tx.get("slot") or 0)
            block_time = int(block_time) if block_time is not None else None
        except (TypeError, ValueError):
            log_event(
                logger,
                level="WARN",
                event="webhook_tx_dropped",
                msg="transaction with malformed slot or blockTime dropped",
                signature=str(tx["signature"]),
                slot=tx.get("slot"),
                block_time=tx.get("blockTime"),
            )
            continue
        out.append(
            TransactionLogBatch(
                signature=str(tx["signature"]),
                slot=slot,
                block_time=block_time,
                logs=logs,
            )
        )
    return out


def process_transaction(
    db: Session,
    batch: TransactionLogBatch,
    *,
    program: str | None = None,
    schema: ProgramSchema | None = None,
    run_id: str | None = None,
) -> UpsertResult:
    events = extract_events(batch.logs, program=program, schema=schema, signature=batch.signature)
    if not events:
        return UpsertResult()
    rows = to_records(events, batch.signature, batch.slot, batch.block_time)
    return upsert_events(db, rows, run_id=run_id)


def ingest_payload(
    db: Session,
    payload: Any,
    *,
    program: str | None = None,
    schema: ProgramSchema | None = None,
    run_id: str | None = None,
) -> IngestResult:
    program = program or default_program_id()
    result = IngestResult()

    for batch in normalize_payload(payload):
        if not mentions_program(batch.logs, program):
            continue
        upserted = process_transaction(db, batch, program=program, schema=schema, run_id=run_id)
        result.transactions += 1
        result.events += upserted.stored_count
        result.errors += upserted.error_count

    if result.events or result.errors:
        log_event(
            logger,
            level="INFO",
            event="webhook_processed",
            msg="webhook delivery processed",
            run_id=run_id,
            transactions=result.transactions,
            events=result.events,
            errors=result.errors,
        )
    return result
