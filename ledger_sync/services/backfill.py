from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ledger_sync.config.sync_config import SyncConfig, load_sync_config
from ledger_sync.services.event_codec import extract_events
from ledger_sync.services.materializer import upsert_events
from ledger_sync.services.program_schema import ProgramSchema, program_id as default_program_id
from ledger_sync.services.row_mapper import EventRecordRow, to_records
from ledger_sync.services.rpc_client import RpcError, SolanaRpcClient
from ledger_sync.util.logging import error_fields, get_logger, log_event, new_run_id

logger = get_logger("backfill")


@dataclass
class BackfillResult:
    processed: int = 0
    events: int = 0
    errors: int = 0
    # oldest signature of the page; the caller's resume cursor
    last_signature: Optional[str] = None
    has_more: bool = False
    signatures_found: int = 0


def clamp_limit(requested: Optional[int], max_signatures: int) -> int:
    """Falsy (None/0) means the maximum; anything larger is capped."""
    if not requested or requested <= 0:
        return max_signatures
    return min(int(requested), max_signatures)


class BackfillCrawler:
    """
    Walks the program's transaction history newest to oldest, one page per run.

    Per-transaction failures are counted and skipped. Each batch is stored
    with a single upsert, so a failed batch only costs that batch.
    """

    def __init__(
        self,
        db: Session,
        rpc: SolanaRpcClient,
        *,
        program: str | None = None,
        schema: ProgramSchema | None = None,
        config: SyncConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._db = db
        self._rpc = rpc
        self._program = program or default_program_id()
        self._schema = schema
        self._cfg = config or load_sync_config()
        self._sleep = sleep

    def run(self, limit: Optional[int] = None, before: Optional[str] = None, *, run_id: str | None = None) -> BackfillResult:
        run_id = run_id or new_run_id()
        limit = clamp_limit(limit, self._cfg.backfill_max_signatures())
        batch_size = self._cfg.backfill_batch_size()
        delay = self._cfg.backfill_delay_seconds()

        log_event(
            logger,
            level="INFO",
            event="backfill_start",
            msg="event backfill started",
            run_id=run_id,
            limit=limit,
            before=before,
        )

        signatures = self._rpc.get_signatures_for_address(self._program, limit=limit, before=before)
        result = BackfillResult(signatures_found=len(signatures))
        if not signatures:
            log_event(logger, level="INFO", event="backfill_empty", msg="no signatures found", run_id=run_id)
            return result

        result.last_signature = signatures[-1].get("signature")
        result.has_more = len(signatures) == limit

        for start in range(0, len(signatures), batch_size):
            rows: List[EventRecordRow] = []
            for info in signatures[start : start + batch_size]:
                sig = info.get("signature")
                try:
                    tx = self._rpc.get_transaction(sig)
                    logs = ((tx or {}).get("meta") or {}).get("logMessages")
                    if logs:
                        events = extract_events(logs, program=self._program, schema=self._schema, signature=sig)
                        rows.extend(to_records(events, sig, int(tx.get("slot") or 0), tx.get("blockTime")))
                    result.processed += 1
                except (RpcError, ValueError) as e:
                    result.errors += 1
                    log_event(
                        logger,
                        level="WARN",
                        event="backfill_tx_failed",
                        msg="transaction fetch or decode failed; continuing",
                        run_id=run_id,
                        signature=sig,
                        error=error_fields(e),
                    )
                self._sleep(delay)

            if rows:
                stored = upsert_events(self._db, rows, run_id=run_id)
                result.events += stored.stored_count
                result.errors += stored.error_count

        log_event(
            logger,
            level="INFO",
            event="backfill_complete",
            msg="event backfill page complete",
            run_id=run_id,
            processed=result.processed,
            events=result.events,
            errors=result.errors,
            last_signature=result.last_signature,
            has_more=result.has_more,
        )
        return result
