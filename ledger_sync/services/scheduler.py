from __future__ import annotations

import time
import traceback
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from ledger_sync import db as db_module
from ledger_sync.config.sync_config import load_sync_config
from ledger_sync.models.sync_cursor import SyncCursorDB
from ledger_sync.services.backfill import BackfillCrawler, BackfillResult
from ledger_sync.services.rpc_client import SolanaRpcClient, client_from_env
from ledger_sync.util.logging import get_logger, log_event, new_run_id
from ledger_sync.util.time import utcnow

scheduler = BackgroundScheduler()

logger = get_logger("scheduler")

BACKFILL_CURSOR = "backfill"


def _load_cursor(db: Session) -> Optional[str]:
    row = db.get(SyncCursorDB, BACKFILL_CURSOR)
    return row.last_signature if row is not None else None


def _save_cursor(db: Session, last_signature: Optional[str]) -> None:
    row = db.get(SyncCursorDB, BACKFILL_CURSOR)
    if row is None:
        row = SyncCursorDB(name=BACKFILL_CURSOR)
        db.add(row)
    row.last_signature = last_signature
    row.updated_at = utcnow()
    db.commit()


def run_backfill_job(
    session_factory: Callable[[], Session] | None = None,
    rpc_factory: Callable[[], SolanaRpcClient] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[BackfillResult]:
    """
    One unattended backfill page, resuming from the stored cursor.

    The cursor advances to the oldest signature of each full page; once a
    page comes back short, history is exhausted and the cursor is cleared so
    the next run starts again from the newest transactions.
    """
    run_id = new_run_id()
    t0 = time.monotonic()

    session_factory = session_factory or db_module.SessionLocal
    if session_factory is None:
        log_event(logger, level="WARN", event="scheduler_run_skipped", run_id=run_id, msg="store not configured")
        return None

    cfg = load_sync_config()
    db = session_factory()
    rpc = None
    try:
        rpc = (rpc_factory or client_from_env)()
        before = _load_cursor(db)

        log_event(
            logger,
            level="INFO",
            event="scheduler_run_start",
            run_id=run_id,
            msg="scheduled backfill started",
            before=before,
        )

        result = BackfillCrawler(db, rpc, config=cfg, sleep=sleep).run(
            limit=cfg.scheduler_backfill_limit(), before=before, run_id=run_id
        )
        _save_cursor(db, result.last_signature if result.has_more else None)

        log_event(
            logger,
            level="INFO",
            event="scheduler_run_end",
            run_id=run_id,
            msg="scheduled backfill finished",
            duration_ms=int((time.monotonic() - t0) * 1000),
            counts={
                "processed": result.processed,
                "events": result.events,
                "errors": result.errors,
            },
            has_more=result.has_more,
        )
        return result

    except Exception as e:
        db.rollback()
        log_event(
            logger,
            level="ERROR",
            event="scheduler_run_end",
            run_id=run_id,
            msg="scheduled backfill failed",
            duration_ms=int((time.monotonic() - t0) * 1000),
            error={
                "type": type(e).__name__,
                "message": str(e),
                "stacktrace": traceback.format_exc(),
            },
        )
        return None
    finally:
        if rpc is not None:
            rpc.close()
        db.close()


def setup_scheduler() -> None:
    cfg = load_sync_config()
    interval_minutes = cfg.scheduler_backfill_interval_minutes()

    log_event(
        logger,
        level="INFO",
        event="scheduler_configured",
        run_id="startup",
        msg="scheduler configured",
        interval_minutes=interval_minutes,
    )

    scheduler.add_job(
        run_backfill_job,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id="backfill_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
