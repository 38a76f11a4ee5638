# ledger_sync/routes/webhook.py
from __future__ import annotations

import os
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ledger_sync.db import get_db
from ledger_sync.routes.deps import parse_json, raw_body
from ledger_sync.services.program_schema import program_id
from ledger_sync.services.rate_limit import rate_limited
from ledger_sync.services.signature import verify
from ledger_sync.services.webhook_ingest import ingest_payload
from ledger_sync.util.logging import error_fields, get_logger, log_event, new_run_id

router = APIRouter(prefix="/webhook", tags=["webhook"])

logger = get_logger("webhook")


@router.post("")
def receive_webhook(
    _limit=Depends(rate_limited("webhook")),
    body: bytes = Depends(raw_body),
    x_webhook_signature: Optional[str] = Header(default=None, alias="x-webhook-signature"),
    db: Optional[Session] = Depends(get_db),
):
    run_id = new_run_id()

    if not verify(body, x_webhook_signature, os.getenv("WEBHOOK_SECRET", "").strip() or None):
        log_event(logger, level="WARN", event="webhook_rejected", run_id=run_id, msg="invalid webhook signature")
        return JSONResponse(status_code=401, content={"error": "Invalid signature"})

    try:
        payload = parse_json(body)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    if db is None:
        log_event(logger, level="WARN", event="webhook_store_missing", run_id=run_id, msg="store not configured; delivery dropped")
        return {"success": False, "message": "Store not configured"}

    try:
        result = ingest_payload(db, payload, run_id=run_id)
    except Exception as e:
        log_event(
            logger,
            level="ERROR",
            event="webhook_failed",
            run_id=run_id,
            msg="webhook processing failed",
            error=error_fields(e),
        )
        return JSONResponse(status_code=500, content={"error": "Internal error"})

    return {"success": True, "events": result.events, "errors": result.errors}


@router.get("")
def webhook_health():
    return {
        "status": "ok",
        "programId": program_id(),
        "description": "Transaction webhook for program events",
    }
