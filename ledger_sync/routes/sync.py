# ledger_sync/routes/sync.py
from __future__ import annotations

from typing import Optional

import base58
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ledger_sync.config.sync_config import load_sync_config
from ledger_sync.db import get_db
from ledger_sync.routes.deps import parse_json, raw_body
from ledger_sync.schemas.sync_api import AccountSyncRequest, BackfillRequest
from ledger_sync.services.account_reconciler import AccountReconciler
from ledger_sync.services.auth import require_admin
from ledger_sync.services.backfill import BackfillCrawler
from ledger_sync.services.materializer import reset_tables
from ledger_sync.services.rate_limit import rate_limited
from ledger_sync.services.rpc_client import RpcError, SolanaRpcClient, get_rpc_client
from ledger_sync.util.logging import error_fields, get_logger, log_event, new_run_id

router = APIRouter(prefix="/sync", tags=["sync"])

logger = get_logger("sync")


def _unavailable(rpc: Optional[SolanaRpcClient], db: Optional[Session]) -> Optional[JSONResponse]:
    if rpc is None:
        return JSONResponse(status_code=503, content={"error": "RPC not configured"})
    if db is None:
        return JSONResponse(status_code=503, content={"error": "Store not configured"})
    return None


def _is_address(value: str) -> bool:
    try:
        return len(base58.b58decode(value)) == 32
    except ValueError:
        return False


@router.post("/backfill-events", dependencies=[Depends(require_admin)])
def backfill_events(
    body: bytes = Depends(raw_body),
    db: Optional[Session] = Depends(get_db),
    rpc: Optional[SolanaRpcClient] = Depends(get_rpc_client),
):
    unavailable = _unavailable(rpc, db)
    if unavailable is not None:
        return unavailable

    # An unreadable body means "defaults"; a readable one must be an object.
    try:
        payload = parse_json(body) if body.strip() else {}
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Body must be a JSON object"})
    try:
        req = BackfillRequest.model_validate(payload)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid body", "details": e.errors(include_url=False)})

    run_id = new_run_id()
    try:
        result = BackfillCrawler(db, rpc).run(limit=req.limit, before=req.before or None, run_id=run_id)
    except Exception as e:
        log_event(logger, level="ERROR", event="backfill_failed", run_id=run_id, msg="backfill failed", error=error_fields(e))
        return JSONResponse(status_code=500, content={"error": "Backfill failed", "details": str(e)})

    if result.signatures_found == 0:
        return {
            "success": True,
            "message": "No signatures found",
            "processed": 0,
            "events": 0,
            "errors": 0,
            "lastSignature": None,
            "hasMore": False,
        }

    return {
        "success": True,
        "processed": result.processed,
        "events": result.events,
        "errors": result.errors,
        "lastSignature": result.last_signature,
        "hasMore": result.has_more,
    }


@router.get("/backfill-events")
def backfill_usage():
    max_signatures = load_sync_config().backfill_max_signatures()
    return {
        "status": "ok",
        "description": "Event backfill endpoint - POST with Authorization: Bearer <ADMIN_SECRET>",
        "options": {
            "limit": f"Max signatures to process (default: {max_signatures})",
            "before": "Start from this signature (for pagination)",
        },
    }


@router.post("/reset", dependencies=[Depends(require_admin)])
def reset(db: Optional[Session] = Depends(get_db)):
    if db is None:
        return JSONResponse(status_code=503, content={"error": "Store not configured"})

    try:
        results = reset_tables(db, load_sync_config().reset_tables(), run_id=new_run_id())
    except Exception as e:
        return JSONResponse(status_code=500, content={"error": "Reset failed", "details": str(e)})

    all_ok = all(r["success"] for r in results.values())
    return {
        "success": all_ok,
        "message": "All tables reset" if all_ok else "Some tables failed to reset",
        "results": results,
    }


@router.post("/accounts")
def sync_accounts(
    _limit=Depends(rate_limited("sync")),
    body: bytes = Depends(raw_body),
    db: Optional[Session] = Depends(get_db),
    rpc: Optional[SolanaRpcClient] = Depends(get_rpc_client),
):
    """Re-read specific accounts and overwrite their snapshots."""
    try:
        payload = parse_json(body)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    if isinstance(payload, list):
        payload = {"addresses": payload}
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Body must be an object or a list of addresses"})
    try:
        addresses = AccountSyncRequest.model_validate(payload).all_addresses()
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid body", "details": e.errors(include_url=False)})

    max_addresses = load_sync_config().reconcile_max_addresses()
    if not addresses:
        return JSONResponse(status_code=400, content={"error": "No addresses given"})
    if len(addresses) > max_addresses:
        return JSONResponse(status_code=400, content={"error": f"Too many sync requests (max {max_addresses})"})
    bad = [a for a in addresses if not _is_address(a)]
    if bad:
        return JSONResponse(status_code=400, content={"error": "Invalid address", "addresses": bad})

    unavailable = _unavailable(rpc, db)
    if unavailable is not None:
        return unavailable

    results = AccountReconciler(db, rpc).reconcile_many(addresses)
    return {
        "success": all(r.success for r in results),
        "results": [
            {
                "address": r.address,
                "type": r.entity_type,
                "success": r.success,
                "key": r.key,
                "skipped": r.skipped,
                "error": r.error,
            }
            for r in results
        ],
    }


@router.post("/full", dependencies=[Depends(require_admin)])
def full_sync(
    db: Optional[Session] = Depends(get_db),
    rpc: Optional[SolanaRpcClient] = Depends(get_rpc_client),
):
    unavailable = _unavailable(rpc, db)
    if unavailable is not None:
        return unavailable

    run_id = new_run_id()
    try:
        result = AccountReconciler(db, rpc).sync_all(run_id=run_id)
    except RpcError as e:
        log_event(logger, level="ERROR", event="full_sync_failed", run_id=run_id, msg="full sync failed", error=error_fields(e))
        return JSONResponse(status_code=502, content={"error": "Full sync failed", "details": str(e)})

    return {
        "success": all(v["errors"] == 0 for v in result.by_type.values()),
        "accounts": result.accounts,
        "unknown": result.unknown,
        "results": result.by_type,
    }
