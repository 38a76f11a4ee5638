# ledger_sync/routes/rpc.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ledger_sync.config.sync_config import load_sync_config
from ledger_sync.routes.deps import parse_json, raw_body
from ledger_sync.services.rate_limit import RateLimitResult, rate_limit_headers, rate_limited
from ledger_sync.services.rpc_client import RpcError, RpcTimeout, SolanaRpcClient, get_rpc_client
from ledger_sync.util.logging import error_fields, get_logger, log_event

router = APIRouter(prefix="/rpc", tags=["rpc"])

logger = get_logger("rpc_proxy")


@router.post("")
def proxy_rpc(
    limit: RateLimitResult = Depends(rate_limited("rpc")),
    body: bytes = Depends(raw_body),
    rpc: Optional[SolanaRpcClient] = Depends(get_rpc_client),
):
    """JSON-RPC pass-through; the provider key never leaves the server."""
    if rpc is None:
        return JSONResponse(status_code=503, content={"error": "RPC not configured"})

    try:
        parse_json(body)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    try:
        upstream = rpc.forward(body, timeout=load_sync_config().rpc_proxy_timeout_seconds())
        data = upstream.json()
    except RpcTimeout:
        return JSONResponse(status_code=504, content={"error": "RPC request timed out"})
    except (RpcError, ValueError) as e:
        log_event(logger, level="WARN", event="rpc_proxy_failed", msg="upstream RPC failed", error=error_fields(e))
        return JSONResponse(status_code=502, content={"error": "RPC request failed"})

    return JSONResponse(status_code=upstream.status_code, content=data, headers=rate_limit_headers(limit))
