from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from typing import Any

from ledger_sync.util.time import utc_iso, utcnow


# Debug toggle: allow more verbose logging locally, but still never log secrets.
def _debug_log_payloads() -> bool:
    return os.getenv("LEDGER_SYNC_DEBUG_LOG_PAYLOADS", "false").lower() in (
        "1",
        "true",
        "yes",
        "on",
    )


# Deny-list of keys that should never be logged raw.
_DENY_KEYS = {
    "payload",
    "body",
    "raw_body",
    "request_body",
    "headers",
    "authorization",
    "x-webhook-signature",
    "api_key",
    "token",
    "password",
    "secret",
    "database_url",
    "rpc_url",
}


def get_logger(component: str) -> logging.Logger:
    logger = logging.getLogger(f"ledger_sync.{component}")

    # JSONL (message-only) output, without duplicate propagation.
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(h)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def new_run_id() -> str:
    return str(uuid.uuid4())


def _truncate_str(s: str, max_len: int = 800) -> str:
    return s if len(s) <= max_len else s[:max_len] + "...<truncated>"


def _sanitize_value(v: Any, depth: int = 0, max_depth: int = 3) -> Any:
    """
    Best-effort sanitizer to avoid huge logs and accidental leakage.
    Note: deny-list keys at the top level are handled by log_event() itself.
    """
    if depth > max_depth:
        return "<max_depth>"

    if v is None or isinstance(v, (int, float, bool)):
        return v

    if isinstance(v, str):
        return _truncate_str(v)

    if isinstance(v, (list, tuple)):
        return [_sanitize_value(x, depth + 1, max_depth) for x in list(v)[:50]]

    if isinstance(v, dict):
        out: dict[str, Any] = {}
        for k, vv in v.items():
            lk = str(k).lower()
            if lk in _DENY_KEYS:
                out[str(k)] = "<redacted>"
            else:
                out[str(k)] = _sanitize_value(vv, depth + 1, max_depth)
        return out

    return _truncate_str(str(v))


def log_event(
    logger: logging.Logger,
    *,
    level: str,
    event: str,
    msg: str,
    run_id: str | None = None,
    **fields: Any,
) -> None:
    component = logger.name.rsplit(".", 1)[-1]
    payload: dict[str, Any] = {
        "ts": utc_iso(utcnow()),
        "level": level,
        "component": component,
        "event": event,
        "run_id": run_id,
        "msg": msg,
    }

    debug = _debug_log_payloads()
    safe_fields: dict[str, Any] = {}
    for k, v in fields.items():
        lk = str(k).lower()

        # Never log deny-list fields in normal operation.
        if lk in _DENY_KEYS and not debug:
            continue

        # Even in debug, do not log raw deny-list values.
        if lk in _DENY_KEYS:
            safe_fields[k] = "<redacted>"
            continue

        safe_fields[k] = _sanitize_value(v)

    payload.update(safe_fields)

    line = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)

    lvl = (level or "").upper()
    if lvl == "ERROR":
        logger.error(line)
    elif lvl == "WARN" or lvl == "WARNING":
        logger.warning(line)
    else:
        logger.info(line)


def error_fields(e: BaseException) -> dict[str, Any]:
    return {"type": type(e).__name__, "message": str(e)}
