from __future__ import annotations

import binascii
import hashlib
import hmac

from ledger_sync.util.logging import get_logger, log_event

logger = get_logger("signature")


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, provided: str | None, secret: str | None) -> bool:
    """
    Authenticate a webhook body against its HMAC-SHA256 hex signature.

    Without a configured secret every request is accepted (development mode)
    and a warning is logged each time.
    """
    if not secret:
        log_event(
            logger,
            level="WARN",
            event="signature_check_disabled",
            msg="WEBHOOK_SECRET not set; accepting unsigned webhook request",
        )
        return True

    if not provided:
        return False

    try:
        expected = bytes.fromhex(compute_signature(raw_body, secret))
        given = binascii.unhexlify(provided.strip())
    except (ValueError, binascii.Error):
        return False

    if len(given) != len(expected):
        return False
    return hmac.compare_digest(given, expected)
