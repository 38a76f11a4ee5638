from __future__ import annotations

import hmac
import os

from fastapi import Header, HTTPException, status


def _admin_secret() -> str:
    return os.getenv("ADMIN_SECRET", "").strip()


def require_admin(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    """
    Admin endpoints (backfill, full sync, reset).

    Requires `Authorization: Bearer <ADMIN_SECRET>`. An unset secret locks the
    endpoints instead of opening them.
    """
    secret = _admin_secret()
    token = ""
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()

    if not secret or not token or not hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
