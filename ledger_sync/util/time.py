from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utc_iso(dt: datetime) -> str:
    # Aware UTC in, stable "Z" suffix out.
    return dt.isoformat().replace("+00:00", "Z")
