# ledger_sync/db.py
from __future__ import annotations

import os
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ledger_sync.config.sync_config import load_sync_config


class Base(DeclarativeBase):
    pass


def _database_url() -> str:
    return os.getenv("DATABASE_URL", "").strip()


def _make_engine(url: str) -> Engine:
    connect_args: dict = {}
    if url.startswith("postgresql"):
        # Store calls must not block forever; the timeout is enforced server-side.
        timeout_ms = load_sync_config().store_statement_timeout_ms()
        connect_args["options"] = f"-c statement_timeout={timeout_ms}"
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


_url = _database_url()
engine: Optional[Engine] = _make_engine(_url) if _url else None
SessionLocal: Optional[sessionmaker] = (
    sessionmaker(bind=engine, autoflush=False, expire_on_commit=False) if engine is not None else None
)


def get_db() -> Iterator[Optional[Session]]:
    """
    Yields a session, or None when DATABASE_URL is not set.

    Routes decide themselves how an unconfigured store is reported
    (503 for admin endpoints, 200 + message for the webhook).
    """
    if SessionLocal is None:
        yield None
        return

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
