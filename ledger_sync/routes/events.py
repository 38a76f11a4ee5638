# ledger_sync/routes/events.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ledger_sync.db import get_db
from ledger_sync.models.event_record import ProgramEventDB
from ledger_sync.schemas.sync_api import ProgramEventOut

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=List[ProgramEventOut])
def list_events(
    event_type: Optional[str] = Query(default=None),
    subject_id: Optional[str] = Query(default=None),
    actor: Optional[str] = Query(default=None),
    signature: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Optional[Session] = Depends(get_db),
):
    if db is None:
        raise HTTPException(status_code=503, detail="Store not configured")

    q = db.query(ProgramEventDB)
    if event_type:
        q = q.filter(ProgramEventDB.event_type == event_type)
    if subject_id:
        q = q.filter(ProgramEventDB.subject_id == subject_id)
    if actor:
        q = q.filter(ProgramEventDB.actor == actor)
    if signature:
        q = q.filter(ProgramEventDB.signature == signature)

    return q.order_by(ProgramEventDB.slot.desc(), ProgramEventDB.id.asc()).limit(limit).all()
