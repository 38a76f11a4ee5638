# ledger_sync/main.py
from fastapi import FastAPI

from ledger_sync.config.sync_config import load_sync_config
from ledger_sync.services.program_schema import program_id
from ledger_sync.services.rate_limit import build_rate_limiter
from ledger_sync.services.scheduler import scheduler, setup_scheduler

from ledger_sync.routes.events import router as events_router
from ledger_sync.routes.rpc import router as rpc_router
from ledger_sync.routes.sync import router as sync_router
from ledger_sync.routes.webhook import router as webhook_router


app = FastAPI(title="Ledger Sync")
app.include_router(webhook_router)
app.include_router(sync_router)
app.include_router(events_router)
app.include_router(rpc_router)

# One limiter per process; request handlers reach it through app.state.
app.state.rate_limiter = build_rate_limiter()


@app.get("/health")
def health():
    return {"status": "ok", "programId": program_id()}


@app.on_event("startup")
def on_startup():
    if not load_sync_config().scheduler_enabled():
        return

    setup_scheduler()
    if not scheduler.running:
        scheduler.start()


@app.on_event("shutdown")
def on_shutdown():
    if scheduler.running:
        scheduler.shutdown()
