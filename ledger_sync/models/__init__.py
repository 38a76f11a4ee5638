# models package init
# Ensure ORM models are importable from a single place.
from ledger_sync.models.event_record import ProgramEventDB  # noqa: F401
from ledger_sync.models.snapshots import (  # noqa: F401
    ChallengerPoolDB,
    ChallengerRecordDB,
    DefenderPoolDB,
    DefenderRecordDB,
    DisputeDB,
    EscrowDB,
    JurorPoolDB,
    JurorRecordDB,
    SNAPSHOT_MODELS,
    SubjectDB,
)
from ledger_sync.models.sync_cursor import SyncCursorDB  # noqa: F401
