from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ledger_sync.services.borsh import BorshDecodeError, BorshReader, decode_struct
from ledger_sync.services.materializer import upsert_snapshot
from ledger_sync.services.program_schema import (
    DISCRIMINATOR_LEN,
    ProgramSchema,
    load_program_schema,
    program_id as default_program_id,
)
from ledger_sync.services.rpc_client import AccountInfo, RpcError, SolanaRpcClient
from ledger_sync.services.snapshot_mapper import ACCOUNT_MAPPERS, enrich_disputes_from_escrows
from ledger_sync.util.logging import error_fields, get_logger, log_event, new_run_id

logger = get_logger("reconciler")


@dataclass
class ReconcileResult:
    address: str
    entity_type: Optional[str]
    success: bool
    key: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


@dataclass
class FullSyncResult:
    accounts: int = 0
    unknown: int = 0
    # entity type -> {"synced": n, "errors": n}
    by_type: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def count(self, entity_type: str, ok: bool) -> None:
        slot = self.by_type.setdefault(entity_type, {"synced": 0, "errors": 0})
        slot["synced" if ok else "errors"] += 1


def _try_layout(data: bytes, name: str, schema: ProgramSchema) -> Optional[Tuple[Dict[str, Any], bytes]]:
    reader = BorshReader(data, DISCRIMINATOR_LEN)
    try:
        decoded = decode_struct(reader, schema.accounts[name], schema.types)
    except BorshDecodeError:
        return None
    return decoded, reader.take(reader.remaining)


def decode_account(data: bytes, schema: ProgramSchema | None = None) -> Optional[Tuple[str, Dict[str, Any]]]:
    """
    Identify and decode raw account bytes.

    The 8-byte discriminator decides the layout. Without a known
    discriminator, each layout is tried in schema order: a layout that
    consumes the buffer exactly wins, then one that leaves only zero padding.
    """
    schema = schema or load_program_schema()
    if len(data) < DISCRIMINATOR_LEN:
        return None

    name = schema.account_name_for(data[:DISCRIMINATOR_LEN])
    if name is not None:
        hit = _try_layout(data, name, schema)
        if hit is not None:
            return name, hit[0]

    padded: Optional[Tuple[str, Dict[str, Any]]] = None
    for candidate in schema.accounts:
        hit = _try_layout(data, candidate, schema)
        if hit is None:
            continue
        decoded, residue = hit
        if not residue:
            return candidate, decoded
        if padded is None and not any(residue):
            padded = (candidate, decoded)
    return padded


def snapshot_row(
    info: AccountInfo,
    schema: ProgramSchema | None = None,
    program: str | None = None,
) -> Optional[Tuple[str, Dict[str, Any]]]:
    """
    (entity type, row) for an account, or None when the bytes match no layout
    or the account is not owned by the program.
    """
    if info.owner != (program or default_program_id()):
        return None
    decoded = decode_account(info.data, schema)
    if decoded is None:
        return None
    name, fields_ = decoded
    entity_type, mapper = ACCOUNT_MAPPERS[name]
    return entity_type, mapper(info.address, fields_, info.slot)


class AccountReconciler:
    def __init__(
        self,
        db: Session,
        rpc: SolanaRpcClient,
        *,
        schema: ProgramSchema | None = None,
        program: str | None = None,
    ):
        self._db = db
        self._rpc = rpc
        self._schema = schema or load_program_schema()
        self._program = program or default_program_id()

    def reconcile(self, address: str, *, run_id: str | None = None) -> ReconcileResult:
        try:
            info = self._rpc.get_account_info(address)
        except RpcError as e:
            log_event(
                logger,
                level="WARN",
                event="account_fetch_failed",
                msg="getAccountInfo failed",
                run_id=run_id,
                address=address,
                error=error_fields(e),
            )
            return ReconcileResult(address=address, entity_type=None, success=False, error=str(e))

        if info is None:
            return ReconcileResult(address=address, entity_type=None, success=False, error="account not found")

        mapped = snapshot_row(info, self._schema, self._program)
        if mapped is None:
            log_event(
                logger,
                level="INFO",
                event="account_unknown_type",
                msg="unknown account type",
                run_id=run_id,
                address=address,
                owner=info.owner,
                size=len(info.data),
            )
            return ReconcileResult(address=address, entity_type=None, success=True)

        entity_type, row = mapped
        res = upsert_snapshot(self._db, entity_type, row, run_id=run_id)
        return ReconcileResult(
            address=address,
            entity_type=entity_type,
            success=res.success,
            key=row["id"],
            skipped=res.skipped,
            error=res.error,
        )

    def reconcile_many(self, addresses: List[str], *, run_id: str | None = None) -> List[ReconcileResult]:
        run_id = run_id or new_run_id()
        return [self.reconcile(a, run_id=run_id) for a in addresses]

    def sync_all(self, *, run_id: str | None = None) -> FullSyncResult:
        """Snapshot every account the program owns."""
        run_id = run_id or new_run_id()
        accounts = self._rpc.get_program_accounts(self._program)
        result = FullSyncResult(accounts=len(accounts))

        rows: List[Tuple[str, Dict[str, Any]]] = []
        for info in accounts:
            mapped = snapshot_row(info, self._schema, self._program)
            if mapped is None:
                result.unknown += 1
                continue
            rows.append(mapped)

        enrich_disputes_from_escrows(
            [r for t, r in rows if t == "dispute"],
            [r for t, r in rows if t == "escrow"],
        )

        for entity_type, row in rows:
            res = upsert_snapshot(self._db, entity_type, row, run_id=run_id)
            result.count(entity_type, res.success)

        log_event(
            logger,
            level="INFO",
            event="full_sync_complete",
            msg="program accounts synced",
            run_id=run_id,
            accounts=result.accounts,
            unknown=result.unknown,
            by_type=result.by_type,
        )
        return result
