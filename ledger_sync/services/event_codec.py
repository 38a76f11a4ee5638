from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ledger_sync.schemas.domain_events import DomainEvent, build_event
from ledger_sync.services.borsh import BorshDecodeError, BorshReader, decode_struct
from ledger_sync.services.program_schema import (
    DISCRIMINATOR_LEN,
    ProgramSchema,
    camel_to_snake,
    load_program_schema,
    program_id as default_program_id,
)
from ledger_sync.util.logging import get_logger, log_event

logger = get_logger("codec")

PROGRAM_DATA_PREFIX = "Program data: "
PROGRAM_LOG_PREFIX = "Program log: "

# Frame lines name a base58 program id; "Program log: failed ..." is plain text.
_PROGRAM_ID = r"[1-9A-HJ-NP-Za-km-z]{32,44}"
_INVOKE_RE = re.compile(rf"^Program ({_PROGRAM_ID}) invoke \[\d+\]$")
_EXIT_RE = re.compile(rf"^Program ({_PROGRAM_ID}) (success|failed)")


class CodecError(ValueError):
    pass


def _b64decode(payload: str) -> bytes:
    try:
        return base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"invalid base64 payload: {e}") from e


def decode_event_payload(data: bytes, schema: ProgramSchema) -> Tuple[str, Dict[str, Any]]:
    """
    Decode one emitted event: 8-byte discriminator followed by the borsh body.
    Returns (event name, snake_case field map).
    """
    if len(data) < DISCRIMINATOR_LEN:
        raise CodecError(f"payload too short for discriminator ({len(data)} bytes)")

    name = schema.event_name_for(data[:DISCRIMINATOR_LEN])
    if name is None:
        raise CodecError(f"unknown event discriminator {data[:DISCRIMINATOR_LEN].hex()}")

    try:
        decoded = decode_struct(BorshReader(data, DISCRIMINATOR_LEN), schema.events[name], schema.types)
    except BorshDecodeError as e:
        raise CodecError(f"{name}: {e}") from e

    return name, {camel_to_snake(k): v for k, v in decoded.items()}


def _try_legacy_log(payload: str, schema: ProgramSchema) -> Optional[Tuple[str, Dict[str, Any]]]:
    # Older program builds emitted events as base64 inside "Program log:".
    # Most such lines are plain text, so anything that is not a known event is ignored quietly.
    try:
        data = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(data) < DISCRIMINATOR_LEN or schema.event_name_for(data[:DISCRIMINATOR_LEN]) is None:
        return None
    return decode_event_payload(data, schema)


def extract_events(
    logs: Sequence[str],
    *,
    program: str | None = None,
    schema: ProgramSchema | None = None,
    signature: str | None = None,
) -> List[DomainEvent]:
    """
    Parse one transaction's log lines into typed events.

    Only lines emitted while the target program is the executing frame are
    considered. A malformed structured line is logged and skipped; it never
    aborts the remaining lines. The ordinal of an event is its position in
    the returned list.
    """
    schema = schema or load_program_schema()
    program = program or default_program_id()

    stack: List[str] = []
    found: List[Tuple[str, Dict[str, Any]]] = []

    for line_no, line in enumerate(logs or []):
        if not isinstance(line, str):
            continue

        m = _INVOKE_RE.match(line)
        if m:
            stack.append(m.group(1))
            continue

        m = _EXIT_RE.match(line)
        if m:
            if stack and stack[-1] == m.group(1):
                stack.pop()
            continue

        # No invocation framing at all: accept the line as ours.
        in_program = not stack or stack[-1] == program
        if not in_program:
            continue

        try:
            if line.startswith(PROGRAM_DATA_PREFIX):
                found.append(decode_event_payload(_b64decode(line[len(PROGRAM_DATA_PREFIX):]), schema))
            elif line.startswith(PROGRAM_LOG_PREFIX):
                legacy = _try_legacy_log(line[len(PROGRAM_LOG_PREFIX):], schema)
                if legacy is not None:
                    found.append(legacy)
        except CodecError as e:
            log_event(
                logger,
                level="WARN",
                event="codec_line_skipped",
                msg="malformed structured log line skipped",
                signature=signature,
                line_no=line_no,
                error=str(e),
            )

    return [build_event(name, ordinal, raw) for ordinal, (name, raw) in enumerate(found)]


def mentions_program(logs: Sequence[str], program: str) -> bool:
    return any(isinstance(line, str) and program in line for line in logs or [])
