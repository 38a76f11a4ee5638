from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ledger_sync.services.borsh import FieldSpec, encode_struct


DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "config" / "program_schema.yaml"

DISCRIMINATOR_LEN = 8

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


def discriminator(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LEN]


def camel_to_snake(name: str) -> str:
    return _CAMEL_RE.sub(r"_\1", name).lower()


@dataclass(frozen=True)
class ProgramSchema:
    address: str
    types: Dict[str, Dict[str, Any]]
    events: Dict[str, List[FieldSpec]]
    # insertion order is the reconciler's trial order
    accounts: Dict[str, List[FieldSpec]]
    _event_disc: Dict[bytes, str] = field(default_factory=dict, repr=False)
    _account_disc: Dict[bytes, str] = field(default_factory=dict, repr=False)

    def event_name_for(self, disc: bytes) -> Optional[str]:
        return self._event_disc.get(disc)

    def account_name_for(self, disc: bytes) -> Optional[str]:
        return self._account_disc.get(disc)

    def encode_event(self, name: str, values: Dict[str, Any]) -> bytes:
        """Discriminator + borsh body, i.e. what the program emits as `Program data:`."""
        return discriminator("event", name) + encode_struct(self.events[name], values, self.types)

    def encode_account(self, name: str, values: Dict[str, Any]) -> bytes:
        return discriminator("account", name) + encode_struct(self.accounts[name], values, self.types)


def _fields(raw: Any) -> List[FieldSpec]:
    out: List[FieldSpec] = []
    for item in raw or []:
        name, type_spec = item[0], item[1]
        out.append((str(name), type_spec))
    return out


def build_program_schema(data: Dict[str, Any]) -> ProgramSchema:
    types: Dict[str, Dict[str, Any]] = {}
    for name, definition in (data.get("types") or {}).items():
        d = dict(definition)
        if d.get("kind") == "struct":
            d["fields"] = _fields(d.get("fields"))
        types[name] = d

    events = {name: _fields(fields) for name, fields in (data.get("events") or {}).items()}
    accounts = {name: _fields(fields) for name, fields in (data.get("accounts") or {}).items()}

    return ProgramSchema(
        address=str(data.get("address", "")),
        types=types,
        events=events,
        accounts=accounts,
        _event_disc={discriminator("event", n): n for n in events},
        _account_disc={discriminator("account", n): n for n in accounts},
    )


_cached: Optional[ProgramSchema] = None


def load_program_schema(path: Path | None = None) -> ProgramSchema:
    global _cached
    if _cached is not None and path is None:
        return _cached

    p = path or DEFAULT_SCHEMA_PATH
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    schema = build_program_schema(data)
    if path is None:
        _cached = schema
    return schema


def program_id() -> str:
    """Target program address; PROGRAM_ID env overrides the schema's address."""
    env = os.getenv("PROGRAM_ID", "").strip()
    return env or load_program_schema().address
