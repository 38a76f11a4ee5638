from __future__ import annotations

import struct
from typing import Any, Dict, List, Tuple

import base58


class BorshDecodeError(ValueError):
    pass


# name -> (struct format, byte width)
_SCALARS: Dict[str, Tuple[str, int]] = {
    "u8": ("<B", 1),
    "i8": ("<b", 1),
    "u16": ("<H", 2),
    "i16": ("<h", 2),
    "u32": ("<I", 4),
    "i32": ("<i", 4),
    "u64": ("<Q", 8),
    "i64": ("<q", 8),
}

PUBKEY_LEN = 32

FieldSpec = Tuple[str, Any]


class BorshReader:
    def __init__(self, data: bytes, offset: int = 0):
        self._data = data
        self._pos = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, n: int) -> bytes:
        if n < 0 or self._pos + n > len(self._data):
            raise BorshDecodeError(
                f"buffer underrun: need {n} bytes at offset {self._pos}, have {self.remaining}"
            )
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def scalar(self, name: str) -> int:
        fmt, width = _SCALARS[name]
        return struct.unpack(fmt, self.take(width))[0]

    def u128(self, signed: bool = False) -> int:
        return int.from_bytes(self.take(16), "little", signed=signed)

    def boolean(self) -> bool:
        b = self.take(1)[0]
        if b > 1:
            raise BorshDecodeError(f"invalid bool byte {b}")
        return b == 1

    def string(self) -> str:
        n = self.scalar("u32")
        raw = self.take(n)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise BorshDecodeError(f"invalid utf-8 string: {e}") from e

    def pubkey(self) -> str:
        return base58.b58encode(self.take(PUBKEY_LEN)).decode("ascii")


def decode_value(reader: BorshReader, type_spec: Any, types: Dict[str, Dict[str, Any]]) -> Any:
    """
    Decode one value described by an IDL-style type spec.

    Enums decode to a tagged single-key object ({"variantName": {}}), the
    same shape the ledger's own client libraries produce.
    """
    if isinstance(type_spec, str):
        if type_spec in _SCALARS:
            return reader.scalar(type_spec)
        if type_spec == "bool":
            return reader.boolean()
        if type_spec == "string":
            return reader.string()
        if type_spec == "pubkey":
            return reader.pubkey()
        if type_spec in ("u128", "i128"):
            return reader.u128(signed=type_spec == "i128")
        raise BorshDecodeError(f"unsupported type {type_spec!r}")

    if isinstance(type_spec, dict):
        if "option" in type_spec:
            tag = reader.scalar("u8")
            if tag == 0:
                return None
            if tag != 1:
                raise BorshDecodeError(f"invalid option tag {tag}")
            return decode_value(reader, type_spec["option"], types)
        if "vec" in type_spec:
            n = reader.scalar("u32")
            return [decode_value(reader, type_spec["vec"], types) for _ in range(n)]
        if "array" in type_spec:
            inner, n = type_spec["array"]
            return [decode_value(reader, inner, types) for _ in range(int(n))]
        if "defined" in type_spec:
            name = type_spec["defined"]
            if isinstance(name, dict):
                name = name.get("name")
            definition = types.get(name)
            if definition is None:
                raise BorshDecodeError(f"unknown defined type {name!r}")
            if definition.get("kind") == "enum":
                variants: List[str] = definition["variants"]
                idx = reader.scalar("u8")
                if idx >= len(variants):
                    raise BorshDecodeError(f"enum {name} has no variant {idx}")
                return {variants[idx]: {}}
            return decode_struct(reader, definition["fields"], types)

    raise BorshDecodeError(f"unsupported type spec {type_spec!r}")


def decode_struct(
    reader: BorshReader, fields: List[FieldSpec], types: Dict[str, Dict[str, Any]]
) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, type_spec in fields:
        out[name] = decode_value(reader, type_spec, types)
    return out


# ---------------------------------------------------------------------------
# Encoding (fixtures, tooling)
# ---------------------------------------------------------------------------


def encode_value(type_spec: Any, value: Any, types: Dict[str, Dict[str, Any]]) -> bytes:
    if isinstance(type_spec, str):
        if type_spec in _SCALARS:
            return struct.pack(_SCALARS[type_spec][0], int(value))
        if type_spec == "bool":
            return b"\x01" if value else b"\x00"
        if type_spec == "string":
            raw = str(value).encode("utf-8")
            return struct.pack("<I", len(raw)) + raw
        if type_spec == "pubkey":
            raw = base58.b58decode(value)
            if len(raw) != PUBKEY_LEN:
                raise BorshDecodeError(f"pubkey must be {PUBKEY_LEN} bytes, got {len(raw)}")
            return raw
        if type_spec in ("u128", "i128"):
            return int(value).to_bytes(16, "little", signed=type_spec == "i128")
        raise BorshDecodeError(f"unsupported type {type_spec!r}")

    if "option" in type_spec:
        if value is None:
            return b"\x00"
        return b"\x01" + encode_value(type_spec["option"], value, types)
    if "vec" in type_spec:
        items = list(value)
        return struct.pack("<I", len(items)) + b"".join(
            encode_value(type_spec["vec"], v, types) for v in items
        )
    if "defined" in type_spec:
        name = type_spec["defined"]
        definition = types[name]
        if definition.get("kind") == "enum":
            tag = next(iter(value)) if isinstance(value, dict) else str(value)
            return struct.pack("<B", definition["variants"].index(tag))
        return encode_struct(definition["fields"], value, types)

    raise BorshDecodeError(f"unsupported type spec {type_spec!r}")


def encode_struct(fields: List[FieldSpec], values: Dict[str, Any], types: Dict[str, Dict[str, Any]]) -> bytes:
    return b"".join(encode_value(type_spec, values[name], types) for name, type_spec in fields)
