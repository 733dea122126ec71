"""Borsh encoding for instruction arguments and account data.

Layouts are declared as nested type descriptors (primitive names, `Option`,
`Array`, `Vec`, `Struct`, `UnitEnum`, `DataEnum`) and walked by `encode` /
`decode`. Primitive values are packed with `struct` in little-endian order.
"""

import struct
from dataclasses import dataclass, fields, is_dataclass
from enum import IntEnum
from typing import Any, Callable, Dict, Optional, Tuple, Type

from solders.pubkey import Pubkey

_PRIMITIVES: Dict[str, Tuple[str, int]] = {
    "u8": ("<B", 1),
    "u16": ("<H", 2),
    "u32": ("<I", 4),
    "u64": ("<Q", 8),
    "i16": ("<h", 2),
    "i64": ("<q", 8),
}

_INT_RANGES: Dict[str, Tuple[int, int]] = {
    "u8": (0, 2**8 - 1),
    "u16": (0, 2**16 - 1),
    "u32": (0, 2**32 - 1),
    "u64": (0, 2**64 - 1),
    "u128": (0, 2**128 - 1),
    "i16": (-(2**15), 2**15 - 1),
    "i64": (-(2**63), 2**63 - 1),
}


@dataclass(frozen=True)
class Option:
    inner: Any


@dataclass(frozen=True)
class Array:
    inner: Any
    length: int


@dataclass(frozen=True)
class Vec:
    inner: Any


@dataclass(frozen=True)
class Struct:
    """Ordered named fields; decoded into `factory(**values)` when given."""

    fields: Tuple[Tuple[str, Any], ...]
    factory: Optional[Callable[..., Any]] = None


@dataclass(frozen=True)
class UnitEnum:
    """Fieldless enum encoded as a u8 variant index."""

    enum_cls: Type[IntEnum]


@dataclass(frozen=True)
class DataEnum:
    """Enum with struct payloads.

    Values must expose `kind` (variant name) and the variant's fields as
    attributes or keys; decoding calls `factory(kind, values)`.
    """

    variants: Tuple[Tuple[str, Struct], ...]
    factory: Callable[[str, Dict[str, Any]], Any]


def _get(value: Any, name: str) -> Any:
    if isinstance(value, dict):
        return value[name]
    return getattr(value, name)


def _check_range(kind: str, value: int) -> None:
    low, high = _INT_RANGES[kind]
    if not low <= value <= high:
        raise ValueError(f"{kind} value out of range: {value} (must be {low}-{high})")


def encode(ty: Any, value: Any) -> bytes:
    """Encode value according to a layout descriptor."""
    out = bytearray()
    _encode_into(ty, value, out)
    return bytes(out)


def _encode_into(ty: Any, value: Any, out: bytearray) -> None:
    if isinstance(ty, str):
        if ty in _PRIMITIVES:
            _check_range(ty, int(value))
            out.extend(struct.pack(_PRIMITIVES[ty][0], int(value)))
        elif ty == "u128":
            _check_range(ty, int(value))
            out.extend(int(value).to_bytes(16, "little"))
        elif ty == "bool":
            out.append(1 if value else 0)
        elif ty == "pubkey":
            raw = bytes(value)
            if len(raw) != 32:
                raise ValueError(f"Pubkey must be 32 bytes, got {len(raw)}")
            out.extend(raw)
        else:
            raise ValueError(f"Unknown primitive type: {ty}")
    elif isinstance(ty, Option):
        if value is None:
            out.append(0)
        else:
            out.append(1)
            _encode_into(ty.inner, value, out)
    elif isinstance(ty, Array):
        items = list(value)
        if len(items) != ty.length:
            raise ValueError(f"Array length mismatch: {len(items)} != {ty.length}")
        for item in items:
            _encode_into(ty.inner, item, out)
    elif isinstance(ty, Vec):
        items = list(value)
        out.extend(struct.pack("<I", len(items)))
        for item in items:
            _encode_into(ty.inner, item, out)
    elif isinstance(ty, Struct):
        for name, field_ty in ty.fields:
            _encode_into(field_ty, _get(value, name), out)
    elif isinstance(ty, UnitEnum):
        out.append(int(ty.enum_cls(value)))
    elif isinstance(ty, DataEnum):
        kind = _get(value, "kind")
        for index, (name, payload) in enumerate(ty.variants):
            if name == kind:
                out.append(index)
                _encode_into(payload, value, out)
                return
        raise ValueError(f"Unknown enum variant: {kind}")
    else:
        raise TypeError(f"Unsupported layout descriptor: {ty!r}")


def decode(ty: Any, data: bytes, offset: int = 0) -> Tuple[Any, int]:
    """Decode a value at offset, returning (value, next_offset).

    Raises:
        ValueError: If data ends before the layout is complete
    """
    if isinstance(ty, str):
        if ty in _PRIMITIVES:
            fmt, size = _PRIMITIVES[ty]
            _require(data, offset, size, ty)
            return struct.unpack_from(fmt, data, offset)[0], offset + size
        if ty == "u128":
            _require(data, offset, 16, ty)
            return int.from_bytes(data[offset : offset + 16], "little"), offset + 16
        if ty == "bool":
            _require(data, offset, 1, ty)
            return data[offset] != 0, offset + 1
        if ty == "pubkey":
            _require(data, offset, 32, ty)
            return Pubkey.from_bytes(data[offset : offset + 32]), offset + 32
        raise ValueError(f"Unknown primitive type: {ty}")
    if isinstance(ty, Option):
        tag, offset = decode("u8", data, offset)
        if tag == 0:
            return None, offset
        if tag != 1:
            raise ValueError(f"Invalid option tag {tag} at offset {offset - 1}")
        return decode(ty.inner, data, offset)
    if isinstance(ty, Array):
        items = []
        for _ in range(ty.length):
            item, offset = decode(ty.inner, data, offset)
            items.append(item)
        return items, offset
    if isinstance(ty, Vec):
        count, offset = decode("u32", data, offset)
        items = []
        for _ in range(count):
            item, offset = decode(ty.inner, data, offset)
            items.append(item)
        return items, offset
    if isinstance(ty, Struct):
        values: Dict[str, Any] = {}
        for name, field_ty in ty.fields:
            values[name], offset = decode(field_ty, data, offset)
        if ty.factory is not None:
            return ty.factory(**values), offset
        return values, offset
    if isinstance(ty, UnitEnum):
        index, offset = decode("u8", data, offset)
        return ty.enum_cls(index), offset
    if isinstance(ty, DataEnum):
        index, offset = decode("u8", data, offset)
        if index >= len(ty.variants):
            raise ValueError(f"Invalid enum variant index: {index}")
        kind, payload = ty.variants[index]
        values, offset = decode(Struct(payload.fields), data, offset)
        return ty.factory(kind, values), offset
    raise TypeError(f"Unsupported layout descriptor: {ty!r}")


def _require(data: bytes, offset: int, size: int, kind: str) -> None:
    if offset + size > len(data):
        raise ValueError(
            f"Not enough bytes for {kind} at offset {offset}: "
            f"need {size} bytes, have {max(len(data) - offset, 0)}"
        )


def struct_of(cls: Any, types: Dict[str, Any]) -> Struct:
    """Build a Struct descriptor from a dataclass, in field declaration order."""
    if not is_dataclass(cls):
        raise TypeError(f"{cls!r} is not a dataclass")
    return Struct(tuple((f.name, types[f.name]) for f in fields(cls)), factory=cls)
