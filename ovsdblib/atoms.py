"""Atomic OVSDB values and their JSON wire form."""

from __future__ import annotations

import os
from typing import Any

UUID_MARK = "uuid"
NAMED_UUID_MARK = "named-uuid"
ZERO_UUID = "00000000-0000-0000-0000-000000000000"


class UUID(str):
    """A row UUID; one starting with two underscores is a named UUID."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"UUID({str.__repr__(self)})"

    def to_json(self) -> list[str]:
        """Return the ``["uuid", ...]`` or ``["named-uuid", ...]`` pair."""
        mark = NAMED_UUID_MARK if self.startswith("__") else UUID_MARK
        return [mark, str(self)]

    @classmethod
    def from_json(cls, data: Any) -> "UUID":
        """Decode a ``["uuid", ...]`` or ``["named-uuid", ...]`` pair."""
        match data:
            case [str(mark), str(ident)] if mark in (UUID_MARK, NAMED_UUID_MARK):
                return cls(ident)
        raise ValueError(f"invalid UUID: {data!r}")


ATOM_TYPES: dict[str, type] = {
    "integer": int,
    "real": float,
    "string": str,
    "boolean": bool,
    "uuid": UUID,
}

_ATOM_CLASSES = frozenset(ATOM_TYPES.values())


def new_named_uuid() -> str:
    """Return a random version-4 UUID in named form, prefixed with ``__``."""
    field = bytearray(os.urandom(16))
    field[6] = (field[6] & 0x0F) | 0x40
    field[8] = (field[8] & 0x3F) | 0x80
    parts = (field[0:4], field[4:6], field[6:8], field[8:10], field[10:])
    return "__" + "_".join(part.hex() for part in parts)


def atom_to_json(value: Any) -> Any:
    """Encode one atomic value for the wire."""
    if type(value) not in _ATOM_CLASSES:
        raise TypeError(f"unsupported atomic value: {value!r}")
    if isinstance(value, UUID):
        return value.to_json()
    return value


def _resolve_atom(atom: type | str) -> type:
    if isinstance(atom, str):
        try:
            return ATOM_TYPES[atom]
        except KeyError:
            raise ValueError(f"unknown atomic type {atom!r}") from None
    if atom not in _ATOM_CLASSES:
        raise ValueError(f"unknown atomic type {atom!r}")
    return atom


def atom_from_json(data: Any, atom: type | str) -> Any:
    """Decode one atomic value; ``atom`` is a Python type or a schema type name."""
    kind = _resolve_atom(atom)
    if kind is UUID:
        return UUID.from_json(data)
    if kind is bool:
        if isinstance(data, bool):
            return data
    elif kind is int:
        if isinstance(data, int) and not isinstance(data, bool):
            return data
    elif kind is float:
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return float(data)
    elif kind is str:
        if isinstance(data, str):
            return str(data)
    raise ValueError(f"cannot decode {data!r} as {kind.__name__}")