"""Atomic base types of OVSDB columns, with their constraints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ovsdblib.atoms import ATOM_TYPES, UUID, atom_from_json

_SCHEMA_NAMES: dict[type, str] = {
    int: "integer",
    float: "real",
    str: "string",
    bool: "boolean",
    UUID: "uuid",
}

_DISPLAY_NAMES: dict[type, str] = {
    int: "Int",
    float: "Real",
    str: "String",
    bool: "Bool",
    UUID: "UUID",
}


def _int_field(data: dict[str, Any], name: str) -> int | None:
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"fail to unmarshal BaseType: {name} must be an integer, got {value!r}")
    return value


def _real_field(data: dict[str, Any], name: str) -> float | None:
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"fail to unmarshal BaseType: {name} must be a number, got {value!r}")
    return float(value)


def _str_field(data: dict[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"fail to unmarshal BaseType: {name} must be a string, got {value!r}")
    return value


def _decode_enum(type_name: str, raw: Any) -> tuple[Any, ...]:
    match raw:
        case ["set", list(values)] if values:
            pass
        case _:
            raise ValueError(f"invalid enum type: {raw!r}")
    if type_name not in ATOM_TYPES:
        return tuple(values)
    try:
        return tuple(atom_from_json(value, type_name) for value in values)
    except ValueError as exc:
        raise ValueError(f"invalid enum type: {raw!r}: {exc}") from exc


@dataclass
class BaseType:
    """The atomic type of a column key or value, as in a database schema."""

    type: str = ""
    enum_raw: list[Any] | None = None
    enum: tuple[Any, ...] | None = None
    min_integer: int | None = None
    max_integer: int | None = None
    min_real: float | None = None
    max_real: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    ref_table: str | None = None
    ref_type: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "BaseType":
        """Decode a bare type name or a base-type object."""
        if isinstance(data, str):
            return cls(type=data)
        if not isinstance(data, dict):
            raise ValueError(f"fail to unmarshal BaseType: {data!r}")
        type_name = _str_field(data, "type") or ""
        enum_raw = data.get("enum")
        enum = None
        if enum_raw is not None:
            enum = _decode_enum(type_name, enum_raw)
        return cls(
            type=type_name,
            enum_raw=enum_raw,
            enum=enum,
            min_integer=_int_field(data, "minInteger"),
            max_integer=_int_field(data, "maxInteger"),
            min_real=_real_field(data, "minReal"),
            max_real=_real_field(data, "maxReal"),
            min_length=_int_field(data, "minLength"),
            max_length=_int_field(data, "maxLength"),
            ref_table=_str_field(data, "refTable"),
            ref_type=_str_field(data, "refType"),
        )

    def validate_value(self, value: Any, check_constraints: bool = True) -> Any:
        """Check an atomic value against this type and return it.

        Raises TypeError when the value is of the wrong type and ValueError
        when it breaks the enum or, if asked, the range constraints.
        """
        kind = type(value)
        expected = _SCHEMA_NAMES.get(kind)
        if expected is None:
            raise TypeError(f"unsupported type: {kind.__name__} ({value!r})")
        if self.type != expected:
            raise TypeError(f"expect {self.type} got {_DISPLAY_NAMES[kind]}")
        if self.enum is not None:
            if value not in self.enum:
                raise ValueError(f"wrong Enum value <{value}>")
            return value
        if not check_constraints:
            return value
        if kind is int:
            if self.min_integer is not None and value < self.min_integer:
                raise ValueError(f"value [{value}] < min [{self.min_integer}]")
            if self.max_integer is not None and value > self.max_integer:
                raise ValueError(f"value [{value}] > max [{self.max_integer}]")
        elif kind is float:
            if self.min_real is not None and value < self.min_real:
                raise ValueError(f"value [{value:f}] < min [{self.min_real:f}]")
            if self.max_real is not None and value > self.max_real:
                raise ValueError(f"value [{value:f}] > max [{self.max_real:f}]")
        elif kind is str:
            length = len(value.encode("utf-8"))
            if self.min_length is not None and length < self.min_length:
                raise ValueError(f"value len({value}) < min {self.min_length}")
            if self.max_length is not None and length > self.max_length:
                raise ValueError(f"value len({value}) > max [{self.max_length}]")
        return value