"""Conditions of OVSDB ``where`` clauses."""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any

from ovsdblib.atoms import ATOM_TYPES, NAMED_UUID_MARK, UUID, UUID_MARK
from ovsdblib.containers import OvsMap, OvsSet, encode, is_map_type, is_set_type

_ATOM_CLASSES = frozenset(ATOM_TYPES.values())

_NUM_OPS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "includes": operator.eq,
    "!=": operator.ne,
    "excludes": operator.ne,
}

_COMP_OPS = {op: fn for op, fn in _NUM_OPS.items() if op in ("==", "includes", "!=", "excludes")}


def _is_base_value(value: Any) -> bool:
    return type(value) in _ATOM_CLASSES or is_set_type(value) or is_map_type(value)


def _decode_value(data: Any) -> Any:
    match data:
        case [str(mark), str(ident)] if mark in (UUID_MARK, NAMED_UUID_MARK):
            return UUID(ident)
        case ["set", list(items)]:
            return OvsSet(_decode_value(item) for item in items)
        case ["map", list(pairs)]:
            result = OvsMap()
            for pair in pairs:
                match pair:
                    case [key, value]:
                        result[_decode_value(key)] = _decode_value(value)
                    case _:
                        raise ValueError(f"invalid map entry: {pair!r}")
            return result
        case bool() | int() | float() | str():
            return data
    raise ValueError(f"invalid condition value: {data!r}")


def _same_type(expected: Any, value: Any) -> None:
    if type(value) is not type(expected):
        raise TypeError(
            f"value {value!r} is not of condition type {type(expected).__name__}"
        )


def _check_num(op: str, expected: Any, value: Any) -> bool:
    _same_type(expected, value)
    fn = _NUM_OPS.get(op)
    return fn(value, expected) if fn else False


def _check_comp(op: str, expected: Any, value: Any) -> bool:
    _same_type(expected, value)
    fn = _COMP_OPS.get(op)
    return fn(value, expected) if fn else False


def _check_set(op: str, expected: OvsSet, value: Any) -> bool:
    if op == "==":
        return isinstance(value, OvsSet) and expected == value
    if op == "!=":
        return not (isinstance(value, OvsSet) and expected == value)
    if op in ("includes", "excludes"):
        if not isinstance(value, list):
            raise TypeError(f"value {value!r} is not a set")
        if op == "includes":
            return all(item in value for item in expected)
        return not any(item in value for item in expected)
    return False


def _check_map(op: str, expected: OvsMap, value: Any) -> bool:
    if not isinstance(value, dict):
        raise TypeError(f"value {value!r} is not a map")
    if op == "==":
        return expected == value
    if op == "!=":
        return expected != value
    matches = (key in value and value[key] == item for key, item in expected.items())
    if op == "includes":
        return all(matches)
    if op == "excludes":
        return not any(matches)
    return False


@dataclass(frozen=True)
class Condition:
    """A ``[column, function, value]`` condition."""

    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if not _is_base_value(self.value):
            raise TypeError(f"unsupported condition value: {self.value!r}")

    def to_json(self) -> list[Any]:
        return [self.column, self.op, encode(self.value)]

    @classmethod
    def from_json(cls, data: Any) -> "Condition":
        """Decode a three element ``[column, function, value]`` array."""
        match data:
            case [str(column), str(op), value]:
                return cls(column, op, _decode_value(value))
        raise ValueError("invalid condition: must be a 3 element array")

    def check(self, value: Any) -> bool:
        """Tell whether a column value satisfies the condition.

        A numeric condition also accepts a one-element set as the value.
        """
        expected = self.value
        if type(expected) in (int, float):
            if isinstance(value, list):
                if len(value) != 1:
                    return False
                value = value[0]
            return _check_num(self.op, expected, value)
        if type(expected) in (str, bool, UUID):
            return _check_comp(self.op, expected, value)
        if isinstance(expected, OvsMap):
            return _check_map(self.op, expected, value)
        if isinstance(expected, OvsSet):
            return _check_set(self.op, expected, value)
        return False


def less_than(column: str, value: Any) -> Condition:
    return Condition(column, "<", value)


def less_equal(column: str, value: Any) -> Condition:
    return Condition(column, "<=", value)


def greater_than(column: str, value: Any) -> Condition:
    return Condition(column, ">", value)


def greater_equal(column: str, value: Any) -> Condition:
    return Condition(column, ">=", value)


def equal(column: str, value: Any) -> Condition:
    return Condition(column, "==", value)


def not_equal(column: str, value: Any) -> Condition:
    return Condition(column, "!=", value)


def includes(column: str, value: Any) -> Condition:
    return Condition(column, "includes", value)


def excludes(column: str, value: Any) -> Condition:
    return Condition(column, "excludes", value)