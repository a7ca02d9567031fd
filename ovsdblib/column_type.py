"""Column types: a key type, an optional value type and size limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ovsdblib.base_type import BaseType

UNLIMITED = 2**63 - 1


def _parse_min(value: Any) -> int:
    if value is None:
        return 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"min should be an integer, got {value!r}")
    return value


def _parse_max(value: Any) -> int:
    if value is None:
        return 1
    if isinstance(value, bool):
        raise TypeError(f"unsupported type for max: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        if value != "unlimited":
            raise ValueError(f"max {value!r}: should be string 'unlimited' or integer value")
        return UNLIMITED
    raise TypeError(f"unsupported type for max: {value!r}")


@dataclass
class ColumnType:
    """The type of a column: an atom, a set of atoms or a map of atoms."""

    key: BaseType
    value: BaseType | None = None
    min: int = 1
    max: int = 1

    @property
    def kind(self) -> str:
        """``"integer"``, ``"Set[uuid]"``, ``"Map[string, string]"`` and the like."""
        kind = ""
        if self.min == 1 and self.max == 1:
            kind = self.key.type
        if self.min < self.max:
            if self.value is None:
                kind = f"Set[{self.key.type}]"
            else:
                kind = f"Map[{self.key.type}, {self.value.type}]"
        return kind

    @classmethod
    def from_json(cls, data: Any) -> "ColumnType":
        """Decode a bare atomic type name or a column type object."""
        if isinstance(data, str):
            return cls(key=BaseType(type=data))
        if not isinstance(data, dict) or "key" not in data:
            raise ValueError(f"fail to unmarshal column type from {data!r}")
        try:
            key = BaseType.from_json(data["key"])
            raw_value = data.get("value")
            value = None if raw_value is None else BaseType.from_json(raw_value)
            low = _parse_min(data.get("min"))
        except ValueError as exc:
            raise ValueError(f"fail to unmarshal column type from {data!r}: {exc}") from exc
        return cls(key=key, value=value, min=low, max=_parse_max(data.get("max")))