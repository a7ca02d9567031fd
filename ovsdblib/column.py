"""Column schemas and validation of values, conditions and mutations."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from ovsdblib.atoms import ATOM_TYPES, UUID, atom_from_json
from ovsdblib.column_type import ColumnType
from ovsdblib.containers import OvsMap, OvsSet, is_map_type, is_set_type

_COND_OPS = frozenset({"includes", "excludes", "==", "!="})
_ORDER_OPS = frozenset({"<", "<=", ">", ">="})
_CONTAINER_MUTATORS = frozenset({"insert", "delete"})
_REAL_MUTATORS = frozenset({"+=", "-=", "*=", "/="})
_INT_MUTATORS = _REAL_MUTATORS | {"%="}

_SCALAR_DEFAULTS: dict[str, Any] = {
    "integer": 0,
    "real": 0.0,
    "string": "",
    "boolean": False,
}

_MAP_KIND = re.compile(r"Map\[(\w+), (\w+)\]")


def _flag(data: dict[str, Any], name: str) -> bool:
    value = data.get(name, False)
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be a boolean, got {value!r}")
    return value


@dataclass
class ColumnSchema:
    """A column of a table schema."""

    name: str
    type: ColumnType
    ephemeral: bool = False
    mutable: bool = False

    @classmethod
    def from_json(cls, name: str, data: Any) -> "ColumnSchema":
        """Decode a column schema object for the column ``name``."""
        if not isinstance(data, dict) or "type" not in data:
            raise ValueError(f"column {name!r}: invalid column schema {data!r}")
        return cls(
            name=name,
            type=ColumnType.from_json(data["type"]),
            ephemeral=_flag(data, "ephemeral"),
            mutable=_flag(data, "mutable"),
        )

    def _optional(self) -> bool:
        return self.type.min == 0 and self.type.max == 1

    def validate_cond(self, op: str, value: Any) -> Any:
        """Check a condition on this column and return its normalized value.

        A bare number on an optional numeric column becomes a one-element set
        and may also be compared with ``<``, ``<=``, ``>`` and ``>=``.
        """
        ops = _COND_OPS
        kind = self.type.kind
        if self._optional() and (
            (kind == "Set[integer]" and type(value) is int)
            or (kind == "Set[real]" and type(value) is float)
        ):
            ops = ops | _ORDER_OPS
            value = OvsSet([value])
        if op not in ops:
            raise ValueError(f"column {self.name!r}: invalid operation {op}")
        checks = 3
        container = kind.startswith(("Set", "Map"))
        if op == "includes" and container:
            checks &= ~1
        if op == "excludes" and container:
            checks &= ~2
        return self.validate_value(value, checks)

    def validate_mutation(self, op: str, value: Any) -> Any:
        """Check a mutation on this column and return its value."""
        kind = self.type.kind
        if isinstance(value, (list, dict)):
            ops = _CONTAINER_MUTATORS
        elif type(value) is int:
            ops = _INT_MUTATORS
        elif type(value) is float:
            ops = _REAL_MUTATORS
        else:
            raise TypeError(
                f"column {self.name!r}: invalid value {value!r} for mutate operation on {kind}"
            )
        if op not in ops:
            raise ValueError(f"column {self.name!r}: invalid operation {op}")
        if (type(value) is int and kind in ("Set[integer]", "integer")) or (
            type(value) is float and kind in ("Set[real]", "real")
        ):
            return self.type.key.validate_value(value, False)
        if kind.startswith(("Set", "Map")) and op == "insert":
            return self.validate_value(value, 2)
        return self.validate_value(value, 0)

    def validate_value(self, value: Any, *checks: int) -> Any:
        """Check a value against the column type and return it.

        Up to three bit masks may be given: for the container size (bit 1 the
        minimum, bit 2 the maximum; maps only), for keys and for map values.
        Keys and values have their constraints checked when their mask is non-zero.
        """
        size_checks, key_checks, value_checks = (*checks, 3, 3, 3)[:3]
        column_type = self.type
        kind = column_type.kind
        if kind.startswith("Map["):
            if not is_map_type(value):
                raise TypeError(f"expect map got {type(value).__name__}")
            size = len(value)
            if size_checks & 1 and size < column_type.min:
                raise ValueError(f"column type constraint violation {size} < {column_type.min}")
            if size_checks & 2 and size > column_type.max:
                raise ValueError(f"column type constraint violation {size} > {column_type.max}")
            for key, item in value.items():
                column_type.key.validate_value(key, key_checks > 0)
                column_type.value.validate_value(item, value_checks > 0)
            return value
        if kind.startswith("Set["):
            if not is_set_type(value):
                raise TypeError(f"expect slice got {type(value).__name__}")
            size = len(value)
            if not column_type.min <= size <= column_type.max:
                raise ValueError(
                    f"column type constraint violation {size} not in range "
                    f"[{column_type.min}, {column_type.max}]"
                )
            for item in value:
                column_type.key.validate_value(item, key_checks > 0)
            return value
        return column_type.key.validate_value(value, size_checks > 0)

    def default_value(self) -> Any:
        """The value a column holds when none is set, or None for an unknown kind."""
        kind = self.type.kind
        if kind == "uuid":
            return UUID("")
        if kind in _SCALAR_DEFAULTS:
            return _SCALAR_DEFAULTS[kind]
        if kind.startswith("Set[") and kind[4:-1] in ATOM_TYPES:
            return OvsSet()
        match = _MAP_KIND.fullmatch(kind)
        if match and match[1] in ATOM_TYPES and match[2] in ATOM_TYPES:
            return OvsMap()
        return None

    def decode_value(self, data: Any) -> Any:
        """Decode a value of this column from its JSON form."""
        default = self.default_value()
        if default is None:
            raise ValueError(
                f"column {self.name!r}: cannot decode values of kind {self.type.kind!r}"
            )
        key_type = self.type.key.type
        if isinstance(default, OvsSet):
            return OvsSet.from_json(data, key_type)
        if isinstance(default, OvsMap):
            return OvsMap.from_json(data, key_type, self.type.value.type)
        return atom_from_json(data, self.type.kind)