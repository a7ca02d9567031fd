"""OVSDB sets and maps with their JSON wire forms."""

from __future__ import annotations

from typing import Any, Iterable

from ovsdblib.atoms import ATOM_TYPES, atom_from_json, atom_to_json

SET_MARK = "set"
MAP_MARK = "map"

_ATOM_CLASSES = frozenset(ATOM_TYPES.values())


def _homogeneous_atoms(values: Iterable[Any]) -> bool:
    kinds = {type(value) for value in values}
    return len(kinds) <= 1 and kinds <= _ATOM_CLASSES


class OvsSet(list):
    """An OVSDB set: a sequence of atoms of one type."""

    def __str__(self) -> str:
        return "[" + ", ".join(str(item) for item in self) + "]"

    def to_json(self) -> Any:
        """One element is sent bare; otherwise ``["set", [...]]``."""
        if len(self) == 1:
            return atom_to_json(self[0])
        return [SET_MARK, [atom_to_json(item) for item in self]]

    @classmethod
    def from_json(cls, data: Any, atom: type | str) -> "OvsSet":
        """Decode a bare atom or a ``["set", [...]]`` pair."""
        try:
            return cls([atom_from_json(data, atom)])
        except ValueError:
            pass
        match data:
            case ["set", list(items)]:
                return cls(atom_from_json(item, atom) for item in items)
        raise ValueError(f"invalid set: {data!r}")

    def update2(self, other: "OvsSet") -> "OvsSet":
        """Toggle each element of ``other``: remove it if present, else add it."""
        if not isinstance(other, OvsSet):
            raise TypeError("unsuitable set update2")
        for item in list(other):
            try:
                self.remove(item)
            except ValueError:
                self.append(item)
        return self

    def has(self, value: Any) -> bool:
        return value in self


class OvsMap(dict):
    """An OVSDB map: atoms of one type mapped to atoms of one type."""

    def __str__(self) -> str:
        return "{" + ", ".join(f"{k}: {v}" for k, v in self.items()) + "}"

    def to_json(self) -> list[Any]:
        """Return ``["map", [[key, value], ...]]``."""
        return [MAP_MARK, [[atom_to_json(k), atom_to_json(v)] for k, v in self.items()]]

    @classmethod
    def from_json(cls, data: Any, key_atom: type | str, value_atom: type | str) -> "OvsMap":
        """Decode a ``["map", [[key, value], ...]]`` pair."""
        match data:
            case ["map", list(pairs)]:
                result = cls()
                for pair in pairs:
                    match pair:
                        case [key, value]:
                            result[atom_from_json(key, key_atom)] = atom_from_json(
                                value, value_atom
                            )
                        case _:
                            raise ValueError(f"invalid map entry: {pair!r}")
                return result
        raise ValueError(f"invalid map: {data!r}")

    def update2(self, other: "OvsMap") -> "OvsMap":
        """Apply a diff: equal pairs are removed, others are set."""
        if not isinstance(other, OvsMap):
            raise TypeError("invalid type for map update2")
        for key, value in list(other.items()):
            if key in self and self[key] == value:
                del self[key]
            else:
                self[key] = value
        return self

    def has(self, key: Any) -> bool:
        return key in self

    def has_val(self, key: Any, value: Any) -> bool:
        return key in self and self[key] == value


def is_set_type(value: Any) -> bool:
    """True for an OvsSet whose elements are atoms of a single type."""
    return isinstance(value, OvsSet) and _homogeneous_atoms(value)


def is_map_type(value: Any) -> bool:
    """True for an OvsMap whose keys and values are each of a single atomic type."""
    return (
        isinstance(value, OvsMap)
        and _homogeneous_atoms(value.keys())
        and _homogeneous_atoms(value.values())
    )


def encode(value: Any) -> Any:
    """Turn a value holding OVSDB objects into plain JSON-ready data."""
    to_json = getattr(value, "to_json", None)
    if callable(to_json):
        return to_json()
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    if isinstance(value, dict):
        return {key: encode(item) for key, item in value.items()}
    return value