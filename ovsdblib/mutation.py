"""Mutations of OVSDB ``mutate`` operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ovsdblib.atoms import ATOM_TYPES
from ovsdblib.containers import encode, is_map_type, is_set_type

_ATOM_CLASSES = frozenset(ATOM_TYPES.values())


@dataclass(frozen=True)
class Mutation:
    """A ``[column, mutator, value]`` mutation."""

    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        value = self.value
        if not (type(value) in _ATOM_CLASSES or is_set_type(value) or is_map_type(value)):
            raise TypeError(f"unsupported mutation value: {value!r}")

    def to_json(self) -> list[Any]:
        return [self.column, self.op, encode(self.value)]


def insert(column: str, value: Any) -> Mutation:
    return Mutation(column, "insert", value)


def delete(column: str, value: Any) -> Mutation:
    return Mutation(column, "delete", value)


def add(column: str, value: Any) -> Mutation:
    return Mutation(column, "+=", value)


def subtract(column: str, value: Any) -> Mutation:
    return Mutation(column, "-=", value)


def multiply(column: str, value: Any) -> Mutation:
    return Mutation(column, "*=", value)


def divide(column: str, value: Any) -> Mutation:
    return Mutation(column, "/=", value)


def modulo(column: str, value: Any) -> Mutation:
    return Mutation(column, "%=", value)