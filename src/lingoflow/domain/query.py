"""
Filter and ordering primitives for the `Store` port.

Adapters translate these into their own query language; the in-memory
adapter evaluates them directly via `Condition.matches`.
"""

from dataclasses import dataclass
from typing import Any, Literal

Operator = Literal["eq", "le", "ge", "is_null", "not_null"]


@dataclass(frozen=True)
class Condition:
    field: str
    op: Operator
    value: Any = None

    def matches(self, entity: Any) -> bool:
        actual = getattr(entity, self.field)
        if self.op == "is_null":
            return actual is None
        if self.op == "not_null":
            return actual is not None
        if self.op == "eq":
            return actual == self.value
        # Range comparisons never match a missing value (SQL semantics)
        if actual is None:
            return False
        if self.op == "le":
            return actual <= self.value
        if self.op == "ge":
            return actual >= self.value
        raise ValueError(f"Unknown operator: {self.op}")


@dataclass(frozen=True)
class Order:
    """Sort key. None sorts before any value when ascending."""

    field: str
    descending: bool = False


def eq(field: str, value: Any) -> Condition:
    if value is None:
        return Condition(field, "is_null")
    return Condition(field, "eq", value)


def le(field: str, value: Any) -> Condition:
    return Condition(field, "le", value)


def ge(field: str, value: Any) -> Condition:
    return Condition(field, "ge", value)


def is_null(field: str) -> Condition:
    return Condition(field, "is_null")


def not_null(field: str) -> Condition:
    return Condition(field, "not_null")
