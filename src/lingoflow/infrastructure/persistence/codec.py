"""
Conversion between domain entities and JSON-safe records.

Datetimes are written as UTC ISO-8601 strings with fixed microsecond
precision so that stored values sort lexicographically in time order.
"""

import dataclasses
import types
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Union, get_args, get_origin, get_type_hints


def encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError(f"Refusing to store naive datetime {value!r}")
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    return value


def _decode_value(hint: Any, value: Any) -> Any:
    if value is None:
        return None

    origin = get_origin(hint)
    if origin in (Union, types.UnionType):
        inner = [a for a in get_args(hint) if a is not type(None)]
        return _decode_value(inner[0], value)
    if origin is tuple:
        return tuple(value)
    if hint is datetime:
        return datetime.fromisoformat(value)
    if isinstance(hint, type) and issubclass(hint, Enum):
        return hint(value)
    return value


@lru_cache(maxsize=None)
def _hints(kind: type) -> dict[str, Any]:
    return get_type_hints(kind)


def field_names(kind: type) -> frozenset[str]:
    return frozenset(f.name for f in dataclasses.fields(kind))


def to_record(entity: Any) -> dict[str, Any]:
    return {f.name: encode_value(getattr(entity, f.name)) for f in dataclasses.fields(entity)}


def from_record(kind: type, record: dict[str, Any]) -> Any:
    hints = _hints(kind)
    known = field_names(kind)
    values = {name: _decode_value(hints[name], value) for name, value in record.items() if name in known}
    return kind(**values)
