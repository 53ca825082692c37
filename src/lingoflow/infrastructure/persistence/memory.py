"""In-memory Store adapter. Insertion-ordered, process-local."""

from collections.abc import Sequence
from typing import Any, TypeVar

from lingoflow.domain.models import ENTITY_KINDS
from lingoflow.domain.ports import Store
from lingoflow.domain.query import Condition, Order

E = TypeVar("E")


def _sort_key(field: str):
    def key(entity: Any) -> tuple:
        value = getattr(entity, field)
        return (0,) if value is None else (1, value)

    return key


class InMemoryStore(Store):
    """Dict-backed store. Entities are frozen, so they are kept by reference."""

    def __init__(self):
        self._entities: dict[type, dict[str, Any]] = {}

    def get(self, kind: type[E], entity_id: str) -> E | None:
        return self._entities.get(kind, {}).get(entity_id)

    def query(
        self,
        kind: type[E],
        where: Sequence[Condition] = (),
        order_by: Sequence[Order] = (),
    ) -> list[E]:
        results = [
            e for e in self._entities.get(kind, {}).values() if all(c.matches(e) for c in where)
        ]
        # Stable sorts, least significant key first
        for order in reversed(order_by):
            results.sort(key=_sort_key(order.field), reverse=order.descending)
        return results

    def save(self, entity: Any) -> None:
        if type(entity) not in ENTITY_KINDS:
            raise TypeError(f"Not a storable entity: {type(entity).__name__}")
        self._entities.setdefault(type(entity), {})[entity.id] = entity
