"""
SQLite Store adapter.

Each entity is one JSON document in a single `entities` table, keyed by
(kind, id). Filters and ordering run in SQL through `json_extract`.
"""

import json
import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any, TypeVar

from lingoflow.domain.models import ENTITY_KINDS
from lingoflow.domain.ports import Store
from lingoflow.domain.query import Condition, Order

from .codec import encode_value, field_names, from_record, to_record

E = TypeVar("E")

SCHEMA = """
CREATE TABLE IF NOT EXISTS entities (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    UNIQUE(kind, id)
);
CREATE INDEX IF NOT EXISTS idx_entities_kind ON entities(kind);
"""

_OPERATORS = {"eq": "=", "le": "<=", "ge": ">="}


def _sql_value(value: Any) -> Any:
    # json_extract yields 1/0 for JSON booleans
    if isinstance(value, bool):
        return int(value)
    return encode_value(value)


class SqliteStore(Store):
    """
    Store backed by a SQLite file (or ":memory:").

    Usable as a context manager; the connection closes on exit.
    """

    def __init__(self, db_path: Path | str = ":memory:"):
        self.logger = logging.getLogger(__name__)
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA)
        self._conn.commit()
        self.logger.debug(f"SqliteStore opened at {self.db_path}")

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    def get(self, kind: type[E], entity_id: str) -> E | None:
        row = self._conn.execute(
            "SELECT data FROM entities WHERE kind = ? AND id = ?",
            (kind.__name__, entity_id),
        ).fetchone()
        if row is None:
            return None
        return from_record(kind, json.loads(row["data"]))

    def query(
        self,
        kind: type[E],
        where: Sequence[Condition] = (),
        order_by: Sequence[Order] = (),
    ) -> list[E]:
        known = field_names(kind)
        clauses = ["kind = ?"]
        params: list[Any] = [kind.__name__]

        for cond in where:
            column = self._column(cond.field, known)
            if cond.op == "is_null":
                clauses.append(f"{column} IS NULL")
            elif cond.op == "not_null":
                clauses.append(f"{column} IS NOT NULL")
            elif cond.op in _OPERATORS:
                clauses.append(f"{column} {_OPERATORS[cond.op]} ?")
                params.append(_sql_value(cond.value))
            else:
                raise ValueError(f"Unknown operator: {cond.op}")

        ordering = [
            f"{self._column(o.field, known)} {'DESC' if o.descending else 'ASC'}" for o in order_by
        ]
        ordering.append("seq ASC")

        sql = (
            f"SELECT data FROM entities WHERE {' AND '.join(clauses)} "
            f"ORDER BY {', '.join(ordering)}"
        )
        rows = self._conn.execute(sql, params).fetchall()
        return [from_record(kind, json.loads(r["data"])) for r in rows]

    def save(self, entity: Any) -> None:
        if type(entity) not in ENTITY_KINDS:
            raise TypeError(f"Not a storable entity: {type(entity).__name__}")
        data = json.dumps(to_record(entity), ensure_ascii=False)
        self._conn.execute(
            """INSERT INTO entities (kind, id, data) VALUES (?, ?, ?)
            ON CONFLICT(kind, id) DO UPDATE SET data = excluded.data""",
            (type(entity).__name__, entity.id, data),
        )
        self._conn.commit()

    @staticmethod
    def _column(field: str, known: frozenset[str]) -> str:
        # Field names are interpolated into SQL, so only dataclass fields pass
        if field not in known:
            raise ValueError(f"Unknown field: {field}")
        return f"json_extract(data, '$.{field}')"
