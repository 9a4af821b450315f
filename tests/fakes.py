"""In-memory stand-in for the query client's fluent table interface."""

from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

_clock = itertools.count()
_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _timestamp() -> str:
    return (_EPOCH + timedelta(seconds=next(_clock))).isoformat()


def _split_columns(columns: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current = ""
    for ch in columns:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(current.strip())
            current = ""
            continue
        current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


@dataclass
class FakeResponse:
    data: Any


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload: Any = None
        self.on_conflict: str | None = None
        self.filters: list[tuple[str, Any]] = []
        self.ordering: list[tuple[str, bool]] = []
        self.max_rows: int | None = None

    # Builders

    def select(self, columns: str = "*") -> "FakeQuery":
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload: dict[str, Any]) -> "FakeQuery":
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload: Any, on_conflict: str = "id") -> "FakeQuery":
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.ordering.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.max_rows = count
        return self

    # Execution

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self.db.tables.setdefault(self.table_name, [])

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(row.get(col) == value for col, value in self.filters)

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table_name, self.op))
        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResponse([self._insert(item) for item in items])
        if self.op == "upsert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            out = []
            for item in items:
                existing = next((r for r in self.rows if r.get(self.on_conflict) == item.get(self.on_conflict)), None)
                if existing is not None:
                    existing.update(item)
                    out.append(dict(existing))
                else:
                    out.append(self._insert(item))
            return FakeResponse(out)
        if self.op == "update":
            out = []
            for row in self.rows:
                if self._matches(row):
                    row.update(self.payload)
                    out.append(dict(row))
            return FakeResponse(out)
        if self.op == "delete":
            removed = [r for r in self.rows if self._matches(r)]
            self.db.tables[self.table_name] = [r for r in self.rows if not self._matches(r)]
            return FakeResponse(removed)

        selected = [r for r in self.rows if self._matches(r)]
        for column, desc in reversed(self.ordering):
            selected.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        if self.max_rows is not None:
            selected = selected[: self.max_rows]
        return FakeResponse([self._project(r) for r in selected])

    def _insert(self, item: dict[str, Any]) -> dict[str, Any]:
        row = dict(item)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _timestamp())
        self.rows.append(row)
        return dict(row)

    def _project(self, row: dict[str, Any], columns: str | None = None, table: str | None = None) -> dict[str, Any]:
        table = table or self.table_name
        out: dict[str, Any] = {}
        for col in _split_columns(columns if columns is not None else self.columns):
            if "(" not in col:
                if col == "*":
                    out.update(row)
                else:
                    out[col] = row.get(col)
                continue
            name, _, inner = col.partition("(")
            name = name.split(":")[-1].strip()
            inner = inner.rstrip(")").strip()
            fk = f"{name[:-1]}_id"
            if fk in row:
                parent = next((p for p in self.db.tables.get(name, []) if p.get("id") == row.get(fk)), None)
                out[name] = self._project(parent, inner, name) if parent else None
            else:
                back_fk = f"{table[:-1]}_id"
                children = [c for c in self.db.tables.get(name, []) if c.get(back_fk) == row.get("id")]
                if inner == "count":
                    out[name] = [{"count": len(children)}]
                else:
                    out[name] = [self._project(c, inner, name) for c in children]
        return out


class FakeSupabase:
    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {k: [dict(r) for r in v] for k, v in (tables or {}).items()}
        self.calls: list[tuple[str, str]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    from_ = table
