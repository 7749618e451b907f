"""Tabular store over sqlite.

Each table supports select (with equality filters, ordering and a single
joined lookup table), insert, delete and count. Owned tables carry a row
policy that the store checks on every mutation, independently of whatever
the caller already checked.
"""
from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping

from ..errors import NotFound, PermissionDenied, StoreError
from ..logging import get_logger

logger = get_logger(__name__)

_IDENT = re.compile(r"^[a-z_][a-z0-9_]*$")


def _ident(name: str) -> str:
    if not _IDENT.match(name or ""):
        raise StoreError(f"Invalid identifier: {name!r}")
    return name


@dataclass(frozen=True)
class Join:
    """Left join of one lookup table, e.g. the owning profile's name."""

    table: str
    local_key: str
    remote_key: str = "id"
    # remote column -> alias in the result row
    columns: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = False
    # "datetime" / "time" wrap the column in the sqlite function of that name
    cast: str | None = None
    # explicit value ranking, used for weekday names
    rank: tuple[str, ...] = ()

    def to_sql(self, alias: str) -> str:
        col = f"{alias}.{_ident(self.column)}"
        if self.rank:
            whens = " ".join(f"WHEN ? THEN {i}" for i in range(len(self.rank)))
            expr = f"CASE {col} {whens} ELSE {len(self.rank)} END"
        elif self.cast in {"datetime", "time"}:
            expr = f"{self.cast}({col})"
        else:
            expr = col
        return f"{expr} {'DESC' if self.descending else 'ASC'}"


@dataclass(frozen=True)
class RowPolicy:
    owner_column: str
    insert_role: str = "faculty"


DEFAULT_POLICIES = {
    "resources": RowPolicy("uploaded_by"),
    "scholarships": RowPolicy("added_by"),
    "timetable": RowPolicy("faculty_id"),
}


class TableStore:
    def __init__(
        self,
        connect: Callable[[], sqlite3.Connection],
        policies: Mapping[str, RowPolicy] | None = None,
    ):
        self._connect = connect
        self.policies = dict(DEFAULT_POLICIES if policies is None else policies)

    def _run(self, op: str, table: str, fn):
        try:
            return fn(self._connect())
        except sqlite3.Error as e:
            logger.error("store_error", op=op, table=table, error=str(e))
            raise StoreError(f"Could not {op} {table}: {e}") from e

    def select(
        self,
        table: str,
        filters: Mapping[str, object] | None = None,
        order: Iterable[Order] = (),
        join: Join | None = None,
    ) -> list[dict]:
        t = _ident(table)
        cols = ["t.*"]
        sql_join = ""
        if join is not None:
            j = _ident(join.table)
            for remote, alias in join.columns.items():
                cols.append(f"j.{_ident(remote)} AS {_ident(alias)}")
            sql_join = f" LEFT JOIN {j} j ON j.{_ident(join.remote_key)} = t.{_ident(join.local_key)}"

        params: list[object] = []
        sql_where = ""
        if filters:
            clauses = []
            for k, v in filters.items():
                clauses.append(f"t.{_ident(k)} = ?")
                params.append(v)
            sql_where = " WHERE " + " AND ".join(clauses)

        order = list(order)
        sql_order = ""
        if order:
            sql_order = " ORDER BY " + ", ".join(o.to_sql("t") for o in order)
            for o in order:
                params.extend(o.rank)

        sql = f"SELECT {', '.join(cols)} FROM {t} t{sql_join}{sql_where}{sql_order}"
        rows = self._run("select", t, lambda db: db.execute(sql, params).fetchall())
        return [dict(r) for r in rows]

    def count(self, table: str) -> int:
        t = _ident(table)
        return int(self._run("count", t, lambda db: db.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]))

    def _profile_role(self, principal_id: str) -> str | None:
        rows = self.select("profiles", {"id": principal_id})
        return rows[0].get("role") if rows else None

    def insert(self, table: str, row: Mapping[str, object], acting_id: str | None = None) -> None:
        t = _ident(table)
        policy = self.policies.get(t)
        if policy is not None:
            if not acting_id or str(row.get(policy.owner_column) or "") != acting_id:
                raise PermissionDenied(f"Rows in {t} must be owned by the acting user.")
            if self._profile_role(acting_id) != policy.insert_role:
                raise PermissionDenied(f"Only {policy.insert_role} accounts may add rows to {t}.")

        keys = [_ident(k) for k in row.keys()]
        placeholders = ", ".join(["?"] * len(keys))
        sql = f"INSERT INTO {t} ({', '.join(keys)}) VALUES ({placeholders})"

        def _insert(db: sqlite3.Connection):
            db.execute(sql, [row[k] for k in keys])
            db.commit()

        self._run("insert", t, _insert)

    def delete(self, table: str, filters: Mapping[str, object], acting_id: str | None = None) -> int:
        t = _ident(table)
        if not filters:
            raise StoreError("Refusing to delete without a filter.")
        matched = self.select(t, filters)
        if not matched:
            raise NotFound(f"No matching row in {t}.")

        filters = dict(filters)
        policy = self.policies.get(t)
        if policy is not None:
            if not acting_id or any(str(r.get(policy.owner_column) or "") != acting_id for r in matched):
                raise PermissionDenied(f"Only the owner may delete rows from {t}.")
            filters[policy.owner_column] = acting_id

        clauses = " AND ".join(f"{_ident(k)} = ?" for k in filters)
        sql = f"DELETE FROM {t} WHERE {clauses}"

        def _delete(db: sqlite3.Connection) -> int:
            cur = db.execute(sql, list(filters.values()))
            db.commit()
            return cur.rowcount

        return int(self._run("delete", t, _delete))
