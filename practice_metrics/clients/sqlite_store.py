"""SQLite-backed relational store for credentials and provider metrics."""

from __future__ import annotations

import re
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _quote(identifier: str) -> str:
    if not _IDENTIFIER.match(identifier):
        raise ValueError(f"Unsafe SQL identifier: {identifier!r}")
    return f'"{identifier}"'


class SQLiteStore:
    """Thin relational layer exposing upsert, insert and date-range reads."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside ``BEGIN IMMEDIATE``; commit on success."""
        with closing(self._connect()) as conn:
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def ensure_table(
        self,
        table: str,
        columns: Mapping[str, str],
        *,
        unique: Sequence[str] = (),
        indexes: Sequence[Sequence[str]] = (),
    ) -> None:
        """Create ``table`` with an integer primary key if it does not exist."""
        definitions = ["id INTEGER PRIMARY KEY AUTOINCREMENT"]
        definitions.extend(f"{_quote(name)} {kind}" for name, kind in columns.items())
        if unique:
            definitions.append(f"UNIQUE ({', '.join(_quote(c) for c in unique)})")
        statements = [
            f"CREATE TABLE IF NOT EXISTS {_quote(table)} ({', '.join(definitions)})"
        ]
        for index_columns in indexes:
            index_name = f"idx_{table}_{'_'.join(index_columns)}"
            statements.append(
                f"CREATE INDEX IF NOT EXISTS {_quote(index_name)} ON {_quote(table)} "
                f"({', '.join(_quote(c) for c in index_columns)})"
            )
        with closing(self._connect()) as conn, conn:
            for statement in statements:
                conn.execute(statement)

    def insert_row(self, table: str, row: Mapping[str, Any]) -> int:
        """Plain insert; returns the new row id."""
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO {_quote(table)} ({', '.join(_quote(c) for c in columns)}) "
            f"VALUES ({placeholders})"
        )
        with closing(self._connect()) as conn, conn:
            cursor = conn.execute(sql, [row[c] for c in columns])
            return int(cursor.lastrowid or 0)

    def upsert_row(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        conflict_columns: Sequence[str],
        preserve_columns: Sequence[str] = ("created_at",),
    ) -> None:
        """Insert, or overwrite the row sharing ``conflict_columns``."""
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        updates = [
            f"{_quote(c)} = excluded.{_quote(c)}"
            for c in columns
            if c not in conflict_columns and c not in preserve_columns
        ]
        sql = (
            f"INSERT INTO {_quote(table)} ({', '.join(_quote(c) for c in columns)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT ({', '.join(_quote(c) for c in conflict_columns)}) "
            f"DO UPDATE SET {', '.join(updates)}"
        )
        with closing(self._connect()) as conn, conn:
            conn.execute(sql, [row[c] for c in columns])

    def select_rows(
        self, table: str, *, equals: Mapping[str, Any]
    ) -> List[Dict[str, Any]]:
        clauses = " AND ".join(f"{_quote(column)} = ?" for column in equals)
        sql = f"SELECT * FROM {_quote(table)} WHERE {clauses} ORDER BY id ASC"
        with closing(self._connect()) as conn:
            rows = conn.execute(sql, list(equals.values())).fetchall()
        return [dict(row) for row in rows]

    def select_range(
        self,
        table: str,
        *,
        client_id: str,
        start_date: str,
        end_date: str,
        equals: Optional[Mapping[str, Any]] = None,
        contains: Optional[Mapping[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """Rows for one client within inclusive date bounds, oldest first."""
        clauses = ["client_id = ?", "date >= ?", "date <= ?"]
        params: List[Any] = [client_id, start_date, end_date]
        for column, value in (equals or {}).items():
            clauses.append(f"{_quote(column)} = ?")
            params.append(value)
        for column, fragment in (contains or {}).items():
            clauses.append(f"{_quote(column)} LIKE ? ESCAPE '\\'")
            escaped = fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            params.append(f"%{escaped}%")
        sql = (
            f"SELECT * FROM {_quote(table)} WHERE {' AND '.join(clauses)} "
            "ORDER BY date ASC, id ASC"
        )
        with closing(self._connect()) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(row) for row in rows]

    def select_distinct(
        self, table: str, column: str, *, client_id: str
    ) -> List[Any]:
        sql = (
            f"SELECT DISTINCT {_quote(column)} AS value FROM {_quote(table)} "
            f"WHERE client_id = ? AND {_quote(column)} IS NOT NULL "
            f"AND {_quote(column)} != '' ORDER BY value"
        )
        with closing(self._connect()) as conn:
            rows = conn.execute(sql, (client_id,)).fetchall()
        return [row["value"] for row in rows]

    def count_rows(self, table: str, *, client_id: str) -> int:
        with closing(self._connect()) as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS total FROM {_quote(table)} WHERE client_id = ?",
                (client_id,),
            ).fetchone()
        return int(row["total"])


__all__ = ["SQLiteStore"]
