"""SQLite implementation of the key-set session."""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

from ..contracts import KeySetRecord, TenantContext
from .models import COLUMNS, KeySetRow, KeySetTable, record_values, validate_identifier
from .repository import KeySetSession, TenantSessionProvider

logger = logging.getLogger(__name__)

_KEY_COLUMNS = COLUMNS[2:]


class _Statements(NamedTuple):
    create_table: str
    create_index: str
    upsert: str
    upsert_unless_retired: str
    invalidate: str
    select_row: str
    select_valid: str


@lru_cache(maxsize=None)
def _statements(table_name: str, index_name: str) -> _Statements:
    """Build the SQL for one table; keyed by table, never by version."""
    table = f'"{table_name}"'
    columns = ", ".join(COLUMNS)
    placeholders = ", ".join("?" for _ in COLUMNS)
    assignments = ", ".join(f"{c} = excluded.{c}" for c in COLUMNS[1:])
    upsert = (
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) "
        f"ON CONFLICT (version) DO UPDATE SET {assignments}"
    )
    key_columns = ",\n".join(f"                {c} TEXT" for c in _KEY_COLUMNS)
    return _Statements(
        create_table=f"""
            CREATE TABLE IF NOT EXISTS {table} (
                version TEXT PRIMARY KEY,
                valid INTEGER,
{key_columns}
            )
            """,
        create_index=f'CREATE INDEX IF NOT EXISTS "{index_name}" ON {table} (valid)',
        upsert=upsert,
        upsert_unless_retired=f"{upsert} WHERE {table}.valid = 1",
        invalidate=f"UPDATE {table} SET valid = 0 WHERE version = ?",
        select_row=f"SELECT {columns} FROM {table} WHERE version = ?",
        select_valid=f"SELECT version FROM {table} WHERE valid = 1",
    )


def _to_row(row: sqlite3.Row) -> KeySetRow:
    values: Dict[str, Any] = {
        c: int(row[c]) if row[c] is not None else None for c in _KEY_COLUMNS
    }
    return KeySetRow(
        version=row["version"],
        valid=bool(row["valid"]) if row["valid"] is not None else None,
        **values,
    )


class SQLiteKeySetSession(KeySetSession):
    """Persist one tenant's key sets in a SQLite database file.

    Big integers are stored as decimal text since SQLite integers are
    limited to 64 bits.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ready: set[str] = set()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
            return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    # ------------------------------------------------------------------
    # Session API
    async def ensure_schema(self, table: KeySetTable) -> None:
        if table.name in self._ready:
            return
        sql = _statements(table.name, table.index_name)
        await asyncio.to_thread(self._execute, sql.create_table)
        await asyncio.to_thread(self._execute, sql.create_index)
        self._ready.add(table.name)
        logger.debug(f"Ensured table {table.name} in {self.db_path}")

    async def upsert(
        self, table: KeySetTable, record: KeySetRecord, resurrect: bool = True
    ) -> bool:
        sql = _statements(table.name, table.index_name)
        version, valid, *keys = record_values(record)
        written = await asyncio.to_thread(
            self._execute,
            sql.upsert if resurrect else sql.upsert_unless_retired,
            version,
            int(valid),
            *(str(k) for k in keys),
        )
        return written > 0

    async def invalidate(self, table: KeySetTable, version: str) -> None:
        sql = _statements(table.name, table.index_name)
        await asyncio.to_thread(self._execute, sql.invalidate, version)

    async def fetch(self, table: KeySetTable, version: str) -> Optional[KeySetRow]:
        sql = _statements(table.name, table.index_name)
        row = await asyncio.to_thread(self._fetchone, sql.select_row, version)
        if not row:
            return None
        return _to_row(row)

    async def list_valid_versions(self, table: KeySetTable) -> list[str]:
        sql = _statements(table.name, table.index_name)
        rows = await asyncio.to_thread(self._fetchall, sql.select_valid)
        return [r["version"] for r in rows]


class SQLiteSessionProvider(TenantSessionProvider):
    """Keep one SQLite database file per tenant inside ``directory``."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        os.makedirs(self.directory, exist_ok=True)
        self._sessions: Dict[str, SQLiteKeySetSession] = {}
        self._lock = threading.Lock()

    def get_tenant_session(self, tenant: str) -> SQLiteKeySetSession:
        validate_identifier(tenant, "tenant")
        with self._lock:
            session = self._sessions.get(tenant)
            if session is None:
                session = SQLiteKeySetSession(self.directory / f"{tenant}.db")
                self._sessions[tenant] = session
            return session

    def context_for(self, tenant: str) -> TenantContext:
        return TenantContext(tenant=tenant, session=self.get_tenant_session(tenant))

    def close(self) -> None:
        with self._lock:
            for session in self._sessions.values():
                session.close()
            self._sessions.clear()
