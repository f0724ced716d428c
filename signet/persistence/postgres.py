"""PostgreSQL implementation of the key-set session."""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Dict, NamedTuple, Optional

import asyncpg

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
    """Build the SQL for one table; tenants differ only by ``search_path``."""
    table = f'"{table_name}"'
    columns = ", ".join(COLUMNS)
    placeholders = ", ".join(f"${i}" for i in range(1, len(COLUMNS) + 1))
    assignments = ", ".join(f"{c} = EXCLUDED.{c}" for c in COLUMNS[1:])
    upsert = (
        f"INSERT INTO {table} AS k ({columns}) VALUES ({placeholders}) "
        f"ON CONFLICT (version) DO UPDATE SET {assignments}"
    )
    key_columns = ",\n".join(f"                {c} NUMERIC" for c in _KEY_COLUMNS)
    return _Statements(
        create_table=f"""
            CREATE TABLE IF NOT EXISTS {table} (
                version TEXT PRIMARY KEY,
                valid BOOLEAN,
{key_columns}
            )
            """,
        create_index=f'CREATE INDEX IF NOT EXISTS "{index_name}" ON {table} (valid)',
        upsert=f"{upsert} RETURNING version",
        upsert_unless_retired=f"{upsert} WHERE k.valid RETURNING version",
        invalidate=f"UPDATE {table} SET valid = FALSE WHERE version = $1",
        select_row=f"SELECT {columns} FROM {table} WHERE version = $1",
        select_valid=f"SELECT version FROM {table} WHERE valid = TRUE",
    )


class PostgresKeySetSession(KeySetSession):
    """Persist one tenant's key sets in a dedicated PostgreSQL schema."""

    def __init__(self, dsn: str, schema: str):
        self._dsn = dsn
        self.schema = schema
        self._ready: set[str] = set()

    async def _connect(self) -> asyncpg.Connection:
        return await asyncpg.connect(
            self._dsn, server_settings={"search_path": f'"{self.schema}"'}
        )

    def _sql(self, table: KeySetTable) -> _Statements:
        return _statements(table.name, table.index_name)

    # ------------------------------------------------------------------
    async def ensure_schema(self, table: KeySetTable) -> None:
        if table.name in self._ready:
            return
        sql = self._sql(table)
        conn = await self._connect()
        try:
            await conn.execute(f'CREATE SCHEMA IF NOT EXISTS "{self.schema}"')
            await conn.execute(sql.create_table)
            await conn.execute(sql.create_index)
        finally:
            await conn.close()
        self._ready.add(table.name)
        logger.debug(f"Ensured table {table.name} in schema {self.schema}")

    async def upsert(
        self, table: KeySetTable, record: KeySetRecord, resurrect: bool = True
    ) -> bool:
        sql = self._sql(table)
        version, valid, *keys = record_values(record)
        conn = await self._connect()
        try:
            written = await conn.fetchval(
                sql.upsert if resurrect else sql.upsert_unless_retired,
                version,
                valid,
                *(Decimal(k) for k in keys),
            )
        finally:
            await conn.close()
        return written is not None

    async def invalidate(self, table: KeySetTable, version: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(self._sql(table).invalidate, version)
        finally:
            await conn.close()

    async def fetch(self, table: KeySetTable, version: str) -> Optional[KeySetRow]:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(self._sql(table).select_row, version)
        finally:
            await conn.close()
        if not row:
            return None
        return KeySetRow(
            version=row["version"],
            valid=row["valid"],
            **{c: int(row[c]) if row[c] is not None else None for c in _KEY_COLUMNS},
        )

    async def list_valid_versions(self, table: KeySetTable) -> list[str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(self._sql(table).select_valid)
        finally:
            await conn.close()
        return [r["version"] for r in rows]


class PostgresSessionProvider(TenantSessionProvider):
    """Map every tenant onto its own schema of one PostgreSQL database."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._sessions: Dict[str, PostgresKeySetSession] = {}

    def get_tenant_session(self, tenant: str) -> PostgresKeySetSession:
        validate_identifier(tenant, "tenant")
        session = self._sessions.get(tenant)
        if session is None:
            session = self._sessions.setdefault(
                tenant, PostgresKeySetSession(self._dsn, schema=tenant)
            )
        return session

    def context_for(self, tenant: str) -> TenantContext:
        return TenantContext(tenant=tenant, session=self.get_tenant_session(tenant))
