"""In-memory implementation of the key-set session."""

from __future__ import annotations

from typing import Dict, Optional

from ..contracts import KeySetRecord, TenantContext
from .models import COLUMNS, KeySetRow, KeySetTable, record_values, validate_identifier
from .repository import KeySetSession, TenantSessionProvider


class InMemoryKeySetSession(KeySetSession):
    """Store key sets for one tenant in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[str, KeySetRow]] = {}

    def _table(self, table: KeySetTable) -> Dict[str, KeySetRow]:
        return self._tables.setdefault(table.name, {})

    # ------------------------------------------------------------------
    async def ensure_schema(self, table: KeySetTable) -> None:
        self._table(table)

    async def upsert(
        self, table: KeySetTable, record: KeySetRecord, resurrect: bool = True
    ) -> bool:
        rows = self._table(table)
        existing = rows.get(record.version)
        if existing is not None and not existing.valid and not resurrect:
            return False
        rows[record.version] = KeySetRow(**dict(zip(COLUMNS, record_values(record))))
        return True

    async def invalidate(self, table: KeySetTable, version: str) -> None:
        rows = self._table(table)
        row = rows.get(version)
        if row is not None:
            rows[version] = row.model_copy(update={"valid": False})

    async def fetch(self, table: KeySetTable, version: str) -> Optional[KeySetRow]:
        return self._table(table).get(version)

    async def list_valid_versions(self, table: KeySetTable) -> list[str]:
        return [version for version, row in self._table(table).items() if row.valid]


class InMemorySessionProvider(TenantSessionProvider):
    """Hand out one in-memory session per tenant."""

    def __init__(self) -> None:
        self._sessions: Dict[str, InMemoryKeySetSession] = {}

    def get_tenant_session(self, tenant: str) -> InMemoryKeySetSession:
        validate_identifier(tenant, "tenant")
        return self._sessions.setdefault(tenant, InMemoryKeySetSession())

    def context_for(self, tenant: str) -> TenantContext:
        return TenantContext(tenant=tenant, session=self.get_tenant_session(tenant))
