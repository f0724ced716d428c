"""Session abstractions for tenant-scoped key-set persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from ..contracts import KeySetRecord, TenantContext
from .models import KeySetRow, KeySetTable


class KeySetSession(Protocol):
    """Data-store handle scoped to a single tenant."""

    async def ensure_schema(self, table: KeySetTable) -> None:
        """Create the key-set table and its ``valid`` index if absent."""

    async def upsert(
        self, table: KeySetTable, record: KeySetRecord, resurrect: bool = True
    ) -> bool:
        """Atomically insert or overwrite ``record``.

        When ``resurrect`` is false an existing retired row is left untouched.
        Returns ``True`` if the record was written.
        """

    async def invalidate(self, table: KeySetTable, version: str) -> None:
        """Mark ``version`` as no longer valid."""

    async def fetch(self, table: KeySetTable, version: str) -> Optional[KeySetRow]:
        """Return the row stored for ``version`` regardless of validity."""

    async def list_valid_versions(self, table: KeySetTable) -> list[str]:
        """Return the versions of all rows marked valid."""


class TenantSessionProvider(Protocol):
    """Resolves a data-store session for a tenant."""

    def get_tenant_session(self, tenant: str) -> KeySetSession:
        """Return the session scoped to ``tenant``."""

    def context_for(self, tenant: str) -> TenantContext:
        """Bundle ``tenant`` with its session."""
