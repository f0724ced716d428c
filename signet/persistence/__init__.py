"""Persistence layer for signet key sets."""

from __future__ import annotations

import os
from typing import Optional

from ..config import SignetConfig, load_config
from .inmemory import InMemoryKeySetSession, InMemorySessionProvider
from .models import KeySetRow, KeySetTable
from .postgres import PostgresKeySetSession, PostgresSessionProvider
from .repository import KeySetSession, TenantSessionProvider
from .sqlite import SQLiteKeySetSession, SQLiteSessionProvider

_provider_instance: TenantSessionProvider | None = None


def get_session_provider(
    database_url: Optional[str] = None, config: Optional[SignetConfig] = None
) -> TenantSessionProvider:
    """Factory function to obtain a tenant session provider.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``SIGNET_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory provider is returned.
    """

    global _provider_instance
    if _provider_instance is not None and database_url is None and config is None:
        return _provider_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("SIGNET_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _provider_instance = InMemorySessionProvider()
        return _provider_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _provider_instance = SQLiteSessionProvider(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        _provider_instance = PostgresSessionProvider(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _provider_instance


__all__ = [
    "KeySetRow",
    "KeySetTable",
    "KeySetSession",
    "TenantSessionProvider",
    "InMemoryKeySetSession",
    "InMemorySessionProvider",
    "SQLiteKeySetSession",
    "SQLiteSessionProvider",
    "PostgresKeySetSession",
    "PostgresSessionProvider",
    "get_session_provider",
]
