"""Data models for persisted key-set rows."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..contracts import KeySetRecord
from ..errors import InvalidArgumentError

TABLE_SUFFIX = "_authorization_v1_data"
INDEX_SUFFIX = "_authorization_v1_valid_index"
# PostgreSQL truncates identifiers longer than 63 bytes.
MAX_SERVICE_NAME_LENGTH = 63 - len(INDEX_SUFFIX) - 1

# Tenant ids and service names end up in table, schema and file names.
_IDENTIFIER = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_-]{0,62}")


def validate_identifier(value: str, kind: str = "identifier") -> str:
    if not value or not _IDENTIFIER.fullmatch(value):
        raise InvalidArgumentError(f"Invalid {kind}: {value!r}")
    return value


class KeySetTable(BaseModel):
    """Names of the per-tenant key-set table and its ``valid`` index."""

    model_config = ConfigDict(frozen=True)

    name: str
    index_name: str

    @classmethod
    def for_service(cls, service_name: str) -> "KeySetTable":
        validate_identifier(service_name, "service name")
        if len(service_name) > MAX_SERVICE_NAME_LENGTH:
            raise InvalidArgumentError(
                f"Service name too long: {service_name!r} (max {MAX_SERVICE_NAME_LENGTH})"
            )
        return cls(name=service_name + TABLE_SUFFIX, index_name=service_name + INDEX_SUFFIX)


class KeySetRow(BaseModel):
    """A stored key-set row as read back from a backend.

    Key columns are optional so that readers can detect rows written
    without complete key material.
    """

    version: str
    valid: Optional[bool] = None
    identity_manager_public_key_mod: Optional[int] = None
    identity_manager_public_key_exp: Optional[int] = None
    application_private_key_mod: Optional[int] = None
    application_private_key_exp: Optional[int] = None
    application_public_key_mod: Optional[int] = None
    application_public_key_exp: Optional[int] = None


COLUMNS = (
    "version",
    "valid",
    "identity_manager_public_key_mod",
    "identity_manager_public_key_exp",
    "application_private_key_mod",
    "application_private_key_exp",
    "application_public_key_mod",
    "application_public_key_exp",
)


def record_values(record: KeySetRecord) -> tuple:
    """Flatten ``record`` into column order."""
    idm = record.identity_manager_signature
    app = record.application_key_pair
    return (
        record.version,
        record.valid,
        idm.public_key_mod,
        idm.public_key_exp,
        app.private_key_mod,
        app.private_key_exp,
        app.public_key_mod,
        app.public_key_exp,
    )
