"""Versioned key-set store for tenant signing keys."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from .config import DEFAULT_VERSION_PATTERN, SignetConfig
from .contracts import KeySetRecord, Signature, SignatureSet, TenantContext
from .errors import InvalidArgumentError, KeySetInconsistencyError, RetiredVersionError
from .keys import KeyPairSource, RsaKeyPairFactory
from .persistence.models import KeySetRow, KeySetTable

logger = logging.getLogger(__name__)


def _require(value: object, name: str) -> None:
    if value is None or value == "":
        raise InvalidArgumentError(f"{name} must be provided")


class TenantKeySetStore:
    """Persist and serve per-version tenant key sets.

    Every operation receives a :class:`TenantContext` naming the tenant and
    carrying the session scoped to it. The store itself keeps no per-tenant
    or per-version state, so one instance can serve all tenants concurrently.

    Versions double as rotation order: the latest key set is the valid one
    with the lexically greatest version. Writers must therefore use a format
    whose lexical order is chronological, which ``version_pattern`` enforces.
    """

    def __init__(
        self,
        service_name: str = "signet",
        key_source: Optional[KeyPairSource] = None,
        version_pattern: Optional[str] = DEFAULT_VERSION_PATTERN,
        resurrect_retired: bool = True,
    ) -> None:
        self.table = KeySetTable.for_service(service_name)
        self.key_source = key_source or RsaKeyPairFactory()
        self._version_pattern = re.compile(version_pattern) if version_pattern else None
        self.resurrect_retired = resurrect_retired

    @classmethod
    def from_config(
        cls, config: SignetConfig, key_source: Optional[KeyPairSource] = None
    ) -> "TenantKeySetStore":
        return cls(
            service_name=config.service_name,
            key_source=key_source or RsaKeyPairFactory.from_config(config.keys),
            version_pattern=config.store.version_pattern,
            resurrect_retired=config.store.resurrect_retired,
        )

    # ------------------------------------------------------------------
    # Schema
    async def ensure_schema(self, ctx: TenantContext) -> None:
        """Create the tenant's key-set table and ``valid`` index if absent."""
        await ctx.session.ensure_schema(self.table)

    # ------------------------------------------------------------------
    # Writes
    async def create_signature_set(
        self, ctx: TenantContext, version: str, identity_manager_signature: Signature
    ) -> Signature:
        """Store a new key set for ``version`` and return the application public key.

        Args:
            ctx: Tenant whose key set is rotated.
            version: Rotation version. Retiring keys later refers to this value.
            identity_manager_signature: Public key of the identity manager, used
                to authenticate the tokens presented in most requests.

        Returns:
            The freshly generated application public key. This is *not* the
            identity manager signature passed in.

        Resubmitting an existing version overwrites all of its key material and
        marks it valid again, unless the store was built with
        ``resurrect_retired=False`` and the version is retired, in which case
        :class:`RetiredVersionError` is raised.
        """
        _require(version, "version")
        _require(identity_manager_signature, "identity_manager_signature")
        self._check_version_format(version)

        await self.ensure_schema(ctx)
        key_pair = self.key_source.create_key_pair()
        record = KeySetRecord(
            version=version,
            identity_manager_signature=identity_manager_signature,
            application_key_pair=key_pair,
        )
        written = await ctx.session.upsert(
            self.table, record, resurrect=self.resurrect_retired
        )
        if not written:
            raise RetiredVersionError(version)

        logger.info(f"Stored key set version '{version}' for tenant {ctx.tenant}")
        return key_pair.public_signature

    async def delete_signature_set(self, ctx: TenantContext, version: str) -> None:
        """Retire ``version`` without removing it.

        The row is kept so that requests still presenting an older key set can
        be recognised in the logs.
        """
        _require(version, "version")
        await self.ensure_schema(ctx)
        await ctx.session.invalidate(self.table, version)
        logger.info(f"Retired key set version '{version}' for tenant {ctx.tenant}")

    # ------------------------------------------------------------------
    # Reads
    async def get_application_signature(
        self, ctx: TenantContext, version: str
    ) -> Optional[Signature]:
        row = await self._get_valid_row(ctx, version)
        return _application_signature(row) if row is not None else None

    async def get_identity_manager_signature(
        self, ctx: TenantContext, version: str
    ) -> Optional[Signature]:
        row = await self._get_valid_row(ctx, version)
        return _identity_manager_signature(row) if row is not None else None

    async def get_signature_set(
        self, ctx: TenantContext, version: str
    ) -> Optional[SignatureSet]:
        row = await self._get_valid_row(ctx, version)
        if row is None:
            return None
        return SignatureSet(
            version=row.version,
            application_signature=_application_signature(row),
            identity_manager_signature=_identity_manager_signature(row),
        )

    async def get_all_signature_set_key_timestamps(self, ctx: TenantContext) -> list[str]:
        """Return the versions of all valid key sets, in no particular order."""
        await self.ensure_schema(ctx)
        return await ctx.session.list_valid_versions(self.table)

    async def get_latest_signature_set(self, ctx: TenantContext) -> Optional[SignatureSet]:
        version = await self._most_recent_version(ctx)
        if version is None:
            return None
        return await self.get_signature_set(ctx, version)

    async def get_latest_application_signature(
        self, ctx: TenantContext
    ) -> Optional[Signature]:
        version = await self._most_recent_version(ctx)
        if version is None:
            return None
        return await self.get_application_signature(ctx, version)

    # ------------------------------------------------------------------
    # Helpers
    def _check_version_format(self, version: str) -> None:
        if self._version_pattern is None:
            return
        if not self._version_pattern.fullmatch(version):
            raise InvalidArgumentError(
                f"version '{version}' does not match {self._version_pattern.pattern}"
            )
        if self._version_pattern.pattern == DEFAULT_VERSION_PATTERN:
            try:
                datetime.fromisoformat(version)
            except ValueError:
                raise InvalidArgumentError(
                    f"version '{version}' is not a valid timestamp"
                ) from None

    async def _most_recent_version(self, ctx: TenantContext) -> Optional[str]:
        return max(await self.get_all_signature_set_key_timestamps(ctx), default=None)

    async def _get_valid_row(self, ctx: TenantContext, version: str) -> Optional[KeySetRow]:
        _require(version, "version")
        await self.ensure_schema(ctx)
        row = await ctx.session.fetch(self.table, version)
        if row is None:
            return None
        if not row.valid:
            logger.warning(
                f"Invalidated keyset for version '{version}' requested for tenant "
                f"{ctx.tenant}. Pretending no keyset exists."
            )
            return None
        return row


def _signature(row: KeySetRow, prefix: str) -> Signature:
    modulus = getattr(row, f"{prefix}_mod")
    exponent = getattr(row, f"{prefix}_exp")
    if modulus is None or exponent is None:
        raise KeySetInconsistencyError(
            f"Key set version '{row.version}' is valid but lacks {prefix} material"
        )
    return Signature(public_key_mod=modulus, public_key_exp=exponent)


def _identity_manager_signature(row: KeySetRow) -> Signature:
    return _signature(row, "identity_manager_public_key")


def _application_signature(row: KeySetRow) -> Signature:
    return _signature(row, "application_public_key")
