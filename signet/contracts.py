"""Value objects exchanged with key-set store callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from .persistence.repository import KeySetSession


class Signature(BaseModel):
    """One RSA key half as a modulus/exponent pair."""

    model_config = ConfigDict(frozen=True)

    public_key_mod: int
    public_key_exp: int

    def to_public_key(self) -> rsa.RSAPublicKey:
        """Build a ``cryptography`` public key for downstream verification."""
        return rsa.RSAPublicNumbers(self.public_key_exp, self.public_key_mod).public_key()


class SignatureSet(BaseModel):
    """Public view of a stored key set."""

    model_config = ConfigDict(frozen=True)

    version: str
    application_signature: Signature
    identity_manager_signature: Signature


class KeyPairHolder(BaseModel):
    """Freshly generated RSA key pair components."""

    model_config = ConfigDict(frozen=True)

    private_key_mod: int
    private_key_exp: int
    public_key_mod: int
    public_key_exp: int

    @property
    def public_signature(self) -> Signature:
        return Signature(public_key_mod=self.public_key_mod, public_key_exp=self.public_key_exp)


class KeySetRecord(BaseModel):
    """Everything persisted for one tenant rotation version."""

    model_config = ConfigDict(frozen=True)

    version: str
    valid: bool = True
    identity_manager_signature: Signature
    application_key_pair: KeyPairHolder


@dataclass(frozen=True)
class TenantContext:
    """Tenant identity plus the session scoped to that tenant."""

    tenant: str
    session: "KeySetSession"
