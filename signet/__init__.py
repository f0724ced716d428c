"""Signet: versioned key-set store for multi-tenant identity services."""

from .config import SignetConfig, load_config
from .contracts import KeyPairHolder, KeySetRecord, Signature, SignatureSet, TenantContext
from .errors import (
    InvalidArgumentError,
    KeySetInconsistencyError,
    RetiredVersionError,
    SignetError,
)
from .keys import KeyPairSource, RsaKeyPairFactory
from .persistence import get_session_provider
from .store import TenantKeySetStore

__version__ = "0.1.0"
__all__ = [
    "InvalidArgumentError",
    "KeyPairHolder",
    "KeyPairSource",
    "KeySetInconsistencyError",
    "KeySetRecord",
    "RetiredVersionError",
    "RsaKeyPairFactory",
    "Signature",
    "SignatureSet",
    "SignetConfig",
    "SignetError",
    "TenantContext",
    "TenantKeySetStore",
    "get_session_provider",
    "load_config",
]
