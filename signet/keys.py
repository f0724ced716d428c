"""Key pair generation for application signing keys."""

from __future__ import annotations

from typing import Protocol

from cryptography.hazmat.primitives.asymmetric import rsa

from .config import KeysConfig
from .contracts import KeyPairHolder


class KeyPairSource(Protocol):
    """Produces a fresh key pair on demand."""

    def create_key_pair(self) -> KeyPairHolder:
        """Return newly generated private and public key components."""


class RsaKeyPairFactory:
    """Generate RSA key pairs with ``cryptography``."""

    def __init__(self, key_size: int = 2048, public_exponent: int = 65537) -> None:
        self.key_size = key_size
        self.public_exponent = public_exponent

    @classmethod
    def from_config(cls, config: KeysConfig) -> "RsaKeyPairFactory":
        return cls(key_size=config.key_size, public_exponent=config.public_exponent)

    def create_key_pair(self) -> KeyPairHolder:
        key = rsa.generate_private_key(
            public_exponent=self.public_exponent, key_size=self.key_size
        )
        private_numbers = key.private_numbers()
        public_numbers = private_numbers.public_numbers
        return KeyPairHolder(
            private_key_mod=public_numbers.n,
            private_key_exp=private_numbers.d,
            public_key_mod=public_numbers.n,
            public_key_exp=public_numbers.e,
        )
