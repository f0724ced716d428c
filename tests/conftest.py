import itertools

import pytest

from signet import KeyPairHolder, TenantKeySetStore
from signet.persistence import InMemorySessionProvider, SQLiteSessionProvider

# Larger than 64 bits so every backend has to cope with big integers.
BASE = 2**2048


class SequentialKeyPairSource:
    """Deterministic stand-in for RSA generation, distinct on every call."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self.issued: list[KeyPairHolder] = []

    def create_key_pair(self) -> KeyPairHolder:
        i = next(self._counter)
        pair = KeyPairHolder(
            private_key_mod=BASE + i,
            private_key_exp=BASE // 3 + i,
            public_key_mod=BASE + i,
            public_key_exp=65537,
        )
        self.issued.append(pair)
        return pair


@pytest.fixture
def key_source():
    return SequentialKeyPairSource()


@pytest.fixture
def store(key_source):
    return TenantKeySetStore(service_name="identity", key_source=key_source)


@pytest.fixture(params=["inmemory", "sqlite"])
def provider(request, tmp_path):
    if request.param == "inmemory":
        yield InMemorySessionProvider()
    else:
        sqlite_provider = SQLiteSessionProvider(tmp_path / "tenants")
        yield sqlite_provider
        sqlite_provider.close()
