import asyncio

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from typer.testing import CliRunner

import signet.persistence as persistence
from signet import Signature, TenantKeySetStore
from signet.cli import app
from signet.persistence import InMemorySessionProvider

IDM = Signature(public_key_mod=2**1024 + 7, public_key_exp=65537)


def _setup_provider(monkeypatch, tmp_path) -> InMemorySessionProvider:
    monkeypatch.setenv("SIGNET_CONFIG", str(tmp_path / "missing.yaml"))
    provider = InMemorySessionProvider()
    persistence._provider_instance = provider
    return provider


def _seed(provider, tenant: str, *versions: str) -> None:
    store = TenantKeySetStore()
    ctx = provider.context_for(tenant)
    for version in versions:
        asyncio.run(store.create_signature_set(ctx, version, IDM))


def test_rotate_stores_key_set(monkeypatch, tmp_path):
    provider = _setup_provider(monkeypatch, tmp_path)

    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "keyset",
            "rotate",
            "acme",
            "2024-01-01",
            "--modulus",
            str(IDM.public_key_mod),
            "--exponent",
            "65537",
        ],
    )
    assert result.exit_code == 0, f"Output: {result.stdout}"
    assert "Stored key set 2024-01-01 for acme" in result.stdout

    stored = asyncio.run(
        TenantKeySetStore().get_identity_manager_signature(
            provider.context_for("acme"), "2024-01-01"
        )
    )
    assert stored == IDM


def test_rotate_accepts_pem(monkeypatch, tmp_path):
    provider = _setup_provider(monkeypatch, tmp_path)
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem_path = tmp_path / "idm.pem"
    pem_path.write_bytes(
        key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )

    runner = CliRunner()
    result = runner.invoke(
        app, ["keyset", "rotate", "acme", "2024-01-01", "--pem", str(pem_path)]
    )
    assert result.exit_code == 0, f"Output: {result.stdout}"

    stored = asyncio.run(
        TenantKeySetStore().get_identity_manager_signature(
            provider.context_for("acme"), "2024-01-01"
        )
    )
    assert stored.public_key_mod == key.public_key().public_numbers().n


def test_rotate_requires_identity_manager_key(monkeypatch, tmp_path):
    _setup_provider(monkeypatch, tmp_path)

    runner = CliRunner()
    result = runner.invoke(app, ["keyset", "rotate", "acme", "2024-01-01"])
    assert result.exit_code == 1

    result = runner.invoke(
        app,
        ["keyset", "rotate", "acme", "yesterday", "--modulus", "77", "--exponent", "3"],
    )
    assert result.exit_code == 1
    assert "does not match" in result.stdout


def test_list_latest_and_show(monkeypatch, tmp_path):
    provider = _setup_provider(monkeypatch, tmp_path)
    _seed(provider, "acme", "2024-01-01", "2024-03-01", "2024-02-01")

    runner = CliRunner()
    result = runner.invoke(app, ["keyset", "list", "acme"])
    assert result.exit_code == 0
    assert result.stdout.split() == ["2024-03-01", "2024-02-01", "2024-01-01"]

    result = runner.invoke(app, ["keyset", "latest", "acme"])
    assert result.exit_code == 0
    assert "Key set 2024-03-01" in result.stdout

    result = runner.invoke(app, ["keyset", "show", "acme", "2024-02-01"])
    assert result.exit_code == 0
    assert str(IDM.public_key_mod) in result.stdout


def test_retired_key_set_is_not_found(monkeypatch, tmp_path):
    provider = _setup_provider(monkeypatch, tmp_path)
    _seed(provider, "acme", "2024-01-01")

    runner = CliRunner()
    result = runner.invoke(app, ["keyset", "retire", "acme", "2024-01-01"])
    assert result.exit_code == 0

    result = runner.invoke(app, ["keyset", "show", "acme", "2024-01-01"])
    assert result.exit_code == 1
    assert "Key set not found" in result.stdout

    result = runner.invoke(app, ["keyset", "list", "acme"])
    assert "No key sets found" in result.stdout

    result = runner.invoke(app, ["keyset", "latest", "acme"])
    assert result.exit_code == 1


def test_invalid_tenant_is_reported(monkeypatch, tmp_path):
    _setup_provider(monkeypatch, tmp_path)

    runner = CliRunner()
    for args in (
        ["keyset", "show", "../etc", "2024-01-01"],
        ["keyset", "list", "a b"],
        ["keyset", "retire", "../etc", "2024-01-01"],
        ["keyset", "rotate", "../etc", "2024-01-01", "--modulus", "77", "--exponent", "3"],
    ):
        result = runner.invoke(app, args)
        assert result.exit_code == 1, f"{args}: {result.stdout}"
        assert "Invalid tenant" in result.stdout
        assert isinstance(result.exception, SystemExit)
