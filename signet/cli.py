"""Command line interface for managing tenant key sets."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from signet import (
    Signature,
    TenantContext,
    TenantKeySetStore,
    get_session_provider,
    load_config,
)
from signet.errors import SignetError

app = typer.Typer(help="CLI for signet key sets")

keyset_app = typer.Typer(help="Commands for rotating and inspecting key sets")

app.add_typer(keyset_app, name="keyset")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, help="Path to YAML config"),
) -> None:
    """Signet CLI entry point."""
    settings = load_config(str(config) if config else None)
    logging.basicConfig(level=settings.log_level.upper())
    if config is not None:
        get_session_provider(config=settings)
    ctx.obj = settings


def _store(ctx: typer.Context) -> TenantKeySetStore:
    return TenantKeySetStore.from_config(ctx.obj or load_config())


def _context(tenant: str) -> TenantContext:
    try:
        return get_session_provider().context_for(tenant)
    except SignetError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _load_pem(path: Path) -> Signature:
    key = serialization.load_pem_public_key(path.read_bytes())
    if not isinstance(key, rsa.RSAPublicKey):
        typer.secho("Identity manager key must be an RSA public key", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    numbers = key.public_numbers()
    return Signature(public_key_mod=numbers.n, public_key_exp=numbers.e)


def _echo_signature(label: str, signature: Signature) -> None:
    typer.echo(f"{label}:")
    typer.echo(f"  modulus:  {signature.public_key_mod}")
    typer.echo(f"  exponent: {signature.public_key_exp}")


@keyset_app.command("rotate")
def keyset_rotate(
    ctx: typer.Context,
    tenant: str,
    version: str,
    modulus: Optional[int] = typer.Option(None, help="Identity manager public modulus"),
    exponent: Optional[int] = typer.Option(None, help="Identity manager public exponent"),
    pem: Optional[Path] = typer.Option(None, help="Identity manager public key as PEM"),
) -> None:
    """
    Store a new key set version for a tenant.

    Generates a fresh application key pair, stores it together with the identity
    manager public key and prints the application public key.

    Example:
        signet keyset rotate acme 2024-01-01 --pem idm.pub
        signet keyset rotate acme 2024-01-01 --modulus 2357... --exponent 65537
    """
    if pem is not None:
        identity_manager = _load_pem(pem)
    elif modulus is not None and exponent is not None:
        identity_manager = Signature(public_key_mod=modulus, public_key_exp=exponent)
    else:
        typer.secho(
            "Provide --pem or both --modulus and --exponent", fg=typer.colors.RED
        )
        raise typer.Exit(code=1)

    tenant_ctx = _context(tenant)
    try:
        signature = asyncio.run(
            _store(ctx).create_signature_set(tenant_ctx, version, identity_manager)
        )
    except SignetError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Stored key set {version} for {tenant}")
    _echo_signature("Application", signature)


@keyset_app.command("retire")
def keyset_retire(ctx: typer.Context, tenant: str, version: str) -> None:
    """Retire a key set version. The record is kept but no longer served."""
    tenant_ctx = _context(tenant)
    asyncio.run(_store(ctx).delete_signature_set(tenant_ctx, version))
    typer.echo(f"Retired key set {version} for {tenant}")


@keyset_app.command("show")
def keyset_show(ctx: typer.Context, tenant: str, version: str) -> None:
    """
    Show the public keys stored for a key set version.

    Retired and unknown versions are both reported as not found.

    Example:
        signet keyset show acme 2024-01-01
    """
    tenant_ctx = _context(tenant)
    signature_set = asyncio.run(_store(ctx).get_signature_set(tenant_ctx, version))
    if signature_set is None:
        typer.echo("Key set not found")
        raise typer.Exit(code=1)
    typer.echo(f"Key set {signature_set.version}")
    _echo_signature("Application", signature_set.application_signature)
    _echo_signature("Identity manager", signature_set.identity_manager_signature)


@keyset_app.command("list")
def keyset_list(ctx: typer.Context, tenant: str) -> None:
    """List the valid key set versions of a tenant, newest first."""
    tenant_ctx = _context(tenant)
    versions = asyncio.run(_store(ctx).get_all_signature_set_key_timestamps(tenant_ctx))
    if not versions:
        typer.echo("No key sets found")
        return
    for version in sorted(versions, reverse=True):
        typer.echo(version)


@keyset_app.command("latest")
def keyset_latest(ctx: typer.Context, tenant: str) -> None:
    """Show the most recent valid key set of a tenant."""
    tenant_ctx = _context(tenant)
    signature_set = asyncio.run(_store(ctx).get_latest_signature_set(tenant_ctx))
    if signature_set is None:
        typer.echo("Key set not found")
        raise typer.Exit(code=1)
    typer.echo(f"Key set {signature_set.version}")
    _echo_signature("Application", signature_set.application_signature)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
