"""Exceptions raised by the key-set store."""

from __future__ import annotations


class SignetError(Exception):
    """Base class for signet errors."""


class InvalidArgumentError(SignetError, ValueError):
    """A required argument is missing or malformed."""


class RetiredVersionError(SignetError, ValueError):
    """A retired version was resubmitted while resurrection is disabled."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Key set version '{version}' has been retired")
        self.version = version


class KeySetInconsistencyError(SignetError, RuntimeError):
    """A row marked valid is missing key material."""
