"""
Credential sources for the transport.

The transport only needs an opaque token; where it is stored is up to the
caller. Two sources are provided: a fixed token and one that reads the
settings on every request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from axiom_jobs.config import Settings


@runtime_checkable
class CredentialStore(Protocol):
    """Supplies the API token, or None when none is configured."""

    def get_token(self) -> str | None: ...


class StaticCredentials:
    """A token fixed at construction time."""

    def __init__(self, token: str | None):
        self._token = token

    def get_token(self) -> str | None:
        return self._token or None


class SettingsCredentials:
    """Reads AXIOM_API_KEY from the settings at request time."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def get_token(self) -> str | None:
        return self._settings.AXIOM_API_KEY or None
