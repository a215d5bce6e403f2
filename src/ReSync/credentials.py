"""Credential resolution for authentication challenges.

Per-operation input wins over the credential store, one field at a time:
a field the caller left empty is filled from the stored entry for the URL,
a field the caller filled in is never replaced. A username that came from a
token never carries a password.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ReSync.models import (
    Credential,
    CredentialKind,
    CredentialProfile,
    CredentialRequest,
    DefaultCredential,
    UsernamePasswordCredential,
)
from ReSync.url_utils import redact_url

logger = logging.getLogger(__name__)


class StoredEntry(Protocol):
    is_token: bool
    username: str

    @property
    def token(self) -> str: ...

    def decrypt_password(self) -> str: ...


class EntryLookup(Protocol):
    def get_entry(self, url: str) -> StoredEntry | None: ...


def resolve(
    request: CredentialRequest,
    profile: CredentialProfile,
    store_entry: StoredEntry | None,
) -> Credential:
    """Return the credential to present for *request*."""
    if request.kind is not CredentialKind.USERNAME_PASSWORD:
        return DefaultCredential()

    if profile.is_token:
        username, password = profile.token, ""
    else:
        username, password = profile.username, profile.password
    token_username = profile.is_token and bool(username)

    if store_entry is not None:
        if store_entry.is_token:
            if not username:
                username = store_entry.token
            password = ""
        else:
            if not username:
                username = store_entry.username
            if not password and not token_username:
                password = store_entry.decrypt_password()

    return UsernamePasswordCredential(username=username, password=password)


class CredentialResolver:
    """Answers authentication challenges from a profile and a credential store."""

    def __init__(self, store: EntryLookup | None = None):
        self.store = store

    def lookup(self, url: str) -> StoredEntry | None:
        if self.store is None:
            return None
        return self.store.get_entry(url)

    def resolve(
        self, request: CredentialRequest, profile: CredentialProfile
    ) -> Credential:
        entry = self.lookup(request.url)
        credential = resolve(request, profile, entry)
        if isinstance(credential, UsernamePasswordCredential):
            if not credential.username and not credential.password:
                # Passed through as-is; the remote decides whether it is acceptable.
                logger.warning(
                    "No credentials available for %s", redact_url(request.url)
                )
            else:
                logger.debug(
                    "Resolved credentials for %s (stored entry: %s)",
                    redact_url(request.url),
                    entry is not None,
                )
        return credential
