"""Per-URL credential store backed by the OS keychain.

Entry metadata (URL, token flag, username) lives in a JSON index file.
Secrets (passwords and tokens) are kept out of that file and stored with
keyring (macOS Keychain / Windows Credential Manager / Secret Service).
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "ReSync"
_AVAILABLE = False

try:
    import keyring

    _AVAILABLE = True
except Exception:
    logger.warning("keyring not available; stored credential secrets disabled")


class CredentialStoreError(Exception):
    """Raised when the credential index cannot be read or written."""


def load_secret(service: str, url: str) -> str | None:
    """Load the secret stored for *url*. Returns None on failure."""
    if not _AVAILABLE:
        return None
    try:
        return keyring.get_password(service, url)
    except Exception:
        logger.warning("Failed to read secret for %s from keyring", url)
        return None


def save_secret(service: str, url: str, secret: str) -> bool:
    """Save the secret for *url*. Returns True on success."""
    if not _AVAILABLE or not secret:
        return False
    try:
        keyring.set_password(service, url, secret)
        return True
    except Exception:
        logger.warning("Failed to save secret for %s to keyring", url)
        return False


def delete_secret(service: str, url: str) -> bool:
    """Delete the secret for *url*. Returns True on success."""
    if not _AVAILABLE:
        return False
    try:
        keyring.delete_password(service, url)
        return True
    except Exception:
        return False


@dataclass
class StoredCredentialEntry:
    url: str
    is_token: bool = False
    username: str = ""
    _load: Callable[[], str | None] = field(default=lambda: None, repr=False, compare=False)

    @property
    def token(self) -> str:
        """The stored token, or an empty string for username/password entries."""
        if not self.is_token:
            return ""
        return self._load() or ""

    def decrypt_password(self) -> str:
        if self.is_token:
            return ""
        return self._load() or ""

    def to_dict(self) -> dict:
        return {"is_token": self.is_token, "username": self.username}


class CredentialStore:
    """Process-wide credential entries keyed by exact remote URL."""

    def __init__(self, index_path: str | Path, service_name: str = DEFAULT_SERVICE_NAME):
        self.index_path = Path(index_path)
        self.service_name = service_name
        self._lock = threading.Lock()
        self._entries: dict[str, StoredCredentialEntry] = {}
        self._load_index()

    def get_entry(self, url: str) -> StoredCredentialEntry | None:
        with self._lock:
            return self._entries.get(url)

    def urls(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def set_entry(
        self,
        url: str,
        *,
        is_token: bool = False,
        username: str = "",
        secret: str = "",
    ) -> StoredCredentialEntry:
        """Create or replace the entry for *url*."""
        if not url:
            raise ValueError("URL is required")
        if not is_token and not username:
            raise ValueError("Username is required for username/password entries")

        entry = self._make_entry(url, is_token=is_token, username=username)
        with self._lock:
            self._entries[url] = entry
            self._save_index()
        if secret and not save_secret(self.service_name, url, secret):
            logger.warning("Secret for %s was not persisted", url)
        logger.info("Credential entry saved for %s", url)
        return entry

    def remove_entry(self, url: str) -> bool:
        with self._lock:
            if url not in self._entries:
                return False
            del self._entries[url]
            self._save_index()
        delete_secret(self.service_name, url)
        logger.info("Credential entry removed for %s", url)
        return True

    def _make_entry(self, url: str, *, is_token: bool, username: str) -> StoredCredentialEntry:
        service = self.service_name
        return StoredCredentialEntry(
            url=url,
            is_token=is_token,
            username=username,
            _load=lambda: load_secret(service, url),
        )

    def _load_index(self) -> None:
        if not self.index_path.exists():
            return
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CredentialStoreError(
                f"Cannot read credential index {self.index_path}: {exc}"
            ) from exc

        for url, meta in data.items():
            self._entries[url] = self._make_entry(
                url,
                is_token=bool(meta.get("is_token", False)),
                username=meta.get("username", ""),
            )
        logger.info("Loaded %d credential entries", len(self._entries))

    def _save_index(self) -> None:
        data = {url: entry.to_dict() for url, entry in self._entries.items()}
        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            self.index_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            raise CredentialStoreError(
                f"Cannot write credential index {self.index_path}: {exc}"
            ) from exc
