"""Settings for remote operations, read from ``RESYNC_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from ReSync.models import (
    FastForwardStrategy,
    FetchOptions,
    FileConflictStrategy,
    MergeOptions,
    Signature,
)

ENV_PREFIX = "RESYNC_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class SettingsError(ValueError):
    """Raised when an environment variable holds an invalid value."""


def _default_index() -> Path:
    return Path.home() / ".resync" / "credentials.json"


@dataclass
class Settings:
    prune: bool = False
    commit_on_success: bool = True
    fast_forward_strategy: FastForwardStrategy = FastForwardStrategy.DEFAULT
    file_conflict_strategy: FileConflictStrategy = FileConflictStrategy.NORMAL
    credentials_index: Path = field(default_factory=_default_index)
    keyring_service: str = "ReSync"
    webhook_url: str | None = None
    user_name: str | None = None
    user_email: str | None = None

    def fetch_options(self) -> FetchOptions:
        return FetchOptions(prune=self.prune)

    def merge_options(self) -> MergeOptions:
        return MergeOptions(
            fast_forward_strategy=self.fast_forward_strategy,
            file_conflict_strategy=self.file_conflict_strategy,
            commit_on_success=self.commit_on_success,
        )

    def signature(self) -> Signature | None:
        """Commit signature, or None to use the repository's configured one."""
        if self.user_name and self.user_email:
            return Signature(self.user_name, self.user_email)
        return None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        settings = cls()
        prune = get("PRUNE")
        if prune is not None:
            settings.prune = _parse_flag("PRUNE", prune)
        commit = get("COMMIT_ON_SUCCESS")
        if commit is not None:
            settings.commit_on_success = _parse_flag("COMMIT_ON_SUCCESS", commit)
        fast_forward = get("FAST_FORWARD")
        if fast_forward is not None:
            settings.fast_forward_strategy = _parse_enum(
                "FAST_FORWARD", fast_forward, FastForwardStrategy
            )
        favor = get("FILE_FAVOR")
        if favor is not None:
            settings.file_conflict_strategy = _parse_enum(
                "FILE_FAVOR", favor, FileConflictStrategy
            )
        if get("CREDENTIALS_INDEX"):
            settings.credentials_index = Path(get("CREDENTIALS_INDEX")).expanduser()
        if get("KEYRING_SERVICE"):
            settings.keyring_service = get("KEYRING_SERVICE")
        settings.webhook_url = get("WEBHOOK_URL") or None
        settings.user_name = get("USER_NAME") or None
        settings.user_email = get("USER_EMAIL") or None
        return settings


def _parse_flag(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise SettingsError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")


def _parse_enum(name: str, value: str, enum_type):
    key = value.strip().lower().replace("-", "_")
    try:
        return enum_type(key)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise SettingsError(
            f"{ENV_PREFIX}{name} must be one of {choices}, got {value!r}"
        ) from None
