"""Exceptions raised while running remote operations."""

from __future__ import annotations

from ReSync.models import FailureCause

_AUTH_MARKERS = (
    "authentication",
    "credentials",
    "401",
    "403",
    "permission denied",
    "invalid username or password",
)


class RemoteOperationError(Exception):
    """Base class for failures that end an operation as failed."""

    cause = FailureCause.INTERNAL


class AuthenticationRejected(RemoteOperationError):
    """Raised when the remote declines the credential we offered."""

    cause = FailureCause.AUTHENTICATION

    def __init__(self, url: str, detail: str = ""):
        self.url = url
        message = f"Authentication rejected by {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TransferInterrupted(RemoteOperationError):
    """Raised when a fetch fails part way through."""

    cause = FailureCause.TRANSFER


class MergeFailed(RemoteOperationError):
    """Raised when the merge step cannot be carried out."""

    cause = FailureCause.MERGE


class TransferCancelled(Exception):
    """Raised by a repository handle when a progress callback asked to stop."""


def looks_like_auth_failure(exc: BaseException) -> bool:
    """Return True if a library error message points at rejected credentials."""
    text = str(exc).lower()
    return any(marker in text for marker in _AUTH_MARKERS)


def failure_cause(exc: BaseException, default: FailureCause) -> FailureCause:
    """Pick the failure cause for *exc*, falling back to *default*."""
    if isinstance(exc, RemoteOperationError):
        return exc.cause
    if looks_like_auth_failure(exc):
        return FailureCause.AUTHENTICATION
    return default
