"""Data classes for ReSync."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union


class CredentialKind(Enum):
    USERNAME_PASSWORD = "username_password"
    DEFAULT = "default"
    CERTIFICATE = "certificate"


@dataclass(frozen=True)
class CredentialRequest:
    url: str
    kind: CredentialKind
    username_from_url: str | None = None


@dataclass(frozen=True)
class CredentialProfile:
    """Credentials typed in for a single operation.

    Empty fields fall back to whatever the credential store holds for the
    remote URL.
    """

    is_token: bool = False
    username: str = ""
    password: str = ""
    token: str = ""


@dataclass(frozen=True)
class UsernamePasswordCredential:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"UsernamePasswordCredential(username={self.username!r}, password=***)"


@dataclass(frozen=True)
class DefaultCredential:
    pass


Credential = Union[UsernamePasswordCredential, DefaultCredential]


@dataclass
class TransferProgress:
    received_objects: int = 0
    total_objects: int = 0
    received_bytes: int = 0
    indexed_objects: int = 0

    @property
    def fraction(self) -> float:
        if self.total_objects <= 0:
            return 0.0
        return self.received_objects / self.total_objects

    @property
    def complete(self) -> bool:
        return self.total_objects > 0 and self.received_objects == self.total_objects


class MergeStatus(Enum):
    UP_TO_DATE = "up_to_date"
    FAST_FORWARD = "fast_forward"
    NON_FAST_FORWARD = "non_fast_forward"
    CONFLICTS = "conflicts"


@dataclass
class MergeResultRaw:
    # Anything a repository handle reports; unknown values classify as failed.
    status: Any
    commit_id: str | None = None


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class FailureCause(Enum):
    AUTHENTICATION = "authentication"
    TRANSFER = "transfer"
    MERGE = "merge"
    STATUS = "status"
    BUSY = "busy"
    INTERNAL = "internal"


class OutcomeKind(Enum):
    UP_TO_DATE = "up_to_date"
    FAST_FORWARD = "fast_forward"
    NON_FAST_FORWARD = "non_fast_forward"
    CONFLICTED = "conflicted"
    ABORTED = "aborted"
    FAILED = "failed"
    FETCHED = "fetched"


@dataclass
class MergeOutcome:
    """Terminal result of one orchestrated fetch or pull."""

    kind: OutcomeKind
    message: str = ""
    severity: Severity = Severity.INFO
    reason: str | None = None
    cause: FailureCause | None = None
    error: BaseException | None = None
    pending_commit_message: str | None = None
    commit_id: str | None = None

    @property
    def requires_user_action(self) -> bool:
        return self.kind in (OutcomeKind.NON_FAST_FORWARD, OutcomeKind.CONFLICTED)

    @classmethod
    def aborted(cls, reason: str) -> MergeOutcome:
        return cls(
            kind=OutcomeKind.ABORTED,
            message=f"Operation aborted: {reason}",
            severity=Severity.INFO,
            reason=reason,
        )

    @classmethod
    def failed(
        cls,
        cause: FailureCause,
        message: str,
        error: BaseException | None = None,
    ) -> MergeOutcome:
        return cls(
            kind=OutcomeKind.FAILED,
            message=message,
            severity=Severity.ERROR,
            cause=cause,
            error=error,
        )


class OrchestratorState(Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    TRANSFERRING = "transferring"
    MERGING = "merging"
    UP_TO_DATE = "up_to_date"
    FAST_FORWARD = "fast_forward"
    NON_FAST_FORWARD = "non_fast_forward"
    CONFLICTED = "conflicted"
    ABORTED = "aborted"
    FAILED = "failed"
    FETCHED = "fetched"

    @classmethod
    def for_outcome(cls, kind: OutcomeKind) -> OrchestratorState:
        return cls(kind.value)


@dataclass(frozen=True)
class Remote:
    name: str
    url: str


@dataclass(frozen=True)
class Branch:
    friendly_name: str
    remote: str | None = None


class FastForwardStrategy(Enum):
    DEFAULT = "default"
    NO_FAST_FORWARD = "no_fast_forward"
    FAST_FORWARD_ONLY = "fast_forward_only"


class FileConflictStrategy(Enum):
    NORMAL = "normal"
    OURS = "ours"
    THEIRS = "theirs"


@dataclass(frozen=True)
class FetchOptions:
    prune: bool = False


@dataclass(frozen=True)
class MergeOptions:
    fast_forward_strategy: FastForwardStrategy = FastForwardStrategy.DEFAULT
    file_conflict_strategy: FileConflictStrategy = FileConflictStrategy.NORMAL
    commit_on_success: bool = True


@dataclass(frozen=True)
class Signature:
    name: str
    email: str


CredentialsCallback = Callable[[CredentialRequest], Credential]
TransferCallback = Callable[[TransferProgress], bool]
CheckoutCallback = Callable[[str, int, int], None]
ProgressListener = Callable[[float, TransferProgress], Union[bool, None]]

