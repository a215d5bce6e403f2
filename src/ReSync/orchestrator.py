"""Fetch / pull orchestration over a repository handle.

Every public operation returns a ``MergeOutcome``; errors from the handle are
logged, reported through the notifier and turned into a failed outcome
instead of being raised.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from ReSync.credential_store import CredentialStore
from ReSync.credentials import CredentialResolver
from ReSync.errors import AuthenticationRejected, TransferCancelled, failure_cause
from ReSync.models import (
    Branch,
    Credential,
    CredentialProfile,
    CredentialRequest,
    FailureCause,
    FetchOptions,
    MergeOptions,
    MergeOutcome,
    MergeStatus,
    OrchestratorState,
    OutcomeKind,
    ProgressListener,
    Remote,
    Severity,
    Signature,
    TransferProgress,
)
from ReSync.notifications import (
    LogNotifier,
    MultiNotifier,
    Notifier,
    WebhookNotifier,
)
from ReSync.progress import (
    LogProgressReporter,
    ProgressReporter,
    checkout_fraction,
    transfer_fraction,
)
from ReSync.repositories.base import RepositoryHandle
from ReSync.settings import Settings
from ReSync.url_utils import redact_url

logger = logging.getLogger(__name__)


def coerce_status(status: Any) -> MergeStatus | None:
    """Return the MergeStatus for *status*, or None if it is not one we know."""
    if isinstance(status, MergeStatus):
        return status
    if isinstance(status, str):
        try:
            return MergeStatus(status)
        except ValueError:
            pass
        try:
            return MergeStatus[status.upper()]
        except KeyError:
            return None
    return None


class RemoteOperationOrchestrator:
    """Runs one fetch or pull at a time against a repository handle."""

    def __init__(
        self,
        repository: RepositoryHandle,
        resolver: CredentialResolver | None = None,
        notifier: Notifier | None = None,
        progress: ProgressReporter | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository
        self.settings = settings or Settings()
        self.resolver = resolver or CredentialResolver()
        self.notifier = notifier or LogNotifier()
        self.progress = progress or LogProgressReporter()
        self.state = OrchestratorState.IDLE
        self.last_outcome: MergeOutcome | None = None
        self._busy = threading.Lock()
        self._cancel = threading.Event()
        self._issued: dict[str, Credential] = {}
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_settings(
        cls, repository: RepositoryHandle, settings: Settings
    ) -> RemoteOperationOrchestrator:
        store = CredentialStore(settings.credentials_index, settings.keyring_service)
        notifier: Notifier = LogNotifier()
        if settings.webhook_url:
            notifier = MultiNotifier(notifier, WebhookNotifier(settings.webhook_url))
        return cls(
            repository,
            resolver=CredentialResolver(store),
            notifier=notifier,
            settings=settings,
        )

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Ask the running operation to stop at its next progress tick."""
        self._cancel.set()

    # -- operations ---------------------------------------------------------

    def start_fetch(
        self,
        remote: Remote,
        profile: CredentialProfile | None = None,
        options: FetchOptions | None = None,
        on_progress: ProgressListener | None = None,
    ) -> MergeOutcome:
        profile = profile or CredentialProfile()
        options = options or self.settings.fetch_options()

        def fetch() -> MergeOutcome:
            self._transfer(remote, profile, options, on_progress)
            if self._cancel.is_set():
                return MergeOutcome.aborted("Fetch cancelled")
            return MergeOutcome(
                kind=OutcomeKind.FETCHED,
                message=f"Fetch from {remote.name} complete.",
            )

        return self._run("Fetch", fetch)

    def start_pull(
        self,
        remote: Remote,
        branch: Branch,
        profile: CredentialProfile | None = None,
        merge_options: MergeOptions | None = None,
        fetch_options: FetchOptions | None = None,
        signature: Signature | None = None,
        on_progress: ProgressListener | None = None,
    ) -> MergeOutcome:
        profile = profile or CredentialProfile()
        merge_options = merge_options or self.settings.merge_options()
        fetch_options = fetch_options or self.settings.fetch_options()
        signature = signature or self.settings.signature()

        def pull() -> MergeOutcome:
            self._transfer(remote, profile, fetch_options, on_progress)
            if self._cancel.is_set():
                return MergeOutcome.aborted("Pull cancelled before merge")
            self.state = OrchestratorState.MERGING
            result = self.repository.merge(
                remote, branch, signature, merge_options, self.on_checkout_progress
            )
            return self.classify(result.status, "Pull", commit_id=result.commit_id)

        return self._run("Pull", pull)

    def submit_fetch(self, *args, **kwargs) -> Future:
        """Run ``start_fetch`` on the background worker."""
        return self._worker().submit(self.start_fetch, *args, **kwargs)

    def submit_pull(self, *args, **kwargs) -> Future:
        """Run ``start_pull`` on the background worker."""
        return self._worker().submit(self.start_pull, *args, **kwargs)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # -- classification -----------------------------------------------------

    def classify(
        self, status: Any, operation: str = "Pull", commit_id: str | None = None
    ) -> MergeOutcome:
        """Map a merge status reported by the repository to an outcome."""
        merge_status = coerce_status(status)

        if merge_status is MergeStatus.UP_TO_DATE:
            return MergeOutcome(
                kind=OutcomeKind.UP_TO_DATE,
                message=f"Everything is up to date. Nothing to {operation.lower()}.",
            )
        if merge_status is MergeStatus.FAST_FORWARD:
            return MergeOutcome(
                kind=OutcomeKind.FAST_FORWARD,
                message=f"{operation} complete with fast-forwarding.",
                commit_id=commit_id,
            )
        if merge_status is MergeStatus.NON_FAST_FORWARD:
            if commit_id:
                message = f"{operation} complete without fast-forwarding."
            else:
                message = "Do a merge commit in order to push changes."
            return MergeOutcome(
                kind=OutcomeKind.NON_FAST_FORWARD,
                message=message,
                pending_commit_message=self._pending_commit_message(),
                commit_id=commit_id,
            )
        if merge_status is MergeStatus.CONFLICTS:
            return MergeOutcome(
                kind=OutcomeKind.CONFLICTED,
                message="There are merge conflicts!",
                severity=Severity.WARNING,
                pending_commit_message=self._pending_commit_message(),
            )

        return MergeOutcome.failed(
            FailureCause.STATUS,
            f"{operation} returned an unrecognized merge status: {status!r}",
        )

    def on_checkout_progress(self, path: str, completed: int, total: int) -> float:
        fraction = checkout_fraction(completed, total)
        self.progress.checkout(path, fraction)
        return fraction

    # -- internals ----------------------------------------------------------

    def _run(self, operation: str, body: Callable[[], MergeOutcome]) -> MergeOutcome:
        if not self._busy.acquire(blocking=False):
            logger.warning("%s rejected: another operation is in progress", operation)
            outcome = MergeOutcome.failed(
                FailureCause.BUSY,
                f"{operation} rejected: another operation is in progress.",
            )
            self._notify(outcome)
            return outcome

        try:
            self._cancel.clear()
            self._issued.clear()
            self.state = OrchestratorState.AUTHENTICATING
            try:
                outcome = body()
            except TransferCancelled:
                outcome = MergeOutcome.aborted(f"{operation} cancelled")
            except Exception as exc:
                logger.exception("%s failed", operation)
                default = (
                    FailureCause.MERGE
                    if self.state is OrchestratorState.MERGING
                    else FailureCause.TRANSFER
                )
                cause = failure_cause(exc, default)
                outcome = MergeOutcome.failed(
                    cause, f"{operation} failed ({cause.value}): {exc}", exc
                )
            finally:
                self._clear_progress()

            self.last_outcome = outcome
            self.state = OrchestratorState.for_outcome(outcome.kind)
            logger.info("%s status: %s", operation, outcome.kind.value)
            self._notify(outcome)
            return outcome
        finally:
            self._busy.release()

    def _transfer(
        self,
        remote: Remote,
        profile: CredentialProfile,
        options: FetchOptions,
        on_progress: ProgressListener | None,
    ) -> None:
        self.repository.fetch(
            remote,
            lambda request: self._on_credentials(request, profile),
            lambda progress: self._on_transfer(progress, on_progress),
            options,
        )

    def _on_credentials(
        self, request: CredentialRequest, profile: CredentialProfile
    ) -> Credential:
        credential = self.resolver.resolve(request, profile)
        if self._issued.get(request.url) == credential:
            # Asked again for the same URL and we have nothing new to offer.
            raise AuthenticationRejected(redact_url(request.url))
        self._issued[request.url] = credential
        return credential

    def _on_transfer(
        self, progress: TransferProgress, on_progress: ProgressListener | None
    ) -> bool:
        if self.state is OrchestratorState.AUTHENTICATING:
            self.state = OrchestratorState.TRANSFERRING
        fraction = transfer_fraction(progress)
        if not self.progress.transfer(fraction, progress):
            self._cancel.set()
        if on_progress is not None and on_progress(fraction, progress) is False:
            self._cancel.set()
        return not self._cancel.is_set()

    def _notify(self, outcome: MergeOutcome) -> None:
        try:
            self.notifier.notify(outcome.severity, outcome.message)
        except Exception:
            logger.exception("Notifier failed for: %s", outcome.message)

    def _clear_progress(self) -> None:
        try:
            self.progress.clear()
        except Exception:
            logger.exception("Progress reporter failed to clear")

    def _pending_commit_message(self) -> str:
        try:
            return self.repository.info_message or ""
        except Exception:
            logger.warning("Could not read the repository message", exc_info=True)
            return ""

    def _worker(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="resync")
        return self._executor
