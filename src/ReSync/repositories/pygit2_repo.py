"""Repository handle backed by pygit2 (libgit2)."""

from __future__ import annotations

import logging
from pathlib import Path

import pygit2
from pygit2.enums import (
    CheckoutStrategy,
    CredentialType,
    FetchPrune,
    MergeAnalysis,
    MergeFavor,
)

from ReSync.errors import (
    AuthenticationRejected,
    MergeFailed,
    TransferCancelled,
    TransferInterrupted,
    looks_like_auth_failure,
)
from ReSync.models import (
    Branch,
    CheckoutCallback,
    Credential,
    CredentialKind,
    CredentialRequest,
    CredentialsCallback,
    FastForwardStrategy,
    FetchOptions,
    FileConflictStrategy,
    MergeOptions,
    MergeResultRaw,
    MergeStatus,
    Remote,
    Signature,
    TransferCallback,
    TransferProgress,
    UsernamePasswordCredential,
)
from ReSync.repositories.base import RepositoryHandle
from ReSync.url_utils import redact_url

logger = logging.getLogger(__name__)

_FAVOR = {
    FileConflictStrategy.NORMAL: MergeFavor.NORMAL,
    FileConflictStrategy.OURS: MergeFavor.OURS,
    FileConflictStrategy.THEIRS: MergeFavor.THEIRS,
}

_SSH_TYPES = CredentialType.SSH_KEY | CredentialType.SSH_CUSTOM | CredentialType.SSH_MEMORY


def credential_kind(allowed_types: int) -> CredentialKind:
    """Map libgit2's allowed credential types to the kind we resolve."""
    if allowed_types & CredentialType.USERPASS_PLAINTEXT:
        return CredentialKind.USERNAME_PASSWORD
    if allowed_types & _SSH_TYPES:
        return CredentialKind.CERTIFICATE
    return CredentialKind.DEFAULT


def to_pygit2_credential(
    credential: Credential, url: str, username_from_url: str | None, allowed_types: int
):
    if isinstance(credential, UsernamePasswordCredential):
        return pygit2.UserPass(credential.username, credential.password)

    username = username_from_url or "git"
    if allowed_types & CredentialType.SSH_KEY:
        return pygit2.KeypairFromAgent(username)
    if allowed_types & CredentialType.USERNAME:
        return pygit2.Username(username)
    raise AuthenticationRejected(redact_url(url), "no supported credential type")


class _RemoteCallbacks(pygit2.RemoteCallbacks):
    def __init__(self, resolve: CredentialsCallback, on_transfer: TransferCallback):
        super().__init__()
        self._resolve = resolve
        self._on_transfer = on_transfer

    def credentials(self, url, username_from_url, allowed_types):
        request = CredentialRequest(
            url=url,
            kind=credential_kind(allowed_types),
            username_from_url=username_from_url,
        )
        credential = self._resolve(request)
        return to_pygit2_credential(credential, url, username_from_url, allowed_types)

    def sideband_progress(self, string):
        text = string.strip()
        if text:
            logger.info("Fetching: %s", text)

    def transfer_progress(self, stats):
        progress = TransferProgress(
            received_objects=stats.received_objects,
            total_objects=stats.total_objects,
            received_bytes=stats.received_bytes,
            indexed_objects=stats.indexed_objects,
        )
        if not self._on_transfer(progress):
            raise TransferCancelled("Transfer cancelled")


class _CheckoutCallbacks(pygit2.CheckoutCallbacks):
    def __init__(self, on_checkout: CheckoutCallback):
        super().__init__()
        self._on_checkout = on_checkout

    def checkout_notify(self, why, path, baseline, target, workdir):
        logger.debug("%s (%s)", path, why)

    def checkout_progress(self, path, completed_steps, total_steps):
        self._on_checkout(path or "", completed_steps, total_steps)


class Pygit2Repository(RepositoryHandle):
    """Handle for a local repository opened with pygit2."""

    def __init__(self, repo: pygit2.Repository | str | Path):
        if isinstance(repo, (str, Path)):
            repo = pygit2.Repository(str(repo))
        self.repo = repo

    @property
    def remotes(self) -> list[Remote]:
        return [Remote(name=r.name, url=r.url) for r in self.repo.remotes]

    @property
    def branches(self) -> list[Branch]:
        result: list[Branch] = []
        for name in self.repo.branches.local:
            upstream = self.repo.branches.local[name].upstream
            result.append(Branch(name, upstream.remote_name if upstream else None))
        for name in self.repo.branches.remote:
            if name.endswith("/HEAD"):
                continue
            result.append(Branch(name, self.repo.branches.remote[name].remote_name))
        return result

    @property
    def info_message(self) -> str:
        try:
            return self.repo.message
        except (KeyError, pygit2.GitError):
            return ""

    def snapshot(self) -> dict[str, str]:
        return {
            name: str(self.repo.references[name].target)
            for name in self.repo.references
        }

    def fetch(
        self,
        remote: Remote,
        credentials: CredentialsCallback,
        on_transfer: TransferCallback,
        options: FetchOptions,
    ) -> None:
        git_remote = self.repo.remotes[remote.name]
        callbacks = _RemoteCallbacks(credentials, on_transfer)
        prune = FetchPrune.PRUNE if options.prune else FetchPrune.UNSPECIFIED

        logger.info("Fetching from %s (%s)", remote.name, redact_url(remote.url))
        try:
            git_remote.fetch(callbacks=callbacks, prune=prune)
        except pygit2.GitError as exc:
            if looks_like_auth_failure(exc):
                raise AuthenticationRejected(redact_url(remote.url), str(exc)) from exc
            raise TransferInterrupted(f"Fetch from {remote.name} failed: {exc}") from exc
        logger.info("Fetch from %s complete", remote.name)

    def merge(
        self,
        remote: Remote,
        branch: Branch,
        signature: Signature | None,
        options: MergeOptions,
        on_checkout: CheckoutCallback | None = None,
    ) -> MergeResultRaw:
        upstream = self._upstream_ref(remote, branch)
        target = upstream.target
        analysis, _ = self.repo.merge_analysis(target)

        if analysis & MergeAnalysis.UP_TO_DATE:
            return MergeResultRaw(MergeStatus.UP_TO_DATE)

        can_fast_forward = bool(analysis & (MergeAnalysis.FASTFORWARD | MergeAnalysis.UNBORN))
        strategy = options.fast_forward_strategy
        if strategy is FastForwardStrategy.FAST_FORWARD_ONLY and not can_fast_forward:
            raise MergeFailed(f"Cannot fast-forward to {upstream.shorthand}")

        if can_fast_forward and strategy is not FastForwardStrategy.NO_FAST_FORWARD:
            self._fast_forward(target, on_checkout)
            return MergeResultRaw(MergeStatus.FAST_FORWARD, str(target))

        return self._merge_commit(upstream, signature, options)

    def _upstream_ref(self, remote: Remote, branch: Branch):
        name = f"refs/remotes/{remote.name}/{branch.friendly_name}"
        if branch.friendly_name.startswith(f"{remote.name}/"):
            name = f"refs/remotes/{branch.friendly_name}"
        else:
            local = self.repo.branches.local.get(branch.friendly_name)
            if local is not None and local.upstream is not None:
                name = local.upstream.name
        try:
            return self.repo.lookup_reference(name)
        except (KeyError, pygit2.InvalidSpecError) as exc:
            raise MergeFailed(f"No upstream {name} for {branch.friendly_name}") from exc

    def _fast_forward(self, target, on_checkout: CheckoutCallback | None) -> None:
        commit = self.repo[target]
        callbacks = _CheckoutCallbacks(on_checkout) if on_checkout else None
        self.repo.checkout_tree(
            commit.tree, strategy=CheckoutStrategy.SAFE, callbacks=callbacks
        )
        if self.repo.head_is_unborn:
            self.repo.references.create(self.repo.lookup_reference("HEAD").target, target)
        else:
            self.repo.head.set_target(target, f"fast-forward to {target}")

    def _merge_commit(
        self, upstream, signature: Signature | None, options: MergeOptions
    ) -> MergeResultRaw:
        target = upstream.target
        self.repo.merge(target, favor=_FAVOR[options.file_conflict_strategy])

        if self.repo.index.conflicts is not None:
            return MergeResultRaw(MergeStatus.CONFLICTS)
        if not options.commit_on_success:
            return MergeResultRaw(MergeStatus.NON_FAST_FORWARD)

        author = self._signature(signature)
        message = self.info_message or f"Merge {upstream.shorthand}"
        tree = self.repo.index.write_tree()
        commit_id = self.repo.create_commit(
            "HEAD", author, author, message, tree, [self.repo.head.target, target]
        )
        self.repo.state_cleanup()
        return MergeResultRaw(MergeStatus.NON_FAST_FORWARD, str(commit_id))

    def _signature(self, signature: Signature | None) -> pygit2.Signature:
        if signature is not None:
            return pygit2.Signature(signature.name, signature.email)
        try:
            return self.repo.default_signature
        except (KeyError, pygit2.GitError) as exc:
            raise MergeFailed("No commit signature configured (user.name / user.email)") from exc
