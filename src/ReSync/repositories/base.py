"""Abstract base class for repository handles."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ReSync.models import (
    Branch,
    CheckoutCallback,
    CredentialsCallback,
    FetchOptions,
    MergeOptions,
    MergeResultRaw,
    Remote,
    Signature,
    TransferCallback,
)


class RepositoryHandle(ABC):
    """A Git repository that can talk to its remotes.

    A handle is not safe for concurrent network operations; callers run at
    most one fetch or merge on it at a time.
    """

    @property
    @abstractmethod
    def remotes(self) -> list[Remote]:
        """Configured remotes, in repository order."""

    @property
    @abstractmethod
    def branches(self) -> list[Branch]:
        """Local and remote-tracking branches, in repository order."""

    @property
    @abstractmethod
    def info_message(self) -> str:
        """Message prepared by the operation in progress (e.g. MERGE_MSG)."""

    @abstractmethod
    def fetch(
        self,
        remote: Remote,
        credentials: CredentialsCallback,
        on_transfer: TransferCallback,
        options: FetchOptions,
    ) -> None:
        """Fetch from *remote*.

        ``on_transfer`` returns False to stop the transfer, in which case the
        handle raises ``TransferCancelled`` without updating any reference.
        """

    @abstractmethod
    def merge(
        self,
        remote: Remote,
        branch: Branch,
        signature: Signature | None,
        options: MergeOptions,
        on_checkout: CheckoutCallback | None = None,
    ) -> MergeResultRaw:
        """Merge the fetched upstream of *branch* into HEAD."""

    @abstractmethod
    def snapshot(self) -> dict[str, str]:
        """Return reference name -> target for every reference."""

    def pull(
        self,
        remote: Remote,
        branch: Branch,
        signature: Signature | None,
        credentials: CredentialsCallback,
        on_transfer: TransferCallback,
        fetch_options: FetchOptions | None = None,
        merge_options: MergeOptions | None = None,
    ) -> MergeResultRaw:
        """Fetch *remote*, then merge the upstream of *branch*."""
        self.fetch(remote, credentials, on_transfer, fetch_options or FetchOptions())
        return self.merge(remote, branch, signature, merge_options or MergeOptions())

    def find_remote(self, name: str) -> Remote:
        for remote in self.remotes:
            if remote.name == name:
                return remote
        raise KeyError(f"No remote named {name!r}")

    def find_branch(self, friendly_name: str) -> Branch:
        for branch in self.branches:
            if branch.friendly_name == friendly_name:
                return branch
        raise KeyError(f"No branch named {friendly_name!r}")
