"""Progress reporting for transfers and checkouts."""

from __future__ import annotations

import logging

from ReSync.models import TransferProgress

logger = logging.getLogger(__name__)


def transfer_fraction(progress: TransferProgress) -> float:
    """Return received/total objects, 0.0 while the total is unknown."""
    return progress.fraction


def checkout_fraction(completed: int, total: int) -> float:
    """Return completed/total checkout steps, 0.0 when there are no steps."""
    if total <= 0:
        return 0.0
    return completed / total


class ProgressReporter:
    """Progress display for a running operation.

    Subclasses draw a progress bar or similar. ``clear`` is called once the
    operation ends, however it ends.
    """

    def transfer(self, fraction: float, progress: TransferProgress) -> bool:
        """Show transfer progress. Return False to request cancellation."""
        return True

    def checkout(self, path: str, fraction: float) -> None:
        """Show checkout progress for *path*."""

    def clear(self) -> None:
        """Release whatever the reporter is showing."""


class LogProgressReporter(ProgressReporter):
    """Logs each whole-percent step instead of drawing a bar."""

    def __init__(self) -> None:
        self._last_percent = -1

    def transfer(self, fraction: float, progress: TransferProgress) -> bool:
        percent = int(fraction * 100)
        if percent != self._last_percent:
            self._last_percent = percent
            logger.info(
                "Transferring: received %d bytes, %d%%",
                progress.received_bytes,
                percent,
            )
        if progress.complete:
            logger.info(
                "Transfer complete. Received a total of %d objects",
                progress.indexed_objects,
            )
        return True

    def checkout(self, path: str, fraction: float) -> None:
        logger.debug("Checkout %d%%: %s", int(fraction * 100), path)

    def clear(self) -> None:
        self._last_percent = -1
