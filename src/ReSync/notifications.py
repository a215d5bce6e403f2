"""Notification sinks for terminal operation results."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import requests

from ReSync.models import Severity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class Notifier(ABC):
    """Receives one message per finished operation."""

    @abstractmethod
    def notify(self, severity: Severity, message: str) -> None:
        """Deliver *message* at *severity*."""


class LogNotifier(Notifier):
    def __init__(self, name: str = "ReSync.notify"):
        self.logger = logging.getLogger(name)

    def notify(self, severity: Severity, message: str) -> None:
        self.logger.log(_LOG_LEVELS[severity], message)


class WebhookNotifier(Notifier):
    """Posts notifications as JSON to an incoming-webhook URL.

    Delivery problems are logged and never raised, so a broken webhook can
    not turn a finished pull into a failure.
    """

    def __init__(
        self, url: str, timeout: float = 10, session: requests.Session | None = None
    ):
        self.url = url
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = "ReSync/1.0"
        self.session = session

    def notify(self, severity: Severity, message: str) -> None:
        payload = {"severity": severity.value, "text": message}
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Webhook notification failed: %s", exc)


class MultiNotifier(Notifier):
    def __init__(self, *notifiers: Notifier):
        self.notifiers = list(notifiers)

    def notify(self, severity: Severity, message: str) -> None:
        for notifier in self.notifiers:
            try:
                notifier.notify(severity, message)
            except Exception:
                logger.exception("Notifier %s failed", type(notifier).__name__)
