"""Notification seam between the engine and whatever renders outcomes."""
from __future__ import annotations

import logging
from typing import Protocol

from workflow.errors import Outcome

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, outcome: Outcome) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes every outcome to the log."""

    def notify(self, outcome: Outcome) -> None:
        if outcome.ok:
            logger.info("%s", outcome.message or "ok")
        else:
            logger.warning("[%s] %s", outcome.kind.value if outcome.kind else "error", outcome.message)
