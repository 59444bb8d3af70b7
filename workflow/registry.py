"""In-memory registry of open wizard sessions."""
from __future__ import annotations

import logging
import uuid

from workflow.wizard import ApplicationWizard

logger = logging.getLogger(__name__)


class WizardRegistry:
    """Open wizards keyed by session id.

    An actor holds at most one wizard per opportunity: opening a new one
    closes the older session and discards its uploads.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ApplicationWizard] = {}

    async def add(self, wizard: ApplicationWizard) -> str:
        for session_id, previous in list(self._sessions.items()):
            if previous.actor_id != wizard.actor_id or previous.opportunity_id != wizard.opportunity_id:
                continue
            result = await previous.close(confirmed=True)
            if result.closed:
                self._sessions.pop(session_id, None)
                logger.info("Replaced wizard %s for opportunity %s", session_id, wizard.opportunity_id)

        session_id = str(uuid.uuid4())
        self._sessions[session_id] = wizard
        return session_id

    def get(self, session_id: str, actor_id: str) -> ApplicationWizard:
        """Return the wizard if ``actor_id`` owns it; ``KeyError`` otherwise."""

        wizard = self._sessions.get(session_id)
        if wizard is None or wizard.actor_id != actor_id:
            raise KeyError(session_id)
        return wizard

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
