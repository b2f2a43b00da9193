"""
Session Registry - one live SessionOrchestrator per user for the HTTP layer.
"""

import asyncio
from typing import Dict, Optional, Set

from practice_engine.engines.mastery.ledger import MasteryLedger
from practice_engine.engines.practice.orchestrator import SessionOrchestrator, drain, track
from practice_engine.engines.practice.question_bank import QuestionBank


class SessionRegistry:
    """
    In-memory map of user id -> orchestrator.

    Only starting a session registers a user; exiting removes them again.
    Sessions are transient; only completed attempts reach the ledger, so
    losing the registry (e.g. on restart) only abandons sessions in progress.
    """

    def __init__(self, question_bank: QuestionBank, ledger: MasteryLedger, background_recording: bool = False):
        self.question_bank = question_bank
        self.ledger = ledger
        self.background_recording = background_recording
        self._orchestrators: Dict[str, SessionOrchestrator] = {}
        # Background writes of discarded orchestrators, still awaited on shutdown
        self._detached: Set[asyncio.Task] = set()

    def _new(self, user_id: str) -> SessionOrchestrator:
        return SessionOrchestrator(
            user_id,
            self.question_bank,
            self.ledger,
            background_recording=self.background_recording,
        )

    def get(self, user_id: str) -> Optional[SessionOrchestrator]:
        return self._orchestrators.get(user_id)

    def lookup(self, user_id: str) -> SessionOrchestrator:
        """The user's orchestrator, or an unregistered idle one."""
        return self._orchestrators.get(user_id) or self._new(user_id)

    def get_or_create(self, user_id: str) -> SessionOrchestrator:
        orchestrator = self._orchestrators.get(user_id)
        if orchestrator is None:
            orchestrator = self._new(user_id)
            self._orchestrators[user_id] = orchestrator
        return orchestrator

    def discard(self, user_id: str) -> None:
        """Abandon the user's session and forget them; pending writes still complete."""
        orchestrator = self._orchestrators.pop(user_id, None)
        if orchestrator is None:
            return
        orchestrator.exit()
        for task in orchestrator.detach_pending():
            track(self._detached, task)

    async def wait_for_pending(self) -> None:
        for orchestrator in list(self._orchestrators.values()):
            await orchestrator.wait_for_pending()
        await drain(self._detached)

    def __len__(self) -> int:
        return len(self._orchestrators)
