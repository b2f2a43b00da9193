"""
Session Orchestrator - wires the practice state machine to the question bank
and the mastery ledger for one learner.
"""

import asyncio
from typing import Optional, Set

from practice_engine.engines.mastery.ledger import BestScore, MasteryLedger
from practice_engine.engines.practice.exceptions import EmptyQuestionSet, InvalidState, PersistenceFailure
from practice_engine.engines.practice.question_bank import QuestionBank, TopicKey
from practice_engine.engines.practice.state_machine import (
    Advance,
    CheckAnswer,
    Intent,
    PracticeSession,
    Restart,
    SelectChoice,
    Start,
    apply,
    just_completed,
)
from practice_engine.logging_config import get_logger

logger = get_logger(__name__)


def track(pending: Set[asyncio.Task], task: asyncio.Task) -> None:
    """Keep a background ledger write in `pending` until it finishes."""
    pending.add(task)
    task.add_done_callback(pending.discard)


async def drain(pending: Set[asyncio.Task]) -> None:
    """
    Wait for every task in `pending`.

    A failed write is logged and does not stop the others, so shutdown always
    gets to close the database.
    """
    if not pending:
        return
    results = await asyncio.gather(*list(pending), return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            logger.error("Background ledger write failed: %s", result, exc_info=result)


class SessionOrchestrator:
    """
    Runs practice sessions for one user.

    Every operation returns the current immutable PracticeSession snapshot.
    On each transition into COMPLETE the result is recorded in the ledger
    exactly once. A failed write is logged and kept in last_record_error;
    the session is COMPLETE regardless.

    With background_recording the write runs as an asyncio task and the
    snapshot is returned without waiting for it (see wait_for_pending).
    """

    def __init__(
        self,
        user_id: str,
        question_bank: QuestionBank,
        ledger: MasteryLedger,
        background_recording: bool = False,
    ):
        self.user_id = user_id
        self.question_bank = question_bank
        self.ledger = ledger
        self.background_recording = background_recording
        self.session = PracticeSession.idle()
        self.last_record_error: Optional[PersistenceFailure] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def topic(self) -> Optional[TopicKey]:
        return self.session.topic

    def start_session(self, module_id: str, section_name: str) -> PracticeSession:
        """Start a session on a fresh snapshot of the section's questions."""
        questions = self.question_bank.get_questions_for_section(module_id, section_name)
        if not questions:
            raise EmptyQuestionSet(module_id, section_name)
        topic = TopicKey(module_id=module_id, section_name=section_name)
        self.session = apply(self.session, Start(questions=questions, topic=topic))
        self.last_record_error = None
        logger.info(
            "Practice session started",
            extra={
                "user_id": self.user_id,
                "module_id": module_id,
                "section_name": section_name,
                "question_count": len(questions),
            },
        )
        return self.session

    def select_choice(self, choice_id: str) -> PracticeSession:
        return self._dispatch(SelectChoice(choice_id=choice_id))

    def check_answer(self) -> PracticeSession:
        return self._dispatch(CheckAnswer())

    async def advance(self) -> PracticeSession:
        before = self.session
        after = self._dispatch(Advance())
        if just_completed(before, after):
            await self._on_complete(after)
        return after

    def restart(self) -> PracticeSession:
        """Run the same question set again. Nothing is recorded until it completes."""
        self.session = apply(self.session, Restart())
        self.last_record_error = None
        return self.session

    def retry(self) -> PracticeSession:
        """Start the current section again from the bank."""
        topic = self.session.topic
        if topic is None:
            raise InvalidState("No section to retry", state=self.session.state.value, intent="retry")
        return self.start_session(topic.module_id, topic.section_name)

    def exit(self) -> PracticeSession:
        """Abandon the session. Never touches the ledger."""
        if self.session.in_progress:
            logger.info(
                "Practice session abandoned",
                extra={
                    "user_id": self.user_id,
                    "module_id": self.session.topic.module_id,
                    "answered": len(self.session.answers),
                },
            )
        self.session = PracticeSession.idle()
        return self.session

    async def get_best_score(self, module_id: str, section_name: str) -> Optional[BestScore]:
        return await self.ledger.get_best_score(self.user_id, module_id, section_name)

    async def has_attempted(self, module_id: str, section_name: str) -> bool:
        return await self.ledger.has_attempted(self.user_id, module_id, section_name)

    def detach_pending(self) -> Set[asyncio.Task]:
        """Hand over the scheduled ledger writes; this orchestrator stops tracking them."""
        pending, self._pending = self._pending, set()
        return pending

    async def wait_for_pending(self) -> None:
        """Wait for ledger writes scheduled in background mode."""
        await drain(self._pending)

    def _dispatch(self, intent: Intent) -> PracticeSession:
        self.session = apply(self.session, intent)
        return self.session

    async def _on_complete(self, session: PracticeSession) -> None:
        topic = session.topic
        logger.info(
            "Practice session complete",
            extra={
                "user_id": self.user_id,
                "module_id": topic.module_id,
                "section_name": topic.section_name,
                "score": session.correct_count,
                "out_of": session.total_count,
            },
        )
        if self.background_recording:
            task = asyncio.create_task(self._record(session))
            track(self._pending, task)
        else:
            await self._record(session)

    async def _record(self, session: PracticeSession) -> None:
        try:
            await self.ledger.record_attempt(
                self.user_id,
                session.topic.module_id,
                session.topic.section_name,
                session.correct_count,
                session.total_count,
                answers=session.answers,
            )
        except PersistenceFailure as exc:
            # A write that finishes after restart or a new start belongs to a
            # session the learner has left
            if session is self.session:
                self.last_record_error = exc
            logger.exception(
                "Practice attempt was not recorded",
                extra={
                    "user_id": self.user_id,
                    "module_id": session.topic.module_id,
                    "section_name": session.topic.section_name,
                },
            )
