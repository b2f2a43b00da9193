"""
State machine for one practice session.

A session is an immutable snapshot; ``apply(session, intent)`` is a pure
reducer that returns the next snapshot or raises without side effects.
Which intents each state accepts is defined by the tables below.

    IDLE --start--> UNANSWERED --check--> ANSWERED --advance--> UNANSWERED
                                                  \\--advance (last)--> COMPLETE
"""

from enum import Enum
from typing import ClassVar, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from practice_engine.engines.practice.exceptions import (
    EmptyQuestionSet,
    InvalidQuestionSet,
    InvalidState,
)
from practice_engine.engines.practice.question_bank import Question, QuestionSet, TopicKey


class PracticeState(str, Enum):
    """Lifecycle of a practice session."""
    IDLE = "idle"
    UNANSWERED = "unanswered"  # in progress, current question not checked yet
    ANSWERED = "answered"  # in progress, feedback for current question revealed
    COMPLETE = "complete"


class IntentType(str, Enum):
    """User intents the rendering layer dispatches."""
    START = "start"
    SELECT_CHOICE = "select_choice"
    CHECK_ANSWER = "check_answer"
    ADVANCE = "advance"
    RESTART = "restart"


# Intent -> states in which it takes effect
_TRANSITIONS: Dict[IntentType, Set[PracticeState]] = {
    IntentType.START: set(PracticeState),
    IntentType.SELECT_CHOICE: {PracticeState.UNANSWERED},
    IntentType.CHECK_ANSWER: {PracticeState.UNANSWERED},
    IntentType.ADVANCE: {PracticeState.ANSWERED},
    IntentType.RESTART: {PracticeState.UNANSWERED, PracticeState.ANSWERED, PracticeState.COMPLETE},
}

# Intent -> states in which it is accepted but ignored (session returned unchanged)
_IGNORED: Dict[IntentType, Set[PracticeState]] = {
    IntentType.SELECT_CHOICE: {PracticeState.ANSWERED},
    IntentType.ADVANCE: {PracticeState.COMPLETE},
}


def allowed_intents(state: PracticeState) -> List[IntentType]:
    """Intents that change a session in the given state."""
    return [intent for intent, states in _TRANSITIONS.items() if state in states]


def can_apply(state: PracticeState, intent: IntentType) -> bool:
    """True if the intent changes the session or is silently ignored in this state."""
    return state in _TRANSITIONS.get(intent, set()) or state in _IGNORED.get(intent, set())


class AnswerRecord(BaseModel):
    """The learner's checked answer to one question. Written once per session."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    selected_choice_id: str
    is_correct: bool


class PracticeSession(BaseModel):
    """Immutable snapshot of one run through a question set."""

    model_config = ConfigDict(frozen=True)

    state: PracticeState = PracticeState.IDLE
    topic: Optional[TopicKey] = None
    questions: QuestionSet = ()
    current_index: int = 0
    selected_choice_id: Optional[str] = None
    answers: Tuple[AnswerRecord, ...] = ()  # answering order, one per question

    @classmethod
    def idle(cls) -> "PracticeSession":
        return cls()

    @property
    def feedback_revealed(self) -> bool:
        return self.state == PracticeState.ANSWERED

    @property
    def complete(self) -> bool:
        return self.state == PracticeState.COMPLETE

    @property
    def in_progress(self) -> bool:
        return self.state in (PracticeState.UNANSWERED, PracticeState.ANSWERED)

    @property
    def current_question(self) -> Optional[Question]:
        if not self.in_progress:
            return None
        return self.questions[self.current_index]

    @property
    def current_answer(self) -> Optional[AnswerRecord]:
        question = self.current_question
        if question is None:
            return None
        return self.answers_by_question.get(question.id)

    @property
    def answers_by_question(self) -> Dict[str, AnswerRecord]:
        return {a.question_id: a for a in self.answers}

    @property
    def correct_count(self) -> int:
        # Always derived from the answer records
        return sum(1 for a in self.answers if a.is_correct)

    @property
    def total_count(self) -> int:
        return len(self.questions)

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    @property
    def allowed_intents(self) -> List[IntentType]:
        return allowed_intents(self.state)


class Intent(BaseModel):
    """Base class for intents dispatched into apply()."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[IntentType]


class Start(Intent):
    kind: ClassVar[IntentType] = IntentType.START

    questions: QuestionSet
    topic: Optional[TopicKey] = None


class SelectChoice(Intent):
    kind: ClassVar[IntentType] = IntentType.SELECT_CHOICE

    choice_id: str


class CheckAnswer(Intent):
    kind: ClassVar[IntentType] = IntentType.CHECK_ANSWER


class Advance(Intent):
    kind: ClassVar[IntentType] = IntentType.ADVANCE


class Restart(Intent):
    kind: ClassVar[IntentType] = IntentType.RESTART


def _start(session: PracticeSession, intent: Start) -> PracticeSession:
    if not intent.questions:
        raise EmptyQuestionSet()
    ids = [q.id for q in intent.questions]
    if len(set(ids)) != len(ids):
        raise InvalidQuestionSet("Question ids must be unique within a session")
    # Any prior session is discarded here, never recorded
    return PracticeSession(
        state=PracticeState.UNANSWERED,
        topic=intent.topic,
        questions=tuple(intent.questions),
    )


def _select_choice(session: PracticeSession, intent: SelectChoice) -> PracticeSession:
    question = session.current_question
    if not question.has_choice(intent.choice_id):
        raise InvalidState(
            f"Choice {intent.choice_id!r} is not an option of question {question.id}",
            state=session.state.value,
            intent=intent.kind.value,
        )
    return session.model_copy(update={"selected_choice_id": intent.choice_id})


def _check_answer(session: PracticeSession, intent: CheckAnswer) -> PracticeSession:
    question = session.current_question
    if session.selected_choice_id is None:
        raise InvalidState(
            "Select a choice before checking the answer",
            state=session.state.value,
            intent=intent.kind.value,
        )
    if question.id in session.answers_by_question:
        raise InvalidState(
            f"Question {question.id} has already been answered",
            state=session.state.value,
            intent=intent.kind.value,
        )
    record = AnswerRecord(
        question_id=question.id,
        selected_choice_id=session.selected_choice_id,
        is_correct=session.selected_choice_id == question.correct_choice_id,
    )
    return session.model_copy(update={
        "answers": session.answers + (record,),
        "state": PracticeState.ANSWERED,
    })


def _advance(session: PracticeSession, intent: Advance) -> PracticeSession:
    if session.is_last_question:
        return session.model_copy(update={
            "state": PracticeState.COMPLETE,
            "selected_choice_id": None,
        })
    return session.model_copy(update={
        "state": PracticeState.UNANSWERED,
        "current_index": session.current_index + 1,
        "selected_choice_id": None,
    })


def _restart(session: PracticeSession, intent: Restart) -> PracticeSession:
    return _start(session, Start(questions=session.questions, topic=session.topic))


_HANDLERS = {
    IntentType.START: _start,
    IntentType.SELECT_CHOICE: _select_choice,
    IntentType.CHECK_ANSWER: _check_answer,
    IntentType.ADVANCE: _advance,
    IntentType.RESTART: _restart,
}


def apply(session: PracticeSession, intent: Intent) -> PracticeSession:
    """
    Apply an intent to a session snapshot.

    Returns the next snapshot (the same object when the intent is ignored).
    Raises InvalidState, EmptyQuestionSet or InvalidQuestionSet without
    producing a new snapshot.
    """
    if session.state in _IGNORED.get(intent.kind, set()):
        return session
    if session.state not in _TRANSITIONS.get(intent.kind, set()):
        raise InvalidState(
            f"Cannot {intent.kind.value} while session is {session.state.value}",
            state=session.state.value,
            intent=intent.kind.value,
        )
    return _HANDLERS[intent.kind](session, intent)


def just_completed(before: PracticeSession, after: PracticeSession) -> bool:
    """True exactly on the transition into COMPLETE."""
    return before.state != PracticeState.COMPLETE and after.state == PracticeState.COMPLETE
