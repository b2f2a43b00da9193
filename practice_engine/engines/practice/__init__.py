"""
Practice Engine - multiple-choice practice sessions for a topic section.

A session moves IDLE -> UNANSWERED <-> ANSWERED -> COMPLETE through a pure
reducer; the orchestrator records each completed session once in the
mastery ledger.

The orchestrator and registry depend on the ledger and are imported from
their own modules.
"""

from practice_engine.engines.practice.exceptions import (
    EmptyQuestionSet,
    InvalidQuestionSet,
    InvalidState,
    PersistenceFailure,
    PracticeError,
)
from practice_engine.engines.practice.question_bank import (
    Choice,
    Difficulty,
    Question,
    QuestionBank,
    QuestionSet,
    TopicKey,
)
from practice_engine.engines.practice.state_machine import (
    AnswerRecord,
    IntentType,
    PracticeSession,
    PracticeState,
    apply,
)

__all__ = [
    "PracticeError",
    "InvalidState",
    "EmptyQuestionSet",
    "InvalidQuestionSet",
    "PersistenceFailure",
    "Choice",
    "Difficulty",
    "Question",
    "QuestionBank",
    "QuestionSet",
    "TopicKey",
    "AnswerRecord",
    "IntentType",
    "PracticeSession",
    "PracticeState",
    "apply",
]
