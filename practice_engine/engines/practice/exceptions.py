"""
Errors raised by the practice engine and the mastery ledger.
"""

from typing import Optional


class PracticeError(Exception):
    """Base class for practice engine errors."""


class InvalidState(PracticeError, ValueError):
    """An intent was dispatched in a state that does not accept it."""

    def __init__(self, message: str, state: Optional[str] = None, intent: Optional[str] = None):
        super().__init__(message)
        self.state = state
        self.intent = intent


class EmptyQuestionSet(PracticeError, LookupError):
    """No questions are authored for the requested section."""

    def __init__(self, module_id: Optional[str] = None, section_name: Optional[str] = None):
        if module_id is None:
            message = "Cannot start practice with an empty question set"
        else:
            message = f"No practice available for {module_id} / {section_name}"
        super().__init__(message)
        self.module_id = module_id
        self.section_name = section_name


class InvalidQuestionSet(PracticeError, ValueError):
    """Question set cannot back a session (e.g. duplicate question ids)."""


class PersistenceFailure(PracticeError):
    """The mastery ledger could not read or durably write a record."""
