"""
Question Bank - authored multiple-choice questions grouped by module and section.

The bank is read-only: it is loaded once from JSON (the authored format,
``{module_id: {section_name: [question, ...]}}``) and hands out immutable
snapshots. A session keeps the tuple it was started with, so reloading the
bank never changes a session in progress.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from practice_engine.logging_config import get_logger

logger = get_logger(__name__)


class Difficulty(str, Enum):
    """Authoring difficulty tag (optional on a question)."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Choice(BaseModel):
    """One answer option, e.g. ``{"id": "A", "text": "14 cm"}``."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str


class Question(BaseModel):
    """A practice question. Immutable once fetched."""

    model_config = ConfigDict(frozen=True)

    id: str
    prompt: str
    choices: Tuple[Choice, ...]
    correct_choice_id: str
    explanation: str = ""
    difficulty: Optional[Difficulty] = None
    hint: Optional[str] = None

    @model_validator(mode="after")
    def _check_choices(self) -> "Question":
        ids = [c.id for c in self.choices]
        if not ids:
            raise ValueError(f"question {self.id} has no choices")
        if len(set(ids)) != len(ids):
            raise ValueError(f"question {self.id} has duplicate choice ids")
        if self.correct_choice_id not in ids:
            raise ValueError(
                f"question {self.id}: correct choice {self.correct_choice_id!r} is not one of {ids}"
            )
        return self

    def has_choice(self, choice_id: str) -> bool:
        return any(c.id == choice_id for c in self.choices)


class TopicKey(BaseModel):
    """The unit a practice session covers: a named section of a module."""

    model_config = ConfigDict(frozen=True)

    module_id: str
    section_name: str


# Ordered, finite, immutable
QuestionSet = Tuple[Question, ...]


class QuestionBank:
    """
    Provider of question sets keyed by (module_id, section_name).

    Sections with no valid questions are not listed; asking for one returns
    an empty set rather than raising, so callers can gate on
    has_questions_for_section.
    """

    def __init__(self, modules: Optional[Mapping[str, Mapping[str, Sequence[Question]]]] = None):
        self._modules: Dict[str, Dict[str, QuestionSet]] = {}
        for module_id, sections in (modules or {}).items():
            kept = {name: tuple(qs) for name, qs in sections.items() if qs}
            if kept:
                self._modules[module_id] = kept

    @classmethod
    def from_json(cls, path: Path) -> "QuestionBank":
        """Load the bank from JSON; a missing or unreadable file yields an empty bank."""
        path = Path(path)
        if not path.exists():
            logger.warning("Question bank file not found", extra={"path": str(path)})
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.error("Question bank could not be read: %s", exc, extra={"path": str(path)})
            return cls()
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: object) -> "QuestionBank":
        if not isinstance(data, dict):
            logger.error("Question bank root must be an object keyed by module id")
            return cls()

        modules: Dict[str, Dict[str, List[Question]]] = {}
        for module_id, sections in data.items():
            if not isinstance(sections, dict):
                logger.warning("Skipping module with malformed sections", extra={"module_id": module_id})
                continue
            for section_name, raw_questions in sections.items():
                parsed = [
                    q for raw in (raw_questions or [])
                    if (q := cls._parse_question_dict(raw, module_id, section_name))
                ]
                modules.setdefault(module_id, {})[section_name] = parsed
        return cls(modules)

    @classmethod
    def _parse_question_dict(cls, d: object, module_id: str, section_name: str) -> Optional[Question]:
        """Convert an authored JSON question to Question; returns None if invalid."""
        if not isinstance(d, dict):
            return None
        try:
            return Question(
                id=str(d["id"]),
                prompt=str(d["question"]),
                choices=tuple(
                    Choice(id=str(c["id"]), text=str(c["text"])) for c in d.get("choices", [])
                ),
                correct_choice_id=str(d["correctAnswer"]),
                explanation=str(d.get("explanation", "")),
                difficulty=d.get("difficulty"),
                hint=d.get("hint"),
            )
        except (KeyError, TypeError, ValidationError) as exc:
            logger.warning(
                "Skipping malformed question: %s",
                exc,
                extra={"module_id": module_id, "section_name": section_name, "question_id": d.get("id")},
            )
            return None

    def get_questions_for_section(self, module_id: str, section_name: str) -> QuestionSet:
        """Ordered snapshot of the section's questions; empty if none are authored."""
        return self._modules.get(module_id, {}).get(section_name, ())

    def has_questions_for_section(self, module_id: str, section_name: str) -> bool:
        return len(self.get_questions_for_section(module_id, section_name)) > 0

    def get_sections_with_questions(self, module_id: str) -> List[str]:
        """Section names of a module that have questions, in authored order."""
        return list(self._modules.get(module_id, {}))

    def list_modules(self) -> List[str]:
        return list(self._modules)
