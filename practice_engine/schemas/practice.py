"""
Pydantic schemas for the practice session API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class StartSessionRequest(BaseModel):
    """Body for starting a practice session."""

    module_id: str = Field(..., min_length=1)
    section_name: str = Field(..., min_length=1)


class SelectChoiceRequest(BaseModel):
    """Body for selecting a choice on the current question."""

    choice_id: str = Field(..., min_length=1)


class ChoiceSchema(BaseModel):
    id: str
    text: str


class QuestionView(BaseModel):
    """
    Current question as shown to the learner.

    correct_choice_id and explanation stay null until the answer is checked.
    """

    id: str
    prompt: str
    choices: List[ChoiceSchema]
    difficulty: Optional[str] = None
    hint: Optional[str] = None
    correct_choice_id: Optional[str] = None
    explanation: Optional[str] = None


class AnswerRecordSchema(BaseModel):
    question_id: str
    selected_choice_id: str
    is_correct: bool


class PracticeSessionResponse(BaseModel):
    """Snapshot of the learner's practice session."""

    state: str
    module_id: Optional[str] = None
    section_name: Optional[str] = None
    current_index: int = 0
    total_count: int = 0
    current_question: Optional[QuestionView] = None
    selected_choice_id: Optional[str] = None
    feedback_revealed: bool = False
    complete: bool = False
    answers: List[AnswerRecordSchema] = []
    correct_count: int = 0
    allowed_intents: List[str] = []
    # Set when the completed attempt could not be recorded
    record_error: Optional[str] = None


class SectionListResponse(BaseModel):
    """Sections of a module that offer practice."""

    module_id: str
    sections: List[str]


class SectionAvailabilityResponse(BaseModel):
    module_id: str
    section_name: str
    has_questions: bool
    question_count: int
