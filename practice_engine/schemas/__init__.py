"""
Pydantic schemas for API request/response validation.
"""

from practice_engine.schemas.common import ErrorResponse, HealthResponse
from practice_engine.schemas.practice import (
    AnswerRecordSchema,
    ChoiceSchema,
    PracticeSessionResponse,
    QuestionView,
    SectionAvailabilityResponse,
    SectionListResponse,
    SelectChoiceRequest,
    StartSessionRequest,
)
from practice_engine.schemas.mastery import (
    MasteryRecordListResponse,
    MasteryRecordResponse,
    PracticeSummaryResponse,
    SectionMasteryResponse,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    # Practice
    "AnswerRecordSchema",
    "ChoiceSchema",
    "PracticeSessionResponse",
    "QuestionView",
    "SectionAvailabilityResponse",
    "SectionListResponse",
    "SelectChoiceRequest",
    "StartSessionRequest",
    # Mastery
    "MasteryRecordListResponse",
    "MasteryRecordResponse",
    "PracticeSummaryResponse",
    "SectionMasteryResponse",
]
