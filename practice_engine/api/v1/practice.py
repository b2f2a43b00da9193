"""
Practice endpoints - section availability and the learner's practice session.

Every session endpoint returns the session snapshot after the intent was
applied. Intents invalid for the current state answer 409 and leave the
session unchanged.
"""

from typing import Optional

from fastapi import APIRouter, status

from practice_engine.api.deps import (
    CurrentOrchestrator,
    CurrentUserId,
    QuestionBankDep,
    RegistryDep,
    StartingOrchestrator,
)
from practice_engine.engines.practice.question_bank import Question
from practice_engine.engines.practice.state_machine import PracticeSession
from practice_engine.schemas.common import ErrorResponse
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

router = APIRouter(
    responses={
        401: {"model": ErrorResponse, "description": "Missing user id"},
        409: {"model": ErrorResponse, "description": "Intent not valid for the session state"},
    },
)


def _question_to_view(question: Question, revealed: bool) -> QuestionView:
    return QuestionView(
        id=question.id,
        prompt=question.prompt,
        choices=[ChoiceSchema(id=c.id, text=c.text) for c in question.choices],
        difficulty=question.difficulty.value if question.difficulty else None,
        hint=question.hint,
        correct_choice_id=question.correct_choice_id if revealed else None,
        explanation=question.explanation if revealed else None,
    )


def _session_to_response(
    session: PracticeSession,
    record_error: Optional[Exception] = None,
) -> PracticeSessionResponse:
    question = session.current_question
    return PracticeSessionResponse(
        state=session.state.value,
        module_id=session.topic.module_id if session.topic else None,
        section_name=session.topic.section_name if session.topic else None,
        current_index=session.current_index,
        total_count=session.total_count,
        current_question=_question_to_view(question, session.feedback_revealed) if question else None,
        selected_choice_id=session.selected_choice_id,
        feedback_revealed=session.feedback_revealed,
        complete=session.complete,
        answers=[
            AnswerRecordSchema(
                question_id=a.question_id,
                selected_choice_id=a.selected_choice_id,
                is_correct=a.is_correct,
            )
            for a in session.answers
        ],
        correct_count=session.correct_count,
        allowed_intents=[i.value for i in session.allowed_intents],
        record_error=str(record_error) if record_error and session.complete else None,
    )


@router.get("/modules/{module_id}/sections", response_model=SectionListResponse)
async def list_sections(module_id: str, bank: QuestionBankDep):
    """Sections of a module that offer practice."""
    return SectionListResponse(
        module_id=module_id,
        sections=bank.get_sections_with_questions(module_id),
    )


@router.get("/modules/{module_id}/sections/{section_name}", response_model=SectionAvailabilityResponse)
async def get_section_availability(module_id: str, section_name: str, bank: QuestionBankDep):
    """Whether practice is offered for a section."""
    questions = bank.get_questions_for_section(module_id, section_name)
    return SectionAvailabilityResponse(
        module_id=module_id,
        section_name=section_name,
        has_questions=bank.has_questions_for_section(module_id, section_name),
        question_count=len(questions),
    )


@router.post("/session", response_model=PracticeSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(body: StartSessionRequest, orchestrator: StartingOrchestrator):
    """Start practice for a section, discarding any session in progress."""
    return _session_to_response(orchestrator.start_session(body.module_id, body.section_name))


@router.get("/session", response_model=PracticeSessionResponse)
async def get_session(orchestrator: CurrentOrchestrator):
    """Current session snapshot (state "idle" when none is running)."""
    return _session_to_response(orchestrator.session, orchestrator.last_record_error)


@router.post("/session/select", response_model=PracticeSessionResponse)
async def select_choice(body: SelectChoiceRequest, orchestrator: CurrentOrchestrator):
    """Select a choice; ignored once the answer has been checked."""
    return _session_to_response(orchestrator.select_choice(body.choice_id))


@router.post("/session/check", response_model=PracticeSessionResponse)
async def check_answer(orchestrator: CurrentOrchestrator):
    """Check the selected choice and reveal feedback."""
    return _session_to_response(orchestrator.check_answer())


@router.post("/session/advance", response_model=PracticeSessionResponse)
async def advance(orchestrator: CurrentOrchestrator):
    """Move to the next question, or complete and record the session."""
    session = await orchestrator.advance()
    return _session_to_response(session, orchestrator.last_record_error)


@router.post("/session/restart", response_model=PracticeSessionResponse)
async def restart(orchestrator: CurrentOrchestrator):
    """Run the same questions again."""
    return _session_to_response(orchestrator.restart())


@router.post("/session/retry", response_model=PracticeSessionResponse)
async def retry(orchestrator: CurrentOrchestrator):
    """Start the same section again from the question bank."""
    return _session_to_response(orchestrator.retry())


@router.delete("/session", response_model=PracticeSessionResponse)
async def exit_session(user_id: CurrentUserId, registry: RegistryDep):
    """Abandon the session without recording anything."""
    registry.discard(user_id)
    return _session_to_response(PracticeSession.idle())
