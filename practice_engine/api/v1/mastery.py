"""
Mastery endpoints - the caller's practice records.
"""

from typing import Optional

from fastapi import APIRouter, Query

from practice_engine.api.deps import CurrentUserId, LedgerDep
from practice_engine.config import get_settings
from practice_engine.engines.mastery.ledger import MasteryRecordView
from practice_engine.schemas.common import ErrorResponse
from practice_engine.schemas.mastery import (
    MasteryRecordListResponse,
    MasteryRecordResponse,
    PracticeSummaryResponse,
    SectionMasteryResponse,
)

router = APIRouter(
    responses={
        401: {"model": ErrorResponse, "description": "Missing user id"},
        503: {"model": ErrorResponse, "description": "Mastery records unavailable"},
    },
)


def _record_to_response(record: MasteryRecordView) -> MasteryRecordResponse:
    return MasteryRecordResponse(
        module_id=record.module_id,
        section_name=record.section_name,
        attempt_count=record.attempt_count,
        best_score=record.best_score,
        best_out_of=record.best_out_of,
        last_score=record.last_score,
        last_out_of=record.last_out_of,
        last_attempt_at=record.last_attempt_at,
    )


@router.get("/modules/{module_id}/sections/{section_name}", response_model=SectionMasteryResponse)
async def get_section_mastery(module_id: str, section_name: str, user_id: CurrentUserId, ledger: LedgerDep):
    """Best score badge for a section."""
    best = await ledger.get_best_score(user_id, module_id, section_name)
    return SectionMasteryResponse(
        module_id=module_id,
        section_name=section_name,
        has_attempted=best is not None,
        best_score=best.score if best else None,
        best_out_of=best.out_of if best else None,
        best_percent=round(best.percentage, 1) if best else None,
    )


@router.get("/records", response_model=MasteryRecordListResponse)
async def list_records(user_id: CurrentUserId, ledger: LedgerDep):
    """Every section the caller has practiced."""
    records = await ledger.list_records(user_id)
    return MasteryRecordListResponse(
        items=[_record_to_response(r) for r in records],
        total=len(records),
    )


@router.get("/weak-sections", response_model=MasteryRecordListResponse)
async def list_weak_sections(
    user_id: CurrentUserId,
    ledger: LedgerDep,
    max_best_score: Optional[int] = Query(None, ge=0),
):
    """Sections that need more practice, weakest first."""
    if max_best_score is None:
        max_best_score = get_settings().weak_section_max_score
    records = await ledger.weak_sections(user_id, max_best_score)
    return MasteryRecordListResponse(
        items=[_record_to_response(r) for r in records],
        total=len(records),
    )


@router.get("/summary", response_model=PracticeSummaryResponse)
async def get_summary(user_id: CurrentUserId, ledger: LedgerDep):
    """Totals across every practiced section."""
    summary = await ledger.summary(user_id)
    return PracticeSummaryResponse(
        sections_practiced=summary.sections_practiced,
        total_best_score=summary.total_best_score,
        total_best_out_of=summary.total_best_out_of,
        percent=summary.percent,
    )
