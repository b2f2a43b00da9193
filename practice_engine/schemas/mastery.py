"""
Pydantic schemas for the mastery API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class SectionMasteryResponse(BaseModel):
    """Badge data for one section: best score if the section was practiced."""

    module_id: str
    section_name: str
    has_attempted: bool
    best_score: Optional[int] = None
    best_out_of: Optional[int] = None
    best_percent: Optional[float] = None


class MasteryRecordResponse(BaseModel):
    """A section's practice record."""

    module_id: str
    section_name: str
    attempt_count: int
    best_score: int
    best_out_of: int
    last_score: int
    last_out_of: int
    last_attempt_at: Optional[datetime] = None


class MasteryRecordListResponse(BaseModel):
    items: List[MasteryRecordResponse]
    total: int


class PracticeSummaryResponse(BaseModel):
    """Totals across every practiced section."""

    sections_practiced: int
    total_best_score: int
    total_best_out_of: int
    percent: int
