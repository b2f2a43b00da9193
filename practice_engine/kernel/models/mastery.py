"""
Mastery models - per-user, per-section practice outcomes.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from practice_engine.kernel.models.base import Base, TimestampMixin, generate_uuid


class MasteryRecord(Base, TimestampMixin):
    """
    Best and most recent practice result for one (user, module, section).

    Rows are only ever created or updated by MasteryLedger.record_attempt;
    attempt_count and best_score never decrease.
    """

    __tablename__ = "mastery_records"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    # Opaque id from the external auth provider
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    module_id: Mapped[str] = mapped_column(String(100), nullable=False)
    section_name: Mapped[str] = mapped_column(String(200), nullable=False)

    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_out_of: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_out_of: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # [{"question_id", "selected_choice_id", "is_correct"}, ...] of the latest attempt
    last_answers: Mapped[List[Any]] = mapped_column(JSON, nullable=False, default=list)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "module_id", "section_name", name="uq_mastery_records_user_section"),
    )
