"""
Mastery Ledger - durable per-user, per-section practice outcomes (DB-backed).
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from practice_engine.engines.practice.exceptions import PersistenceFailure
from practice_engine.engines.practice.state_machine import AnswerRecord
from practice_engine.kernel.models.base import generate_uuid
from practice_engine.kernel.models.mastery import MasteryRecord
from practice_engine.logging_config import get_logger

logger = get_logger(__name__)


class BestScore(BaseModel):
    """Best result for a section."""

    score: int
    out_of: int

    @property
    def percentage(self) -> float:
        return self.score / self.out_of * 100 if self.out_of else 0.0


class MasteryRecordView(BaseModel):
    """Read model of a MasteryRecord row."""

    user_id: str
    module_id: str
    section_name: str
    attempt_count: int
    best_score: int
    best_out_of: int
    last_score: int
    last_out_of: int
    last_answers: List[AnswerRecord] = []
    last_attempt_at: Optional[datetime] = None

    @property
    def best(self) -> BestScore:
        return BestScore(score=self.best_score, out_of=self.best_out_of)


class PracticeSummary(BaseModel):
    """Totals across every section a user has practiced."""

    user_id: str
    sections_practiced: int = 0
    total_best_score: int = 0
    total_best_out_of: int = 0
    percent: int = 0


def _upsert_insert(dialect_name: str):
    """Dialect insert construct supporting ON CONFLICT DO UPDATE."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise PersistenceFailure(f"Mastery ledger does not support the {dialect_name} dialect")
    return insert


class MasteryLedger:
    """
    Accumulates practice outcomes per (user_id, module_id, section_name).

    Each record_attempt is one INSERT ... ON CONFLICT DO UPDATE whose update
    clause is computed from the stored row, so concurrent completions for the
    same key serialise in the database: both are counted and the best score
    is the true maximum. attempt_count and best_score never decrease.

    Every call opens its own transaction from the session factory; a write
    that fails is raised as PersistenceFailure and is not retried.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _row_to_view(row: MasteryRecord) -> MasteryRecordView:
        return MasteryRecordView(
            user_id=row.user_id,
            module_id=row.module_id,
            section_name=row.section_name,
            attempt_count=row.attempt_count,
            best_score=row.best_score,
            best_out_of=row.best_out_of,
            last_score=row.last_score,
            last_out_of=row.last_out_of,
            last_answers=[AnswerRecord.model_validate(a) for a in (row.last_answers or [])],
            last_attempt_at=row.last_attempt_at,
        )

    @staticmethod
    def _key_filter(user_id: str, module_id: str, section_name: str):
        return (
            MasteryRecord.user_id == user_id,
            MasteryRecord.module_id == module_id,
            MasteryRecord.section_name == section_name,
        )

    async def record_attempt(
        self,
        user_id: str,
        module_id: str,
        section_name: str,
        correct_count: int,
        total_count: int,
        answers: Sequence[AnswerRecord] = (),
    ) -> MasteryRecordView:
        """
        Record one completed practice attempt.

        Args:
            user_id: Learner the attempt belongs to
            module_id: Module of the practiced section
            section_name: Section practiced
            correct_count: Correct answers in the attempt
            total_count: Questions in the attempt
            answers: Answer records of the attempt, kept as last_answers

        Returns:
            The record after the update

        Raises:
            ValueError: counts are out of range
            PersistenceFailure: the write did not reach the database
        """
        if total_count <= 0:
            raise ValueError("total_count must be positive")
        if not 0 <= correct_count <= total_count:
            raise ValueError(f"correct_count must be between 0 and {total_count}")

        table = MasteryRecord.__table__
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    insert = _upsert_insert(session.bind.dialect.name)
                    stmt = insert(MasteryRecord).values(
                        id=generate_uuid(),
                        user_id=user_id,
                        module_id=module_id,
                        section_name=section_name,
                        attempt_count=1,
                        best_score=correct_count,
                        best_out_of=total_count,
                        last_score=correct_count,
                        last_out_of=total_count,
                        last_answers=[a.model_dump() for a in answers],
                        last_attempt_at=datetime.now(timezone.utc),
                    )
                    excluded = stmt.excluded
                    improves = excluded.best_score > table.c.best_score
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[table.c.user_id, table.c.module_id, table.c.section_name],
                        set_={
                            "attempt_count": table.c.attempt_count + 1,
                            "best_score": case((improves, excluded.best_score), else_=table.c.best_score),
                            "best_out_of": case((improves, excluded.best_out_of), else_=table.c.best_out_of),
                            "last_score": excluded.last_score,
                            "last_out_of": excluded.last_out_of,
                            "last_answers": excluded.last_answers,
                            "last_attempt_at": excluded.last_attempt_at,
                            "updated_at": func.now(),
                        },
                    )
                    await session.execute(stmt)

                    q = select(MasteryRecord).where(*self._key_filter(user_id, module_id, section_name))
                    row = (await session.execute(q)).scalar_one()
                    view = self._row_to_view(row)
            except SQLAlchemyError as exc:
                raise PersistenceFailure(
                    f"Could not record attempt for {module_id} / {section_name}"
                ) from exc

        logger.info(
            "Practice attempt recorded",
            extra={
                "user_id": user_id,
                "module_id": module_id,
                "section_name": section_name,
                "score": correct_count,
                "out_of": total_count,
                "attempt_count": view.attempt_count,
                "best_score": view.best_score,
            },
        )
        return view

    async def get_record(self, user_id: str, module_id: str, section_name: str) -> Optional[MasteryRecordView]:
        """Full record for a section, or None if never attempted."""
        q = select(MasteryRecord).where(*self._key_filter(user_id, module_id, section_name))
        rows = await self._fetch(q)
        return rows[0] if rows else None

    async def get_best_score(self, user_id: str, module_id: str, section_name: str) -> Optional[BestScore]:
        record = await self.get_record(user_id, module_id, section_name)
        return record.best if record else None

    async def has_attempted(self, user_id: str, module_id: str, section_name: str) -> bool:
        return await self.get_record(user_id, module_id, section_name) is not None

    async def list_records(self, user_id: str) -> List[MasteryRecordView]:
        q = (
            select(MasteryRecord)
            .where(MasteryRecord.user_id == user_id)
            .order_by(MasteryRecord.module_id, MasteryRecord.section_name)
        )
        return await self._fetch(q)

    async def weak_sections(self, user_id: str, max_best_score: int = 3) -> List[MasteryRecordView]:
        """Sections whose best score is at or below the threshold, weakest and least-attempted first."""
        q = (
            select(MasteryRecord)
            .where(
                MasteryRecord.user_id == user_id,
                MasteryRecord.best_score <= max_best_score,
            )
            .order_by(MasteryRecord.best_score, MasteryRecord.attempt_count)
        )
        return await self._fetch(q)

    async def summary(self, user_id: str) -> PracticeSummary:
        q = select(
            func.count(),
            func.coalesce(func.sum(MasteryRecord.best_score), 0),
            func.coalesce(func.sum(MasteryRecord.best_out_of), 0),
        ).where(MasteryRecord.user_id == user_id)
        try:
            async with self.session_factory() as session:
                sections, best_total, out_of_total = (await session.execute(q)).one()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not read practice summary") from exc
        percent = 0
        if out_of_total:
            # Halves round up
            ratio = Decimal(best_total) * 100 / Decimal(out_of_total)
            percent = int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        return PracticeSummary(
            user_id=user_id,
            sections_practiced=sections,
            total_best_score=best_total,
            total_best_out_of=out_of_total,
            percent=percent,
        )

    async def _fetch(self, q) -> List[MasteryRecordView]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(q)
                return [self._row_to_view(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not read mastery records") from exc
