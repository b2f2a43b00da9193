"""
Pytest fixtures for practice engine tests.
"""

from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from practice_engine.database import build_engine, build_session_maker, init_db
from practice_engine.engines.mastery.ledger import MasteryLedger
from practice_engine.engines.practice.question_bank import Choice, Question, QuestionBank


def make_question(qid: str, correct: str = "B", explanation: str = "") -> Question:
    """Four-choice question A-D with the given correct choice."""
    return Question(
        id=qid,
        prompt=f"Question {qid}?",
        choices=tuple(Choice(id=c, text=f"Option {c}") for c in "ABCD"),
        correct_choice_id=correct,
        explanation=explanation or f"The answer to {qid} is {correct}.",
    )


@pytest.fixture
def sample_questions() -> List[Question]:
    """Five questions; correct answers C, B, B, C, B."""
    return [
        make_question("1", "C"),
        make_question("2", "B"),
        make_question("3", "B"),
        make_question("4", "C"),
        make_question("5", "B"),
    ]


@pytest.fixture
def question_bank(sample_questions) -> QuestionBank:
    return QuestionBank({
        "circles": {
            "Circle Fundamentals": sample_questions,
            "Area Problems": sample_questions[:2],
        },
        "percents": {
            "Percent Fundamentals": sample_questions[:3],
        },
    })


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-based SQLite engine so every connection sees the same database."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'practice_test.db'}")
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_maker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def ledger(session_maker) -> MasteryLedger:
    return MasteryLedger(session_maker)
