"""
System test: full practice API flow in-process with SQLite.
Verifies section availability, a complete session, mastery badges and
the error responses for rejected intents.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from practice_engine.api.deps import USER_ID_HEADER, get_ledger, get_question_bank, get_registry
from practice_engine.engines.practice.registry import SessionRegistry
from practice_engine.main import app

PRACTICE = "/api/v1/practice"
MASTERY = "/api/v1/mastery"
SECTION = {"module_id": "circles", "section_name": "Circle Fundamentals"}
HEADERS = {USER_ID_HEADER: "learner-1"}


@pytest.fixture
def registry(question_bank, ledger) -> SessionRegistry:
    return SessionRegistry(question_bank, ledger)


@pytest_asyncio.fixture
async def client(question_bank, ledger, registry) -> AsyncGenerator[AsyncClient, None]:
    """Async client wired to the test question bank, ledger and registry."""
    app.dependency_overrides[get_question_bank] = lambda: question_bank
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


async def answer_and_advance(client: AsyncClient, choice_id: str, headers=HEADERS) -> dict:
    r = await client.post(f"{PRACTICE}/session/select", json={"choice_id": choice_id}, headers=headers)
    assert r.status_code == 200, r.text
    r = await client.post(f"{PRACTICE}/session/check", headers=headers)
    assert r.status_code == 200, r.text
    r = await client.post(f"{PRACTICE}/session/advance", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Request-ID" in r.headers


@pytest.mark.asyncio
async def test_section_availability(client: AsyncClient):
    r = await client.get(f"{PRACTICE}/modules/circles/sections")
    assert r.status_code == 200
    assert r.json()["sections"] == ["Circle Fundamentals", "Area Problems"]

    r = await client.get(f"{PRACTICE}/modules/circles/sections/Area Problems")
    assert r.json()["has_questions"] is True
    assert r.json()["question_count"] == 2

    r = await client.get(f"{PRACTICE}/modules/circles/sections/Arc Length")
    assert r.json()["has_questions"] is False


@pytest.mark.asyncio
async def test_full_flow(client: AsyncClient):
    """Start -> answer five questions -> complete -> best score badge."""
    r = await client.get(f"{MASTERY}/modules/circles/sections/Circle Fundamentals", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["has_attempted"] is False
    assert r.json()["best_score"] is None

    r = await client.post(f"{PRACTICE}/session", json=SECTION, headers=HEADERS)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["state"] == "unanswered"
    assert data["total_count"] == 5
    assert data["current_question"]["id"] == "1"
    # Answer stays hidden until checked
    assert data["current_question"]["correct_choice_id"] is None
    assert data["current_question"]["explanation"] is None

    r = await client.post(f"{PRACTICE}/session/select", json={"choice_id": "C"}, headers=HEADERS)
    assert r.json()["selected_choice_id"] == "C"
    r = await client.post(f"{PRACTICE}/session/check", headers=HEADERS)
    data = r.json()
    assert data["state"] == "answered"
    assert data["feedback_revealed"] is True
    assert data["current_question"]["correct_choice_id"] == "C"
    assert data["answers"][0]["is_correct"] is True
    r = await client.post(f"{PRACTICE}/session/advance", headers=HEADERS)
    assert r.json()["current_index"] == 1

    for pick in ["A", "B", "A"]:
        data = await answer_and_advance(client, pick)
        assert data["state"] == "unanswered"
    data = await answer_and_advance(client, "A")

    assert data["state"] == "complete"
    assert data["complete"] is True
    assert data["correct_count"] == 2
    assert data["current_question"] is None
    assert data["record_error"] is None

    r = await client.get(f"{MASTERY}/modules/circles/sections/Circle Fundamentals", headers=HEADERS)
    badge = r.json()
    assert badge["has_attempted"] is True
    assert (badge["best_score"], badge["best_out_of"]) == (2, 5)
    assert badge["best_percent"] == 40.0

    # Badge is per user
    r = await client.get(
        f"{MASTERY}/modules/circles/sections/Circle Fundamentals",
        headers={USER_ID_HEADER: "learner-2"},
    )
    assert r.json()["has_attempted"] is False


@pytest.mark.asyncio
async def test_restart_and_records(client: AsyncClient):
    await client.post(f"{PRACTICE}/session", json={**SECTION, "section_name": "Area Problems"}, headers=HEADERS)
    await answer_and_advance(client, "C")
    data = await answer_and_advance(client, "A")
    assert data["correct_count"] == 1

    r = await client.post(f"{PRACTICE}/session/restart", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["state"] == "unanswered"
    assert r.json()["answers"] == []

    await answer_and_advance(client, "C")
    data = await answer_and_advance(client, "B")
    assert data["correct_count"] == 2

    r = await client.get(f"{MASTERY}/records", headers=HEADERS)
    body = r.json()
    assert body["total"] == 1
    record = body["items"][0]
    assert record["attempt_count"] == 2
    assert (record["best_score"], record["last_score"]) == (2, 2)

    r = await client.get(f"{MASTERY}/summary", headers=HEADERS)
    assert r.json() == {
        "sections_practiced": 1,
        "total_best_score": 2,
        "total_best_out_of": 2,
        "percent": 100,
    }

    r = await client.get(f"{MASTERY}/weak-sections", headers=HEADERS)
    assert r.json()["total"] == 1
    r = await client.get(f"{MASTERY}/weak-sections", params={"max_best_score": 1}, headers=HEADERS)
    assert r.json()["total"] == 0


@pytest.mark.asyncio
async def test_exit_never_records(client: AsyncClient):
    await client.post(f"{PRACTICE}/session", json=SECTION, headers=HEADERS)
    await answer_and_advance(client, "C")

    r = await client.delete(f"{PRACTICE}/session", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["state"] == "idle"

    r = await client.get(f"{PRACTICE}/session", headers=HEADERS)
    assert r.json()["state"] == "idle"
    assert r.json()["allowed_intents"] == ["start"]

    r = await client.get(f"{MASTERY}/records", headers=HEADERS)
    assert r.json()["total"] == 0

    r = await client.post(f"{PRACTICE}/session/retry", headers=HEADERS)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_rejected_intents(client: AsyncClient):
    r = await client.post(f"{PRACTICE}/session/check", headers=HEADERS)
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"
    assert r.json()["state"] == "idle"

    await client.post(f"{PRACTICE}/session", json=SECTION, headers=HEADERS)
    r = await client.post(f"{PRACTICE}/session/advance", headers=HEADERS)
    assert r.status_code == 409
    assert r.json()["intent"] == "advance"

    r = await client.post(f"{PRACTICE}/session/select", json={"choice_id": "Z"}, headers=HEADERS)
    assert r.status_code == 409

    # Still on the first question, nothing selected
    r = await client.get(f"{PRACTICE}/session", headers=HEADERS)
    assert r.json()["current_index"] == 0
    assert r.json()["selected_choice_id"] is None

    # Selecting after the answer is checked is ignored
    await client.post(f"{PRACTICE}/session/select", json={"choice_id": "A"}, headers=HEADERS)
    await client.post(f"{PRACTICE}/session/check", headers=HEADERS)
    r = await client.post(f"{PRACTICE}/session/select", json={"choice_id": "C"}, headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["selected_choice_id"] == "A"
    assert r.json()["answers"][0]["is_correct"] is False


@pytest.mark.asyncio
async def test_no_practice_available(client: AsyncClient):
    r = await client.post(
        f"{PRACTICE}/session",
        json={"module_id": "circles", "section_name": "Arc Length"},
        headers=HEADERS,
    )
    assert r.status_code == 404
    assert r.json()["code"] == "no_practice_available"


@pytest.mark.asyncio
async def test_missing_user_header(client: AsyncClient):
    r = await client.post(f"{PRACTICE}/session", json=SECTION)
    assert r.status_code == 401

    r = await client.get(f"{MASTERY}/summary")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_validation_error(client: AsyncClient):
    r = await client.post(f"{PRACTICE}/session", json={"module_id": "circles"}, headers=HEADERS)
    assert r.status_code == 422
    assert r.json()["detail"] == "Validation error"


@pytest.mark.asyncio
async def test_registry_only_holds_started_sessions(client: AsyncClient, registry: SessionRegistry):
    """Reads and rejected intents register nobody; exiting removes the user."""
    for n in range(20):
        headers = {USER_ID_HEADER: f"learner-{n}"}
        r = await client.get(f"{MASTERY}/modules/circles/sections/Circle Fundamentals", headers=headers)
        assert r.status_code == 200
        r = await client.get(f"{PRACTICE}/session", headers=headers)
        assert r.json()["state"] == "idle"
        r = await client.post(f"{PRACTICE}/session/advance", headers=headers)
        assert r.status_code == 409
    assert len(registry) == 0

    for n in range(20):
        headers = {USER_ID_HEADER: f"learner-{n}"}
        r = await client.post(f"{PRACTICE}/session", json=SECTION, headers=headers)
        assert r.status_code == 201
    assert len(registry) == 20

    for n in range(20):
        r = await client.delete(f"{PRACTICE}/session", headers={USER_ID_HEADER: f"learner-{n}"})
        assert r.json()["state"] == "idle"
    assert len(registry) == 0

    # Exiting with no session is harmless
    r = await client.delete(f"{PRACTICE}/session", headers=HEADERS)
    assert r.status_code == 200
