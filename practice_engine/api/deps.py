"""
FastAPI dependencies for the caller's identity and the shared practice services.

Authentication is handled upstream; the authenticated user id arrives in the
X-User-ID header and is passed explicitly to every ledger call.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from practice_engine.engines.mastery.ledger import MasteryLedger
from practice_engine.engines.practice.orchestrator import SessionOrchestrator
from practice_engine.engines.practice.question_bank import QuestionBank
from practice_engine.engines.practice.registry import SessionRegistry

USER_ID_HEADER = "X-User-ID"


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header(alias=USER_ID_HEADER)] = None,
) -> str:
    """Get the caller's user id or raise 401."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header",
        )
    return user_id


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


def get_question_bank(request: Request) -> QuestionBank:
    return request.app.state.question_bank


def get_ledger(request: Request) -> MasteryLedger:
    return request.app.state.ledger


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


QuestionBankDep = Annotated[QuestionBank, Depends(get_question_bank)]
LedgerDep = Annotated[MasteryLedger, Depends(get_ledger)]
RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]


async def get_orchestrator(user_id: CurrentUserId, registry: RegistryDep) -> SessionOrchestrator:
    """The caller's orchestrator; an unregistered idle one if no session was started."""
    return registry.lookup(user_id)


async def get_or_create_orchestrator(user_id: CurrentUserId, registry: RegistryDep) -> SessionOrchestrator:
    """The caller's orchestrator, registered on first use. Only starting a session needs this."""
    return registry.get_or_create(user_id)


CurrentOrchestrator = Annotated[SessionOrchestrator, Depends(get_orchestrator)]
StartingOrchestrator = Annotated[SessionOrchestrator, Depends(get_or_create_orchestrator)]
