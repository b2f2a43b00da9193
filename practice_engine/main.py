"""
Practice Session Engine

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from practice_engine.api.middleware.request_id import RequestIdMiddleware
from practice_engine.api.v1 import router as api_v1_router
from practice_engine.config import get_settings
from practice_engine.database import async_session_maker, close_db, init_db
from practice_engine.engines.mastery.ledger import MasteryLedger
from practice_engine.engines.practice.exceptions import (
    EmptyQuestionSet,
    InvalidQuestionSet,
    InvalidState,
    PersistenceFailure,
)
from practice_engine.engines.practice.question_bank import QuestionBank
from practice_engine.engines.practice.registry import SessionRegistry
from practice_engine.logging_config import configure_logging, get_logger
from practice_engine.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    bank = QuestionBank.from_json(Path(settings.question_bank_path))
    ledger = MasteryLedger(async_session_maker)
    app.state.question_bank = bank
    app.state.ledger = ledger
    app.state.registry = SessionRegistry(
        bank,
        ledger,
        background_recording=settings.practice_background_recording,
    )
    logger.info("Question bank loaded", extra={"modules": len(bank.list_modules())})

    yield

    logger.info("Shutting down...")
    await app.state.registry.wait_for_pending()
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Practice Session Engine

    Scored multiple-choice practice for lesson sections, with a durable
    per-learner mastery ledger.

    ## Invariants

    1. A completed session is recorded exactly once; abandoned sessions never are
    2. An answer cannot be changed once it has been checked
    3. Attempt count and best score never decrease
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

app.add_middleware(RequestIdMiddleware)
# CORS last = outermost, so error responses carry CORS headers too
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    headers = {}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
        if status_code >= 500:
            content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, {"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        {"detail": "Validation error", "errors": errors},
    )


@app.exception_handler(InvalidState)
async def invalid_state_handler(request: Request, exc: InvalidState):
    """Intent not valid for the session's state; the session is unchanged."""
    logger.info("Rejected intent: %s", exc, extra={"state": exc.state, "intent": exc.intent})
    return _error_response(
        request,
        status.HTTP_409_CONFLICT,
        {"detail": str(exc), "code": "invalid_state", "state": exc.state, "intent": exc.intent},
    )


@app.exception_handler(EmptyQuestionSet)
async def empty_question_set_handler(request: Request, exc: EmptyQuestionSet):
    return _error_response(
        request,
        status.HTTP_404_NOT_FOUND,
        {"detail": str(exc), "code": "no_practice_available"},
    )


@app.exception_handler(InvalidQuestionSet)
async def invalid_question_set_handler(request: Request, exc: InvalidQuestionSet):
    logger.error("Question bank returned an unusable set: %s", exc)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"detail": str(exc), "code": "invalid_question_set"},
    )


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error("Mastery ledger unavailable: %s", exc, exc_info=exc)
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        {"detail": "Practice records are temporarily unavailable", "code": "persistence_failure"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__}
    else:
        content = {"detail": "Internal server error"}
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Check application health."""
    bank = getattr(request.app.state, "question_bank", None)
    return HealthResponse(
        status="ok",
        version=settings.version,
        database="connected",
        question_modules=len(bank.list_modules()) if bank else 0,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "practice_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
