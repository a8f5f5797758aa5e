"""
FastAPI application.

Exposes the grading pipeline over HTTP. The grade route applies its
checks in a fixed order (body, caller, rate limit, AI credential,
question type) and every rejection uses the same JSON error shape:
``{"error": ..., "code": ..., "details": ...}``.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from essay_grader import __version__
from essay_grader.auth import AuthenticationError, Authenticator, StaticTokenAuthenticator
from essay_grader.catalog import CatalogError
from essay_grader.config import Settings, Subject, get_settings
from essay_grader.grading import ConfigurationError, GradingEngine, UnknownQuestionTypeError
from essay_grader.logging_config import setup_logging
from essay_grader.models import GradeRequest
from essay_grader.ratelimit import InMemoryRateLimiter, RateLimiter

logger = logging.getLogger(__name__)

router = APIRouter()


def error_response(
    status_code: int,
    error: str,
    code: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": error, "code": code}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def validation_details(exc: ValidationError) -> list[dict[str, str]]:
    """Field-level issues from a pydantic validation error."""
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "body",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def _log_grading_request(user_id: str, question_type: str, started: float, outcome: str) -> None:
    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "[GRADE] user=%s... questionType=%s duration=%dms outcome=%s",
        user_id[:8],
        question_type,
        duration_ms,
        outcome,
    )


@router.post("/api/grade")
async def grade(request: Request) -> JSONResponse:
    """Grade one response with the subject's examiner panel."""
    started = time.perf_counter()
    state = request.app.state
    engine: GradingEngine = state.engine

    try:
        body = await request.json()
    except ValueError:
        return error_response(400, "Invalid JSON in request body", "INVALID_JSON")

    try:
        grade_request = GradeRequest.model_validate(body)
    except ValidationError as e:
        return error_response(
            400, "Invalid request format", "VALIDATION_ERROR", details=validation_details(e)
        )

    try:
        caller = state.authenticator.authenticate(request.headers.get("Authorization"))
    except AuthenticationError as e:
        return error_response(401, str(e), "UNAUTHORIZED")

    decision = state.rate_limiter.check_and_consume(caller.user_id)
    rate_headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if not decision.allowed:
        _log_grading_request(caller.user_id, grade_request.question_type, started, "rate_limited")
        return error_response(
            429,
            "Rate limit exceeded. Please try again later.",
            "RATE_LIMITED",
            details={"retryAfter": decision.retry_after_seconds},
            headers={**rate_headers, "Retry-After": str(decision.retry_after_seconds)},
        )

    try:
        engine.ensure_configured()
    except ConfigurationError:
        logger.error("AI credential not configured; rejecting grade request")
        return error_response(
            503, "AI service not configured. Please contact support.", "AI_NOT_CONFIGURED"
        )

    try:
        result = await engine.grade(grade_request)
    except UnknownQuestionTypeError as e:
        return error_response(
            400, str(e), "INVALID_QUESTION_TYPE", details={"allowed": e.known}
        )
    except CatalogError as e:
        return error_response(400, str(e), "UNSUPPORTED_SUBJECT")
    except Exception:
        logger.exception("Grade API error")
        _log_grading_request(caller.user_id, grade_request.question_type, started, "error")
        return error_response(500, "Internal server error", "INTERNAL_ERROR")

    _log_grading_request(caller.user_id, grade_request.question_type, started, "ok")
    return JSONResponse(content=result.to_wire(), headers=rate_headers)


@router.get("/api/catalog/{subject}")
def catalog(subject: Subject, request: Request) -> JSONResponse:
    """Examiner panel and question types for a subject."""
    engine: GradingEngine = request.app.state.engine
    try:
        subject_catalog = engine.registry.for_subject(subject)
    except CatalogError as e:
        return error_response(404, str(e), "UNSUPPORTED_SUBJECT")

    return JSONResponse(
        content={
            "subject": subject.value,
            "examiners": [
                e.model_dump(mode="json", by_alias=True, exclude={"prompt_template"})
                for e in subject_catalog.examiners
            ],
            "questionTypes": [
                qt.model_dump(mode="json", by_alias=True) for qt in subject_catalog.question_types
            ],
        }
    )


@router.get("/health", tags=["meta"])
def health(request: Request) -> dict[str, bool | str]:
    settings: Settings = request.app.state.engine.settings
    return {"ok": True, "aiConfigured": settings.ai_configured, "version": __version__}


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.engine.aclose()


def create_app(
    settings: Settings | None = None,
    engine: GradingEngine | None = None,
    authenticator: Authenticator | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators default to ones built from ``settings``; tests pass
    their own.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(title="Essay Grader API", version=__version__, lifespan=_lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine or GradingEngine(settings)
    app.state.authenticator = authenticator or StaticTokenAuthenticator.from_settings(settings)
    app.state.rate_limiter = rate_limiter or InMemoryRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )

    app.include_router(router)
    return app
