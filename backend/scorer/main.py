import logging
import os
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk

from .config import API_PREFIX, DEFAULT_REFEREE_ID, DEMO_MODE, REDIS_URL
from .exceptions import DomainException, ProblemDetail
from .routers import matches, submissions
from .services.match_source import FixtureMatchSource, HttpMatchSource, MatchSource
from .services.offline import OfflineStateKeeper
from .services.sessions import SessionRegistry
from .services.storage import KeyValueStore, create_store
from .services.submission import DemoSubmissionSink, HttpSubmissionSink, SubmissionSink
from .services.submitter import ScoreSubmitter
from .services.validation import ValidationError
from .utils.sentry import init_sentry, sentry_enabled

logger = logging.getLogger(__name__)


def _problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


def _allowed_origins() -> list[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "").strip()
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    # Fail fast if misconfigured: credentials + wildcard origins is unsafe
    if "*" in origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot include '*' (wildcard). Specify explicit, trusted origins."
        )
    return origins


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return _problem_response(
        ProblemDetail(
            type=exc.type,
            title=exc.title,
            detail=exc.detail,
            status=exc.status_code,
            code=exc.code,
        )
    )


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _problem_response(
        ProblemDetail(
            title="Validation error",
            detail=exc.detail,
            status=422,
            code="validation_error",
        )
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = getattr(exc, "code", f"http_{exc.status_code}")
    return _problem_response(
        ProblemDetail(
            title=detail,
            detail=detail,
            status=exc.status_code,
            code=code,
        )
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    return _problem_response(
        ProblemDetail(
            title="Internal Server Error",
            status=500,
            detail=str(exc),
            code="internal_server_error",
        )
    )


def create_app(
    *,
    source: Optional[MatchSource] = None,
    sink: Optional[SubmissionSink] = None,
    store: Optional[KeyValueStore] = None,
    demo_mode: bool = DEMO_MODE,
) -> FastAPI:
    """Build the scoring API.

    Collaborators not passed in are chosen from configuration: demo fixtures
    and a simulated tournament API when ``demo_mode`` is on, the HTTP
    tournament backend otherwise.
    """

    if source is None:
        source = FixtureMatchSource() if demo_mode else HttpMatchSource()
    if sink is None:
        sink = DemoSubmissionSink() if demo_mode else HttpSubmissionSink()
    if store is None:
        store = create_store(REDIS_URL)

    submitter = ScoreSubmitter(sink, store)
    registry = SessionRegistry(
        source,
        submitter,
        keeper=OfflineStateKeeper(store),
        referee_id=DEFAULT_REFEREE_ID,
    )

    app = FastAPI(
        title="Pickleball Court Scorer API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.registry = registry
    app.state.submitter = submitter

    origins = _allowed_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=os.getenv("ALLOW_CREDENTIALS", "true").lower() == "true",
            allow_methods=["*"],
            allow_headers=["*"],
        )

    logger.info("API_PREFIX=%r demo_mode=%s", API_PREFIX, demo_mode)

    # -------------------------------------------------------------------------
    # Health checks
    # -------------------------------------------------------------------------
    @app.get("/healthz", tags=["health"])  # Unprefixed for reverse proxy / uptime checks
    def root_healthz():
        return {"status": "ok"}

    @app.post(f"{API_PREFIX}/sentry-test", tags=["health"])
    def sentry_test_check():
        if not sentry_enabled():
            raise HTTPException(
                status_code=400, detail="Sentry is not configured (SENTRY_DSN missing)"
            )

        event_id = sentry_sdk.capture_message("Sentry self-test trigger", level="info")
        return {"status": "sent", "eventId": str(event_id)}

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # -------------------------------------------------------------------------
    # Routers
    # -------------------------------------------------------------------------
    api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])

    @api_router.get("/healthz", tags=["health"])
    def api_healthz():
        return {"status": "ok"}

    @api_router.get("")
    def api_root():
        return {"message": "Pickleball Court Scorer API. See /docs."}

    v0_router = APIRouter(prefix="/v0")
    v0_router.include_router(matches.router)
    v0_router.include_router(submissions.router)

    api_router.include_router(v0_router)
    app.include_router(api_router)
    return app


init_sentry()
app = create_app()
