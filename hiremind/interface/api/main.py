from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ...core.config import Settings, get_settings
from ...core.exceptions import (
    BackendError,
    HireMindError,
    InvalidSessionRequestError,
    InvalidTransitionError,
    PermissionDeniedError,
    PersistenceError,
    SessionNotFoundError,
)
from ...core.interfaces import SessionStore
from ...core.logging import setup_logging
from ...processors.speech import ElevenLabsClient
from ...storage.database import Database
from ...storage.sessions import SqlSessionStore

logger = structlog.get_logger(__name__)

STATUS_CODES = (
    (SessionNotFoundError, 404),
    (InvalidSessionRequestError, 422),
    (InvalidTransitionError, 409),
    (PermissionDeniedError, 403),
    (PersistenceError, 503),
    (BackendError, 502),
)


def status_for(exc: HireMindError) -> int:
    for error_type, status in STATUS_CODES:
        if isinstance(exc, error_type):
            return status
    return 500


async def handle_interview_error(request: Request, exc: HireMindError) -> JSONResponse:
    status = status_for(exc)
    log = logger.error if status >= 500 else logger.info
    log("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=status,
        content={"error": {"code": exc.code, "message": exc.message, "retryable": exc.retryable}},
    )


def create_app(settings: Optional[Settings] = None,
               *,
               store: Optional[SessionStore] = None,
               manager=None,
               tts: Optional[ElevenLabsClient] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    database = None
    if store is None:
        database = Database(settings.DATABASE_URL, echo=False)
        store = SqlSessionStore(database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if database is not None:
            await database.init()
        logger.info("app_started", environment=settings.ENVIRONMENT.value)
        yield
        if database is not None:
            await database.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.manager = manager
    app.state.tts = tts or ElevenLabsClient(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with actual origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HireMindError, handle_interview_error)

    # Include routers
    from .routers import health, interview, resume, tts as tts_router
    from .websocket import interview_socket
    app.include_router(health.router, prefix=settings.API_PREFIX)
    app.include_router(interview.router, prefix=settings.API_PREFIX)
    app.include_router(tts_router.router, prefix=settings.API_PREFIX)
    app.include_router(resume.router, prefix=settings.API_PREFIX)
    app.add_api_websocket_route(settings.WEBSOCKET_PATH, interview_socket)

    return app
