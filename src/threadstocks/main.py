"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (database engine, schema,
mail worker). Middleware, CORS, exception handlers and routers are all
registered here.

The Settings object is built once (here or by the CLI) and stored on
app.state; nothing downstream reads the environment.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from threadstocks import __version__
from threadstocks.api import api_router
from threadstocks.config import Settings
from threadstocks.db.engine import build_engine, build_session_factory, create_schema
from threadstocks.errors import ServiceError
from threadstocks.logging_config import configure_logging
from threadstocks.middleware.request_id import RequestIdMiddleware
from threadstocks.middleware.security import SecurityHeadersMiddleware
from threadstocks.services.email_service import EmailService
from threadstocks.services.mail_worker import MailWorker

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "threadstocks.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    if settings.auto_create_schema:
        await create_schema(engine)
        logger.info("threadstocks.schema_ready")

    mail_worker = MailWorker(EmailService(settings), max_queue=settings.mail_queue_size)
    mail_worker.start()
    app.state.mail_worker = mail_worker

    yield

    # Shutdown
    logger.info("threadstocks.shutdown")
    await mail_worker.stop()
    await engine.dispose()


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("http.service_error", error=exc.message, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=exc.headers,
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("http.database_error", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or Settings()
    configure_logging(settings)

    app = FastAPI(
        title="threadStocks API",
        description="Accounts and per-user thread inventory",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.include_router(api_router)
    return app
