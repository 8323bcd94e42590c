"""
FastAPI application factory and entry point.

create_app() builds and configures the FastAPI application:
  1. Logging — structlog configured from settings
  2. Lifespan manager — builds the DB engine and session factory, creates
     tables on startup, disposes the engine on shutdown
  3. CORS middleware — allows frontend origins to make cross-origin requests
  4. Exception handlers — maps domain errors to HTTP responses
  5. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.config import settings
from app.database import Base, build_engine, build_session_factory
from app.exceptions import register_exception_handlers
from app.logging_config import configure_logging
from app.routers import accounts, auth, balances, banks

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Builds the engine and session factory and stores them on app.state,
      where get_db() picks them up. Creates all tables if they don't exist;
      in production, use migrations instead.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("startup_complete", version=settings.APP_VERSION)
    yield
    # --- Shutdown ---
    await engine.dispose()


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    configure_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Track bank accounts and the evolution of their balances",
        lifespan=lifespan,
    )

    # CORS: in production, lock this down to your actual frontend domain(s).
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)

    application.include_router(auth.router, prefix="/auth", tags=["Auth"])
    application.include_router(banks.router, prefix="/banks", tags=["Banks"])
    application.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
    application.include_router(balances.router, prefix="/balances", tags=["Balances"])

    @application.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for deployment probes."""
        return {"status": "ok", "version": settings.APP_VERSION}

    return application


app = create_app()
