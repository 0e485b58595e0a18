"""Quill FastAPI application — entry point for the API server."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import Settings, get_settings
from src.api.errors import register_error_handlers
from src.core.logging import get_logger, setup_logging
from src.data.db import close_engine, get_engine, init_schema
from src.data.seed import seed_demo_data
from src.saas.passwords import PasswordHasher
from src.saas.tokens import SessionTokenCodec

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup/shutdown lifecycle — initialize DB engine, close on exit."""
    settings: Settings = app.state.settings
    log.info("api_starting", environment=settings.quill_env)

    engine = await get_engine(settings)
    app.state.engine = engine
    if settings.quill_create_schema:
        await init_schema(engine)
    if settings.quill_seed_demo_data:
        await seed_demo_data(
            engine,
            app.state.password_hasher,
            settings.quill_default_note_limit,
        )

    yield

    await close_engine()
    log.info("api_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, json_format=settings.json_logs)

    app = FastAPI(
        title="Quill API",
        description="Multi-tenant notes with per-plan quotas — REST API",
        version="0.1.0",
        lifespan=lifespan,
    )

    # The signing secret is read once here and never from ambient state afterwards.
    app.state.settings = settings
    app.state.token_codec = SessionTokenCodec(
        secret=settings.quill_jwt_secret.get_secret_value(),
        default_ttl=timedelta(hours=settings.quill_jwt_expiry_hours),
    )
    app.state.password_hasher = PasswordHasher(rounds=settings.quill_bcrypt_rounds)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Register routers
    from src.api.routes.auth import router as auth_router
    from src.api.routes.health import router as health_router
    from src.api.routes.notes import router as notes_router
    from src.api.routes.tenants import router as tenants_router

    app.include_router(health_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")
    app.include_router(notes_router, prefix="/api")
    app.include_router(tenants_router, prefix="/api")

    return app


app = create_app()
