"""Database connection and schema definitions (PostgreSQL in prod, SQLite in tests)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import (
    Column,
    Connection,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from config.settings import Settings, get_settings
from src.core.constants import (
    DEFAULT_FREE_NOTE_LIMIT,
    NOTE_TITLE_MAX_LENGTH,
)
from src.core.logging import get_logger

log = get_logger(__name__)

metadata = MetaData()

# ── Tables ───────────────────────────────────────────────────────

tenants = Table(
    "tenants",
    metadata,
    Column("tenant_id", String(36), primary_key=True),
    Column("slug", String(64), nullable=False, unique=True),
    Column("name", String(200), nullable=False),
    Column("plan", String(16), nullable=False, default="free"),
    Column("note_limit", Integer, nullable=False, default=DEFAULT_FREE_NOTE_LIMIT),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

users = Table(
    "users",
    metadata,
    Column("user_id", String(36), primary_key=True),
    Column(
        "tenant_id",
        String(36),
        ForeignKey("tenants.tenant_id"),
        nullable=False,
    ),
    Column("email", String(320), nullable=False, index=True),
    Column("password_hash", String(128), nullable=False),
    Column("role", String(16), nullable=False, default="member"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
)

notes = Table(
    "notes",
    metadata,
    Column("note_id", String(36), primary_key=True),
    Column(
        "tenant_id",
        String(36),
        ForeignKey("tenants.tenant_id"),
        nullable=False,
    ),
    Column("user_id", String(36), ForeignKey("users.user_id"), nullable=False),
    Column("title", String(NOTE_TITLE_MAX_LENGTH), nullable=False),
    Column("content", Text, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_notes_tenant_updated", "tenant_id", "updated_at"),
)


# ── Engine ───────────────────────────────────────────────────────

_engine: AsyncEngine | None = None


def _begin_immediate(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock at BEGIN.

    SQLite ignores ``SELECT ... FOR UPDATE`` and the driver otherwise defers
    BEGIN until the first write, so two transactions could read the same
    note count before either inserts.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for(db_url: str) -> AsyncEngine:
    """Build an async engine; pool sizing applies only to server databases."""
    if db_url.startswith("sqlite"):
        engine = create_async_engine(db_url, echo=False)
        _begin_immediate(engine)
        return engine
    return create_async_engine(
        db_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


async def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """Get or create the async database engine (singleton)."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        settings = settings or get_settings()
        db_url = settings.database_url.get_secret_value()
        _engine = create_engine_for(db_url)
        log.info("database_engine_created", host=db_url.split("@")[-1].split("?")[0])
    return _engine


async def init_schema(engine: AsyncEngine) -> None:
    """Create all tables and indexes that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    log.info("schema_initialized")


async def close_engine() -> None:
    """Dispose the database engine."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        log.info("database_engine_closed")
