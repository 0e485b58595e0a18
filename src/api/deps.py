"""FastAPI dependency injection — shared instances for routes."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import Settings
from src.api.db.scoped import TenantScopedRepository
from src.api.db.tenants import TenantRepository
from src.api.middleware import get_current_claims
from src.core.types import SessionClaims, TenantScope
from src.saas.passwords import PasswordHasher
from src.saas.quota import QuotaEnforcer
from src.saas.tokens import SessionTokenCodec

# ── App-scoped singletons ─────────────────────────────────────────


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db_engine(request: Request) -> AsyncEngine:
    """Provide the async database engine created at startup."""
    return request.app.state.engine


def get_token_codec(request: Request) -> SessionTokenCodec:
    return request.app.state.token_codec


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


# ── Repositories ──────────────────────────────────────────────────


async def get_tenant_repo(
    engine: AsyncEngine = Depends(get_db_engine),
) -> TenantRepository:
    """Provide a TenantRepository instance."""
    return TenantRepository(engine)


async def get_scoped_repo(
    claims: SessionClaims = Depends(get_current_claims),
    engine: AsyncEngine = Depends(get_db_engine),
) -> TenantScopedRepository:
    """Repository bound to the tenant in the caller's verified token."""
    return TenantScopedRepository(engine, TenantScope.from_claims(claims))


async def get_quota(
    tenants: TenantRepository = Depends(get_tenant_repo),
) -> QuotaEnforcer:
    return QuotaEnforcer(tenants)
