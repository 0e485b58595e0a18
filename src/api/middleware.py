"""Access gate — bearer-token authentication and role checks for FastAPI routes."""

from __future__ import annotations

import structlog
from fastapi import Depends, Request

from src.core.exceptions import (
    ForbiddenError,
    TokenVerificationError,
    UnauthenticatedError,
)
from src.core.logging import get_logger
from src.core.types import SessionClaims
from src.saas.tokens import SessionTokenCodec

log = get_logger(__name__)


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


async def get_current_claims(request: Request) -> SessionClaims:
    """Verify the bearer token and attach its claims to ``request.state``.

    Every verification failure becomes the same :class:`UnauthenticatedError`,
    so callers cannot tell an expired token from a forged one.
    """
    token = _bearer_token(request)
    if token is None:
        raise UnauthenticatedError("Access token required")

    codec: SessionTokenCodec = request.app.state.token_codec
    try:
        claims = codec.verify(token)
    except TokenVerificationError as exc:
        log.info("auth_rejected", reason=type(exc).__name__, path=request.url.path)
        raise UnauthenticatedError("Invalid or expired token") from exc

    request.state.claims = claims
    structlog.contextvars.bind_contextvars(
        tenant_id=claims.tenant_id, user_id=claims.user_id
    )
    return claims


async def require_admin(claims: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
    """Authenticated *and* holding the admin role.

    The role comes from the signed token and is trusted for its lifetime;
    no repository lookup happens here.
    """
    if not claims.is_admin:
        log.info("role_denied", required="admin", actual=claims.role.value)
        raise ForbiddenError("Admin access required")
    return claims


def ensure_own_tenant(claims: SessionClaims, slug: str) -> None:
    """Reject a path slug that is not the caller's own tenant."""
    if claims.tenant_slug != slug:
        log.info("tenant_slug_mismatch", requested=slug, own=claims.tenant_slug)
        raise ForbiddenError("Access denied to this tenant")
