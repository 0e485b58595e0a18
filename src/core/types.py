"""System-wide shared types — the single source of truth for all data structures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


# ── Enums ────────────────────────────────────────────────────────

class TenantPlan(str, Enum):
    FREE = "free"
    PRO = "pro"


class Role(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


# ── Persistent Records ───────────────────────────────────────────

@dataclass(frozen=True)
class Tenant:
    """An isolated customer organization. ``note_limit == -1`` means unlimited."""

    tenant_id: str
    slug: str
    name: str
    plan: TenantPlan
    note_limit: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class User:
    """A login owned by exactly one tenant.

    ``password_hash`` stays inside the service; response schemas never carry it.
    """

    user_id: str
    tenant_id: str
    email: str
    password_hash: str
    role: Role
    created_at: datetime


@dataclass(frozen=True)
class Note:
    note_id: str
    tenant_id: str
    user_id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
    author_email: str | None = None


@dataclass(frozen=True)
class NotePatch:
    """Partial update for a note; ``None`` means "leave unchanged"."""

    title: str | None = None
    content: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.title is None and self.content is None


# ── Session ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class SessionClaims:
    """Identity facts carried by a signed session token. Never persisted."""

    user_id: str
    tenant_id: str
    tenant_slug: str
    email: str
    role: Role
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class TenantScope:
    """The one tenant a repository is allowed to touch.

    Build it with :meth:`from_claims` (verified session) or
    :meth:`from_tenant` (a tenant created in the same request, at signup).
    Client-supplied identifiers never become a scope.
    """

    tenant_id: str

    @classmethod
    def from_claims(cls, claims: SessionClaims) -> TenantScope:
        return cls(tenant_id=claims.tenant_id)

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> TenantScope:
        return cls(tenant_id=tenant.tenant_id)


# ── Quota ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class QuotaStatus:
    """Point-in-time usage for display. ``remaining is None`` means unbounded."""

    plan: TenantPlan
    note_limit: int
    count: int
    can_create_more: bool
    remaining: int | None
