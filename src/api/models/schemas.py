"""Pydantic V2 request/response schemas for Quill API."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, AliasChoices, BaseModel, Field

from src.core.constants import (
    COMPANY_NAME_MAX_LENGTH,
    COMPANY_NAME_MIN_LENGTH,
    NOTE_CONTENT_MAX_LENGTH,
    NOTE_TITLE_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
)
from src.core.types import Note, Role, Tenant, TenantPlan, User

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if not _EMAIL_RE.match(value):
        msg = "must be a valid email"
        raise ValueError(msg)
    return value


EmailAddress = Annotated[str, AfterValidator(_check_email)]


# ── Auth ──────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailAddress
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)


class SignupRequest(BaseModel):
    """Create a new tenant and its first admin."""

    email: EmailAddress
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    company_name: str = Field(
        ...,
        min_length=COMPANY_NAME_MIN_LENGTH,
        max_length=COMPANY_NAME_MAX_LENGTH,
        validation_alias=AliasChoices("company_name", "companyName"),
    )


class InviteRequest(BaseModel):
    """Add a user to the caller's own tenant."""

    email: EmailAddress
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    role: Role = Role.MEMBER


class TenantOut(BaseModel):
    id: str
    slug: str
    name: str
    plan: TenantPlan
    note_limit: int

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> TenantOut:
        return cls(
            id=tenant.tenant_id,
            slug=tenant.slug,
            name=tenant.name,
            plan=tenant.plan,
            note_limit=tenant.note_limit,
        )


class UserOut(BaseModel):
    """A user with the tenant it belongs to. Never carries the password hash."""

    id: str
    email: str
    role: Role
    tenant: TenantOut

    @classmethod
    def from_records(cls, user: User, tenant: Tenant) -> UserOut:
        return cls(
            id=user.user_id,
            email=user.email,
            role=user.role,
            tenant=TenantOut.from_tenant(tenant),
        )


class AuthResponse(BaseModel):
    token: str
    user: UserOut


class UserEnvelope(BaseModel):
    user: UserOut


# ── Notes ─────────────────────────────────────────────────────────

class NoteCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=NOTE_TITLE_MAX_LENGTH)
    content: str = Field(default="", max_length=NOTE_CONTENT_MAX_LENGTH)


class NoteUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=NOTE_TITLE_MAX_LENGTH)
    content: str | None = Field(default=None, max_length=NOTE_CONTENT_MAX_LENGTH)


class NoteOut(BaseModel):
    id: str
    title: str
    content: str
    user_id: str
    author_email: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_note(cls, note: Note) -> NoteOut:
        return cls(
            id=note.note_id,
            title=note.title,
            content=note.content,
            user_id=note.user_id,
            author_email=note.author_email,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


class NoteEnvelope(BaseModel):
    note: NoteOut


class NotesMeta(BaseModel):
    count: int
    limit: int
    plan: TenantPlan
    can_create_more: bool
    remaining: int | None = None


class NoteListOut(BaseModel):
    notes: list[NoteOut] = Field(default_factory=list)
    meta: NotesMeta


# ── Tenants ───────────────────────────────────────────────────────

class TenantDetailOut(TenantOut):
    current_note_count: int
    can_create_more: bool


class TenantEnvelope(BaseModel):
    tenant: TenantDetailOut
    message: str | None = None


class MemberOut(BaseModel):
    id: str
    email: str
    role: Role
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> MemberOut:
        return cls(
            id=user.user_id,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
        )


class InviteResponse(BaseModel):
    user: MemberOut


class UserListOut(BaseModel):
    users: list[MemberOut] = Field(default_factory=list)


# ── Generic ───────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "dev"


class ErrorResponse(BaseModel):
    error: str
    detail: str
    hint: str | None = None
