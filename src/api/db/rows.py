"""Row → record conversion shared by the repositories."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from src.core.types import Note, Role, Tenant, TenantPlan, User


def normalize_email(email: str) -> str:
    """Emails are stored and compared trimmed and lowercased."""
    return email.strip().lower()


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def row_to_tenant(r: Mapping[str, Any]) -> Tenant:
    return Tenant(
        tenant_id=r["tenant_id"],
        slug=r["slug"],
        name=r["name"],
        plan=TenantPlan(r["plan"]),
        note_limit=r["note_limit"],
        created_at=_aware(r["created_at"]),
        updated_at=_aware(r["updated_at"]),
    )


def row_to_user(r: Mapping[str, Any]) -> User:
    return User(
        user_id=r["user_id"],
        tenant_id=r["tenant_id"],
        email=r["email"],
        password_hash=r["password_hash"],
        role=Role(r["role"]),
        created_at=_aware(r["created_at"]),
    )


def row_to_note(r: Mapping[str, Any]) -> Note:
    return Note(
        note_id=r["note_id"],
        tenant_id=r["tenant_id"],
        user_id=r["user_id"],
        title=r["title"],
        content=r["content"] or "",
        created_at=_aware(r["created_at"]),
        updated_at=_aware(r["updated_at"]),
        author_email=r.get("author_email"),
    )
