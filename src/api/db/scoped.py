"""Tenant-scoped repository — the only data-access path for notes and tenant users.

A repository instance is bound to one :class:`TenantScope` at construction and
every statement it issues carries ``tenant_id = <scope>`` in its WHERE clause
(or VALUES, for inserts). No method accepts a tenant identifier, so a row from
another tenant cannot be reached through it. A note that exists elsewhere is
reported as :class:`NotFoundError`, never as a permission error.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Select, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from uuid_extensions import uuid7

from src.api.db.rows import normalize_email, row_to_note, row_to_tenant, row_to_user
from src.core.constants import NOTE_CONTENT_MAX_LENGTH, NOTE_TITLE_MAX_LENGTH
from src.core.exceptions import ConflictError, InputValidationError, NotFoundError
from src.core.logging import get_logger
from src.core.types import Note, NotePatch, Role, Tenant, TenantPlan, TenantScope, User
from src.data.db import notes, tenants, users

if TYPE_CHECKING:
    from src.saas.quota import QuotaEnforcer

log = get_logger(__name__)


def _clean_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise InputValidationError("title is required")
    if len(title) > NOTE_TITLE_MAX_LENGTH:
        raise InputValidationError(
            f"title must be at most {NOTE_TITLE_MAX_LENGTH} characters"
        )
    return title


def _clean_content(content: str) -> str:
    content = content.strip()
    if len(content) > NOTE_CONTENT_MAX_LENGTH:
        raise InputValidationError(
            f"content must be at most {NOTE_CONTENT_MAX_LENGTH} characters"
        )
    return content


class TenantScopedRepository:
    """Notes and users of exactly one tenant."""

    def __init__(self, engine: AsyncEngine, scope: TenantScope) -> None:
        self._engine = engine
        self._scope = scope

    @property
    def tenant_id(self) -> str:
        return self._scope.tenant_id

    # ── Tenant ───────────────────────────────────────────────────

    async def get_tenant(self) -> Tenant:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(tenants).where(tenants.c.tenant_id == self.tenant_id)
            )
            r = result.mappings().first()
        if r is None:
            raise NotFoundError("Tenant not found")
        return row_to_tenant(r)

    # ── Notes ────────────────────────────────────────────────────

    def _notes_with_author(self) -> Select:
        return (
            select(notes, users.c.email.label("author_email"))
            .select_from(notes.outerjoin(users, notes.c.user_id == users.c.user_id))
            .where(notes.c.tenant_id == self.tenant_id)
        )

    async def _fetch_note(self, conn: AsyncConnection, note_id: str) -> Note:
        result = await conn.execute(
            self._notes_with_author().where(notes.c.note_id == note_id)
        )
        r = result.mappings().first()
        if r is None:
            raise NotFoundError("Note not found", context={"note_id": note_id})
        return row_to_note(r)

    async def list_notes(self) -> list[Note]:
        """Newest-updated first; ties by creation time, then id, both descending."""
        async with self._engine.begin() as conn:
            result = await conn.execute(
                self._notes_with_author().order_by(
                    notes.c.updated_at.desc(),
                    notes.c.created_at.desc(),
                    notes.c.note_id.desc(),
                )
            )
            rows = result.mappings().all()
        return [row_to_note(r) for r in rows]

    async def get_note(self, note_id: str) -> Note:
        async with self._engine.begin() as conn:
            return await self._fetch_note(conn, note_id)

    async def count_notes(self) -> int:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(func.count())
                .select_from(notes)
                .where(notes.c.tenant_id == self.tenant_id)
            )
            return result.scalar_one()

    async def create_note(
        self,
        user_id: str,
        title: str,
        content: str = "",
        *,
        quota: QuotaEnforcer | None = None,
    ) -> Note:
        """Insert a note owned by this tenant.

        With ``quota``, the tenant row is locked (``FOR UPDATE`` on PostgreSQL,
        ``BEGIN IMMEDIATE`` on SQLite) and the note count taken in the same
        transaction as the insert, so concurrent creates against one tenant
        cannot overshoot its limit.
        """
        title = _clean_title(title)
        content = _clean_content(content or "")
        now = datetime.now(timezone.utc)
        note_id = str(uuid7())

        async with self._engine.begin() as conn:
            if quota is not None:
                await self._check_quota(conn, quota)

            await conn.execute(
                insert(notes).values(
                    note_id=note_id,
                    tenant_id=self.tenant_id,
                    user_id=user_id,
                    title=title,
                    content=content,
                    created_at=now,
                    updated_at=now,
                )
            )
            note = await self._fetch_note(conn, note_id)

        log.info("note_created", note_id=note_id, tenant_id=self.tenant_id, user_id=user_id)
        return note

    async def _check_quota(self, conn: AsyncConnection, quota: QuotaEnforcer) -> None:
        result = await conn.execute(
            select(tenants.c.plan, tenants.c.note_limit)
            .where(tenants.c.tenant_id == self.tenant_id)
            .with_for_update()
        )
        row = result.mappings().first()
        if row is None:
            raise NotFoundError("Tenant not found")

        count_result = await conn.execute(
            select(func.count())
            .select_from(notes)
            .where(notes.c.tenant_id == self.tenant_id)
        )
        quota.ensure_can_create(
            TenantPlan(row["plan"]),
            row["note_limit"],
            count_result.scalar_one(),
            tenant_id=self.tenant_id,
        )

    async def update_note(self, note_id: str, patch: NotePatch) -> Note:
        """Apply a partial update. Last write wins between concurrent updates."""
        if patch.is_empty:
            raise InputValidationError("no fields to update")

        values: dict[str, object] = {"updated_at": datetime.now(timezone.utc)}
        if patch.title is not None:
            values["title"] = _clean_title(patch.title)
        if patch.content is not None:
            values["content"] = _clean_content(patch.content)

        async with self._engine.begin() as conn:
            result = await conn.execute(
                update(notes)
                .where(notes.c.note_id == note_id, notes.c.tenant_id == self.tenant_id)
                .values(**values)
            )
            if result.rowcount == 0:
                raise NotFoundError("Note not found", context={"note_id": note_id})
            note = await self._fetch_note(conn, note_id)

        log.info("note_updated", note_id=note_id, tenant_id=self.tenant_id)
        return note

    async def delete_note(self, note_id: str) -> None:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                delete(notes).where(
                    notes.c.note_id == note_id, notes.c.tenant_id == self.tenant_id
                )
            )
        if result.rowcount == 0:
            raise NotFoundError("Note not found", context={"note_id": note_id})
        log.info("note_deleted", note_id=note_id, tenant_id=self.tenant_id)

    # ── Users ────────────────────────────────────────────────────

    async def list_users(self) -> list[User]:
        """Oldest first."""
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(users)
                .where(users.c.tenant_id == self.tenant_id)
                .order_by(users.c.created_at.asc(), users.c.user_id.asc())
            )
            rows = result.mappings().all()
        return [row_to_user(r) for r in rows]

    async def get_user(self, user_id: str) -> User:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(users).where(
                    users.c.user_id == user_id, users.c.tenant_id == self.tenant_id
                )
            )
            r = result.mappings().first()
        if r is None:
            raise NotFoundError("User not found")
        return row_to_user(r)

    async def find_user_by_email(self, email: str) -> User | None:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(users).where(
                    users.c.email == normalize_email(email),
                    users.c.tenant_id == self.tenant_id,
                )
            )
            r = result.mappings().first()
        return None if r is None else row_to_user(r)

    async def create_user(self, email: str, password_hash: str, role: Role) -> User:
        """Add a user to this tenant. Raises ConflictError on a duplicate email."""
        now = datetime.now(timezone.utc)
        user_id = str(uuid7())
        email = normalize_email(email)

        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    insert(users).values(
                        user_id=user_id,
                        tenant_id=self.tenant_id,
                        email=email,
                        password_hash=password_hash,
                        role=Role(role).value,
                        created_at=now,
                    )
                )
        except IntegrityError as exc:
            raise ConflictError(
                "User with this email already exists in your organization"
            ) from exc

        log.info("user_created", user_id=user_id, tenant_id=self.tenant_id, role=Role(role).value)
        return User(
            user_id=user_id,
            tenant_id=self.tenant_id,
            email=email,
            password_hash=password_hash,
            role=Role(role),
            created_at=now,
        )
