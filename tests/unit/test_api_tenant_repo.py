"""Tests for TenantRepository and TenantScopedRepository against a SQLite database."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from src.api.db.scoped import TenantScopedRepository
from src.api.db.tenants import TenantRepository
from src.core.exceptions import (
    AlreadyOnPlanError,
    ConflictError,
    InputValidationError,
    NotFoundError,
    QuotaExceededError,
)
from src.core.types import Note, NotePatch, Role, Tenant, TenantPlan, TenantScope, User
from src.data.db import tenants
from src.data.seed import seed_demo_data
from src.saas.passwords import PasswordHasher
from src.saas.quota import QuotaEnforcer

Database = Callable[[], AbstractAsyncContextManager[AsyncEngine]]


async def _tenant(engine: AsyncEngine, slug: str, note_limit: int = 3) -> tuple[Tenant, User]:
    return await TenantRepository(engine).create_with_admin(
        name=slug.capitalize(),
        slug=slug,
        email=f"admin@{slug}.test",
        password_hash="hash",
        note_limit=note_limit,
    )


def _scoped(engine: AsyncEngine, tenant: Tenant) -> TenantScopedRepository:
    return TenantScopedRepository(engine, TenantScope.from_tenant(tenant))


class TestTenantRepository:
    @pytest.mark.asyncio
    async def test_create_with_admin(self, database: Database) -> None:
        async with database() as engine:
            repo = TenantRepository(engine)
            tenant, admin = await repo.create_with_admin(
                name="  Acme Corp ",
                slug="acme-corp",
                email=" Admin@Acme.TEST ",
                password_hash="hash",
                note_limit=3,
            )
            assert tenant.name == "Acme Corp"
            assert tenant.plan == TenantPlan.FREE
            assert tenant.note_limit == 3
            assert admin.role == Role.ADMIN
            assert admin.email == "admin@acme.test"
            assert admin.tenant_id == tenant.tenant_id

            found = await repo.find_by_slug("ACME-CORP")
            assert found is not None
            assert found.tenant_id == tenant.tenant_id
            assert found.created_at.tzinfo is not None
            assert await repo.count() == 1

    @pytest.mark.asyncio
    async def test_duplicate_slug_is_conflict(self, database: Database) -> None:
        async with database() as engine:
            await _tenant(engine, "acme")
            with pytest.raises(ConflictError):
                await TenantRepository(engine).create_with_admin(
                    name="Acme", slug="acme", email="other@acme.test",
                    password_hash="hash", note_limit=3,
                )
            # The failed signup left no stray user behind.
            assert await TenantRepository(engine).find_user_by_email_global("other@acme.test") is None

    @pytest.mark.asyncio
    async def test_find_missing(self, database: Database) -> None:
        async with database() as engine:
            repo = TenantRepository(engine)
            assert await repo.find_by_id("nope") is None
            assert await repo.find_by_slug("nope") is None

    @pytest.mark.asyncio
    async def test_users_by_email_oldest_first(self, database: Database) -> None:
        async with database() as engine:
            acme, acme_admin = await _tenant(engine, "acme")
            globex, _ = await _tenant(engine, "globex")
            await _scoped(engine, globex).create_user("admin@acme.test", "hash2", Role.MEMBER)

            matches = await TenantRepository(engine).find_users_by_email("ADMIN@acme.test")
            assert [u.tenant_id for u in matches] == [acme.tenant_id, globex.tenant_id]
            oldest = await TenantRepository(engine).find_user_by_email_global("admin@acme.test")
            assert oldest is not None
            assert oldest.user_id == acme_admin.user_id

    @pytest.mark.asyncio
    async def test_upgrade_to_pro(self, database: Database) -> None:
        async with database() as engine:
            tenant, _ = await _tenant(engine, "acme")
            repo = TenantRepository(engine)

            upgraded = await repo.upgrade_to_pro(tenant.tenant_id)
            assert upgraded.plan == TenantPlan.PRO
            assert upgraded.note_limit == -1

            with pytest.raises(AlreadyOnPlanError):
                await repo.upgrade_to_pro(tenant.tenant_id)

    @pytest.mark.asyncio
    async def test_default_note_limit_is_free_plan(self, database: Database) -> None:
        async with database() as engine:
            tenant, _ = await TenantRepository(engine).create_with_admin(
                name="Acme", slug="acme", email="admin@acme.test", password_hash="hash",
            )
            assert tenant.note_limit == 3

    @pytest.mark.asyncio
    async def test_unknown_stored_plan_is_an_error(self, database: Database) -> None:
        async with database() as engine:
            now = datetime.now(timezone.utc)
            async with engine.begin() as conn:
                await conn.execute(
                    insert(tenants).values(
                        tenant_id="t-bad", slug="bad", name="Bad", plan="enterprise",
                        note_limit=3, created_at=now, updated_at=now,
                    )
                )
            with pytest.raises(ValueError):
                await TenantRepository(engine).find_by_slug("bad")

    @pytest.mark.asyncio
    async def test_upgrade_missing_tenant(self, database: Database) -> None:
        async with database() as engine:
            with pytest.raises(NotFoundError):
                await TenantRepository(engine).upgrade_to_pro("nope")


class TestScopedNotes:
    @pytest.mark.asyncio
    async def test_create_and_get(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme")
            repo = _scoped(engine, tenant)

            note = await repo.create_note(admin.user_id, "  Hello  ", "  body  ")
            assert note.title == "Hello"
            assert note.content == "body"
            assert note.tenant_id == tenant.tenant_id
            assert note.author_email == "admin@acme.test"
            assert note.created_at == note.updated_at

            fetched = await repo.get_note(note.note_id)
            assert fetched == note

    @pytest.mark.asyncio
    async def test_title_validation(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme")
            repo = _scoped(engine, tenant)
            with pytest.raises(InputValidationError):
                await repo.create_note(admin.user_id, "   ")
            with pytest.raises(InputValidationError):
                await repo.create_note(admin.user_id, "x" * 201)
            with pytest.raises(InputValidationError):
                await repo.create_note(admin.user_id, "ok", "x" * 10_001)
            assert await repo.count_notes() == 0

    @pytest.mark.asyncio
    async def test_list_newest_updated_first(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme", note_limit=10)
            repo = _scoped(engine, tenant)
            first = await repo.create_note(admin.user_id, "first")
            second = await repo.create_note(admin.user_id, "second")
            third = await repo.create_note(admin.user_id, "third")

            assert [n.note_id for n in await repo.list_notes()] == [
                third.note_id, second.note_id, first.note_id,
            ]

            await repo.update_note(first.note_id, NotePatch(content="edited"))
            listed = await repo.list_notes()
            assert listed[0].note_id == first.note_id
            assert await repo.list_notes() == listed

    @pytest.mark.asyncio
    async def test_partial_update(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme")
            repo = _scoped(engine, tenant)
            note = await repo.create_note(admin.user_id, "title", "content")

            updated = await repo.update_note(note.note_id, NotePatch(title="new title"))
            assert updated.title == "new title"
            assert updated.content == "content"
            assert updated.updated_at >= note.updated_at
            assert updated.created_at == note.created_at

    @pytest.mark.asyncio
    async def test_empty_patch_rejected(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme")
            repo = _scoped(engine, tenant)
            note = await repo.create_note(admin.user_id, "title")
            with pytest.raises(InputValidationError):
                await repo.update_note(note.note_id, NotePatch())

    @pytest.mark.asyncio
    async def test_delete(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme")
            repo = _scoped(engine, tenant)
            note = await repo.create_note(admin.user_id, "title")

            await repo.delete_note(note.note_id)
            with pytest.raises(NotFoundError):
                await repo.get_note(note.note_id)
            with pytest.raises(NotFoundError):
                await repo.delete_note(note.note_id)

    @pytest.mark.asyncio
    async def test_other_tenant_notes_are_not_found(self, database: Database) -> None:
        async with database() as engine:
            acme, acme_admin = await _tenant(engine, "acme")
            globex, _ = await _tenant(engine, "globex")
            acme_repo = _scoped(engine, acme)
            globex_repo = _scoped(engine, globex)
            note = await acme_repo.create_note(acme_admin.user_id, "secret")

            assert await globex_repo.list_notes() == []
            assert await globex_repo.count_notes() == 0
            with pytest.raises(NotFoundError):
                await globex_repo.get_note(note.note_id)
            with pytest.raises(NotFoundError):
                await globex_repo.update_note(note.note_id, NotePatch(title="pwned"))
            with pytest.raises(NotFoundError):
                await globex_repo.delete_note(note.note_id)

            # Untouched in its own tenant.
            assert (await acme_repo.get_note(note.note_id)).title == "secret"


class TestScopedQuota:
    @pytest.mark.asyncio
    async def test_free_plan_limit(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme", note_limit=3)
            repo = _scoped(engine, tenant)
            quota = QuotaEnforcer(TenantRepository(engine))

            for i in range(3):
                await repo.create_note(admin.user_id, f"note {i}", quota=quota)
            with pytest.raises(QuotaExceededError):
                await repo.create_note(admin.user_id, "one too many", quota=quota)
            assert await repo.count_notes() == 3

            status = await quota.status(repo)
            assert status.count == 3
            assert status.can_create_more is False
            assert status.remaining == 0

    @pytest.mark.asyncio
    async def test_upgrade_lifts_limit(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme", note_limit=1)
            repo = _scoped(engine, tenant)
            quota = QuotaEnforcer(TenantRepository(engine))
            await repo.create_note(admin.user_id, "only", quota=quota)
            assert (await quota.status(repo)).can_create_more is False

            await quota.upgrade(tenant.tenant_id)
            for i in range(3):
                await repo.create_note(admin.user_id, f"pro {i}", quota=quota)
            assert (await quota.status(repo)).remaining is None
            assert await repo.count_notes() == 4

    @pytest.mark.asyncio
    async def test_concurrent_creates_stop_at_limit(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme", note_limit=3)
            repo = _scoped(engine, tenant)
            quota = QuotaEnforcer(TenantRepository(engine))
            for i in range(2):
                await repo.create_note(admin.user_id, f"note {i}", quota=quota)

            results = await asyncio.gather(
                *(repo.create_note(admin.user_id, f"race {i}", quota=quota) for i in range(6)),
                return_exceptions=True,
            )

            created = [r for r in results if isinstance(r, Note)]
            refused = [r for r in results if isinstance(r, QuotaExceededError)]
            assert len(created) == 1
            assert len(refused) == 5
            assert await repo.count_notes() == 3

    @pytest.mark.asyncio
    async def test_deleting_frees_a_slot(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme", note_limit=1)
            repo = _scoped(engine, tenant)
            quota = QuotaEnforcer(TenantRepository(engine))
            note = await repo.create_note(admin.user_id, "only", quota=quota)
            await repo.delete_note(note.note_id)
            await repo.create_note(admin.user_id, "again", quota=quota)

    @pytest.mark.asyncio
    async def test_quota_is_per_tenant(self, database: Database) -> None:
        async with database() as engine:
            acme, acme_admin = await _tenant(engine, "acme", note_limit=1)
            globex, globex_admin = await _tenant(engine, "globex", note_limit=1)
            quota = QuotaEnforcer(TenantRepository(engine))
            await _scoped(engine, acme).create_note(acme_admin.user_id, "a", quota=quota)
            await _scoped(engine, globex).create_note(globex_admin.user_id, "g", quota=quota)


class TestScopedUsers:
    @pytest.mark.asyncio
    async def test_create_and_list(self, database: Database) -> None:
        async with database() as engine:
            tenant, admin = await _tenant(engine, "acme")
            repo = _scoped(engine, tenant)
            member = await repo.create_user("User@Acme.test", "hash", Role.MEMBER)
            assert member.email == "user@acme.test"
            assert member.role == Role.MEMBER

            users = await repo.list_users()
            assert [u.user_id for u in users] == [admin.user_id, member.user_id]
            assert (await repo.get_user(member.user_id)).email == "user@acme.test"
            found = await repo.find_user_by_email("USER@acme.test")
            assert found is not None

    @pytest.mark.asyncio
    async def test_duplicate_email_in_tenant(self, database: Database) -> None:
        async with database() as engine:
            tenant, _ = await _tenant(engine, "acme")
            repo = _scoped(engine, tenant)
            with pytest.raises(ConflictError):
                await repo.create_user("admin@acme.test", "hash", Role.MEMBER)

    @pytest.mark.asyncio
    async def test_users_isolated(self, database: Database) -> None:
        async with database() as engine:
            acme, acme_admin = await _tenant(engine, "acme")
            globex, _ = await _tenant(engine, "globex")
            globex_repo = _scoped(engine, globex)
            assert all(u.tenant_id == globex.tenant_id for u in await globex_repo.list_users())
            with pytest.raises(NotFoundError):
                await globex_repo.get_user(acme_admin.user_id)
            assert await globex_repo.find_user_by_email("admin@acme.test") is None


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_demo_data_once(self, database: Database) -> None:
        async with database() as engine:
            hasher = PasswordHasher(rounds=4)
            assert await seed_demo_data(engine, hasher, 3) is True
            assert await seed_demo_data(engine, hasher, 3) is False

            repo = TenantRepository(engine)
            assert await repo.count() == 2
            acme = await repo.find_by_slug("acme")
            assert acme is not None
            users = await _scoped(engine, acme).list_users()
            assert [(u.email, u.role) for u in users] == [
                ("admin@acme.test", Role.ADMIN),
                ("user@acme.test", Role.MEMBER),
            ]
            assert hasher.verify("password", users[0].password_hash)
