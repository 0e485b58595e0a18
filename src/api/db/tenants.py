"""DB-backed tenant repository — tenants, signup, and the few unscoped user lookups.

Everything that touches notes, or users inside a known tenant, goes through
:class:`src.api.db.scoped.TenantScopedRepository` instead.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine
from uuid_extensions import uuid7

from src.api.db.rows import normalize_email, row_to_tenant, row_to_user
from src.core.exceptions import ConflictError, NotFoundError
from src.core.logging import get_logger
from src.core.types import Role, Tenant, TenantPlan, User
from src.data.db import tenants, users
from src.saas.tenant import check_transition, note_limit_for

log = get_logger(__name__)


class TenantRepository:
    """Async tenant storage."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def find_by_id(self, tenant_id: str) -> Tenant | None:
        """Look up a tenant by ID."""
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(tenants).where(tenants.c.tenant_id == tenant_id)
            )
            r = result.mappings().first()
        return None if r is None else row_to_tenant(r)

    async def find_by_slug(self, slug: str) -> Tenant | None:
        """Look up a tenant by its slug."""
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(tenants).where(tenants.c.slug == slug.strip().lower())
            )
            r = result.mappings().first()
        return None if r is None else row_to_tenant(r)

    async def count(self) -> int:
        async with self._engine.begin() as conn:
            result = await conn.execute(select(func.count()).select_from(tenants))
            return result.scalar_one()

    # ── Unscoped user lookups (login/signup only) ────────────────

    async def find_users_by_email(self, email: str) -> list[User]:
        """All accounts for ``email`` across tenants, oldest first."""
        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(users)
                .where(users.c.email == normalize_email(email))
                .order_by(users.c.created_at.asc(), users.c.user_id.asc())
            )
            rows = result.mappings().all()
        return [row_to_user(r) for r in rows]

    async def find_user_by_email_global(self, email: str) -> User | None:
        """Oldest account for ``email`` in any tenant, or None."""
        matches = await self.find_users_by_email(email)
        return matches[0] if matches else None

    # ── Writes ───────────────────────────────────────────────────

    async def create_with_admin(
        self,
        *,
        name: str,
        slug: str,
        email: str,
        password_hash: str,
        note_limit: int | None = None,
    ) -> tuple[Tenant, User]:
        """Create a free-plan tenant and its first admin in one transaction.

        ``note_limit`` defaults to the free plan's limit.

        Raises:
            ConflictError: the slug is taken (including a concurrent signup).
        """
        now = datetime.now(timezone.utc)
        tenant_id = str(uuid7())
        user_id = str(uuid7())
        email = normalize_email(email)
        if note_limit is None:
            note_limit = note_limit_for(TenantPlan.FREE)

        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    insert(tenants).values(
                        tenant_id=tenant_id,
                        slug=slug,
                        name=name.strip(),
                        plan=TenantPlan.FREE.value,
                        note_limit=note_limit,
                        created_at=now,
                        updated_at=now,
                    )
                )
                await conn.execute(
                    insert(users).values(
                        user_id=user_id,
                        tenant_id=tenant_id,
                        email=email,
                        password_hash=password_hash,
                        role=Role.ADMIN.value,
                        created_at=now,
                    )
                )
        except IntegrityError as exc:
            log.info("tenant_create_conflict", slug=slug)
            raise ConflictError(
                "A company with this name already exists",
                context={"slug": slug},
            ) from exc

        log.info("tenant_created", tenant_id=tenant_id, slug=slug, admin_id=user_id)
        tenant = Tenant(
            tenant_id=tenant_id,
            slug=slug,
            name=name.strip(),
            plan=TenantPlan.FREE,
            note_limit=note_limit,
            created_at=now,
            updated_at=now,
        )
        user = User(
            user_id=user_id,
            tenant_id=tenant_id,
            email=email,
            password_hash=password_hash,
            role=Role.ADMIN,
            created_at=now,
        )
        return tenant, user

    async def upgrade_to_pro(self, tenant_id: str) -> Tenant:
        """Move a tenant from free to pro with one conditional update.

        Raises:
            NotFoundError: no such tenant.
            AlreadyOnPlanError: the tenant is already on pro.
        """
        now = datetime.now(timezone.utc)
        async with self._engine.begin() as conn:
            result = await conn.execute(
                update(tenants)
                .where(
                    tenants.c.tenant_id == tenant_id,
                    tenants.c.plan == TenantPlan.FREE.value,
                )
                .values(
                    plan=TenantPlan.PRO.value,
                    note_limit=note_limit_for(TenantPlan.PRO),
                    updated_at=now,
                )
            )
            upgraded = result.rowcount == 1

            current = await conn.execute(
                select(tenants).where(tenants.c.tenant_id == tenant_id)
            )
            r = current.mappings().first()

        if r is None:
            raise NotFoundError("Tenant not found", context={"tenant_id": tenant_id})
        tenant = row_to_tenant(r)
        if not upgraded:
            check_transition(tenant.plan, TenantPlan.PRO)

        log.info("plan_updated", tenant_id=tenant_id, old="free", new="pro")
        return tenant
