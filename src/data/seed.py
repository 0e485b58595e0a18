"""Demo data — two free-plan tenants with an admin and a member each."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.concurrency import run_in_threadpool

from src.api.db.scoped import TenantScopedRepository
from src.api.db.tenants import TenantRepository
from src.core.constants import DEMO_PASSWORD, DEMO_TENANTS
from src.core.logging import get_logger
from src.core.types import Role, TenantScope
from src.saas.passwords import PasswordHasher

log = get_logger(__name__)


async def seed_demo_data(
    engine: AsyncEngine,
    hasher: PasswordHasher,
    note_limit: int,
) -> bool:
    """Create acme/globex and their users. Returns False if any tenant exists."""
    repo = TenantRepository(engine)
    if await repo.count() > 0:
        log.info("seed_skipped", reason="tenants_exist")
        return False

    password_hash = await run_in_threadpool(hasher.hash, DEMO_PASSWORD)
    for slug, name in DEMO_TENANTS:
        tenant, _admin = await repo.create_with_admin(
            name=name,
            slug=slug,
            email=f"admin@{slug}.test",
            password_hash=password_hash,
            note_limit=note_limit,
        )
        scoped = TenantScopedRepository(engine, TenantScope.from_tenant(tenant))
        await scoped.create_user(f"user@{slug}.test", password_hash, Role.MEMBER)

    log.info("seed_complete", tenants=[slug for slug, _ in DEMO_TENANTS])
    return True
