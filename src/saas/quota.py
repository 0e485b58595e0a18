"""Note quota enforcement for SaaS tenants.

Plan state machine:
- free: bounded by the tenant's stored ``note_limit``
- pro:  unbounded, whatever ``note_limit`` says
- free -> pro is the only transition; repeating it is an error
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.core.exceptions import QuotaExceededError
from src.core.logging import get_logger
from src.core.types import QuotaStatus, Tenant, TenantPlan

if TYPE_CHECKING:
    from src.api.db.scoped import TenantScopedRepository
    from src.api.db.tenants import TenantRepository

log = get_logger(__name__)


class QuotaEnforcer:
    """Decides whether a tenant may create another note."""

    def __init__(self, tenants: TenantRepository) -> None:
        self._tenants = tenants

    # ── Pure decisions ───────────────────────────────────────────

    @staticmethod
    def allows(plan: TenantPlan, note_limit: int, count: int) -> bool:
        # Branch on the plan first; the -1 sentinel alone is not trusted.
        if plan == TenantPlan.PRO:
            return True
        return count < note_limit

    @staticmethod
    def remaining_for(plan: TenantPlan, note_limit: int, count: int) -> int | None:
        """Notes left for display only. ``None`` means unbounded."""
        if plan == TenantPlan.PRO:
            return None
        return max(0, note_limit - count)

    def ensure_can_create(
        self,
        plan: TenantPlan,
        note_limit: int,
        count: int,
        *,
        tenant_id: str,
    ) -> None:
        """Raise :class:`QuotaExceededError` if one more note is not allowed."""
        if self.allows(plan, note_limit, count):
            return
        log.warning(
            "quota_exceeded",
            tenant_id=tenant_id,
            current=count,
            limit=note_limit,
            plan=plan.value,
        )
        raise QuotaExceededError(
            "Note limit reached",
            context={"count": count, "limit": note_limit, "plan": plan.value},
        )

    # ── Live reads ───────────────────────────────────────────────

    async def status(self, repo: TenantScopedRepository) -> QuotaStatus:
        """Current usage recomputed from the live note count."""
        tenant = await repo.get_tenant()
        count = await repo.count_notes()
        return QuotaStatus(
            plan=tenant.plan,
            note_limit=tenant.note_limit,
            count=count,
            can_create_more=self.allows(tenant.plan, tenant.note_limit, count),
            remaining=self.remaining_for(tenant.plan, tenant.note_limit, count),
        )

    # ── Transition ───────────────────────────────────────────────

    async def upgrade(self, tenant_id: str) -> Tenant:
        """free -> pro. Raises ``AlreadyOnPlanError`` if already pro."""
        return await self._tenants.upgrade_to_pro(tenant_id)
