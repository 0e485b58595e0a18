"""Tenant endpoints — plan info, upgrade, and user listing for the caller's own tenant."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.db.scoped import TenantScopedRepository
from src.api.deps import get_quota, get_scoped_repo
from src.api.middleware import ensure_own_tenant, get_current_claims, require_admin
from src.api.models.schemas import (
    MemberOut,
    TenantDetailOut,
    TenantEnvelope,
    UserListOut,
)
from src.core.types import QuotaStatus, SessionClaims, Tenant
from src.saas.quota import QuotaEnforcer

router = APIRouter(prefix="/tenants", tags=["tenants"])


def _detail(tenant: Tenant, usage: QuotaStatus) -> TenantDetailOut:
    return TenantDetailOut(
        id=tenant.tenant_id,
        slug=tenant.slug,
        name=tenant.name,
        plan=tenant.plan,
        note_limit=tenant.note_limit,
        current_note_count=usage.count,
        can_create_more=usage.can_create_more,
    )


@router.get("/{slug}", response_model=TenantEnvelope)
async def get_tenant(
    slug: str,
    claims: SessionClaims = Depends(get_current_claims),
    repo: TenantScopedRepository = Depends(get_scoped_repo),
    quota: QuotaEnforcer = Depends(get_quota),
) -> TenantEnvelope:
    ensure_own_tenant(claims, slug)
    tenant = await repo.get_tenant()
    return TenantEnvelope(tenant=_detail(tenant, await quota.status(repo)))


@router.post("/{slug}/upgrade", response_model=TenantEnvelope)
async def upgrade_tenant(
    slug: str,
    claims: SessionClaims = Depends(require_admin),
    repo: TenantScopedRepository = Depends(get_scoped_repo),
    quota: QuotaEnforcer = Depends(get_quota),
) -> TenantEnvelope:
    """Move the tenant to the Pro plan. 400 if it is already there."""
    ensure_own_tenant(claims, slug)
    tenant = await quota.upgrade(claims.tenant_id)
    return TenantEnvelope(
        tenant=_detail(tenant, await quota.status(repo)),
        message="Successfully upgraded to Pro plan!",
    )


@router.get("/{slug}/users", response_model=UserListOut)
async def list_tenant_users(
    slug: str,
    claims: SessionClaims = Depends(require_admin),
    repo: TenantScopedRepository = Depends(get_scoped_repo),
) -> UserListOut:
    ensure_own_tenant(claims, slug)
    users = await repo.list_users()
    return UserListOut(users=[MemberOut.from_user(u) for u in users])
