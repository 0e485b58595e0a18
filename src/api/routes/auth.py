"""Authentication routes — login, tenant signup, invites, current user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from starlette.concurrency import run_in_threadpool

from config.settings import Settings
from src.api.db.scoped import TenantScopedRepository
from src.api.db.tenants import TenantRepository
from src.api.deps import (
    get_app_settings,
    get_password_hasher,
    get_scoped_repo,
    get_tenant_repo,
    get_token_codec,
)
from src.api.middleware import get_current_claims, require_admin
from src.api.models.schemas import (
    AuthResponse,
    InviteRequest,
    InviteResponse,
    LoginRequest,
    MemberOut,
    SignupRequest,
    UserEnvelope,
    UserOut,
)
from src.core.exceptions import ConflictError, NotFoundError, UnauthenticatedError
from src.core.logging import get_logger
from src.core.types import SessionClaims, Tenant, User
from src.saas.passwords import PasswordHasher
from src.saas.tenant import slugify
from src.saas.tokens import SessionTokenCodec

log = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue(codec: SessionTokenCodec, user: User, tenant: Tenant) -> str:
    return codec.issue(
        user_id=user.user_id,
        tenant_id=tenant.tenant_id,
        tenant_slug=tenant.slug,
        email=user.email,
        role=user.role,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    tenants: TenantRepository = Depends(get_tenant_repo),
    hasher: PasswordHasher = Depends(get_password_hasher),
    codec: SessionTokenCodec = Depends(get_token_codec),
) -> AuthResponse:
    """Exchange email + password for a session token."""
    candidates = await tenants.find_users_by_email(body.email)
    if not candidates:
        await run_in_threadpool(hasher.burn, body.password)
        log.info("login_failed", reason="unknown_email")
        raise UnauthenticatedError("Invalid credentials")

    # The same email may exist in several tenants; the oldest matching account wins.
    for user in candidates:
        if await run_in_threadpool(hasher.verify, body.password, user.password_hash):
            tenant = await tenants.find_by_id(user.tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant not found")
            log.info("login_success", user_id=user.user_id, tenant_id=tenant.tenant_id)
            return AuthResponse(
                token=_issue(codec, user, tenant),
                user=UserOut.from_records(user, tenant),
            )

    log.info("login_failed", reason="bad_password")
    raise UnauthenticatedError("Invalid credentials")


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    tenants: TenantRepository = Depends(get_tenant_repo),
    hasher: PasswordHasher = Depends(get_password_hasher),
    codec: SessionTokenCodec = Depends(get_token_codec),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    """Create a new tenant on the free plan with the caller as its first admin."""
    slug = slugify(body.company_name)

    if await tenants.find_by_slug(slug) is not None:
        raise ConflictError(
            "A company with this name already exists", context={"slug": slug}
        )
    if await tenants.find_user_by_email_global(body.email) is not None:
        raise ConflictError("User with this email already exists")

    password_hash = await run_in_threadpool(hasher.hash, body.password)
    tenant, user = await tenants.create_with_admin(
        name=body.company_name,
        slug=slug,
        email=body.email,
        password_hash=password_hash,
        note_limit=settings.quill_default_note_limit,
    )

    log.info("signup_success", tenant_id=tenant.tenant_id, slug=slug)
    return AuthResponse(
        token=_issue(codec, user, tenant),
        user=UserOut.from_records(user, tenant),
    )


@router.post("/invite", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def invite(
    body: InviteRequest,
    claims: SessionClaims = Depends(require_admin),
    repo: TenantScopedRepository = Depends(get_scoped_repo),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> InviteResponse:
    """Add a user to the admin's own tenant. No token is issued for the invitee."""
    if await repo.find_user_by_email(body.email) is not None:
        raise ConflictError("User with this email already exists in your organization")

    password_hash = await run_in_threadpool(hasher.hash, body.password)
    user = await repo.create_user(body.email, password_hash, body.role)

    log.info("user_invited", invited_by=claims.user_id, user_id=user.user_id, role=user.role.value)
    return InviteResponse(user=MemberOut.from_user(user))


@router.get("/me", response_model=UserEnvelope)
async def get_me(
    claims: SessionClaims = Depends(get_current_claims),
    repo: TenantScopedRepository = Depends(get_scoped_repo),
) -> UserEnvelope:
    """Return the current authenticated user's info."""
    user = await repo.get_user(claims.user_id)
    tenant = await repo.get_tenant()
    return UserEnvelope(user=UserOut.from_records(user, tenant))
