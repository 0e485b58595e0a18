"""Note endpoints — CRUD confined to the caller's tenant, creation gated by quota."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from src.api.db.scoped import TenantScopedRepository
from src.api.deps import get_quota, get_scoped_repo
from src.api.middleware import get_current_claims
from src.api.models.schemas import (
    NoteCreate,
    NoteEnvelope,
    NoteListOut,
    NoteOut,
    NotesMeta,
    NoteUpdate,
)
from src.core.types import NotePatch, SessionClaims
from src.saas.quota import QuotaEnforcer

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("", response_model=NoteListOut)
async def list_notes(
    repo: TenantScopedRepository = Depends(get_scoped_repo),
    quota: QuotaEnforcer = Depends(get_quota),
) -> NoteListOut:
    """List the tenant's notes, most recently updated first, with quota info."""
    notes = await repo.list_notes()
    usage = await quota.status(repo)
    return NoteListOut(
        notes=[NoteOut.from_note(n) for n in notes],
        meta=NotesMeta(
            count=usage.count,
            limit=usage.note_limit,
            plan=usage.plan,
            can_create_more=usage.can_create_more,
            remaining=usage.remaining,
        ),
    )


@router.get("/{note_id}", response_model=NoteOut)
async def get_note(
    note_id: str,
    repo: TenantScopedRepository = Depends(get_scoped_repo),
) -> NoteOut:
    return NoteOut.from_note(await repo.get_note(note_id))


@router.post("", response_model=NoteEnvelope, status_code=status.HTTP_201_CREATED)
async def create_note(
    body: NoteCreate,
    claims: SessionClaims = Depends(get_current_claims),
    repo: TenantScopedRepository = Depends(get_scoped_repo),
    quota: QuotaEnforcer = Depends(get_quota),
) -> NoteEnvelope:
    """Create a note; 403 once a free-plan tenant is at its limit."""
    note = await repo.create_note(claims.user_id, body.title, body.content, quota=quota)
    return NoteEnvelope(note=NoteOut.from_note(note))


@router.put("/{note_id}", response_model=NoteEnvelope)
async def update_note(
    note_id: str,
    body: NoteUpdate,
    repo: TenantScopedRepository = Depends(get_scoped_repo),
) -> NoteEnvelope:
    """Update title and/or content."""
    note = await repo.update_note(note_id, NotePatch(title=body.title, content=body.content))
    return NoteEnvelope(note=NoteOut.from_note(note))


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    repo: TenantScopedRepository = Depends(get_scoped_repo),
) -> Response:
    await repo.delete_note(note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
