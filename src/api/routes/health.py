"""Health check endpoint — no auth required."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from config.settings import Settings
from src.api.deps import get_app_settings
from src.api.models.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        environment=settings.quill_env,
    )
