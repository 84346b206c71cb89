"""Health check endpoint. No auth required; never touches the store or external APIs."""

import os
from datetime import datetime, timezone

from fastapi import APIRouter

from apps.sangam.config import load_settings
from apps.sangam.schemas.health import HealthResponse
from apps.sangam.services.embedding_provider import embedding_provider_name
from apps.sangam.services.llm_provider import llm_provider_name

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    settings = load_settings()
    return HealthResponse(
        ok=True,
        version=os.getenv("GIT_SHA", "").strip() or "dev",
        time=datetime.now(timezone.utc).isoformat(),
        env=settings.env or "default",
        embedding_provider=embedding_provider_name(settings),
        llm_provider=llm_provider_name(settings),
    )
