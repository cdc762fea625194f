"""Assistant endpoints: language-model proxy and learning recommendations."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.assistant.client import OllamaClient
from skillpath.assistant.recommendations import build_recommendations
from skillpath.assistant.schemas import (
    AssistantHealthResponse,
    ChatRequest,
    ChatResponse,
    ModelsResponse,
    ModelSwitchRequest,
    ModelSwitchResponse,
    RecommendationsResponse,
)
from skillpath.auth.dependencies import get_current_user
from skillpath.config import get_settings
from skillpath.database import get_session
from skillpath.db.models import User, UserAchievement
from skillpath.errors import ValidationError
from skillpath.gamification.levels import LevelCurve
from skillpath.gamification.progression import get_or_create_profile

router = APIRouter(prefix="/api/v1/assistant", tags=["Assistant"])


async def get_ollama_client() -> AsyncGenerator[OllamaClient, None]:
    """Yield a model-server client for one request (FastAPI dependency)."""
    settings = get_settings()
    client = OllamaClient(settings.ollama_base_url, timeout=settings.ollama_timeout_seconds)
    try:
        yield client
    finally:
        await client.aclose()


def _resolve_model(requested: str | None, user: User) -> str:
    settings = get_settings()
    if requested is None:
        return user.preferred_model or settings.ollama_default_model
    if requested not in settings.ollama_allowed_models:
        msg = f"Unsupported model: {requested}"
        raise ValidationError(msg)
    return requested


@router.get("/health", response_model=AssistantHealthResponse)
async def assistant_health(
    _user: User = Depends(get_current_user),
    client: OllamaClient = Depends(get_ollama_client),
):
    return await client.health()


@router.get("/models", response_model=ModelsResponse)
async def list_models(
    user: User = Depends(get_current_user),
    client: OllamaClient = Depends(get_ollama_client),
):
    """Models installed on the server, plus the caller's active model."""
    settings = get_settings()
    return ModelsResponse(
        current=_resolve_model(None, user),
        allowed=settings.ollama_allowed_models,
        available=await client.list_models(),
    )


@router.put("/model", response_model=ModelSwitchResponse)
async def switch_model(
    body: ModelSwitchRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Persist the caller's preferred model. Other users are unaffected."""
    model = _resolve_model(body.model, user)
    user.preferred_model = model
    await db.commit()
    return ModelSwitchResponse(model=model)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    user: User = Depends(get_current_user),
    client: OllamaClient = Depends(get_ollama_client),
):
    model = _resolve_model(body.model, user)
    reply = await client.chat([m.model_dump() for m in body.messages], model)
    return ChatResponse(message=reply, model=model)


@router.get("/recommendations", response_model=RecommendationsResponse)
async def recommendations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Next steps derived from the caller's streak, achievements and level."""
    settings = get_settings()
    profile = await get_or_create_profile(
        db, user.id, LevelCurve(settings.level_base_xp, settings.level_growth)
    )
    await db.commit()
    result = await db.execute(select(UserAchievement).where(UserAchievement.user_id == user.id))
    rows = result.unique().scalars().all()
    today = datetime.now(timezone.utc).date()
    return RecommendationsResponse(recommendations=build_recommendations(profile, rows, today))
