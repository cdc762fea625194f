"""Gamification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.dependencies import get_current_user
from skillpath.config import get_settings
from skillpath.database import get_session, storage_errors
from skillpath.db.models import AchievementDefinition, User, UserAchievement, XPLedger
from skillpath.gamification import catalog, leaderboard
from skillpath.gamification.achievement_rules import describe
from skillpath.gamification.levels import RANK_TABLE, LevelCurve
from skillpath.gamification.progression import ProgressionEngine, get_or_create_profile
from skillpath.gamification.schemas import (
    AchievementResponse,
    AllAchievementsResponse,
    AllLevelsResponse,
    LeaderboardEntryResponse,
    LevelEntry,
    LevelUpResponse,
    ProfileResponse,
    RankEntry,
    RewardRequest,
    RewardResponse,
    UserAchievementResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)
from skillpath.redis_client import get_redis_or_none

router = APIRouter(prefix="/api/v1/gamification", tags=["Gamification"])


def _achievement(definition: AchievementDefinition) -> AchievementResponse:
    return AchievementResponse(
        id=definition.id,
        slug=definition.slug,
        title=definition.title,
        description=definition.description,
        category=definition.category,
        icon=definition.icon,
        points=definition.points,
        rarity=definition.rarity,
        badge_url=definition.badge_url,
        criteria=describe(definition.criteria or {}),
    )


def _user_achievement(row: UserAchievement) -> UserAchievementResponse:
    return UserAchievementResponse(
        achievement=_achievement(row.achievement),
        progress=row.progress,
        is_completed=row.is_completed,
        unlocked_at=row.unlocked_at,
        is_viewed=row.is_viewed,
    )


# ── Public endpoints ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(db: AsyncSession = Depends(get_session)):
    """Get all active achievement definitions."""
    async with storage_errors(db):
        definitions = await catalog.list_active(db)
    return AllAchievementsResponse(achievements=[_achievement(d) for d in definitions])


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels(count: int = Query(20, ge=1, le=100)):
    """Get the rank table and the XP requirement of the first levels."""
    settings = get_settings()
    curve = LevelCurve(settings.level_base_xp, settings.level_growth)
    return AllLevelsResponse(
        ranks=[RankEntry(**entry) for entry in RANK_TABLE],
        levels=[LevelEntry(**row) for row in curve.preview(count)],
    )


# ── Authenticated endpoints ──


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Profile with unlocked, in-progress and not-yet-viewed achievements."""
    settings = get_settings()
    async with storage_errors(db):
        profile = await get_or_create_profile(
            db, user.id, LevelCurve(settings.level_base_xp, settings.level_growth)
        )
        await db.commit()

        result = await db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user.id)
            .order_by(UserAchievement.unlocked_at.desc(), UserAchievement.id)
        )
        rows = result.unique().scalars().all()
        position = await leaderboard.rank_of(db, user.id)

    completed = [_user_achievement(r) for r in rows if r.is_completed]
    return ProfileResponse(
        level=profile.level,
        current_xp=profile.current_xp,
        required_xp=profile.required_xp,
        total_xp=profile.total_xp,
        rank=profile.rank,
        achievement_points=profile.achievement_points,
        streak_days=profile.streak_days,
        longest_streak=profile.longest_streak,
        last_active_date=profile.last_active_date,
        leaderboard_position=position,
        achievements=completed,
        in_progress_achievements=[
            _user_achievement(r) for r in rows if not r.is_completed and r.progress > 0
        ],
        new_achievements=[a for a in completed if not a.is_viewed],
    )


@router.post("/reward", response_model=RewardResponse)
async def reward_action(
    body: RewardRequest,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key", max_length=128),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_or_none),
):
    """Award XP for a learner action."""
    engine = ProgressionEngine(db, redis)
    result = await engine.award_action(
        user.id,
        body.action,
        body.metadata,
        idempotency_key=body.idempotency_key or idempotency_key,
    )
    profile = result.profile
    return RewardResponse(
        xp_gained=result.xp_gained,
        reason=result.reason,
        leveled_up=result.leveled_up,
        new_level=result.new_level,
        level=profile.level,
        current_xp=profile.current_xp,
        required_xp=profile.required_xp,
        total_xp=profile.total_xp,
        rank=profile.rank,
        level_ups=[
            LevelUpResponse(old_level=e.old_level, new_level=e.new_level, rank=e.rank)
            for e in result.level_ups
        ],
        unlocked=[_user_achievement(r) for r in result.unlocked],
        duplicate=result.duplicate,
    )


@router.put("/achievements/{achievement_ref}/view")
async def mark_achievement_viewed(
    achievement_ref: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Acknowledge an unlocked achievement. Idempotent."""
    engine = ProgressionEngine(db)
    await engine.mark_viewed(user.id, achievement_ref)
    return {"status": "ok"}


@router.get("/xp/history", response_model=XPHistoryResponse)
async def get_xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get XP ledger history (paginated)."""
    offset = (page - 1) * per_page
    async with storage_errors(db):
        total_result = await db.execute(
            select(func.count()).select_from(XPLedger).where(XPLedger.user_id == user.id)
        )
        total = total_result.scalar_one()

        result = await db.execute(
            select(XPLedger)
            .where(XPLedger.user_id == user.id)
            .order_by(XPLedger.created_at.desc(), XPLedger.id.desc())
            .offset(offset)
            .limit(per_page)
        )
        entries = result.scalars().all()

    return XPHistoryResponse(
        entries=[
            XPHistoryEntry(
                amount=e.amount,
                source=e.source,
                source_id=e.source_id,
                description=e.description,
                created_at=e.created_at,
            )
            for e in entries
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/leaderboard", response_model=list[LeaderboardEntryResponse])
async def get_leaderboard(
    limit: int | None = Query(None),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Top learners by total XP. ``limit`` is clamped to the configured maximum."""
    settings = get_settings()
    n = limit if limit is not None else settings.leaderboard_default_limit
    n = max(1, min(n, settings.leaderboard_max_limit))
    async with storage_errors(db):
        entries = await leaderboard.top_n(db, n)
    return [
        LeaderboardEntryResponse(
            position=e.position,
            user_id=e.user_id,
            display_name=e.display_name,
            level=e.level,
            total_xp=e.total_xp,
            rank=e.rank,
        )
        for e in entries
    ]
