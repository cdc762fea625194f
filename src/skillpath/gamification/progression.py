"""Progression engine: XP awards, level-ups, streaks and achievement unlocks.

One call to ``award_action`` is one read-modify-write of a learner's
profile and the achievement rows the action touches, committed as a single
transaction. Concurrent awards for the same learner are serialized in
process by a per-user lock and across processes by the profile's version
column: a stale write raises, the transaction is rolled back and the whole
award is recomputed from fresh state.
"""

from __future__ import annotations

import asyncio
import json
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from skillpath.config import Settings, get_settings
from skillpath.database import STORAGE_ERRORS, storage_errors
from skillpath.db.models import (
    AchievementDefinition,
    GamificationProfile,
    UserAchievement,
    XPLedger,
)
from skillpath.errors import Conflict, NotFound, StorageUnavailable
from skillpath.gamification import catalog
from skillpath.gamification.achievement_rules import COUNTER_CRITERIA, ProgressState, evaluate
from skillpath.gamification.actions import ACTION_REASONS, categories_for, validate_action
from skillpath.gamification.levels import LevelCurve, next_required_xp, rank_for_level

logger = logging.getLogger(__name__)

_user_locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()


def _user_lock(user_id: int) -> asyncio.Lock:
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    return lock


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LevelUpEvent:
    """One level gained. An award that jumps two levels emits two events."""

    old_level: int
    new_level: int
    rank: str


@dataclass
class ProgressionResult:
    """Outcome of a single award."""

    profile: GamificationProfile
    xp_gained: int
    reason: str
    level_ups: list[LevelUpEvent] = field(default_factory=list)
    unlocked: list[UserAchievement] = field(default_factory=list)
    duplicate: bool = False

    @property
    def leveled_up(self) -> bool:
        return bool(self.level_ups)

    @property
    def new_level(self) -> int | None:
        return self.level_ups[-1].new_level if self.level_ups else None


async def get_or_create_profile(
    db: AsyncSession,
    user_id: int,
    curve: LevelCurve | None = None,
) -> GamificationProfile:
    """Get or create the gamification profile for a user (first-touch defaults)."""
    result = await db.execute(
        select(GamificationProfile).where(GamificationProfile.user_id == user_id)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        curve = curve or LevelCurve()
        now = _utcnow()
        profile = GamificationProfile(
            user_id=user_id,
            level=1,
            current_xp=0,
            total_xp=0,
            required_xp=curve.base_xp,
            rank=rank_for_level(1),
            achievement_points=0,
            streak_days=0,
            longest_streak=0,
            action_counts={},
            created_at=now,
            updated_at=now,
        )
        db.add(profile)
        await db.flush()
    return profile


def apply_level_ups(profile: GamificationProfile, growth: float) -> list[LevelUpEvent]:
    """Drain ``current_xp`` into levels until it is below ``required_xp``."""
    events: list[LevelUpEvent] = []
    while profile.current_xp >= profile.required_xp:
        profile.current_xp -= profile.required_xp
        old_level = profile.level
        profile.level = old_level + 1
        profile.required_xp = next_required_xp(profile.required_xp, growth)
        profile.rank = rank_for_level(profile.level)
        events.append(LevelUpEvent(old_level=old_level, new_level=profile.level, rank=profile.rank))
    return events


def update_streak(profile: GamificationProfile, today: date) -> None:
    """Advance the consecutive-day counter for activity on ``today``."""
    last = profile.last_active_date
    if last == today:
        return
    if last is not None and last == today - timedelta(days=1):
        profile.streak_days += 1
    else:
        profile.streak_days = 1
    profile.last_active_date = today
    profile.longest_streak = max(profile.longest_streak, profile.streak_days)


class ProgressionEngine:
    """Turns learner actions into XP, levels and achievement progress."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.redis = redis
        self.settings = settings or get_settings()
        self.curve = LevelCurve(self.settings.level_base_xp, self.settings.level_growth)
        self._clock = clock

    # ── awards ──

    async def award_action(
        self,
        user_id: int,
        action_kind: str,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ProgressionResult:
        """Score one action for a user.

        Raises:
            ValidationError: unknown action kind or malformed metadata.
            StorageUnavailable: the database could not be read or written.
            Conflict: concurrent updates kept invalidating this award.
        """
        metadata = validate_action(action_kind, metadata, self.settings.xp_table)
        xp = self.settings.xp_table[action_kind]
        scoped_key = f"{user_id}:{idempotency_key}" if idempotency_key else None

        async with _user_lock(user_id):
            for attempt in range(1, self.settings.award_max_retries + 1):
                try:
                    result = await self._award_once(user_id, action_kind, metadata, xp, scoped_key)
                except (StaleDataError, IntegrityError) as exc:
                    await self._rollback()
                    logger.info(
                        "Award conflict for user %s (attempt %d/%d): %s",
                        user_id, attempt, self.settings.award_max_retries, type(exc).__name__,
                    )
                    continue
                except STORAGE_ERRORS as exc:
                    await self._rollback()
                    logger.error("Award failed for user %s: storage unavailable", user_id, exc_info=True)
                    msg = "Storage unavailable, nothing was awarded"
                    raise StorageUnavailable(msg) from exc
                break
            else:
                msg = "Too many concurrent updates, nothing was awarded"
                raise Conflict(msg)

        if not result.duplicate:
            await self._publish(user_id, result)
        return result

    async def _award_once(
        self,
        user_id: int,
        action_kind: str,
        metadata: dict[str, Any],
        xp: int,
        scoped_key: str | None,
    ) -> ProgressionResult:
        reason = ACTION_REASONS.get(action_kind, action_kind)

        if scoped_key is not None:
            existing = await self.db.execute(
                select(XPLedger.id).where(XPLedger.idempotency_key == scoped_key)
            )
            if existing.scalar_one_or_none() is not None:
                profile = await get_or_create_profile(self.db, user_id, self.curve)
                await self.db.commit()
                return ProgressionResult(profile=profile, xp_gained=0, reason=reason, duplicate=True)

        profile = await get_or_create_profile(self.db, user_id, self.curve)
        now = self._clock()

        profile.current_xp += xp
        profile.total_xp += xp
        counts = dict(profile.action_counts or {})
        counts[action_kind] = counts.get(action_kind, 0) + 1
        profile.action_counts = counts
        update_streak(profile, now.date())

        self.db.add(XPLedger(
            user_id=user_id,
            amount=xp,
            source="action",
            source_id=action_kind,
            description=reason,
            idempotency_key=scoped_key,
            created_at=now,
        ))

        level_ups = apply_level_ups(profile, self.curve.growth)
        unlocked = await self._evaluate_achievements(profile, action_kind, metadata, now)
        profile.updated_at = now

        await self.db.commit()
        return ProgressionResult(
            profile=profile,
            xp_gained=xp,
            reason=reason,
            level_ups=level_ups,
            unlocked=unlocked,
        )

    async def _evaluate_achievements(
        self,
        profile: GamificationProfile,
        action_kind: str,
        metadata: dict[str, Any],
        now: datetime,
    ) -> list[UserAchievement]:
        """Advance every matching achievement; return the ones unlocked by this action."""
        categories = categories_for(action_kind)
        definitions = [d for d in await catalog.list_active(self.db) if d.category in categories]
        if not definitions:
            return []

        rows_result = await self.db.execute(
            select(UserAchievement).where(
                UserAchievement.user_id == profile.user_id,
                UserAchievement.achievement_id.in_([d.id for d in definitions]),
            )
        )
        rows = {row.achievement_id: row for row in rows_result.unique().scalars()}

        unlocked_count = await self.db.execute(
            select(func.count()).select_from(UserAchievement).where(
                UserAchievement.user_id == profile.user_id,
                UserAchievement.is_completed.is_(True),
            )
        )
        state = ProgressState(
            action_counts=dict(profile.action_counts or {}),
            total_xp=profile.total_xp,
            level=profile.level,
            streak_days=profile.streak_days,
            unlocked_count=unlocked_count.scalar_one(),
        )

        unlocked: list[UserAchievement] = []

        def advance(definition: AchievementDefinition) -> bool:
            progress = evaluate(definition.criteria or {}, state, action_kind, metadata)
            if not progress:
                return False
            row = rows.get(definition.id)
            if row is None:
                row = UserAchievement(
                    user_id=profile.user_id,
                    achievement=definition,
                    progress=0,
                    is_completed=False,
                    is_viewed=False,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(row)
                rows[definition.id] = row
            if row.is_completed or progress <= row.progress:
                return False
            row.progress = min(progress, 100)
            row.updated_at = now
            if row.progress < 100:
                return False
            row.is_completed = True
            row.unlocked_at = now
            row.is_viewed = False
            profile.achievement_points += definition.points
            state.unlocked_count += 1
            unlocked.append(row)
            return True

        regular = [d for d in definitions if (d.criteria or {}).get("type") != COUNTER_CRITERIA]
        counters = [d for d in definitions if (d.criteria or {}).get("type") == COUNTER_CRITERIA]
        for definition in regular:
            advance(definition)
        # Counter criteria see unlocks from this same action; repeat until nothing changes
        changed = True
        while changed:
            changed = False
            for definition in counters:
                changed = advance(definition) or changed

        await self.db.flush()
        return unlocked

    # ── viewed flag ──

    async def mark_viewed(self, user_id: int, achievement_ref: str) -> bool:
        """Acknowledge an unlocked achievement. Returns True if the flag changed.

        Raises:
            NotFound: the reference matches no catalog entry.
        """
        async with storage_errors(self.db):
            definition = await catalog.get_by_ref(self.db, achievement_ref)
            if definition is None:
                msg = f"Unknown achievement: {achievement_ref}"
                raise NotFound(msg)

            result = await self.db.execute(
                select(UserAchievement).where(
                    UserAchievement.user_id == user_id,
                    UserAchievement.achievement_id == definition.id,
                )
            )
            row = result.unique().scalar_one_or_none()
            if row is None or not row.is_completed or row.is_viewed:
                return False

            row.is_viewed = True
            row.updated_at = self._clock()
            await self.db.commit()
            return True

    # ── helpers ──

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except (DBAPIError, OSError):
            logger.warning("Rollback failed", exc_info=True)

    async def _publish(self, user_id: int, result: ProgressionResult) -> None:
        """Broadcast level-ups and unlocks for live clients (best effort)."""
        if self.redis is None:
            return
        try:
            for event in result.level_ups:
                await self.redis.publish(  # type: ignore[attr-defined]
                    "pubsub:level_up",
                    json.dumps({
                        "user_id": user_id,
                        "old_level": event.old_level,
                        "new_level": event.new_level,
                        "rank": event.rank,
                    }),
                )
            for row in result.unlocked:
                await self.redis.publish(  # type: ignore[attr-defined]
                    "pubsub:achievement_unlocked",
                    json.dumps({
                        "user_id": user_id,
                        "achievement": row.achievement.slug,
                        "title": row.achievement.title,
                        "rarity": row.achievement.rarity,
                        "points": row.achievement.points,
                    }),
                )
        except Exception:
            logger.warning("Failed to publish progression events", exc_info=True)
