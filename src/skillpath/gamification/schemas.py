"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Category = Literal["learning", "engagement", "milestone", "special"]
Rarity = Literal["common", "uncommon", "rare", "epic", "legendary"]


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: int
    slug: str
    title: str
    description: str
    category: Category
    icon: str
    points: int
    rarity: Rarity
    badge_url: str | None = None
    criteria: str = ""


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]


class UserAchievementResponse(BaseModel):
    achievement: AchievementResponse
    progress: int
    is_completed: bool
    unlocked_at: datetime | None = None
    is_viewed: bool


# --- Profile ---


class ProfileResponse(BaseModel):
    level: int
    current_xp: int
    required_xp: int
    total_xp: int
    rank: str
    achievement_points: int
    streak_days: int
    longest_streak: int
    last_active_date: date | None = None
    leaderboard_position: int | None = None
    achievements: list[UserAchievementResponse] = []
    in_progress_achievements: list[UserAchievementResponse] = []
    new_achievements: list[UserAchievementResponse] = []


# --- Rewards ---


class RewardRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=64)
    metadata: dict[str, Any] = {}
    idempotency_key: str | None = Field(None, min_length=1, max_length=128)


class LevelUpResponse(BaseModel):
    old_level: int
    new_level: int
    rank: str


class RewardResponse(BaseModel):
    xp_gained: int
    reason: str
    leveled_up: bool
    new_level: int | None = None
    level: int
    current_xp: int
    required_xp: int
    total_xp: int
    rank: str
    level_ups: list[LevelUpResponse] = []
    unlocked: list[UserAchievementResponse] = []
    duplicate: bool = False


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    rank: str
    xp_required: int
    cumulative: int


class RankEntry(BaseModel):
    min_level: int
    rank: str


class AllLevelsResponse(BaseModel):
    ranks: list[RankEntry]
    levels: list[LevelEntry]


# --- XP history ---


class XPHistoryEntry(BaseModel):
    amount: int
    source: str
    source_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int


# --- Leaderboard ---


class LeaderboardEntryResponse(BaseModel):
    position: int
    user_id: int
    display_name: str
    level: int
    total_xp: int
    rank: str
