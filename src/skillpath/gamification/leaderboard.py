"""Leaderboard aggregator: ranked projection over all profiles.

Recomputed on every read. Ordering is total XP descending, then profile
creation time, then user id, so unchanged data always yields the same
order. Profiles whose account row is gone stay on the board under a
placeholder name.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import GamificationProfile, User

UNKNOWN_USER = "unknown user"


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    user_id: int
    display_name: str
    level: int
    total_xp: int
    rank: str


def _display_name(user: User | None) -> str:
    if user is None:
        return UNKNOWN_USER
    if user.display_name:
        return user.display_name
    # Never leak full email addresses on a public board
    return user.email.split("@", 1)[0]


def _ordering() -> tuple:
    return (
        GamificationProfile.total_xp.desc(),
        GamificationProfile.created_at.asc(),
        GamificationProfile.user_id.asc(),
    )


async def top_n(db: AsyncSession, n: int) -> list[LeaderboardEntry]:
    """Return the ``n`` highest-XP profiles, best first."""
    result = await db.execute(
        select(GamificationProfile, User)
        .outerjoin(User, User.id == GamificationProfile.user_id)
        .order_by(*_ordering())
        .limit(max(n, 0))
    )
    return [
        LeaderboardEntry(
            position=index,
            user_id=row.GamificationProfile.user_id,
            display_name=_display_name(row.User),
            level=row.GamificationProfile.level,
            total_xp=row.GamificationProfile.total_xp,
            rank=row.GamificationProfile.rank,
        )
        for index, row in enumerate(result, start=1)
    ]


async def rank_of(db: AsyncSession, user_id: int) -> int | None:
    """1-based leaderboard position of a user, or None without a profile."""
    profile = await db.get(GamificationProfile, user_id)
    if profile is None:
        return None

    ahead = await db.execute(
        select(func.count()).select_from(GamificationProfile).where(
            (GamificationProfile.total_xp > profile.total_xp)
            | (
                (GamificationProfile.total_xp == profile.total_xp)
                & (
                    (GamificationProfile.created_at < profile.created_at)
                    | (
                        (GamificationProfile.created_at == profile.created_at)
                        & (GamificationProfile.user_id < profile.user_id)
                    )
                )
            )
        )
    )
    return ahead.scalar_one() + 1
