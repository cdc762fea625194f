"""Achievement catalog seed data and lookups.

Seeding inserts missing slugs and never touches existing rows: a definition
that has been unlocked by anyone is historical reference data.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Learning
    {
        "slug": "first-quiz",
        "title": "First Steps",
        "description": "Pass your first quiz",
        "category": "learning",
        "icon": "check-circle",
        "points": 10,
        "rarity": "common",
        "criteria": {"type": "action_count", "action": "quiz-passed", "target": 1},
        "sort_order": 1,
    },
    {
        "slug": "quiz-enthusiast",
        "title": "Quiz Enthusiast",
        "description": "Pass 10 quizzes",
        "category": "learning",
        "icon": "brain",
        "points": 50,
        "rarity": "uncommon",
        "criteria": {"type": "action_count", "action": "quiz-passed", "target": 10},
        "sort_order": 2,
    },
    {
        "slug": "first-module",
        "title": "Module Explorer",
        "description": "Complete your first learning module",
        "category": "learning",
        "icon": "book-open",
        "points": 15,
        "rarity": "common",
        "criteria": {"type": "action_count", "action": "module-completed", "target": 1},
        "sort_order": 3,
    },
    {
        "slug": "module-master",
        "title": "Module Master",
        "description": "Complete 5 learning modules",
        "category": "learning",
        "icon": "layers",
        "points": 75,
        "rarity": "rare",
        "criteria": {"type": "action_count", "action": "module-completed", "target": 5},
        "sort_order": 4,
    },
    {
        "slug": "goal-getter",
        "title": "Goal Getter",
        "description": "Complete a learning goal from start to finish",
        "category": "learning",
        "icon": "target",
        "points": 100,
        "rarity": "rare",
        "criteria": {"type": "action_count", "action": "goal-completed", "target": 1},
        "sort_order": 5,
    },
    # Engagement
    {
        "slug": "daily-learner",
        "title": "Daily Learner",
        "description": "Stay active three days in a row",
        "category": "engagement",
        "icon": "calendar",
        "points": 20,
        "rarity": "common",
        "criteria": {"type": "streak", "target": 3},
        "sort_order": 10,
    },
    {
        "slug": "dedicated-learner",
        "title": "Dedicated Learner",
        "description": "Stay active seven days in a row",
        "category": "engagement",
        "icon": "flame",
        "points": 60,
        "rarity": "uncommon",
        "criteria": {"type": "streak", "target": 7},
        "sort_order": 11,
    },
    {
        "slug": "helping-hand",
        "title": "Helping Hand",
        "description": "Help five fellow learners",
        "category": "engagement",
        "icon": "users",
        "points": 50,
        "rarity": "uncommon",
        "criteria": {"type": "action_count", "action": "peer-help-given", "target": 5},
        "sort_order": 12,
    },
    # Milestones
    {
        "slug": "rising-star",
        "title": "Rising Star",
        "description": "Reach level 5",
        "category": "milestone",
        "icon": "star",
        "points": 100,
        "rarity": "rare",
        "criteria": {"type": "level", "target": 5},
        "sort_order": 20,
    },
    {
        "slug": "xp-1000",
        "title": "Thousand Club",
        "description": "Earn 1,000 XP",
        "category": "milestone",
        "icon": "zap",
        "points": 80,
        "rarity": "epic",
        "criteria": {"type": "total_xp", "target": 1000},
        "sort_order": 21,
    },
    # Special
    {
        "slug": "perfect-score",
        "title": "Perfectionist",
        "description": "Score 100% on a quiz",
        "category": "special",
        "icon": "award",
        "points": 40,
        "rarity": "epic",
        "criteria": {"type": "score", "action": "quiz-passed", "min_score": 100},
        "sort_order": 30,
    },
    {
        "slug": "collector",
        "title": "Collector",
        "description": "Unlock five achievements",
        "category": "special",
        "icon": "trophy",
        "points": 150,
        "rarity": "legendary",
        "criteria": {"type": "achievements_unlocked", "target": 5},
        "sort_order": 31,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert catalog entries whose slug is not present yet. Returns rows inserted."""
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    insert = sqlite_insert if dialect == "sqlite" else pg_insert

    inserted = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = insert(AchievementDefinition).values(**data, is_active=True)
        stmt = stmt.on_conflict_do_nothing(index_elements=["slug"])
        result = await db.execute(stmt)
        inserted += result.rowcount or 0

    await db.commit()
    logger.info("Seeded %d achievement definitions", inserted)
    return inserted


async def list_active(db: AsyncSession) -> list[AchievementDefinition]:
    """All active definitions in display order."""
    result = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.is_active.is_(True))
        .order_by(AchievementDefinition.sort_order, AchievementDefinition.id)
    )
    return list(result.scalars().all())


async def get_by_ref(db: AsyncSession, ref: str) -> AchievementDefinition | None:
    """Look up a definition by slug, or by numeric id when ``ref`` is all digits."""
    if ref.isdigit():
        return await db.get(AchievementDefinition, int(ref))
    result = await db.execute(
        select(AchievementDefinition).where(AchievementDefinition.slug == ref)
    )
    return result.scalar_one_or_none()
