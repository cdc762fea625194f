"""Rule-based learning recommendations derived from a learner's progress."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta

from skillpath.assistant.schemas import LabelAction, Recommendation, StepAction
from skillpath.db.models import GamificationProfile, UserAchievement

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# Progress from which an unfinished achievement is worth pointing out
NEAR_COMPLETE = 50
MAX_NEAR_COMPLETE = 3


def _streak_recommendations(profile: GamificationProfile, today: date) -> list[Recommendation]:
    active = profile.last_active_date in (today, today - timedelta(days=1))
    if active and profile.streak_days >= 3:
        return [Recommendation(
            type="strength_based",
            title=f"{profile.streak_days}-day streak",
            description="You have been learning every day. Keep the rhythm going.",
            priority="medium",
            actions=[LabelAction(label="Come back tomorrow to extend your streak")],
        )]
    if not active:
        return [Recommendation(
            type="improvement",
            title="Build a daily habit",
            description="Short daily sessions help concepts stick better than occasional long ones.",
            priority="high",
            actions=[
                StepAction(title="Set a learning goal", url="/goals"),
                LabelAction(label="Log in once a day"),
            ],
        )]
    return []


def _achievement_recommendations(rows: Sequence[UserAchievement]) -> list[Recommendation]:
    close = sorted(
        (r for r in rows if not r.is_completed and r.progress >= NEAR_COMPLETE),
        key=lambda r: r.progress,
        reverse=True,
    )
    return [
        Recommendation(
            type="improvement",
            title=f"Almost there: {r.achievement.title}",
            description=f"{r.progress}% done. {r.achievement.description}",
            priority="high" if r.progress >= 80 else "medium",
            actions=[StepAction(title=f"Finish {r.achievement.title}", url="/achievements")],
        )
        for r in close[:MAX_NEAR_COMPLETE]
    ]


def _level_recommendations(profile: GamificationProfile) -> list[Recommendation]:
    counts = profile.action_counts or {}
    recs: list[Recommendation] = []
    if profile.level < 3:
        recs.append(Recommendation(
            type="support",
            title="Strengthen the fundamentals",
            description="Review the core concepts before moving on to advanced topics.",
            priority="medium",
            actions=[
                StepAction(title="Continue your current module", url="/modules"),
                LabelAction(label="Practice with basic exercises"),
            ],
        ))
    if not counts.get("quiz-passed"):
        recs.append(Recommendation(
            type="improvement",
            title="Test your knowledge",
            description="A first quiz shows where you stand and unlocks quiz achievements.",
            priority="medium",
            actions=[StepAction(title="Take a quiz", url="/quizzes")],
        ))
    if profile.level >= 5 and not counts.get("peer-help-given"):
        recs.append(Recommendation(
            type="strength_based",
            title="Share what you know",
            description="You are ready to help other learners, and explaining a topic deepens it.",
            priority="low",
            actions=[StepAction(title="Answer a question in the forum", url="/community")],
        ))
    return recs


def build_recommendations(
    profile: GamificationProfile,
    achievements: Sequence[UserAchievement],
    today: date,
) -> list[Recommendation]:
    """All recommendations for a learner, most urgent first."""
    recs = [
        *_achievement_recommendations(achievements),
        *_streak_recommendations(profile, today),
        *_level_recommendations(profile),
    ]
    return sorted(recs, key=lambda r: _PRIORITY_ORDER[r.priority])
