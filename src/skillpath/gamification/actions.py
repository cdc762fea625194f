"""Action kinds and the achievement categories each one can advance."""

from __future__ import annotations

from typing import Any

from skillpath.errors import ValidationError

CATEGORIES = ("learning", "engagement", "milestone", "special")
RARITIES = ("common", "uncommon", "rare", "epic", "legendary")

_LEARNING = frozenset({"learning", "milestone", "special"})
_ENGAGEMENT = frozenset({"engagement", "milestone", "special"})

ACTION_CATEGORIES: dict[str, frozenset[str]] = {
    "quiz-passed": _LEARNING,
    "module-completed": _LEARNING,
    "assessment-completed": _LEARNING,
    "goal-created": _LEARNING,
    "goal-completed": _LEARNING,
    "daily-login": _ENGAGEMENT,
    "peer-help-given": _ENGAGEMENT,
    "resource-shared": _ENGAGEMENT,
}

ACTION_REASONS: dict[str, str] = {
    "quiz-passed": "Quiz passed",
    "module-completed": "Module completed",
    "assessment-completed": "Assessment completed",
    "goal-created": "Learning goal created",
    "goal-completed": "Learning goal completed",
    "daily-login": "Daily login",
    "peer-help-given": "Helped a peer",
    "resource-shared": "Resource shared",
}


def categories_for(action_kind: str) -> frozenset[str]:
    """Categories an action can advance. Kinds outside the map advance milestones only."""
    return ACTION_CATEGORIES.get(action_kind, frozenset({"milestone"}))


def validate_action(action_kind: str, metadata: Any, xp_table: dict[str, int]) -> dict[str, Any]:
    """Check an action against the scoring table and return normalized metadata.

    Raises:
        ValidationError: unknown action kind or malformed metadata.
    """
    if action_kind not in xp_table:
        msg = f"Unknown action kind: {action_kind!r}"
        raise ValidationError(msg)
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        msg = "Action metadata must be an object"
        raise ValidationError(msg)

    normalized = dict(metadata)
    if "score" in normalized:
        score = normalized["score"]
        if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
            msg = "metadata.score must be a number between 0 and 100"
            raise ValidationError(msg)
    if "duration" in normalized:
        duration = normalized["duration"]
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 0:
            msg = "metadata.duration must be a non-negative number"
            raise ValidationError(msg)
    return normalized
