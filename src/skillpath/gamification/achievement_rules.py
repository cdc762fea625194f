"""Achievement completion predicates.

Each definition stores its predicate as a small JSON ``criteria`` object
with a ``type`` key. Evaluation is pure: it maps the learner's cumulative
state (plus the action being scored) to a progress percentage.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

COUNTER_CRITERIA = "achievements_unlocked"


@dataclass
class ProgressState:
    """Cumulative learner state that criteria are evaluated against."""

    action_counts: dict[str, int] = field(default_factory=dict)
    total_xp: int = 0
    level: int = 1
    streak_days: int = 0
    unlocked_count: int = 0


def _ratio(value: float, target: Any) -> int:
    target = float(target or 0)
    if target <= 0:
        return 100
    return max(0, min(100, math.floor(100 * value / target)))


def evaluate(
    criteria: dict[str, Any],
    state: ProgressState,
    action_kind: str,
    metadata: dict[str, Any],
) -> int | None:
    """Return progress (0-100) for ``criteria``, or None if this action has no bearing on it."""
    kind = criteria.get("type")

    if kind == "action_count":
        action = criteria.get("action")
        if action != action_kind:
            return None
        return _ratio(state.action_counts.get(action, 0), criteria.get("target"))

    if kind == "total_xp":
        return _ratio(state.total_xp, criteria.get("target"))

    if kind == "level":
        return _ratio(state.level, criteria.get("target"))

    if kind == "streak":
        return _ratio(state.streak_days, criteria.get("target"))

    if kind == "score":
        if criteria.get("action") != action_kind:
            return None
        score = metadata.get("score")
        if score is None:
            return None
        # Single-shot: either this attempt qualifies or it contributes nothing
        return 100 if score >= criteria.get("min_score", 100) else None

    if kind == COUNTER_CRITERIA:
        return _ratio(state.unlocked_count, criteria.get("target"))

    logger.warning("Unknown achievement criteria type: %s", kind)
    return None


def describe(criteria: dict[str, Any]) -> str:
    """Short human-readable summary of a predicate (used in catalog listings)."""
    kind = criteria.get("type")
    target = criteria.get("target")
    if kind == "action_count":
        return f"{criteria.get('action')} x{target}"
    if kind == "total_xp":
        return f"{target} total XP"
    if kind == "level":
        return f"reach level {target}"
    if kind == "streak":
        return f"{target}-day streak"
    if kind == "score":
        return f"score {criteria.get('min_score', 100)}+ on {criteria.get('action')}"
    if kind == COUNTER_CRITERIA:
        return f"unlock {target} achievements"
    return "special"
