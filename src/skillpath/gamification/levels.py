"""Level curve and rank table.

Ranks are cosmetic labels keyed by the minimum level that earns them. The
frontend level-up modal shows exactly these strings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

RANK_TABLE: list[dict] = [
    {"min_level": 1, "rank": "Novice"},
    {"min_level": 3, "rank": "Apprentice"},
    {"min_level": 5, "rank": "Explorer"},
    {"min_level": 10, "rank": "Scholar"},
    {"min_level": 15, "rank": "Expert"},
    {"min_level": 20, "rank": "Master"},
    {"min_level": 30, "rank": "Grandmaster"},
    {"min_level": 50, "rank": "Legend"},
]


def rank_for_level(level: int) -> str:
    """Return the rank label for a level (levels below 1 get the first rank)."""
    rank = RANK_TABLE[0]["rank"]
    for entry in RANK_TABLE:
        if level >= entry["min_level"]:
            rank = entry["rank"]
    return rank


def next_required_xp(required_xp: int, growth: float) -> int:
    """XP threshold for the level after one requiring ``required_xp``.

    Always strictly larger than ``required_xp`` whatever the growth factor.
    """
    return max(required_xp + 1, math.floor(required_xp * growth))


@dataclass(frozen=True)
class LevelCurve:
    """Policy for how much XP each level requires."""

    base_xp: int = 100
    growth: float = 1.5

    def __post_init__(self) -> None:
        if self.base_xp < 1:
            msg = "base_xp must be positive"
            raise ValueError(msg)

    def required_for(self, level: int) -> int:
        """XP needed to advance from ``level`` to ``level + 1``."""
        required = self.base_xp
        for _ in range(1, level):
            required = next_required_xp(required, self.growth)
        return required

    def preview(self, levels: int) -> list[dict]:
        """Requirement and cumulative XP for the first ``levels`` levels."""
        rows = []
        required = self.base_xp
        cumulative = 0
        for level in range(1, levels + 1):
            rows.append({
                "level": level,
                "rank": rank_for_level(level),
                "xp_required": required,
                "cumulative": cumulative,
            })
            cumulative += required
            required = next_required_xp(required, self.growth)
        return rows
