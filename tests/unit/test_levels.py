"""Level curve and rank table tests."""

import pytest

from skillpath.gamification.levels import RANK_TABLE, LevelCurve, next_required_xp, rank_for_level


class TestRankForLevel:
    def test_level_1_is_novice(self):
        assert rank_for_level(1) == "Novice"

    def test_rank_boundaries(self):
        for entry in RANK_TABLE:
            assert rank_for_level(entry["min_level"]) == entry["rank"]

    def test_just_below_boundary_keeps_previous_rank(self):
        assert rank_for_level(4) == "Apprentice"
        assert rank_for_level(49) == "Grandmaster"

    def test_beyond_table_is_last_rank(self):
        assert rank_for_level(500) == "Legend"

    def test_below_one_gets_first_rank(self):
        assert rank_for_level(0) == "Novice"


class TestNextRequiredXp:
    def test_growth_one_and_a_half(self):
        assert next_required_xp(100, 1.5) == 150
        assert next_required_xp(150, 1.5) == 225
        assert next_required_xp(225, 1.5) == 337

    def test_always_strictly_increasing(self):
        """Even a growth factor of 1 (or less) never produces a flat curve."""
        assert next_required_xp(100, 1.0) == 101
        assert next_required_xp(100, 0.5) == 101


class TestLevelCurve:
    def test_required_for_first_levels(self):
        curve = LevelCurve(100, 1.5)
        assert curve.required_for(1) == 100
        assert curve.required_for(2) == 150
        assert curve.required_for(3) == 225

    def test_preview_cumulative(self):
        rows = LevelCurve(100, 1.5).preview(4)
        assert [r["xp_required"] for r in rows] == [100, 150, 225, 337]
        assert [r["cumulative"] for r in rows] == [0, 100, 250, 475]
        assert rows[0]["rank"] == "Novice"
        assert rows[2]["rank"] == "Apprentice"

    def test_rejects_non_positive_base(self):
        with pytest.raises(ValueError):
            LevelCurve(0, 1.5)
