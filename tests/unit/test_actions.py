"""Action validation and category mapping tests."""

import pytest

from skillpath.config import DEFAULT_XP_TABLE
from skillpath.errors import ValidationError
from skillpath.gamification.actions import ACTION_REASONS, categories_for, validate_action


class TestValidateAction:
    def test_known_action_without_metadata(self):
        assert validate_action("quiz-passed", None, DEFAULT_XP_TABLE) == {}

    def test_metadata_is_copied(self):
        metadata = {"score": 85, "quiz_id": "q-1"}
        result = validate_action("quiz-passed", metadata, DEFAULT_XP_TABLE)
        assert result == metadata
        assert result is not metadata

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError, match="Unknown action kind"):
            validate_action("bogus-action", {}, DEFAULT_XP_TABLE)

    def test_metadata_must_be_object(self):
        with pytest.raises(ValidationError):
            validate_action("quiz-passed", ["score", 90], DEFAULT_XP_TABLE)

    @pytest.mark.parametrize("score", [-1, 101, "high", True])
    def test_bad_score_rejected(self, score):
        with pytest.raises(ValidationError, match="score"):
            validate_action("quiz-passed", {"score": score}, DEFAULT_XP_TABLE)

    @pytest.mark.parametrize("score", [0, 57.5, 100])
    def test_score_bounds_accepted(self, score):
        assert validate_action("quiz-passed", {"score": score}, DEFAULT_XP_TABLE)["score"] == score

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError, match="duration"):
            validate_action("module-completed", {"duration": -5}, DEFAULT_XP_TABLE)

    def test_custom_table_defines_known_kinds(self):
        with pytest.raises(ValidationError):
            validate_action("quiz-passed", {}, {"module-completed": 10})


class TestCategories:
    def test_learning_actions(self):
        assert categories_for("quiz-passed") == {"learning", "milestone", "special"}

    def test_engagement_actions(self):
        assert categories_for("daily-login") == {"engagement", "milestone", "special"}

    def test_unmapped_kind_advances_milestones_only(self):
        assert categories_for("something-new") == {"milestone"}

    def test_every_default_action_has_a_reason(self):
        assert set(DEFAULT_XP_TABLE) <= set(ACTION_REASONS)
