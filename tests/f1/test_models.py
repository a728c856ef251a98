"""Tests for the domain model (F1)."""

from datetime import timedelta

import pytest

from fastrevkids.core.models import (
    CalculConfig,
    DifficultyTier,
    ExerciseType,
    ProgressStatus,
    QcmConfig,
    RevisionSchedule,
    ScheduleConflictError,
    config_to_dict,
    numeric_difficulty,
    parse_exercise_config,
    utc_now,
)


class TestDifficulty:
    """Tier to numeric mapping."""

    @pytest.mark.parametrize(
        "tier,expected",
        [
            (DifficultyTier.FACILE, 1.0),
            (DifficultyTier.MOYEN, 3.0),
            (DifficultyTier.DIFFICILE, 5.0),
            ("facile", 1.0),
            ("EXPERT", 3.0),
            (None, 3.0),
        ],
    )
    def test_numeric_difficulty(self, tier, expected):
        assert numeric_difficulty(tier) == expected

    def test_tier_numeric_property(self):
        assert DifficultyTier.DIFFICILE.numeric == 5.0


class TestProgressStatus:
    """Status parsing, including legacy labels."""

    def test_parse_current_values(self):
        assert ProgressStatus.parse("completed") is ProgressStatus.COMPLETED
        assert ProgressStatus.parse("IN_PROGRESS") is ProgressStatus.IN_PROGRESS

    @pytest.mark.parametrize("raw", ["ACQUIS", "MAITRISE", "DIFFICILE", "hard"])
    def test_legacy_mastery_labels_fold_into_mastered(self, raw):
        assert ProgressStatus.parse(raw) is ProgressStatus.MASTERED

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            ProgressStatus.parse("bof")

    def test_completed_includes_mastered(self):
        assert ProgressStatus.MASTERED.is_completed
        assert ProgressStatus.COMPLETED.is_completed
        assert not ProgressStatus.FAILED.is_completed


class TestExerciseConfig:
    """Tagged exercise configurations."""

    def test_parse_qcm(self):
        config = parse_exercise_config(
            ExerciseType.QCM,
            {"question": "2 + 2 ?", "options": ["3", "4"], "correct_index": 1},
        )
        assert isinstance(config, QcmConfig)
        assert config.kind == "QCM"
        assert config.options == ("3", "4")

    def test_parse_calcul(self):
        config = parse_exercise_config(ExerciseType.CALCUL, {"operation": "+", "operands": [2, 3], "expected": 5})
        assert isinstance(config, CalculConfig)
        assert config.expected == 5.0

    def test_missing_key_raises_value_error(self):
        with pytest.raises(ValueError, match="expected"):
            parse_exercise_config(ExerciseType.CALCUL, {"operation": "+", "operands": [2, 3]})

    def test_empty_config_is_none(self):
        assert parse_exercise_config(ExerciseType.QCM, None) is None
        assert parse_exercise_config(ExerciseType.QCM, {}) is None

    def test_config_to_dict_drops_kind(self):
        config = parse_exercise_config(ExerciseType.DRAG_DROP, {"items": ["a"], "targets": ["b"]})
        assert config_to_dict(config) == {"items": ["a"], "targets": ["b"]}


class TestExercise:
    """Exercise helpers."""

    def test_to_dict(self, make_exercise):
        exercise = make_exercise("ex1", concepts=("addition_simple", "problemes_simples"))
        data = exercise.to_dict()
        assert data["difficulty"] == "MOYEN"
        assert data["concept_ids"] == ["addition_simple", "problemes_simples"]
        assert data["exercise_type"] == "CALCUL"

    def test_is_tagged(self, make_exercise):
        exercise = make_exercise("ex1", concepts=("addition_simple",))
        assert exercise.is_tagged("addition_simple")
        assert not exercise.is_tagged("addition_retenue")


class TestStudentProgress:
    """Progress helpers."""

    def test_latest_attempt_uses_timestamp(self, make_exercise, make_attempts, make_progress):
        exercise = make_exercise("ex1")
        history = make_attempts("ex1", [True, False])
        progress = make_progress(exercise, list(reversed(history)))
        assert progress.latest_attempt() is history[-1]

    def test_subject_and_level_from_exercise(self, make_exercise, make_progress):
        progress = make_progress(make_exercise("ex1", subject="francais", level="CE2"))
        assert progress.subject == "francais"
        assert progress.level == "CE2"
        assert progress.is_related_to("addition_simple")


class TestRevisionSchedule:
    """Schedule helpers."""

    def test_is_due(self):
        now = utc_now()
        past = RevisionSchedule("stu01", "ex1", next_review=now - timedelta(hours=1))
        future = RevisionSchedule("stu01", "ex2", next_review=now + timedelta(days=1))
        assert past.is_due(now)
        assert not future.is_due(now)

    def test_key(self):
        schedule = RevisionSchedule("stu01", "ex1", next_review=utc_now())
        assert schedule.key == "stu01:ex1"


class TestErrors:
    """Error payloads."""

    def test_conflict_carries_versions(self):
        error = ScheduleConflictError("stu01", "ex1", expected=2, actual=3)
        assert error.expected_version == 2
        assert error.actual_version == 3
        assert "stu01/ex1" in str(error)
