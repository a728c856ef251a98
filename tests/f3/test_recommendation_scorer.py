"""Tests for the recommendation scorer (F3)."""

import pytest

from fastrevkids.core.models import DifficultyTier, ProgressStatus
from fastrevkids.core.recommendation_scorer import (
    REASON_IMPROVE,
    REASON_NEW_EXERCISE,
    REASON_NEW_LEVEL,
    REASON_NEW_SUBJECT,
    REASON_RETRY_AFTER_FAILURE,
    REASON_WEAK_LEVEL,
    REASON_WEAK_SUBJECT,
    RecommendationOptions,
    difficulty_weight,
    level_weight,
    rank_exercises,
    recommend,
    score_exercise,
    subject_weight,
)


class TestWeights:
    """Individual signals."""

    @pytest.mark.parametrize(
        "difficulty,expected",
        [(DifficultyTier.FACILE, 10), (DifficultyTier.MOYEN, 20), (DifficultyTier.DIFFICILE, 30), ("EXPERT", 15)],
    )
    def test_difficulty_weight(self, difficulty, expected):
        assert difficulty_weight(difficulty) == expected

    def test_new_subject(self):
        assert subject_weight("mathematiques", []) == (15, REASON_NEW_SUBJECT)

    def test_weak_subject(self, make_exercise, make_progress):
        progress = [make_progress(make_exercise("a"), status=ProgressStatus.FAILED, success_rate=0.4, attempt_count=5)]
        assert subject_weight("mathematiques", progress) == (25, REASON_WEAK_SUBJECT)

    def test_solid_subject(self, make_exercise, make_progress):
        progress = [make_progress(make_exercise("a"), status=ProgressStatus.COMPLETED, success_rate=0.8, attempt_count=5)]
        assert subject_weight("mathematiques", progress) == (5, None)

    def test_unattempted_progress_does_not_count(self, make_exercise, make_progress):
        progress = [make_progress(make_exercise("a"))]
        assert subject_weight("mathematiques", progress) == (15, REASON_NEW_SUBJECT)

    def test_level_weights(self, make_exercise, make_progress):
        weak = [make_progress(make_exercise("a", level="CE1"), status=ProgressStatus.FAILED, success_rate=0.5, attempt_count=4)]
        solid = [make_progress(make_exercise("a", level="CE1"), status=ProgressStatus.COMPLETED, success_rate=0.6, attempt_count=4)]
        assert level_weight("CM1", weak) == (10, REASON_NEW_LEVEL)
        assert level_weight("CE1", weak) == (20, REASON_WEAK_LEVEL)
        assert level_weight("CE1", solid) == (0, None)


class TestScoreExercise:
    """Additive score, clamped to [0, 100]."""

    def test_new_easy_exercise_for_new_student_clamps_to_100(self, make_exercise):
        # 50 + 20 + 10 + 15 + 10 = 105
        scored = score_exercise(make_exercise("a", difficulty=DifficultyTier.FACILE), [])
        assert scored.score == 100
        assert scored.reasons == (REASON_NEW_EXERCISE, REASON_NEW_SUBJECT, REASON_NEW_LEVEL)

    def test_maximal_bonuses_clamp_to_100(self, make_exercise, make_attempts, make_progress):
        exercise = make_exercise("a", difficulty=DifficultyTier.DIFFICILE)
        progress = [make_progress(exercise, make_attempts("a", [True, False, False]))]
        # 50 + 30 (retry) + 30 (difficile) + 25 (weak subject) + 20 (weak level)
        scored = score_exercise(exercise, progress)
        assert scored.score == 100
        assert REASON_RETRY_AFTER_FAILURE in scored.reasons
        assert REASON_WEAK_SUBJECT in scored.reasons
        assert REASON_WEAK_LEVEL in scored.reasons

    def test_well_known_exercise(self, make_exercise, make_attempts, make_progress):
        exercise = make_exercise("a", difficulty=DifficultyTier.MOYEN)
        progress = [make_progress(exercise, make_attempts("a", [True] * 9 + [False, True]))]
        # 50 + 0 + 20 + 5 + 0
        scored = score_exercise(exercise, progress)
        assert scored.score == 75
        assert scored.reasons == ()

    def test_exercise_to_improve(self, make_exercise, make_attempts, make_progress):
        exercise = make_exercise("a", difficulty=DifficultyTier.FACILE)
        progress = [make_progress(exercise, make_attempts("a", [True, False, True]))]
        # 50 + 25 + 10 + 5 + 0
        scored = score_exercise(exercise, progress)
        assert scored.score == 90
        assert scored.reasons == (REASON_IMPROVE,)

    def test_failed_status_without_history_counts_as_failure(self, make_exercise, make_progress):
        exercise = make_exercise("a", difficulty=DifficultyTier.FACILE)
        progress = [make_progress(exercise, status=ProgressStatus.FAILED, success_rate=0.9, attempt_count=3)]
        assert REASON_RETRY_AFTER_FAILURE in score_exercise(exercise, progress).reasons

    def test_score_bounds(self, make_exercise, make_attempts, make_progress):
        exercises = [
            make_exercise(f"e{i}", difficulty=d, level=lvl)
            for i, (d, lvl) in enumerate(
                [(DifficultyTier.FACILE, "CP"), (DifficultyTier.DIFFICILE, "CE1"), ("AUTRE", "CM2")]
            )
        ]
        progress = [make_progress(exercises[0], make_attempts("e0", [True, True, True]))]
        for exercise in exercises:
            assert 0 <= score_exercise(exercise, progress).score <= 100


class TestRanking:
    """Ranking and filtered recommendations."""

    def test_rank_is_descending_and_stable(self, make_exercise, make_attempts, make_progress):
        known = make_exercise("known", difficulty=DifficultyTier.MOYEN)
        fresh_a = make_exercise("fresh-a", difficulty=DifficultyTier.FACILE)
        fresh_b = make_exercise("fresh-b", difficulty=DifficultyTier.FACILE)
        progress = [make_progress(known, make_attempts("known", [True] * 5))]

        ranked = rank_exercises([known, fresh_a, fresh_b], progress)
        assert [s.exercise.exercise_id for s in ranked] == ["fresh-a", "fresh-b", "known"]
        assert ranked[0].score >= ranked[1].score >= ranked[2].score

    def test_recommend_filters_and_limits(self, make_exercise):
        candidates = [
            make_exercise("cp-1", level="CP"),
            make_exercise("ce1-1", level="CE1"),
            make_exercise("ce1-2", level="CE1", subject="geometrie"),
            make_exercise("ce1-3", level="CE1"),
        ]
        result = recommend(candidates, [], RecommendationOptions(limit=10, level="CE1", subject="mathematiques"))
        assert [s.exercise.exercise_id for s in result] == ["ce1-1", "ce1-3"]

        limited = recommend(candidates, [], RecommendationOptions(limit=1))
        assert len(limited) == 1

    def test_empty_pool(self):
        assert recommend([], [], RecommendationOptions()) == []

    def test_cache_key_depends_on_options(self):
        assert RecommendationOptions(limit=5).cache_key != RecommendationOptions(limit=5, level="CP").cache_key
