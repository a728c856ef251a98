"""Tests for the prerequisite checker (F3)."""

import pytest

from fastrevkids.config.curriculum import Concept, Curriculum
from fastrevkids.core.models import ProgressStatus
from fastrevkids.core.prerequisite_checker import (
    calculate_mastery_level,
    check_prerequisites,
    is_concept_mastered,
    unmastered,
)


@pytest.fixture
def curriculum():
    return Curriculum(
        concepts={
            "addition_simple": Concept("addition_simple", "Addition simple"),
            "soustraction_simple": Concept("soustraction_simple", "Soustraction simple", ("addition_simple",)),
            "soustraction_retenue": Concept(
                "soustraction_retenue",
                "Soustraction avec retenue",
                ("soustraction_simple", "addition_simple"),
            ),
        }
    )


@pytest.fixture
def addition_progress(make_exercise, make_progress):
    """Three completed addition exercises at 100%."""
    return [
        make_progress(
            make_exercise(f"add-{i}", concepts=("addition_simple",)),
            status=ProgressStatus.COMPLETED,
            success_rate=1.0,
            attempt_count=2,
        )
        for i in range(3)
    ]


class TestMastery:
    """Mastery rule and mastery level."""

    def test_no_progress_is_not_mastered(self):
        assert not is_concept_mastered([])
        assert calculate_mastery_level([]) == 0.0

    def test_three_completed_at_full_success(self, addition_progress):
        assert is_concept_mastered(addition_progress)
        assert calculate_mastery_level(addition_progress) == 100.0

    def test_two_completed_is_not_enough(self, addition_progress):
        assert not is_concept_mastered(addition_progress[:2])
        assert calculate_mastery_level(addition_progress[:2]) == 100.0

    def test_mastered_status_counts_as_completed(self, make_exercise, make_progress):
        progress = [
            make_progress(make_exercise(f"add-{i}"), status=ProgressStatus.MASTERED, success_rate=0.9)
            for i in range(3)
        ]
        assert is_concept_mastered(progress)

    def test_low_success_is_not_mastered(self, make_exercise, make_progress):
        progress = [
            make_progress(make_exercise(f"add-{i}"), status=ProgressStatus.COMPLETED, success_rate=0.7)
            for i in range(4)
        ]
        assert not is_concept_mastered(progress)

    def test_mastery_level_weights(self, make_exercise, make_progress):
        progress = [
            make_progress(make_exercise("a"), status=ProgressStatus.COMPLETED, success_rate=0.5),
            make_progress(make_exercise("b"), status=ProgressStatus.FAILED, success_rate=0.5),
            make_progress(make_exercise("c"), status=ProgressStatus.IN_PROGRESS, success_rate=0.5),
        ]
        # 0.5 * 70 + (1/3) * 30
        assert calculate_mastery_level(progress) == 45.0


class TestCheckPrerequisites:
    """Statuses per prerequisite edge."""

    def test_one_status_per_edge_in_graph_order(self, curriculum):
        statuses = check_prerequisites("soustraction_retenue", [], curriculum)
        assert [s.concept_id for s in statuses] == ["soustraction_simple", "addition_simple"]
        assert all(not s.mastered for s in statuses)
        assert all(s.required for s in statuses)

    def test_mastered_prerequisite(self, curriculum, addition_progress):
        statuses = check_prerequisites("soustraction_simple", addition_progress, curriculum)
        assert len(statuses) == 1
        status = statuses[0]
        assert status.concept_name == "Addition simple"
        assert status.mastered
        assert status.mastery_level == 100.0
        assert status.related_exercises == ("add-0", "add-1", "add-2")

    def test_only_tagged_exercises_count(self, curriculum, addition_progress, make_exercise, make_progress):
        other = make_progress(
            make_exercise("sous-0", concepts=("soustraction_simple",)),
            status=ProgressStatus.FAILED,
            success_rate=0.0,
        )
        statuses = check_prerequisites("soustraction_simple", addition_progress + [other], curriculum)
        assert statuses[0].mastered

    def test_concept_without_prerequisites(self, curriculum):
        assert check_prerequisites("addition_simple", [], curriculum) == []

    def test_unknown_concept(self, curriculum):
        assert check_prerequisites("astrophysique", [], curriculum) == []

    def test_unmastered_filter(self, curriculum, addition_progress):
        statuses = check_prerequisites("soustraction_retenue", addition_progress, curriculum)
        assert [s.concept_id for s in unmastered(statuses)] == ["soustraction_simple"]
