"""Tests for engine configuration and curriculum loading (F1)."""

import pytest

from fastrevkids.config.app_config import (
    AdaptiveConfig,
    EngineConfig,
    clear_config_cache,
    load_engine_config,
)
from fastrevkids.config.curriculum import (
    Curriculum,
    get_concept_name,
    get_prerequisites,
    list_concepts,
    load_curriculum,
)


class TestLoadEngineConfig:
    """Tests for load_engine_config function."""

    def test_load_config_from_yaml(self):
        """Loads config from engine_config_v1.yaml."""
        config = load_engine_config()
        assert isinstance(config, EngineConfig)
        assert isinstance(config.adaptive, AdaptiveConfig)

    def test_config_defaults_match_yaml(self):
        """Shipped YAML keeps the documented thresholds."""
        config = load_engine_config()
        assert config.adaptive.window_size == 20
        assert config.adaptive.increase_success_rate == 0.85
        assert config.recommendation.default_limit == 10
        assert config.scheduler.min_easiness == 1.3
        assert config.scheduler.second_interval == 6

    def test_config_is_cached(self):
        """Second call returns the cached instance."""
        assert load_engine_config() is load_engine_config()

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        """Without a config file the built-in defaults apply."""
        monkeypatch.chdir(tmp_path)
        clear_config_cache()
        config = load_engine_config(force_reload=True)
        assert config.adaptive.window_size == 20
        assert str(config.db_path) == "db/fastrevkids.db"
        assert config.paths["seed_file"] == "data/seed/exercises_v1.yaml"

    def test_partial_file_overrides(self, tmp_path, monkeypatch):
        """A partial YAML only overrides the keys it sets."""
        monkeypatch.chdir(tmp_path)
        config_dir = tmp_path / "data" / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "engine_config_v1.yaml").write_text(
            "adaptive:\n  window_size: 8\n  expected_durations:\n    qcm: 20\n"
            "scheduler:\n  plan_days: 3\n"
            "paths:\n  db_path: other.db\n",
            encoding="utf-8",
        )
        config = load_engine_config(force_reload=True)
        assert config.adaptive.window_size == 8
        assert config.adaptive.expected_durations["QCM"] == 20.0
        assert config.adaptive.expected_durations["PROBLEME"] == 120.0
        assert config.scheduler.plan_days == 3
        assert config.scheduler.initial_easiness == 2.5
        assert str(config.db_path) == "other.db"

    def test_unknown_keys_are_ignored(self, tmp_path, monkeypatch):
        """Unknown keys do not break loading."""
        monkeypatch.chdir(tmp_path)
        config_dir = tmp_path / "data" / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "engine_config_v1.yaml").write_text(
            "recommendation:\n  default_limit: 4\n  surprise: true\n", encoding="utf-8"
        )
        config = load_engine_config(force_reload=True)
        assert config.recommendation.default_limit == 4


class TestCurriculum:
    """Tests for the prerequisite graph."""

    def test_load_curriculum_from_yaml(self):
        """Loads the 18 shipped concepts."""
        curriculum = load_curriculum()
        assert isinstance(curriculum, Curriculum)
        assert len(curriculum.concepts) == 18

    def test_get_prerequisites(self):
        """Direct prerequisites in declaration order."""
        assert get_prerequisites("addition_retenue") == ["addition_simple"]
        assert get_prerequisites("soustraction_retenue") == ["soustraction_simple", "addition_retenue"]

    def test_root_concept_has_no_prerequisites(self):
        assert get_prerequisites("addition_simple") == []

    def test_unknown_concept(self):
        """Unknown concept: no prerequisites, id as name."""
        assert get_prerequisites("astrophysique") == []
        assert get_concept_name("astrophysique") == "astrophysique"

    def test_concept_name(self):
        assert get_concept_name("multiplication_table") == "Tables de multiplication"

    def test_every_edge_points_to_a_declared_concept(self):
        """The shipped graph has no dangling prerequisite."""
        curriculum = load_curriculum()
        for concept in list_concepts():
            for prereq in concept.prerequisites:
                assert prereq in curriculum, f"{concept.id} -> {prereq}"

    def test_missing_file_uses_builtin_graph(self, tmp_path, monkeypatch):
        """Without the YAML the built-in graph is used."""
        monkeypatch.chdir(tmp_path)
        curriculum = load_curriculum(force_reload=True)
        assert curriculum.prerequisites_of("division_simple") == ["multiplication_table", "soustraction_simple"]
        assert curriculum.prerequisites_of("geometrie_perimetre") == ["addition_simple", "multiplication_table"]

    def test_invalid_yaml_falls_back(self, tmp_path, monkeypatch):
        """Malformed YAML falls back to the built-in graph."""
        monkeypatch.chdir(tmp_path)
        config_dir = tmp_path / "data" / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "curriculum_v1.yaml").write_text("concepts: [unclosed", encoding="utf-8")
        curriculum = load_curriculum(force_reload=True)
        assert "addition_simple" in curriculum

    @pytest.mark.parametrize("concept_id", ["addition_simple", "pourcentages", "problemes_complexes"])
    def test_contains(self, concept_id):
        assert concept_id in load_curriculum()
