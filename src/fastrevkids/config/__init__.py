"""Configuration package for the adaptive engine."""

from fastrevkids.config.app_config import (
    AdaptiveConfig,
    EngineConfig,
    RecommendationConfig,
    SchedulerConfig,
    clear_config_cache,
    load_engine_config,
)
from fastrevkids.config.curriculum import (
    Concept,
    Curriculum,
    clear_curriculum_cache,
    get_concept_name,
    get_prerequisites,
    list_concepts,
    load_curriculum,
)

__all__ = [
    "AdaptiveConfig",
    "EngineConfig",
    "RecommendationConfig",
    "SchedulerConfig",
    "clear_config_cache",
    "load_engine_config",
    "Concept",
    "Curriculum",
    "clear_curriculum_cache",
    "get_concept_name",
    "get_prerequisites",
    "list_concepts",
    "load_curriculum",
]
