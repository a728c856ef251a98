"""Engine configuration loader.

Loads tuning constants for the adaptive engine from
data/config/engine_config_v1.yaml, falling back to built-in defaults.

Usage:
    from fastrevkids.config.app_config import load_engine_config

    config = load_engine_config()
    window = config.adaptive.window_size
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/engine_config_v1.yaml")


def _default_expected_durations() -> dict[str, float]:
    return {
        "QCM": 30.0,
        "CALCUL": 45.0,
        "TEXTE_LIBRE": 60.0,
        "DRAG_DROP": 40.0,
        "PROBLEME": 120.0,
    }


@dataclass
class AdaptiveConfig:
    """Difficulty adaptation thresholds."""

    window_size: int = 20
    trend_min_attempts: int = 5
    trend_threshold: float = 0.1
    increase_success_rate: float = 0.85
    increase_max_frustration: float = 0.3
    decrease_success_rate: float = 0.6
    decrease_min_frustration: float = 0.7
    velocity_fast: float = 1.2
    velocity_slow: float = 0.8
    neutral_velocity: float = 1.0
    neutral_engagement: float = 0.5
    default_expected_duration: float = 60.0
    expected_durations: dict[str, float] = field(default_factory=_default_expected_durations)


@dataclass
class RecommendationConfig:
    """Recommendation scorer settings."""

    default_limit: int = 10
    cache_size: int = 256


@dataclass
class SchedulerConfig:
    """Spaced-repetition settings."""

    initial_easiness: float = 2.5
    min_easiness: float = 1.3
    max_easiness: float = 2.5
    second_interval: int = 6
    interval_growth: float = 1.5
    success_quality: float = 3.0
    plan_days: int = 7
    max_reviews_per_day: int = 10
    mastered_easiness: float = 2.2
    mastered_repetitions: int = 3
    difficult_easiness: float = 1.6
    overload_due_count: int = 15
    recent_practice_days: int = 7
    min_recent_practice_share: float = 0.3


@dataclass
class EngineConfig:
    """Application-wide configuration."""

    adaptive: AdaptiveConfig = field(default_factory=AdaptiveConfig)
    recommendation: RecommendationConfig = field(default_factory=RecommendationConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def db_path(self) -> Path:
        return Path(self.paths.get("db_path", "db/fastrevkids.db"))


# Module-level cache
_cached_config: EngineConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "adaptive": {},
        "recommendation": {},
        "scheduler": {},
        "paths": {
            "db_path": "db/fastrevkids.db",
            "config_dir": "data/config",
            "seed_file": "data/seed/exercises_v1.yaml",
        },
    }


def _pick(section: dict[str, Any], cls: type) -> dict[str, Any]:
    """Keep only the keys the dataclass knows about."""
    known = cls.__dataclass_fields__.keys()
    unknown = set(section) - set(known)
    if unknown:
        logger.warning("engine_config.unknown_keys", section=cls.__name__, keys=sorted(unknown))
    return {k: v for k, v in section.items() if k in known}


def _parse_config(data: dict[str, Any]) -> EngineConfig:
    """Parse configuration dictionary into EngineConfig object."""
    adaptive_data = _pick(data.get("adaptive") or {}, AdaptiveConfig)
    durations = _default_expected_durations()
    durations.update(
        {str(k).upper(): float(v) for k, v in (adaptive_data.pop("expected_durations", None) or {}).items()}
    )
    adaptive = AdaptiveConfig(expected_durations=durations, **adaptive_data)

    recommendation = RecommendationConfig(**_pick(data.get("recommendation") or {}, RecommendationConfig))
    scheduler = SchedulerConfig(**_pick(data.get("scheduler") or {}, SchedulerConfig))

    paths = _get_defaults()["paths"]
    paths.update(data.get("paths") or {})

    return EngineConfig(
        adaptive=adaptive,
        recommendation=recommendation,
        scheduler=scheduler,
        paths=paths,
    )


def load_engine_config(force_reload: bool = False) -> EngineConfig:
    """Load engine config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        EngineConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_engine_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_engine_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
