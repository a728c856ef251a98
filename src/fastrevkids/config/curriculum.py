"""Curriculum loader: concept names and the prerequisite graph.

Loads concepts from data/config/curriculum_v1.yaml. The graph is static
lookup data (concept -> direct prerequisites), not student specific.

Usage:
    from fastrevkids.config.curriculum import get_prerequisites, get_concept_name

    get_prerequisites("addition_retenue")  # ["addition_simple"]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CURRICULUM_FILE = Path("data/config/curriculum_v1.yaml")


@dataclass(frozen=True)
class Concept:
    """A curriculum skill and its direct prerequisites."""

    id: str
    name: str
    prerequisites: tuple[str, ...] = ()


@dataclass
class Curriculum:
    """The full concept graph."""

    concepts: dict[str, Concept] = field(default_factory=dict)

    def prerequisites_of(self, concept_id: str) -> list[str]:
        concept = self.concepts.get(concept_id)
        return list(concept.prerequisites) if concept else []

    def name_of(self, concept_id: str) -> str:
        concept = self.concepts.get(concept_id)
        return concept.name if concept else concept_id

    def __contains__(self, concept_id: object) -> bool:
        return concept_id in self.concepts


# Module-level cache
_cached_curriculum: Curriculum | None = None


# French primary mathematics (CP -> CM2)
_DEFAULT_CONCEPTS: list[tuple[str, str, list[str]]] = [
    ("addition_simple", "Addition simple", []),
    ("addition_retenue", "Addition avec retenue", ["addition_simple"]),
    ("soustraction_simple", "Soustraction simple", ["addition_simple"]),
    ("soustraction_retenue", "Soustraction avec retenue", ["soustraction_simple", "addition_retenue"]),
    ("multiplication_table", "Tables de multiplication", ["addition_simple"]),
    ("multiplication_posee", "Multiplication posée", ["multiplication_table", "addition_retenue"]),
    ("division_simple", "Division simple", ["multiplication_table", "soustraction_simple"]),
    ("division_posee", "Division posée", ["division_simple", "multiplication_posee"]),
    ("fractions_simples", "Fractions simples", ["division_simple"]),
    ("fractions_operations", "Opérations sur fractions", ["fractions_simples", "multiplication_posee"]),
    ("decimaux_simples", "Nombres décimaux", ["fractions_simples"]),
    ("decimaux_operations", "Opérations décimales", ["decimaux_simples", "multiplication_posee"]),
    ("pourcentages", "Pourcentages", ["fractions_simples", "decimaux_simples"]),
    ("proportionnalite", "Proportionnalité", ["multiplication_posee", "division_posee", "fractions_simples"]),
    ("geometrie_perimetre", "Périmètre", ["addition_simple", "multiplication_table"]),
    ("geometrie_aire", "Aire", ["multiplication_posee", "geometrie_perimetre"]),
    ("problemes_simples", "Problèmes simples", ["addition_simple", "soustraction_simple"]),
    ("problemes_complexes", "Problèmes complexes", ["multiplication_posee", "division_simple", "problemes_simples"]),
]


def _get_default_curriculum() -> Curriculum:
    """Get the built-in curriculum when the config file is missing."""
    return Curriculum(
        concepts={
            cid: Concept(id=cid, name=name, prerequisites=tuple(prereqs))
            for cid, name, prereqs in _DEFAULT_CONCEPTS
        }
    )


def _check_graph(curriculum: Curriculum) -> None:
    """Warn about edges pointing to concepts that are not declared."""
    for concept in curriculum.concepts.values():
        missing = [p for p in concept.prerequisites if p not in curriculum]
        if missing:
            logger.warning("curriculum.unknown_prerequisites", concept_id=concept.id, missing=missing)


def load_curriculum(force_reload: bool = False) -> Curriculum:
    """Load the curriculum from config file.

    Args:
        force_reload: If True, ignore cache and reload from file.

    Returns:
        Curriculum with every concept keyed by id.
    """
    global _cached_curriculum

    if _cached_curriculum is not None and not force_reload:
        return _cached_curriculum

    if not CURRICULUM_FILE.exists():
        logger.debug("curriculum_file_not_found", path=str(CURRICULUM_FILE))
        _cached_curriculum = _get_default_curriculum()
        return _cached_curriculum

    try:
        data = yaml.safe_load(CURRICULUM_FILE.read_text(encoding="utf-8")) or {}
        concepts_data = data.get("concepts", {})

        concepts = {}
        for cid, cdata in concepts_data.items():
            cdata = cdata or {}
            concepts[cid] = Concept(
                id=cid,
                name=cdata.get("name", cid),
                prerequisites=tuple(cdata.get("prerequisites", [])),
            )
        curriculum = Curriculum(concepts=concepts)

    except (yaml.YAMLError, OSError, AttributeError) as e:
        logger.error("failed_to_load_curriculum", error=str(e))
        curriculum = _get_default_curriculum()

    _check_graph(curriculum)
    logger.debug("loaded_curriculum", count=len(curriculum.concepts))
    _cached_curriculum = curriculum
    return _cached_curriculum


def get_prerequisites(concept_id: str) -> list[str]:
    """Direct prerequisites of a concept (empty if none or unknown)."""
    return load_curriculum().prerequisites_of(concept_id)


def get_concept_name(concept_id: str) -> str:
    """Display name of a concept, falling back to its id."""
    return load_curriculum().name_of(concept_id)


def list_concepts() -> list[Concept]:
    """List all concepts in declaration order."""
    return list(load_curriculum().concepts.values())


def clear_curriculum_cache() -> None:
    """Clear the curriculum cache.

    Useful for testing or when the curriculum is modified at runtime.
    """
    global _cached_curriculum
    _cached_curriculum = None
