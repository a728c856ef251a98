"""Core adaptive learning logic.

Modules:
- models: Domain types and errors
- difficulty_engine: Performance metrics and optimal difficulty
- prerequisite_checker: Prerequisite mastery
- recommendation_scorer: Additive exercise scoring
- spaced_repetition: SM-2 revision scheduler
- sequence_generator: Adaptive session sequences
- adaptive_service: Public API over catalog, progress and schedule stores
"""

__all__ = [
    "models",
    "difficulty_engine",
    "prerequisite_checker",
    "recommendation_scorer",
    "spaced_repetition",
    "sequence_generator",
    "adaptive_service",
]
