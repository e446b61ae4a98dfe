"""Shop-scoped learning rules and their storage."""

from adas_scrub.learning.engine import LearningEngine, clamp_weight
from adas_scrub.learning.store import (
    FileLearningStore,
    InMemoryLearningStore,
    LearningStore,
    RuleKey,
    normalize_learning_text,
)

__all__ = [
    "FileLearningStore",
    "InMemoryLearningStore",
    "LearningEngine",
    "LearningStore",
    "RuleKey",
    "clamp_weight",
    "normalize_learning_text",
]
