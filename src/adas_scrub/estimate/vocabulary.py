"""Curated repair and ADAS-part vocabularies and boundary-safe keyword matching.

The default vocabulary ships as ``adas_scrub/data/vocabulary.yaml``; a shop
can point ``vocabulary_path`` in the settings at its own YAML with the same
layout.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern

import yaml

logger = logging.getLogger(__name__)

DEFAULT_VOCABULARY_RESOURCE = "vocabulary.yaml"

# Leading line number and/or operation code glued to the text by OCR
_LEADING_OPERATION_PREFIX = re.compile(
    r"^\s*\d{0,4}\s*\*{0,2}\s*(o/h|ovhl|rpr|repl|r&i|r&r|subl|add|blend|refn)?\s*",
    re.IGNORECASE,
)


@lru_cache(maxsize=2048)
def _keyword_pattern(keyword: str) -> Pattern[str]:
    escaped = re.escape(keyword.strip().lower())
    flexible = re.sub(r"(\\\s)+|\s+", r"\\s+", escaped)
    return re.compile(rf"(^|[^a-z0-9]){flexible}([^a-z0-9]|$)", re.IGNORECASE)


def keyword_matched(line: str, keyword: str) -> bool:
    """Case-insensitive, word-boundary-safe keyword test.

    ``"front bumper"`` matches ``"6 O/H Front  Bumper Cover"`` but ``"hood"``
    does not match ``"childhood"``. When the plain test fails, a leading
    line-number/operation prefix is stripped and the test retried so that
    concatenated OCR text such as ``"2O/H bumper"`` still matches ``"bumper"``.
    """
    if not keyword or not keyword.strip():
        return False
    pattern = _keyword_pattern(keyword)
    if pattern.search(line or ""):
        return True

    stripped = _LEADING_OPERATION_PREFIX.sub("", line or "", count=1)
    if stripped and stripped != line:
        return pattern.search(stripped) is not None
    return False


@lru_cache(maxsize=1)
def _load_default_vocabulary() -> Dict[str, Any]:
    resource = resources.files("adas_scrub") / "data" / DEFAULT_VOCABULARY_RESOURCE
    return yaml.safe_load(resource.read_text(encoding="utf-8")) or {}


@dataclass
class VocabularyConfig:
    """Keyword tables for repair categories and ADAS-part indicators."""

    repair_keywords: Dict[str, List[str]] = field(default_factory=dict)
    adas_part_indicators: Dict[str, List[str]] = field(default_factory=dict)
    adas_descriptions: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "VocabularyConfig":
        """Create config from dictionary (loaded from YAML)."""
        return cls(
            repair_keywords={
                category: [str(k) for k in keywords or []]
                for category, keywords in (config.get("repair_keywords") or {}).items()
            },
            adas_part_indicators={
                system: [str(k) for k in keywords or []]
                for system, keywords in (config.get("adas_part_indicators") or {}).items()
            },
            adas_descriptions={
                str(k): str(v) for k, v in (config.get("adas_descriptions") or {}).items()
            },
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "VocabularyConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.debug(f"Loaded vocabulary from {path}")
        return cls.from_dict(data)

    @classmethod
    def default(cls) -> "VocabularyConfig":
        """Bundled vocabulary shipped with the package."""
        return cls.from_dict(_load_default_vocabulary())


class VocabularyMatcher:
    """Tests estimate lines against the vocabulary tables."""

    def __init__(self, config: Optional[VocabularyConfig] = None):
        if config is None:
            config = VocabularyConfig.default()
        if not config.repair_keywords:
            logger.warning("Vocabulary has no repair keywords, no repair categories will match")
        self.config = config

    @staticmethod
    def _matching_keys(line: str, table: Dict[str, List[str]]) -> List[str]:
        return [
            key
            for key, keywords in table.items()
            if any(keyword_matched(line, keyword) for keyword in keywords)
        ]

    def match_repair_categories(self, line: str) -> List[str]:
        """All repair categories with at least one keyword on the line, in table order."""
        return self._matching_keys(line, self.config.repair_keywords)

    def detect_adas_parts(self, line: str) -> List[str]:
        """All ADAS systems with a part indicator on the line, in table order."""
        return self._matching_keys(line, self.config.adas_part_indicators)

    def describe_adas_system(self, system_key: str) -> str:
        return self.config.adas_descriptions.get(system_key, system_key)
