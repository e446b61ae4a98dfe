"""Configuration for the scrub pipeline."""

from adas_scrub.config.settings import (
    AssistSettings,
    ClassifierSettings,
    LearningSettings,
    ScrubSettings,
    load_settings,
)

__all__ = [
    "AssistSettings",
    "ClassifierSettings",
    "LearningSettings",
    "ScrubSettings",
    "load_settings",
]
