"""Scrub settings schema and loader.

Settings are loaded from a YAML file (``--config`` on the CLI, or the path in
``ADAS_SCRUB_CONFIG``). Every field has a default so an absent file simply
means "use defaults".

Example ``adas_scrub.yaml``::

    max_estimate_chars: 500000
    vocabulary_path: config/vocabulary.yaml
    classifier:
      report_threshold: 5
    assist:
      enabled: true
      model: gpt-4.1-mini
      timeout_seconds: 30
    learning:
      store_dir: output/learning
      min_confidence_weight: 0.2
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ADAS_SCRUB_CONFIG"
ASSIST_MODEL_ENV_VAR = "ADAS_SCRUB_ASSIST_MODEL"

DEFAULT_ASSIST_MODEL = "gpt-4.1-mini"


class ClassifierSettings(BaseModel):
    """Thresholds for rejecting generated reports uploaded as estimates."""

    report_threshold: int = Field(
        default=5,
        ge=1,
        description="Weighted score at or above which a document is treated as a report",
    )


class AssistSettings(BaseModel):
    """External text-understanding assist settings."""

    enabled: bool = Field(default=True, description="Use the assist when credentials exist")
    model: Optional[str] = Field(
        default=None,
        description=f"Model/deployment name (falls back to ${ASSIST_MODEL_ENV_VAR})",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    max_prompt_chars: int = Field(default=60_000, ge=1_000)
    max_operations: int = Field(default=120, ge=1)
    report_confidence_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Assist confidence needed to reject a document as a calibration report",
    )

    def resolve_model(self) -> str:
        return self.model or os.getenv(ASSIST_MODEL_ENV_VAR) or DEFAULT_ASSIST_MODEL


class LearningSettings(BaseModel):
    """Learning store location and rule application thresholds."""

    store_dir: Optional[Path] = Field(
        default=None,
        description="Directory for the file-backed learning store (CLI default: output/learning)",
    )
    min_confidence_weight: float = Field(default=0.2, ge=0.0, le=1.0)


class ScrubSettings(BaseModel):
    """Top-level settings for the scrub pipeline."""

    max_estimate_chars: int = Field(
        default=500_000,
        ge=1,
        description="Reject estimate text longer than this",
    )
    vocabulary_path: Optional[Path] = Field(
        default=None,
        description="Optional YAML overriding the bundled vocabulary",
    )
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    assist: AssistSettings = Field(default_factory=AssistSettings)
    learning: LearningSettings = Field(default_factory=LearningSettings)

    @field_validator("vocabulary_path")
    @classmethod
    def validate_vocabulary_path(cls, v: Optional[Path]) -> Optional[Path]:
        if v is not None and v.suffix.lower() not in (".yaml", ".yml"):
            raise ValueError(f"vocabulary_path must be a YAML file, got '{v}'")
        return v


def load_settings(config_path: Optional[Path] = None) -> ScrubSettings:
    """Load settings from YAML.

    Args:
        config_path: Explicit path. If omitted, ``$ADAS_SCRUB_CONFIG`` is used;
            if that is unset too, defaults are returned.

    Returns:
        ScrubSettings instance.

    Raises:
        ValueError: If the file exists but contains invalid configuration.
    """
    if config_path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if not env_path:
            return ScrubSettings()
        config_path = Path(env_path)

    config_path = Path(config_path)
    if not config_path.exists():
        logger.debug(f"No scrub config found at {config_path}, using defaults")
        return ScrubSettings()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        logger.warning(f"Empty scrub config at {config_path}, using defaults")
        return ScrubSettings()

    try:
        settings = ScrubSettings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid scrub config in {config_path}: {e}") from e

    logger.debug(f"Loaded scrub settings from {config_path}")
    return settings
