"""Shared CLI setup: initialization, logging and collaborator wiring."""

import logging
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from adas_scrub.config import ScrubSettings
from adas_scrub.learning import FileLearningStore, LearningEngine
from adas_scrub.startup import ensure_initialized as _ensure_initialized

logger = logging.getLogger(__name__)

DEFAULT_LEARNING_DIR = Path("output/learning")


def ensure_initialized(config_path: Optional[Path] = None) -> ScrubSettings:
    """Load .env and settings; returns the resolved settings."""
    return _ensure_initialized(config_path).settings


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=None,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("openai", "openai._base_client", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def build_learning_engine(
    settings: ScrubSettings, learning_dir: Optional[Path] = None
) -> LearningEngine:
    """Learning engine over the file store (``--learning-dir``, settings, or the default)."""
    store_dir = learning_dir or settings.learning.store_dir or DEFAULT_LEARNING_DIR
    return LearningEngine(
        FileLearningStore(store_dir),
        min_confidence_weight=settings.learning.min_confidence_weight,
    )
