"""Centralized initialization for adas_scrub entry points.

Loads ``.env`` from the project root (so OpenAI/Azure credentials and
``ADAS_SCRUB_*`` variables are visible) and resolves the scrub settings once.
Entry points call ensure_initialized(); library callers that build their own
ScrubSettings never need to.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from adas_scrub.config import ScrubSettings, load_settings

logger = logging.getLogger(__name__)


@dataclass
class StartupState:
    """Resolved environment after initialization."""

    project_root: Path
    env_loaded: bool
    settings: ScrubSettings


_state: Optional[StartupState] = None


def _find_project_root(start_path: Optional[Path] = None) -> Path:
    """Find project root by looking for pyproject.toml or .env upwards."""
    if start_path is None:
        start_path = Path.cwd()

    for parent in [start_path] + list(start_path.parents):
        if (parent / "pyproject.toml").exists() or (parent / ".env").exists():
            return parent
    return start_path


def _load_env(project_root: Path) -> bool:
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded .env from {env_path}")
        return True
    logger.debug(f".env not found at {env_path}")
    return False


def ensure_initialized(config_path: Optional[Path] = None) -> StartupState:
    """Initialize environment and settings (idempotent unless a new config is given).

    Args:
        config_path: Optional settings YAML; overrides ``$ADAS_SCRUB_CONFIG``.

    Returns:
        Current StartupState.
    """
    global _state

    if _state is not None and config_path is None:
        return _state

    project_root = _find_project_root()
    env_loaded = _load_env(project_root)
    settings = load_settings(config_path)
    _state = StartupState(
        project_root=project_root,
        env_loaded=env_loaded,
        settings=settings,
    )
    return _state


def reset() -> None:
    """Forget cached state (used by tests)."""
    global _state
    _state = None
