"""
ADAS Scrub - find the ADAS calibrations a collision-repair estimate calls for.

Estimate text is matched against vehicle-specific repair triggers, gaps are
filled by inference fallbacks, shop-taught learning rules are applied, and the
result is grouped into one recommendation per calibration operation with an
explainable confidence score.
"""

__version__ = "0.1.0"

from adas_scrub.calibration import group_calibrations, scrub
from adas_scrub.pipeline import ScrubPipeline

__all__ = [
    "ScrubPipeline",
    "group_calibrations",
    "scrub",
]
