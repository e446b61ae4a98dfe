"""Calibration matching: canonical names, trigger-map scrubbing, inference and grouping."""

from adas_scrub.calibration.aggregator import group_calibrations
from adas_scrub.calibration.inference import (
    infer_from_repairs,
    infer_steering_from_line_mentions,
    merge_missing_inferred,
)
from adas_scrub.calibration.manual import apply_manual_additions, apply_manual_removals
from adas_scrub.calibration.scrubber import RuleBasedScrubber, resolve_vehicle, scrub

__all__ = [
    "RuleBasedScrubber",
    "apply_manual_additions",
    "apply_manual_removals",
    "group_calibrations",
    "infer_from_repairs",
    "infer_steering_from_line_mentions",
    "merge_missing_inferred",
    "resolve_vehicle",
    "scrub",
]
