"""Explainable confidence score for an analysis.

The score starts at a fixed base and each adjustment appends the reason it
fired, in a fixed order, so the same inputs always give the same score and
the same explanation.
"""

from typing import List, Tuple

from adas_scrub.schemas.confidence import AnalysisConfidence, ConfidenceInputs, ConfidenceLabel
from adas_scrub.schemas.vehicle import VehicleConfidence

BASE_SCORE = 52
MIN_SCORE = 45
MAX_SCORE = 96
HIGH_THRESHOLD = 85
MEDIUM_THRESHOLD = 70

_EXTRACTION_ADJUSTMENTS = {
    VehicleConfidence.HIGH: (12, "Vehicle extraction confidence is high."),
    VehicleConfidence.MEDIUM: (7, "Vehicle extraction confidence is medium."),
    VehicleConfidence.LOW: (2, "Vehicle extraction confidence is low."),
}


def score_to_label(score: int) -> ConfidenceLabel:
    if score >= HIGH_THRESHOLD:
        return ConfidenceLabel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return ConfidenceLabel.MEDIUM
    return ConfidenceLabel.LOW


def _adjustments(inputs: ConfidenceInputs) -> List[Tuple[int, str]]:
    steps: List[Tuple[int, str]] = []

    if inputs.has_vehicle_from_db:
        steps.append((20, "Vehicle mapped to OEM-backed database record."))
    else:
        steps.append((0, "No exact vehicle mapping found; falling back to generic detection."))

    if inputs.has_vin:
        steps.append((8, "VIN detected and used for vehicle confidence."))

    steps.append(_EXTRACTION_ADJUSTMENTS[inputs.extracted_confidence])

    if inputs.detected_repair_count >= 5:
        steps.append((10, "Sufficient repair-line evidence was detected."))
    elif inputs.detected_repair_count >= 2:
        steps.append((5, "Moderate repair-line evidence was detected."))
    else:
        steps.append((0, "Limited repair-line evidence was detected."))

    if inputs.results_count > 0:
        steps.append((8, "Calibration recommendations matched to known repair triggers."))

    if inputs.adas_parts_count > 0:
        steps.append((6, "ADAS-specific parts were detected in estimate content."))

    if inputs.used_external_model:
        steps.append((4, "External text-understanding assist contributed additional operations."))

    if inputs.used_inference_fallback:
        steps.append((-8, "Used inference fallback because direct OEM map matching was limited."))

    return steps


def build_analysis_confidence(inputs: ConfidenceInputs) -> AnalysisConfidence:
    """Compute the bounded score, its label and the reasons behind it."""
    steps = _adjustments(inputs)
    raw_score = BASE_SCORE + sum(delta for delta, _ in steps)
    score = max(MIN_SCORE, min(MAX_SCORE, raw_score))
    return AnalysisConfidence(
        score=score,
        label=score_to_label(score),
        reasons=[reason for _, reason in steps],
    )
