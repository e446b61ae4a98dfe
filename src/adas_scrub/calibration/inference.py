"""Inference fallbacks that fill gaps left by the vehicle trigger map.

Every heuristic here only ever adds matches for calibration operations the
rule-based pass did not already recommend; see merge_missing_inferred().
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from adas_scrub.calibration.canonical import (
    BLIND_SPOT_OPERATION,
    FORWARD_CAMERA_OPERATION,
    FRONT_RADAR_OPERATION,
    STEERING_ANGLE_OPERATION,
    operation_key,
)
from adas_scrub.schemas.calibration import CalibrationMatch, MatchSource, ScrubResult
from adas_scrub.schemas.estimate import AdasPartHit, DetectedRepair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InferenceRule:
    """Synthetic calibration emitted for a repair type or ADAS part."""

    system_name: str
    calibration_type: str
    reason: str
    repair_operation: str
    component: str = ""


REPAIR_TYPE_RULES: List[Tuple[re.Pattern, InferenceRule]] = [
    (
        re.compile(r"(windshield|camera|headlamp)"),
        InferenceRule(
            system_name="Forward Camera / LDW-LKA",
            calibration_type="Static + Dynamic",
            reason="Camera or windshield-area repair commonly requires forward-camera aiming/calibration.",
            repair_operation=FORWARD_CAMERA_OPERATION,
        ),
    ),
    (
        re.compile(r"(front bumper|bumper overhaul|bumper repair|bumper r&i|bumper r&r|grille|radar sensor)"),
        InferenceRule(
            system_name="Front Radar / ACC-AEB",
            calibration_type="Static or Dynamic",
            reason="Front fascia/radar-zone repair commonly requires front-radar calibration.",
            repair_operation=FRONT_RADAR_OPERATION,
        ),
    ),
    (
        re.compile(r"(rear bumper|tailgate|quarter panel|side mirror)"),
        InferenceRule(
            system_name="Blind Spot / Rear Cross Traffic",
            calibration_type="Static",
            reason="Rear-quarter and mirror-zone work can impact blind-spot and rear-cross-traffic sensors.",
            repair_operation=BLIND_SPOT_OPERATION,
        ),
    ),
    (
        re.compile(r"(alignment|suspension|steering)"),
        InferenceRule(
            system_name="Steering Angle Sensor",
            calibration_type="Initialization",
            reason="Alignment or steering work commonly requires steering-angle reset/relearn.",
            repair_operation=STEERING_ANGLE_OPERATION,
        ),
    ),
]

ADAS_PART_GUIDANCE: Dict[str, InferenceRule] = {
    "frontRadar": InferenceRule(
        component="Front Radar Sensor",
        system_name="Front Radar / ACC-AEB",
        calibration_type="Static or Dynamic",
        repair_operation=FRONT_RADAR_OPERATION,
        reason="Front radar component detected in estimate; radar aiming/calibration is typically required after service.",
    ),
    "frontCamera": InferenceRule(
        component="Forward Camera",
        system_name="Forward Camera / LDW-LKA",
        calibration_type="Static + Dynamic",
        repair_operation=FORWARD_CAMERA_OPERATION,
        reason="Forward-facing ADAS camera component detected; camera calibration procedure is typically required.",
    ),
    "blindSpotMonitor": InferenceRule(
        component="Blind Spot Radar Sensor",
        system_name="Blind Spot / Rear Cross Traffic",
        calibration_type="Static",
        repair_operation=BLIND_SPOT_OPERATION,
        reason="Blind spot radar-related component detected; BSM/RCTA verification and calibration are typically required.",
    ),
    "surroundCamera": InferenceRule(
        component="Surround View Camera",
        system_name="Surround View / 360 Camera",
        calibration_type="Static",
        repair_operation="Surround View Camera Calibration",
        reason="360/surround camera component detected; multi-camera alignment/calibration is typically required.",
    ),
    "parkingSensor": InferenceRule(
        component="Parking Sensor",
        system_name="Parking Assist Sensors",
        calibration_type="Coding / Initialization",
        repair_operation="Parking Sensor Calibration",
        reason="Parking-assist sensor component detected; sensor initialization/coding and verification are typically required.",
    ),
    "steeringAngleSensor": InferenceRule(
        component="Steering Angle Sensor",
        system_name="Steering Angle Sensor",
        calibration_type="Initialization",
        repair_operation=STEERING_ANGLE_OPERATION,
        reason="Steering-angle related component detected; SAS reset/relearn is typically required after service.",
    ),
    "rearCamera": InferenceRule(
        component="Rear View Camera",
        system_name="Rear View Camera",
        calibration_type="Static",
        repair_operation="Rear Camera Calibration",
        reason="Rear camera component detected; calibration/aim verification is typically required.",
    ),
}

GENERIC_PART_REASON = "ADAS-related component detected in estimate; calibration verification is recommended."


def _guidance_for_part(part: AdasPartHit) -> InferenceRule:
    guidance = ADAS_PART_GUIDANCE.get(part.system)
    if guidance is not None:
        return guidance
    return InferenceRule(
        component=part.description,
        system_name=part.description,
        calibration_type="OEM Procedure",
        repair_operation=f"{part.description} Calibration",
        reason=GENERIC_PART_REASON,
    )


class _ResultCollector:
    """Per-line ScrubResults with (system, keyword) dedupe."""

    def __init__(self):
        self._by_line: Dict[int, ScrubResult] = {}

    def push(self, line_number: int, description: str, match: CalibrationMatch) -> None:
        result = self._by_line.get(line_number)
        if result is None:
            self._by_line[line_number] = ScrubResult(
                line_number=line_number, description=description, calibration_matches=[match]
            )
            return
        result.add_match(match)

    def results(self) -> List[ScrubResult]:
        return sorted(self._by_line.values(), key=lambda r: r.line_number)


def _inferred_match(rule: InferenceRule, matched_keyword: str) -> CalibrationMatch:
    return CalibrationMatch(
        system_name=rule.system_name,
        calibration_type=rule.calibration_type,
        reason=rule.reason,
        matched_keyword=matched_keyword,
        repair_operation=rule.repair_operation,
        source=MatchSource.INFERRED,
    )


def infer_from_repairs(
    detected_repairs: Sequence[DetectedRepair],
    adas_parts: Sequence[AdasPartHit] = (),
) -> List[ScrubResult]:
    """Synthesize calibrations from generic repair types and ADAS parts."""
    collector = _ResultCollector()

    for repair in detected_repairs:
        repair_type = repair.repair_type.lower()
        for pattern, rule in REPAIR_TYPE_RULES:
            if pattern.search(repair_type):
                collector.push(
                    repair.line_number,
                    repair.description,
                    _inferred_match(rule, repair.repair_type),
                )

    for part in adas_parts:
        guidance = _guidance_for_part(part)
        line_number = part.line_numbers[0] if part.line_numbers else 1
        collector.push(line_number, guidance.component, _inferred_match(guidance, part.system))

    return collector.results()


_STEERING_LINE_MENTION = re.compile(r"\bSteering[^\n]{0,120}?\bLine\s+(\d{1,3})\b", re.IGNORECASE)

STEERING_MENTION_KEYWORD = "steering-line-mention"
STEERING_MENTION_RULE = InferenceRule(
    system_name="Steering Angle Sensor",
    calibration_type="Initialization",
    reason="Steering-system operation reference indicates steering-angle reset/relearn requirement.",
    repair_operation=STEERING_ANGLE_OPERATION,
)


def infer_steering_from_line_mentions(
    estimate_text: str, line_text_by_number: Optional[Dict[int, str]] = None
) -> List[ScrubResult]:
    """Steering reset/relearn for narrative text such as "Steering gear ... Line 12"."""
    line_text_by_number = line_text_by_number or {}
    collector = _ResultCollector()
    seen = set()

    for match in _STEERING_LINE_MENTION.finditer(estimate_text or ""):
        line_number = int(match.group(1))
        if not 1 <= line_number <= 999 or line_number in seen:
            continue
        seen.add(line_number)
        collector.push(
            line_number,
            line_text_by_number.get(line_number) or "Steering operation",
            _inferred_match(STEERING_MENTION_RULE, STEERING_MENTION_KEYWORD),
        )

    return collector.results()


def _match_key(match: CalibrationMatch) -> str:
    return operation_key(match.system_name, match.repair_operation, match.matched_keyword)


def merge_missing_inferred(
    base: Sequence[ScrubResult], inferred: Sequence[ScrubResult]
) -> Tuple[List[ScrubResult], int]:
    """Add inferred matches whose canonical operation is absent from ``base``.

    Returns:
        (merged results sorted by line, number of matches added). ``base`` is
        not mutated.
    """
    if not base:
        merged = [r.model_copy(deep=True) for r in inferred]
        return sorted(merged, key=lambda r: r.line_number), sum(
            len(r.calibration_matches) for r in merged
        )

    by_line: Dict[int, ScrubResult] = {r.line_number: r.model_copy(deep=True) for r in base}
    existing_keys = {
        _match_key(m) for result in by_line.values() for m in result.calibration_matches
    }

    added = 0
    for result in inferred:
        for match in result.calibration_matches:
            key = _match_key(match)
            if key in existing_keys:
                continue
            target = by_line.get(result.line_number)
            if target is None:
                target = ScrubResult(line_number=result.line_number, description=result.description)
                by_line[result.line_number] = target
            if target.add_match(match.model_copy()):
                existing_keys.add(key)
                added += 1
                logger.debug(
                    f"Inferred {match.repair_operation} at line {result.line_number} "
                    f"({match.matched_keyword})"
                )

    return sorted(by_line.values(), key=lambda r: r.line_number), added
