"""Estimate-level parsing: format detection, per-line parse and repair detection."""

import logging
import re
from typing import Dict, List, Optional

from adas_scrub.estimate.text import (
    clean_line_text,
    clean_repair_description,
    extract_part_number,
    is_supplier_address_line,
    parse_operation_type,
    split_estimate_lines,
)
from adas_scrub.estimate.vocabulary import VocabularyMatcher
from adas_scrub.schemas.estimate import (
    AdasPartHit,
    DetectedRepair,
    EstimateFormat,
    ParsedEstimate,
    ParsedLine,
    RepairSummary,
)

logger = logging.getLogger(__name__)

_FORMAT_MARKERS = [
    (
        EstimateFormat.CCC,
        ["CCC ONE", "CCCONE", "PATHWAYS"],
        [re.compile(r"PROFILE\s*#"), re.compile(r"ESTIMATE\s*#\s*\d{8,}")],
    ),
    (
        EstimateFormat.MITCHELL,
        ["MITCHELL", "ULTRAMATE"],
        [re.compile(r"CLAIM\s*#"), re.compile(r"ESTIMATOR:")],
    ),
    (EstimateFormat.AUDATEX, ["AUDATEX", "SOLERA", "QAPTER"], []),
]


def detect_estimate_format(text: str) -> EstimateFormat:
    """Guess the estimating system that produced the document."""
    upper = (text or "").upper()
    for estimate_format, markers, patterns in _FORMAT_MARKERS:
        if any(marker in upper for marker in markers):
            return estimate_format
        if any(pattern.search(upper) for pattern in patterns):
            return estimate_format
    return EstimateFormat.GENERIC


def parse_line(
    text: str, line_number: int, matcher: Optional[VocabularyMatcher] = None
) -> ParsedLine:
    matcher = matcher or VocabularyMatcher()
    systems = matcher.detect_adas_parts(text)
    return ParsedLine(
        line_number=line_number,
        raw_text=text,
        cleaned_text=clean_line_text(text),
        operation_type=parse_operation_type(text),
        part_number=extract_part_number(text),
        is_adas_part=bool(systems),
        adas_systems_detected=systems,
        repair_categories_matched=matcher.match_repair_categories(text),
    )


def parse_estimate(text: str, matcher: Optional[VocabularyMatcher] = None) -> ParsedEstimate:
    """Parse every line and summarize ADAS parts and repair categories.

    Line numbers come from the shared tokenizer, so they agree with the
    scrubber and learning engine.
    """
    matcher = matcher or VocabularyMatcher()
    lines: List[ParsedLine] = []
    adas_lines: Dict[str, List[int]] = {}
    repair_lines: Dict[str, List[int]] = {}

    for repair_line in split_estimate_lines(text):
        parsed = parse_line(repair_line.raw_text, repair_line.line_number, matcher)
        lines.append(parsed)
        for system in parsed.adas_systems_detected:
            adas_lines.setdefault(system, []).append(parsed.line_number)
        for category in parsed.repair_categories_matched:
            repair_lines.setdefault(category, []).append(parsed.line_number)

    estimate_format = detect_estimate_format(text)
    logger.debug(
        f"Parsed {len(lines)} lines ({estimate_format.value}): "
        f"{len(adas_lines)} ADAS systems, {len(repair_lines)} repair categories"
    )
    return ParsedEstimate(
        format=estimate_format,
        lines=lines,
        adas_parts_found=[
            AdasPartHit(
                system=system,
                description=matcher.describe_adas_system(system),
                line_numbers=numbers,
            )
            for system, numbers in adas_lines.items()
        ],
        repairs_summary=[
            RepairSummary(category=category, count=len(numbers), line_numbers=numbers)
            for category, numbers in repair_lines.items()
        ],
    )


# Generic repair buckets, vehicle independent. First hit per line wins.
REPAIR_PATTERNS = [
    (r"o/h\s*(front\s*)?bumper|bumper.*o/h|overhaul\s*(front\s*)?bumper", "Bumper Overhaul"),
    (r"rpr\s*(front\s*)?bumper|bumper.*rpr|repair\s*(front\s*)?bumper", "Bumper Repair"),
    (r"r\s*&\s*i.*bumper|bumper.*r\s*&\s*i|remove.*bumper|bumper.*remove", "Bumper R&I"),
    (r"r\s*&\s*r.*bumper|bumper.*r\s*&\s*r|replace.*bumper|bumper.*replace", "Bumper R&R"),
    (r"front\s*bumper", "Front Bumper"),
    (r"rear\s*bumper", "Rear Bumper"),
    (r"r\s*&\s*i\s*grille?|grille?\s*r\s*&\s*i", "Grille R&I"),
    (r"r\s*&\s*r\s*grille?|grille?\s*r\s*&\s*r", "Grille R&R"),
    (r"grille|grill", "Grille"),
    (r"windshield|w/s|wsr|front\s*glass", "Windshield"),
    (r"r\s*&\s*i.*mirror|mirror.*r\s*&\s*i|side\s*mirror|door\s*mirror", "Side Mirror"),
    (r"headlamp|headlight|head\s*lamp|head\s*light", "Headlamp"),
    (r"radar\s*sensor|front\s*radar|distronic", "Radar Sensor"),
    (r"camera|cam\b", "Camera"),
    (r"hood|bonnet", "Hood"),
    (r"fender", "Fender"),
    (r"quarter\s*panel|qtr\s*panel", "Quarter Panel"),
    (r"door\s*shell|door\s*skin", "Door"),
    (r"tailgate|tail\s*gate|liftgate|lift\s*gate", "Tailgate/Liftgate"),
    (r"alignment|align", "Alignment"),
    (r"suspension|strut|shock|control\s*arm", "Suspension"),
    (r"steering|rack|tie\s*rod", "Steering"),
    (r"sensor", "Sensor"),
    (r"calibrat", "Calibration"),
    (r"blend|refinish|paint", "Refinish/Paint"),
    (r"structural|frame|rail", "Structural"),
    (r"roof|moonroof|sunroof", "Roof"),
    (r"trunk|decklid", "Trunk/Decklid"),
]
_COMPILED_REPAIR_PATTERNS = [
    (re.compile(pattern, re.IGNORECASE), repair_type) for pattern, repair_type in REPAIR_PATTERNS
]


def classify_repair_type(line: str) -> Optional[str]:
    for pattern, repair_type in _COMPILED_REPAIR_PATTERNS:
        if pattern.search(line):
            return repair_type
    return None


def detect_repairs(text: str) -> List[DetectedRepair]:
    """Bucket each line into a generic repair type (no vehicle data needed)."""
    repairs: List[DetectedRepair] = []
    seen = set()
    for line in split_estimate_lines(text):
        if is_supplier_address_line(line.raw_text):
            continue
        repair_type = classify_repair_type(line.raw_text)
        if repair_type is None or (line.line_number, repair_type) in seen:
            continue
        seen.add((line.line_number, repair_type))
        repairs.append(
            DetectedRepair(
                line_number=line.line_number,
                description=clean_repair_description(line.raw_text),
                repair_type=repair_type,
            )
        )
    return repairs
