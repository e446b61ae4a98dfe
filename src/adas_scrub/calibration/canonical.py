"""Canonical names for ADAS systems, calibration operations and calibration types.

Estimates, vehicle trigger maps, inference heuristics and learned rules all
name the same real-world calibration in different ways ("front radar / acc-aeb",
"Radar Calibration", "Front Radar Calibration", ...). Everything downstream
(inference merge, grouping, manual edits) compares matches through the
functions in this module so that one calibration has exactly one name.

The operation and system tables are evaluated top to bottom and the first
matching row wins. Order matters: steering-angle and blind-spot rows must be
tested before the generic radar/camera rows.

All functions are pure and idempotent.
"""

import re
from typing import Callable, Iterable, List, Optional, Set, Tuple

from adas_scrub.schemas.calibration import CanonicalSystem

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

Predicate = Callable[[str], bool]


def _has(pattern: str) -> Predicate:
    compiled = re.compile(pattern)
    return lambda text: compiled.search(text) is not None


def _all(*predicates: Predicate) -> Predicate:
    return lambda text: all(p(text) for p in predicates)


def _not(predicate: Predicate) -> Predicate:
    return lambda text: not predicate(text)


def normalize_whitespace(value: Optional[str]) -> str:
    return _WHITESPACE.sub(" ", value or "").strip()


def normalize_for_key(value: Optional[str]) -> str:
    """Comparison key: lowercase, non-alphanumerics collapsed to single spaces."""
    return _NON_ALNUM.sub(" ", normalize_whitespace(value).lower()).strip()


# ── Canonical operations / systems ───────────────────────────────────

STEERING_ANGLE_OPERATION = "Steering Angle Sensor Reset/Relearn"
BLIND_SPOT_OPERATION = "Blind Spot Radar Calibration"
SURROUND_VIEW_OPERATION = "Surround View Camera Calibration"
REAR_CAMERA_OPERATION = "Rear Camera Calibration"
PARKING_SENSOR_OPERATION = "Parking Sensor Calibration"
FRONT_RADAR_OPERATION = "Front Radar Calibration"
FORWARD_CAMERA_OPERATION = "Forward Camera Calibration"

UNKNOWN_SYSTEM = CanonicalSystem(key="unknown-system", label="ADAS System")

_IS_STEERING = _has(r"steering angle|\bsas\b")
_IS_BLIND_SPOT = _has(r"blind spot|rear cross|\bbsm\b|\brcta\b")
_IS_SURROUND = _all(_has(r"surround|360"), _has(r"camera"))
_IS_REAR_CAMERA = _has(r"rear view camera|backup camera|rear camera")
_IS_PARKING = _all(_has(r"parking"), _has(r"sensor|assist"))
_IS_FRONT_RADAR = _all(
    _has(r"front radar|\bradar\b|\bacc\b|\baeb\b"),
    _not(_has(r"blind spot|rear")),
)

OPERATION_RULES: List[Tuple[Predicate, str]] = [
    (_has(r"steering angle|\bsas\b|relearn"), STEERING_ANGLE_OPERATION),
    (_IS_BLIND_SPOT, BLIND_SPOT_OPERATION),
    (_IS_SURROUND, SURROUND_VIEW_OPERATION),
    (_IS_REAR_CAMERA, REAR_CAMERA_OPERATION),
    (_IS_PARKING, PARKING_SENSOR_OPERATION),
    (_IS_FRONT_RADAR, FRONT_RADAR_OPERATION),
    (_all(_has(r"forward|front"), _has(r"camera")), FORWARD_CAMERA_OPERATION),
    (_all(_has(r"camera"), _not(_has(r"rear"))), FORWARD_CAMERA_OPERATION),
]

SYSTEM_RULES: List[Tuple[Predicate, CanonicalSystem]] = [
    (_IS_STEERING, CanonicalSystem(key="steering-angle-sensor", label="Steering Angle Sensor")),
    (_IS_BLIND_SPOT, CanonicalSystem(key="blind-spot-radar", label="Blind Spot / Rear Cross Traffic")),
    (_IS_SURROUND, CanonicalSystem(key="surround-view-camera", label="Surround View / 360 Camera")),
    (_IS_REAR_CAMERA, CanonicalSystem(key="rear-camera", label="Rear View Camera")),
    (_IS_PARKING, CanonicalSystem(key="parking-sensor", label="Parking Assist Sensors")),
    (_IS_FRONT_RADAR, CanonicalSystem(key="front-radar", label="Front Radar / ACC-AEB")),
    (
        _all(_has(r"camera|ldw|lka"), _not(_has(r"rear"))),
        CanonicalSystem(key="forward-camera", label="Forward Camera / LDW-LKA"),
    ),
]

SYSTEM_OPERATIONS = {
    "forward-camera": FORWARD_CAMERA_OPERATION,
    "front-radar": FRONT_RADAR_OPERATION,
    "blind-spot-radar": BLIND_SPOT_OPERATION,
    "surround-view-camera": SURROUND_VIEW_OPERATION,
    "rear-camera": REAR_CAMERA_OPERATION,
    "parking-sensor": PARKING_SENSOR_OPERATION,
    "steering-angle-sensor": STEERING_ANGLE_OPERATION,
}

# Placeholder labels written by older releases, resolved by the matched
# ADAS-part keyword or the system name.
_LEGACY_PART_RULES: List[Tuple[str, Predicate, str]] = [
    ("frontradar", _has(r"radar|acc|aeb"), FRONT_RADAR_OPERATION),
    ("frontcamera", _has(r"camera|ldw|lka"), FORWARD_CAMERA_OPERATION),
    ("blindspotmonitor", _has(r"blind spot|rear cross"), BLIND_SPOT_OPERATION),
    ("surroundcamera", _has(r"surround|360"), SURROUND_VIEW_OPERATION),
    ("parkingsensor", _has(r"parking"), PARKING_SENSOR_OPERATION),
    ("rearcamera", _has(r"rear view camera|backup camera"), REAR_CAMERA_OPERATION),
    ("steeringanglesensor", _has(r"steering angle"), STEERING_ANGLE_OPERATION),
]

_LEGACY_GENERIC_RULES: List[Tuple[Predicate, str]] = [
    (_has(r"camera"), "Camera Calibration"),
    (_has(r"radar|acc|aeb"), "Radar Calibration"),
    (_has(r"blind spot|rear cross"), BLIND_SPOT_OPERATION),
    (_has(r"steering angle"), STEERING_ANGLE_OPERATION),
]

_LEGACY_FIXED = {
    "inferred camera trigger": FORWARD_CAMERA_OPERATION,
    "inferred radar trigger": FRONT_RADAR_OPERATION,
    "inferred bsm trigger": BLIND_SPOT_OPERATION,
    "inferred sas trigger": STEERING_ANGLE_OPERATION,
}


def normalize_legacy_operation_name(
    raw_name: Optional[str],
    system_name: Optional[str],
    matched_keyword: Optional[str] = None,
) -> str:
    """Resolve stored "Inferred ... Trigger" placeholders into real operation names."""
    name = normalize_whitespace(raw_name)
    lower = name.lower()
    system = system_name or ""
    system_lower = system.lower()
    keyword = (matched_keyword or "").lower()

    for placeholder, operation in _LEGACY_FIXED.items():
        if placeholder in lower:
            return operation

    if "inferred adas part trigger" in lower:
        for part_key, predicate, operation in _LEGACY_PART_RULES:
            if keyword == part_key or predicate(system_lower):
                return operation
        return f"{system} Calibration"

    if lower.startswith("inferred ") and lower.endswith(" trigger"):
        for predicate, operation in _LEGACY_GENERIC_RULES:
            if predicate(system_lower):
                return operation

    return name or f"{system} Calibration"


def canonicalize_operation_name(
    raw_name: Optional[str],
    system_name: Optional[str],
    matched_keyword: Optional[str] = None,
) -> str:
    """Map any operation label onto the canonical operation vocabulary."""
    base = normalize_legacy_operation_name(raw_name, system_name, matched_keyword)
    normalized = normalize_for_key(base)
    for predicate, operation in OPERATION_RULES:
        if predicate(normalized):
            return operation
    return base


def canonicalize_system(
    raw_system_name: Optional[str], operation_name: Optional[str] = None
) -> CanonicalSystem:
    """Map a system name (plus its operation, as a tie-breaker) onto a canonical system."""
    normalized = normalize_for_key(f"{raw_system_name or ''} {operation_name or ''}")
    for predicate, system in SYSTEM_RULES:
        if predicate(normalized):
            return system

    cleaned = normalize_whitespace(raw_system_name)
    if not cleaned:
        return UNKNOWN_SYSTEM
    return CanonicalSystem(key=normalize_for_key(cleaned) or UNKNOWN_SYSTEM.key, label=cleaned)


_CALIBRATION_WORDS = re.compile(r"calibrat|reset|relearn|initializ|angle check|aim")
_REPAIR_TRIGGER_WORDS = re.compile(
    r"repair|replace|repl|r i|r r|remove|install|bumper|panel|windshield|fender|door|hood|"
    r"quarter|tailgate|mirror|grille|paint|blend|refinish|postscan|prescan"
)


def is_likely_repair_trigger_operation(value: Optional[str]) -> bool:
    """True for repair phrases ("Replace front bumper") rather than calibration names."""
    normalized = normalize_for_key(value)
    if not normalized:
        return False
    if _CALIBRATION_WORDS.search(normalized):
        return False
    return _REPAIR_TRIGGER_WORDS.search(normalized) is not None


def calibration_operation_for_system(
    system: CanonicalSystem, fallback_operation: Optional[str] = None
) -> str:
    """Final recommended operation name for a canonical system."""
    fixed = SYSTEM_OPERATIONS.get(system.key)
    if fixed:
        return fixed

    label = system.label or UNKNOWN_SYSTEM.label
    if fallback_operation and not is_likely_repair_trigger_operation(fallback_operation):
        return fallback_operation
    return f"{label} Calibration"


def operation_key(system_name: str, repair_operation: str, matched_keyword: str = "") -> str:
    """Normalized key of the calibration a match ultimately recommends."""
    operation = canonicalize_operation_name(repair_operation, system_name, matched_keyword)
    system = canonicalize_system(system_name, operation)
    return normalize_for_key(calibration_operation_for_system(system, operation))


# ── Calibration types ────────────────────────────────────────────────

STATIC_DYNAMIC = "Static + Dynamic"
STATIC = "Static"
DYNAMIC = "Dynamic"
CODING_INIT = "Coding / Initialization"
INITIALIZATION = "Initialization"
OEM_PROCEDURE = "OEM Procedure"

CALIBRATION_TYPE_ORDER = [
    STATIC_DYNAMIC,
    STATIC,
    DYNAMIC,
    CODING_INIT,
    INITIALIZATION,
    OEM_PROCEDURE,
]

CALIBRATION_TYPE_RULES: List[Tuple[Predicate, str]] = [
    (_all(_has(r"static"), _has(r"dynamic")), STATIC_DYNAMIC),
    (_has(r"coding"), CODING_INIT),
    (_has(r"init|relearn|reset"), INITIALIZATION),
    (_has(r"dynamic"), DYNAMIC),
    (_has(r"static"), STATIC),
    (_has(r"oem|procedure"), OEM_PROCEDURE),
]


def _title_case(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in value.split(" ") if word)


def canonicalize_calibration_type(calibration_type: Optional[str]) -> str:
    raw = normalize_whitespace(calibration_type)
    if not raw:
        return OEM_PROCEDURE

    normalized = normalize_for_key(raw)
    for predicate, canonical in CALIBRATION_TYPE_RULES:
        if predicate(normalized):
            return canonical
    return _title_case(raw.lower())


def _split_merged_type(value: Optional[str]) -> List[str]:
    """Split a previously merged type string back into its parts.

    "Coding / Initialization" is a single canonical type, so a "Coding" part
    followed by "Initialization" is rejoined.
    """
    raw = normalize_whitespace(value)
    if " / " not in raw:
        return [raw]

    parts = [p.strip() for p in raw.split(" / ")]
    joined: List[str] = []
    i = 0
    while i < len(parts):
        if parts[i].lower() == "coding" and i + 1 < len(parts) and parts[i + 1].lower() == "initialization":
            joined.append(CODING_INIT)
            i += 2
            continue
        joined.append(parts[i])
        i += 1
    return joined


def _type_sort_key(value: str) -> Tuple[int, str]:
    try:
        return CALIBRATION_TYPE_ORDER.index(value), value
    except ValueError:
        return len(CALIBRATION_TYPE_ORDER), value


def merge_calibration_types(types: Iterable[Optional[str]]) -> str:
    """Merge calibration types into one display string.

    Commutative, idempotent and associative: merging an already merged value
    with more types gives the same answer as merging everything at once.
    """
    merged: Set[str] = set()
    for value in types:
        for part in _split_merged_type(value):
            merged.add(canonicalize_calibration_type(part))

    if STATIC in merged and DYNAMIC in merged:
        merged.add(STATIC_DYNAMIC)
    if STATIC_DYNAMIC in merged:
        merged.discard(STATIC)
        merged.discard(DYNAMIC)

    if len(merged) > 1:
        merged.discard(OEM_PROCEDURE)

    if len(merged) > 1 and INITIALIZATION in merged and CODING_INIT in merged:
        merged.discard(INITIALIZATION)

    return " / ".join(sorted(merged, key=_type_sort_key)) or OEM_PROCEDURE


# ── Procedure types ──────────────────────────────────────────────────

REQUIRED_PROCEDURE = "Required Procedure"
RECOMMENDED_PROCEDURE = "Recommended Procedure"
VERIFICATION = "Verification"

_PROCEDURE_RULES: List[Tuple[Predicate, str, int]] = [
    (_has(r"required|must"), REQUIRED_PROCEDURE, 3),
    (_has(r"recommended|advise"), RECOMMENDED_PROCEDURE, 2),
    (_has(r"inspect|verify|check"), VERIFICATION, 1),
]


def canonicalize_procedure_type(procedure_type: Optional[str]) -> str:
    raw = normalize_whitespace(procedure_type)
    if not raw:
        return REQUIRED_PROCEDURE
    normalized = normalize_for_key(raw)
    for predicate, canonical, _ in _PROCEDURE_RULES:
        if predicate(normalized):
            return canonical
    return raw


def _procedure_priority(procedure_type: str) -> int:
    normalized = normalize_for_key(procedure_type)
    for predicate, _, priority in _PROCEDURE_RULES:
        if predicate(normalized):
            return priority
    return 0


def pick_higher_priority_procedure_type(current: str, candidate: str) -> str:
    """Keep the stricter of two procedure types (ties keep ``current``)."""
    if _procedure_priority(candidate) > _procedure_priority(current):
        return candidate
    return current
