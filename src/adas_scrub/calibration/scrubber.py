"""Rule-based scrubber: vehicle trigger maps applied to estimate lines."""

import logging
from typing import Dict, List, Optional, Sequence

from adas_scrub.calibration.canonical import normalize_for_key
from adas_scrub.catalog.protocol import VehicleCatalog
from adas_scrub.estimate.parser import detect_repairs
from adas_scrub.estimate.text import (
    clean_repair_description,
    is_likely_estimate_operation_line,
    split_estimate_lines,
)
from adas_scrub.estimate.vocabulary import keyword_matched
from adas_scrub.schemas.calibration import CalibrationMatch, MatchSource, ScrubOutcome, ScrubResult
from adas_scrub.schemas.vehicle import VehicleRecord

logger = logging.getLogger(__name__)

ALL_MODELS = "all models"

TRIM_TOKENS = {
    "base", "s", "se", "le", "xle", "xse", "sel", "sport", "limited", "touring",
    "premium", "platinum", "lx", "ex", "exl", "sv", "sl", "sr", "lt", "ls", "ltz",
    "rs", "awd", "fwd", "4wd", "2wd", "4x4", "hybrid",
}
_MULTI_WORD_TRIMS = [("ex", "l")]
MIN_CONTAINMENT_LENGTH = 4


def normalize_make(make: Optional[str]) -> str:
    """Normalized make; every Mercedes spelling collapses to ``mercedes``."""
    key = normalize_for_key(make)
    if "mercedes" in key:
        return "mercedes"
    return key


def model_core(model: Optional[str]) -> str:
    """Model name with trailing trim/drivetrain tokens removed ("RAV4 XLE AWD" -> "rav4")."""
    tokens = normalize_for_key(model).split()
    while len(tokens) > 1:
        if len(tokens) > 2 and tuple(tokens[-2:]) in _MULTI_WORD_TRIMS:
            tokens = tokens[:-2]
        elif tokens[-1] in TRIM_TOKENS:
            tokens = tokens[:-1]
        else:
            break
    return " ".join(tokens)


def _contains(a: str, b: str) -> bool:
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    return len(shorter) >= MIN_CONTAINMENT_LENGTH and shorter in longer


def resolve_vehicle(
    candidates: Sequence[VehicleRecord], year: int, make: str, model: str
) -> Optional[VehicleRecord]:
    """Pick the catalog vehicle for year/make/model.

    Tries, in order: exact normalized model, trim-stripped core model,
    substring containment (4+ characters) and the make's "All Models" entry.
    """
    make_key = normalize_make(make)
    same_make = [
        v for v in candidates if normalize_make(v.make) == make_key and v.covers_year(year)
    ]
    if not same_make:
        return None

    model_key = normalize_for_key(model)
    core_key = model_core(model)
    specific = [v for v in same_make if normalize_for_key(v.model) != ALL_MODELS]

    tiers = [
        lambda v: normalize_for_key(v.model) == model_key,
        lambda v: model_core(v.model) == core_key,
        lambda v: _contains(normalize_for_key(v.model), model_key)
        or _contains(model_core(v.model), core_key),
    ]
    if model_key:
        for matches in tiers:
            for vehicle in specific:
                if matches(vehicle):
                    return vehicle

    for vehicle in same_make:
        if normalize_for_key(vehicle.model) == ALL_MODELS:
            return vehicle
    return None


class RuleBasedScrubber:
    """Matches estimate lines against a vehicle's repair trigger mappings."""

    def __init__(self, catalog: VehicleCatalog):
        self.catalog = catalog

    def scrub(self, estimate_text: str, year: int, make: str, model: str) -> ScrubOutcome:
        """Scrub an estimate for one vehicle.

        Returns an outcome with ``vehicle=None`` and no results when the
        vehicle is not in the catalog; detected repairs are filled either way.
        """
        detected_repairs = detect_repairs(estimate_text)

        vehicle = resolve_vehicle(self.catalog.find_vehicles(year, make), year, make, model)
        if vehicle is None:
            logger.info(f"No catalog vehicle for {year} {make} {model}")
            return ScrubOutcome(results=[], vehicle=None, detected_repairs=detected_repairs)

        results = match_trigger_mappings(estimate_text, vehicle)
        logger.info(
            f"Scrubbed {year} {make} {model} against {vehicle.id}: "
            f"{len(results)} lines with calibrations, {len(detected_repairs)} repairs detected"
        )
        return ScrubOutcome(
            results=results, vehicle=vehicle.to_ref(), detected_repairs=detected_repairs
        )


def match_trigger_mappings(estimate_text: str, vehicle: VehicleRecord) -> List[ScrubResult]:
    """Apply ``vehicle``'s trigger mappings to every operation line."""
    calibration_types = {s.system_name: s.calibration_type for s in vehicle.adas_systems}
    by_line: Dict[int, ScrubResult] = {}

    for line in split_estimate_lines(estimate_text):
        if not is_likely_estimate_operation_line(line.raw_text):
            continue

        matches: List[CalibrationMatch] = []
        seen = set()
        for mapping in vehicle.repair_trigger_mappings:
            for keyword in mapping.keywords:
                if not keyword_matched(line.raw_text, keyword):
                    continue
                for system_name in mapping.triggered_systems:
                    if (system_name, keyword) in seen:
                        continue
                    seen.add((system_name, keyword))
                    matches.append(
                        CalibrationMatch(
                            system_name=system_name,
                            calibration_type=calibration_types.get(system_name),
                            reason=f'Repair operation "{mapping.repair_operation}" triggers calibration',
                            matched_keyword=keyword,
                            repair_operation=mapping.repair_operation,
                            source=MatchSource.RULE,
                            procedure_type=mapping.procedure_type,
                            procedure_name=mapping.procedure_name,
                            location=mapping.location,
                            tools_required=list(mapping.tools_required),
                        )
                    )

        if not matches:
            continue
        logger.debug(f"Line {line.line_number}: {len(matches)} trigger matches")

        result = by_line.get(line.line_number)
        if result is None:
            result = ScrubResult(
                line_number=line.line_number,
                description=clean_repair_description(line.raw_text),
            )
            by_line[line.line_number] = result
        for match in matches:
            result.add_match(match)

    return list(by_line.values())


def scrub(
    estimate_text: str, year: int, make: str, model: str, catalog: VehicleCatalog
) -> ScrubOutcome:
    """Convenience wrapper around RuleBasedScrubber."""
    return RuleBasedScrubber(catalog).scrub(estimate_text, year, make, model)
