"""Technician edits applied to an issued result set."""

import logging
from typing import Dict, List, Optional, Sequence

from adas_scrub.calibration.canonical import normalize_for_key, operation_key
from adas_scrub.schemas.calibration import (
    CalibrationMatch,
    ManualAddition,
    ManualRemoval,
    MatchSource,
    ScrubResult,
)

logger = logging.getLogger(__name__)

MANUAL_REASON = "Manually flagged by technician review."
MAX_LINE_NUMBER = 999


def _removal_matches(removal: ManualRemoval, line_number: int, match: CalibrationMatch) -> bool:
    if removal.line_number is None and not removal.repair_operation and not removal.system_name:
        return False
    if removal.line_number is not None and removal.line_number != line_number:
        return False
    if removal.repair_operation:
        match_key = operation_key(match.system_name, match.repair_operation, match.matched_keyword)
        if normalize_for_key(removal.repair_operation) != match_key:
            return False
    if removal.system_name:
        if normalize_for_key(removal.system_name) not in normalize_for_key(match.system_name):
            return False
    return True


def apply_manual_removals(
    results: Sequence[ScrubResult], removals: Sequence[ManualRemoval]
) -> List[ScrubResult]:
    """Drop every match selected by any removal; lines left empty are dropped."""
    if not removals:
        return list(results)

    cleaned: List[ScrubResult] = []
    for result in results:
        remaining = [
            m
            for m in result.calibration_matches
            if not any(_removal_matches(r, result.line_number, m) for r in removals)
        ]
        if remaining:
            cleaned.append(result.model_copy(update={"calibration_matches": remaining}))
    return cleaned


def apply_manual_additions(
    results: Sequence[ScrubResult],
    additions: Sequence[ManualAddition],
    line_text_by_number: Optional[Dict[int, str]] = None,
) -> List[ScrubResult]:
    """Add technician-flagged calibrations, skipping invalid and duplicate requests."""
    if not additions:
        return list(results)
    line_text_by_number = line_text_by_number or {}

    by_line: Dict[int, ScrubResult] = {r.line_number: r.model_copy(deep=True) for r in results}

    for addition in additions:
        system_name = (addition.system_name or "").strip()
        line_number = addition.line_number
        if not 1 <= line_number <= MAX_LINE_NUMBER or not system_name:
            logger.warning(f"Ignoring manual addition for line {line_number} system '{system_name}'")
            continue

        match = CalibrationMatch(
            system_name=system_name,
            calibration_type=(addition.calibration_type or "").strip() or None,
            reason=(addition.reason or "").strip() or MANUAL_REASON,
            matched_keyword=(addition.matched_keyword or "").strip() or f"manual-line-{line_number}",
            repair_operation=(addition.repair_operation or "").strip() or f"{system_name} Calibration",
            source=MatchSource.MANUAL,
        )

        existing = by_line.get(line_number)
        if existing is None:
            description = (
                (addition.description or "").strip()
                or line_text_by_number.get(line_number)
                or f"Line {line_number}"
            )
            by_line[line_number] = ScrubResult(
                line_number=line_number, description=description, calibration_matches=[match]
            )
            continue

        same_operation = any(
            normalize_for_key(m.system_name) == normalize_for_key(match.system_name)
            and normalize_for_key(m.repair_operation) == normalize_for_key(match.repair_operation)
            for m in existing.calibration_matches
        )
        if same_operation or not existing.add_match(match):
            logger.debug(f"Skipping duplicate manual addition at line {line_number}: {system_name}")

    return sorted(by_line.values(), key=lambda r: r.line_number)
