"""Group line-level matches into one row per canonical calibration operation."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from adas_scrub.calibration.canonical import (
    calibration_operation_for_system,
    canonicalize_operation_name,
    canonicalize_procedure_type,
    canonicalize_system,
    merge_calibration_types,
    normalize_for_key,
    pick_higher_priority_procedure_type,
)
from adas_scrub.schemas.calibration import GroupedCalibration, MatchSource, ScrubResult

logger = logging.getLogger(__name__)


@dataclass
class _Group:
    system_name: str
    repair_operation: str
    reason: str
    calibration_types: List[Optional[str]] = field(default_factory=list)
    matched_keywords: List[str] = field(default_factory=list)
    trigger_lines: List[int] = field(default_factory=list)
    trigger_descriptions: List[str] = field(default_factory=list)
    sources: List[MatchSource] = field(default_factory=list)
    procedure_type: Optional[str] = None

    @staticmethod
    def _add_unique_text(values: List[str], value: str) -> None:
        key = normalize_for_key(value)
        if not any(normalize_for_key(v) == key for v in values):
            values.append(value)

    def add(
        self,
        line_number: int,
        description: str,
        keyword: str,
        calibration_type: Optional[str],
        source: MatchSource,
        procedure_type: Optional[str],
    ) -> None:
        self._add_unique_text(self.matched_keywords, keyword)
        self._add_unique_text(self.trigger_descriptions, description)
        if line_number not in self.trigger_lines:
            self.trigger_lines.append(line_number)
        if calibration_type not in self.calibration_types:
            self.calibration_types.append(calibration_type)
        if source not in self.sources:
            self.sources.append(source)
        if procedure_type:
            canonical = canonicalize_procedure_type(procedure_type)
            self.procedure_type = (
                pick_higher_priority_procedure_type(self.procedure_type, canonical)
                if self.procedure_type
                else canonical
            )

    def to_model(self) -> GroupedCalibration:
        return GroupedCalibration(
            system_name=self.system_name,
            calibration_type=merge_calibration_types(self.calibration_types),
            reason=self.reason,
            repair_operation=self.repair_operation,
            matched_keywords=list(self.matched_keywords),
            trigger_lines=sorted(self.trigger_lines),
            trigger_descriptions=list(self.trigger_descriptions),
            sources=list(self.sources),
            procedure_type=self.procedure_type,
        )


def group_calibrations(results: Sequence[ScrubResult]) -> List[GroupedCalibration]:
    """Collapse every match onto its recommended calibration operation.

    Matches whose operation and system canonicalize to the same recommended
    operation end up in one GroupedCalibration. Output is sorted by first
    trigger line, then system label.
    """
    groups: Dict[str, _Group] = {}

    for result in results:
        for match in result.calibration_matches:
            operation = canonicalize_operation_name(
                match.repair_operation, match.system_name, match.matched_keyword
            )
            system = canonicalize_system(match.system_name, operation)
            recommended = calibration_operation_for_system(system, operation)
            key = normalize_for_key(recommended)

            group = groups.get(key)
            if group is None:
                group = _Group(
                    system_name=system.label,
                    repair_operation=recommended,
                    reason=match.reason,
                )
                groups[key] = group
            group.add(
                result.line_number,
                result.description,
                match.matched_keyword,
                match.calibration_type,
                match.source,
                match.procedure_type,
            )

    grouped = [g.to_model() for g in groups.values()]
    grouped.sort(
        key=lambda g: (g.trigger_lines[0] if g.trigger_lines else float("inf"), g.system_name)
    )
    match_count = sum(len(r.calibration_matches) for r in results)
    logger.debug(f"Grouped {match_count} matches into {len(grouped)} calibrations")
    return grouped
