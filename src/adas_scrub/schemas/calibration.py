"""Pydantic schemas for calibration matches and grouped recommendations.

A CalibrationMatch is produced by every matching stage (rule scrubber,
inference fallbacks, external assist, learned rules, manual edits). Each one
carries its provenance (``source``, ``matched_keyword``, ``reason``) so a
reviewer can see why a calibration was recommended.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from adas_scrub.schemas.estimate import DetectedRepair
from adas_scrub.schemas.vehicle import VehicleRef


class MatchSource(str, Enum):
    """Stage that produced a calibration match."""

    RULE = "rule"  # Vehicle trigger map
    INFERRED = "inferred"  # Repair-type / ADAS-part / line-mention heuristics
    ASSIST = "assist"  # External text-understanding assist
    LEARNED = "learned"  # Shop-taught rule
    MANUAL = "manual"  # Technician edit on an issued report


class CalibrationMatch(BaseModel):
    """One ADAS system recommended for calibration by one line."""

    system_name: str = Field(..., description="Raw (pre-canonical) ADAS system name")
    calibration_type: Optional[str] = Field(None, description="Raw calibration type")
    reason: str = Field(..., description="Why this calibration is recommended")
    matched_keyword: str = Field(..., description="Keyword or signal that triggered the match")
    repair_operation: str = Field(..., description="Repair or calibration operation label")
    source: MatchSource = Field(MatchSource.RULE, description="Producing stage")
    procedure_type: Optional[str] = None
    procedure_name: Optional[str] = None
    location: Optional[str] = None
    tools_required: List[str] = Field(default_factory=list)


class ScrubResult(BaseModel):
    """Calibration matches for one estimate line.

    No two matches share ``(system_name, matched_keyword)``.
    """

    line_number: int
    description: str
    calibration_matches: List[CalibrationMatch] = Field(default_factory=list)

    def has_match(self, system_name: str, matched_keyword: str) -> bool:
        return any(
            m.system_name == system_name and m.matched_keyword == matched_keyword
            for m in self.calibration_matches
        )

    def add_match(self, match: CalibrationMatch) -> bool:
        """Append a match unless its (system, keyword) pair is already present."""
        if self.has_match(match.system_name, match.matched_keyword):
            return False
        self.calibration_matches.append(match)
        return True


class CanonicalSystem(BaseModel):
    """Canonical ADAS system identity."""

    key: str = Field(..., description="Stable slug, e.g. 'front-radar'")
    label: str = Field(..., description="Display name")


class GroupedCalibration(BaseModel):
    """One recommended calibration operation for the whole document."""

    system_name: str = Field(..., description="Canonical system label")
    calibration_type: str = Field(..., description="Merged canonical calibration type")
    reason: str = Field(..., description="First-seen reason")
    repair_operation: str = Field(..., description="Canonical calibration operation")
    matched_keywords: List[str] = Field(default_factory=list)
    trigger_lines: List[int] = Field(default_factory=list)
    trigger_descriptions: List[str] = Field(default_factory=list)
    sources: List[MatchSource] = Field(default_factory=list)
    procedure_type: Optional[str] = None


class ScrubOutcome(BaseModel):
    """Output of the rule-based scrubber."""

    results: List[ScrubResult] = Field(default_factory=list)
    vehicle: Optional[VehicleRef] = None
    detected_repairs: List[DetectedRepair] = Field(default_factory=list)


class ManualAddition(BaseModel):
    """Technician request to add a calibration to an issued report."""

    line_number: int
    system_name: str
    calibration_type: Optional[str] = None
    reason: Optional[str] = None
    repair_operation: Optional[str] = None
    matched_keyword: Optional[str] = None
    description: Optional[str] = None


class ManualRemoval(BaseModel):
    """Technician request to remove calibrations from an issued report."""

    repair_operation: Optional[str] = None
    system_name: Optional[str] = None
    line_number: Optional[int] = None
