"""Top-level result of a full pipeline run."""

from typing import List, Optional

from pydantic import BaseModel, Field

from adas_scrub.schemas.calibration import GroupedCalibration, ScrubResult
from adas_scrub.schemas.confidence import AnalysisConfidence
from adas_scrub.schemas.estimate import (
    AdasPartHit,
    DetectedRepair,
    EstimateFormat,
    RepairSummary,
)
from adas_scrub.schemas.vehicle import ExtractedVehicle, VehicleProfile, VehicleRef


class AnalysisResult(BaseModel):
    """Everything a caller needs to render and audit a scrub."""

    schema_version: str = Field(default="analysis_result_v1")
    results: List[ScrubResult] = Field(default_factory=list)
    grouped_calibrations: List[GroupedCalibration] = Field(default_factory=list)
    vehicle: Optional[VehicleRef] = Field(None, description="Matched catalog vehicle, if any")
    analyzed_vehicle: VehicleProfile
    detected_vehicle: ExtractedVehicle = Field(default_factory=ExtractedVehicle)
    detected_repairs: List[DetectedRepair] = Field(default_factory=list)
    estimate_format: EstimateFormat = EstimateFormat.GENERIC
    adas_parts_in_estimate: List[AdasPartHit] = Field(default_factory=list)
    repairs_summary: List[RepairSummary] = Field(default_factory=list)
    applied_rule_ids: List[str] = Field(default_factory=list)
    used_inference_fallback: bool = False
    used_assist: bool = False
    learning_failed: bool = False
    confidence: AnalysisConfidence
