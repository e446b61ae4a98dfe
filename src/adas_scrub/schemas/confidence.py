"""Pydantic models for the analysis confidence score.

The score is recomputed on every scrub from the inputs below and is never
persisted as ground truth.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from adas_scrub.schemas.vehicle import VehicleConfidence


class ConfidenceLabel(str, Enum):
    """Qualitative label derived from the score."""

    HIGH = "high"  # >= 85
    MEDIUM = "medium"  # >= 70
    LOW = "low"  # < 70


class ConfidenceInputs(BaseModel):
    """Everything the confidence score depends on."""

    has_vehicle_from_db: bool = False
    has_vin: bool = False
    extracted_confidence: VehicleConfidence = VehicleConfidence.LOW
    detected_repair_count: int = Field(0, ge=0)
    results_count: int = Field(0, ge=0, description="Number of grouped calibrations")
    adas_parts_count: int = Field(0, ge=0)
    used_external_model: bool = False
    used_inference_fallback: bool = False


class AnalysisConfidence(BaseModel):
    """Bounded score with the reasons that produced it."""

    score: int = Field(..., ge=45, le=96)
    label: ConfidenceLabel
    reasons: List[str] = Field(default_factory=list)
