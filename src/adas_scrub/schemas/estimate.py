"""Pydantic schemas for parsed estimate text.

These describe what the tokenizer and estimate parser extract from raw
OCR/PDF text before any vehicle-specific matching happens.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OperationType(str, Enum):
    """Estimate operation carried by a line."""

    RI = "R&I"  # Remove and install
    RR = "R&R"  # Remove and replace
    REPAIR = "Repair"
    REFINISH = "Refinish"
    BLEND = "Blend"
    OVERHAUL = "Overhaul"
    OTHER = "Other"


class EstimateFormat(str, Enum):
    """Estimating system that produced the document."""

    CCC = "ccc"
    MITCHELL = "mitchell"
    AUDATEX = "audatex"
    GENERIC = "generic"


class RepairLine(BaseModel):
    """One non-empty line of an estimate."""

    model_config = ConfigDict(frozen=True)

    line_number: int = Field(
        ..., description="Estimate-native line number when recoverable, else position"
    )
    position: int = Field(..., description="1-based index among non-empty lines")
    raw_text: str = Field(..., description="Trimmed line text as extracted")
    cleaned_text: str = Field(
        ..., description="Line with line number, part numbers, prices and quantities stripped"
    )
    operation_type: OperationType = Field(
        OperationType.OTHER, description="Detected estimate operation"
    )


class DetectedRepair(BaseModel):
    """Vehicle-independent repair classification of a line."""

    line_number: int = Field(..., description="Line the repair was detected on")
    description: str = Field(..., description="Display description of the line")
    repair_type: str = Field(..., description="Repair bucket, e.g. 'Windshield'")


class ParsedLine(BaseModel):
    """Detailed parse of a single estimate line."""

    line_number: int
    raw_text: str
    cleaned_text: str
    operation_type: OperationType = OperationType.OTHER
    part_number: Optional[str] = None
    is_adas_part: bool = False
    adas_systems_detected: List[str] = Field(default_factory=list)
    repair_categories_matched: List[str] = Field(default_factory=list)


class AdasPartHit(BaseModel):
    """ADAS system whose parts are mentioned in the estimate."""

    system: str = Field(..., description="ADAS indicator key, e.g. 'frontRadar'")
    description: str = Field(..., description="Human-readable system description")
    line_numbers: List[int] = Field(default_factory=list)


class RepairSummary(BaseModel):
    """Count of lines per repair category."""

    category: str
    count: int
    line_numbers: List[int] = Field(default_factory=list)


class ParsedEstimate(BaseModel):
    """Whole-document parse."""

    format: EstimateFormat = EstimateFormat.GENERIC
    lines: List[ParsedLine] = Field(default_factory=list)
    adas_parts_found: List[AdasPartHit] = Field(default_factory=list)
    repairs_summary: List[RepairSummary] = Field(default_factory=list)
