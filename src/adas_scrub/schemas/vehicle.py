"""Pydantic schemas for vehicle catalog records and vehicle identification."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RepairTriggerMapping(BaseModel):
    """Vehicle-specific repair keywords and the ADAS systems they trigger."""

    keywords: List[str] = Field(..., description="Repair keywords to look for in estimate lines")
    triggered_systems: List[str] = Field(
        ..., description="ADAS system names requiring calibration when a keyword hits"
    )
    repair_operation: str = Field(..., description="Repair operation this mapping describes")
    procedure_type: Optional[str] = None
    procedure_name: Optional[str] = None
    location: Optional[str] = None
    tools_required: List[str] = Field(default_factory=list)


class AdasSystemRecord(BaseModel):
    """ADAS system fitted to a vehicle."""

    system_name: str
    calibration_type: Optional[str] = None


class VehicleRef(BaseModel):
    """Public projection of a catalog vehicle."""

    id: str
    year_start: int
    year_end: int
    make: str
    model: str
    source_provider: Optional[str] = None
    source_url: Optional[str] = None


class VehicleRecord(BaseModel):
    """Catalog entry: one make/model over a year range, with its trigger map."""

    id: str
    year_start: int
    year_end: int
    make: str
    model: str
    source_provider: Optional[str] = None
    source_url: Optional[str] = None
    repair_trigger_mappings: List[RepairTriggerMapping] = Field(default_factory=list)
    adas_systems: List[AdasSystemRecord] = Field(default_factory=list)

    def covers_year(self, year: int) -> bool:
        return self.year_start <= year <= self.year_end

    def to_ref(self) -> VehicleRef:
        return VehicleRef(
            id=self.id,
            year_start=self.year_start,
            year_end=self.year_end,
            make=self.make,
            model=self.model,
            source_provider=self.source_provider,
            source_url=self.source_url,
        )


class VehicleProfile(BaseModel):
    """Year/make/model the pipeline analyzes against."""

    year: int
    make: str
    model: str


class AdasFeatures(BaseModel):
    """Factory ADAS equipment reported by a VIN decode."""

    forward_collision_warning: bool = False
    lane_departure_warning: bool = False
    blind_spot_monitoring: bool = False
    adaptive_cruise_control: bool = False
    parking_assist: bool = False
    rear_cross_traffic: bool = False
    automatic_emergency_braking: bool = False
    lane_keep_assist: bool = False
    night_vision: bool = False
    pedestrian_detection: bool = False
    backup_camera: bool = False
    surround_view_camera: bool = False


class VinDecodeResult(BaseModel):
    """Best-effort VIN decode. Failures are reported in ``errors``."""

    vin: str
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    body_class: Optional[str] = None
    drive_type: Optional[str] = None
    engine_config: Optional[str] = None
    fuel_type: Optional[str] = None
    adas_features: AdasFeatures = Field(default_factory=AdasFeatures)
    errors: List[str] = Field(default_factory=list)


class VehicleConfidence(str, Enum):
    """How much we trust the extracted vehicle identity."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class VehicleSource(str, Enum):
    """Where the extracted vehicle identity came from."""

    VIN_API = "vin_api"  # Full VIN decode
    VIN_PARTIAL = "vin_partial"  # Partial VIN decode
    TEXT = "text"  # Estimate text only
    COMBINED = "combined"  # Partial decode completed from text


class ExtractedVehicle(BaseModel):
    """Vehicle identity detected from the estimate (VIN oracle + text)."""

    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    vin: Optional[str] = None
    adas_features: Optional[AdasFeatures] = None
    decode_errors: List[str] = Field(default_factory=list)
    confidence: VehicleConfidence = VehicleConfidence.LOW
    source: VehicleSource = VehicleSource.TEXT
