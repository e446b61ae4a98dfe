"""Pydantic schemas shared across the scrub pipeline."""

from adas_scrub.schemas.analysis import AnalysisResult
from adas_scrub.schemas.assist import (
    AssistExtraction,
    AssistMetadata,
    AssistOperation,
    AssistVehicle,
    DocumentType,
)
from adas_scrub.schemas.calibration import (
    CalibrationMatch,
    CanonicalSystem,
    GroupedCalibration,
    ManualAddition,
    ManualRemoval,
    MatchSource,
    ScrubOutcome,
    ScrubResult,
)
from adas_scrub.schemas.confidence import (
    AnalysisConfidence,
    ConfidenceInputs,
    ConfidenceLabel,
)
from adas_scrub.schemas.estimate import (
    AdasPartHit,
    DetectedRepair,
    EstimateFormat,
    OperationType,
    ParsedEstimate,
    ParsedLine,
    RepairLine,
    RepairSummary,
)
from adas_scrub.schemas.learning import (
    LearningAction,
    LearningApplication,
    LearningEvent,
    LearningRule,
    ReviewStatus,
)
from adas_scrub.schemas.vehicle import (
    AdasFeatures,
    AdasSystemRecord,
    ExtractedVehicle,
    RepairTriggerMapping,
    VehicleConfidence,
    VehicleProfile,
    VehicleRecord,
    VehicleRef,
    VehicleSource,
    VinDecodeResult,
)

__all__ = [
    "AdasFeatures",
    "AdasPartHit",
    "AdasSystemRecord",
    "AnalysisConfidence",
    "AnalysisResult",
    "AssistExtraction",
    "AssistMetadata",
    "AssistOperation",
    "AssistVehicle",
    "CalibrationMatch",
    "CanonicalSystem",
    "ConfidenceInputs",
    "ConfidenceLabel",
    "DetectedRepair",
    "DocumentType",
    "EstimateFormat",
    "ExtractedVehicle",
    "GroupedCalibration",
    "LearningAction",
    "LearningApplication",
    "LearningEvent",
    "LearningRule",
    "ManualAddition",
    "ManualRemoval",
    "MatchSource",
    "OperationType",
    "ParsedEstimate",
    "ParsedLine",
    "RepairLine",
    "RepairSummary",
    "RepairTriggerMapping",
    "ReviewStatus",
    "ScrubOutcome",
    "ScrubResult",
    "VehicleConfidence",
    "VehicleProfile",
    "VehicleRecord",
    "VehicleRef",
    "VehicleSource",
    "VinDecodeResult",
]
