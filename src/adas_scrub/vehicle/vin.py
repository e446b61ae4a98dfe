"""VIN validation, recovery from OCR text, and decode result mapping.

The decoder itself is an injected collaborator (``VinDecoder``); this module
only knows how to find a VIN in noisy text and how to turn vPIC-style
variable/value pairs into a VinDecodeResult.
"""

import logging
import re
from typing import Dict, Iterable, Optional, Protocol, Tuple, runtime_checkable

from adas_scrub.schemas.vehicle import AdasFeatures, VinDecodeResult

logger = logging.getLogger(__name__)

VIN_LENGTH = 17

_VIN_CHARS = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")
_STRICT_VIN = re.compile(r"\b[A-HJ-NPR-Z0-9]{17}\b")
_NON_VIN_CHARS = re.compile(r"[^A-HJ-NPR-Z0-9]")
_VIN_LABEL = re.compile(r"\bVIN\b")
_VIN_LABEL_PREFIX = re.compile(r"^.*\bVIN(?:\s*(?:NO|NUMBER|#|:|-))?\s*", re.IGNORECASE)
_RELAXED_SEGMENT = re.compile(r"[A-HJ-NPR-Z0-9][A-HJ-NPR-Z0-9\s:-]{15,45}[A-HJ-NPR-Z0-9]")

# 10th character model-year codes (30-year cycle, resolved to the newest cycle
# for letters and 2001-2009 for digits).
YEAR_CODES: Dict[str, int] = {
    "A": 2010, "B": 2011, "C": 2012, "D": 2013, "E": 2014,
    "F": 2015, "G": 2016, "H": 2017, "J": 2018, "K": 2019,
    "L": 2020, "M": 2021, "N": 2022, "P": 2023, "R": 2024,
    "S": 2025, "T": 2026, "V": 2027, "W": 2028, "X": 2029, "Y": 2030,
    "1": 2001, "2": 2002, "3": 2003, "4": 2004, "5": 2005,
    "6": 2006, "7": 2007, "8": 2008, "9": 2009,
}

MANUFACTURER_NAMES: Dict[str, str] = {
    "MERCEDES-BENZ": "Mercedes-Benz",
    "MERCEDES BENZ": "Mercedes-Benz",
    "MERCEDES": "Mercedes-Benz",
    "BMW": "BMW",
    "VOLKSWAGEN": "Volkswagen",
    "GENERAL MOTORS": "GM",
    "FORD MOTOR COMPANY": "Ford",
    "FORD": "Ford",
    "TOYOTA": "Toyota",
    "TOYOTA MOTOR": "Toyota",
    "HONDA": "Honda",
    "NISSAN": "Nissan",
    "NISSAN NORTH AMERICA": "Nissan",
    "HYUNDAI": "Hyundai",
    "KIA": "Kia",
    "KIA MOTORS": "Kia",
    "MAZDA": "Mazda",
    "SUBARU": "Subaru",
    "SUBARU OF AMERICA": "Subaru",
    "LEXUS": "Lexus",
    "ACURA": "Acura",
    "INFINITI": "Infiniti",
    "GENESIS": "Genesis",
    "VOLVO": "Volvo",
    "AUDI": "Audi",
    "PORSCHE": "Porsche",
    "JAGUAR": "Jaguar",
    "LAND ROVER": "Land Rover",
    "TESLA": "Tesla",
    "TESLA INC": "Tesla",
    "RIVIAN": "Rivian",
    "CHEVROLET": "Chevrolet",
    "GMC": "GMC",
    "BUICK": "Buick",
    "CADILLAC": "Cadillac",
    "CHRYSLER": "Chrysler",
    "DODGE": "Dodge",
    "JEEP": "Jeep",
    "RAM": "Ram",
    "LINCOLN": "Lincoln",
    "MINI": "MINI",
}

ADAS_VARIABLE_TO_FEATURE: Dict[str, str] = {
    "Forward Collision Warning": "forward_collision_warning",
    "Lane Departure Warning": "lane_departure_warning",
    "Blind Spot Warning": "blind_spot_monitoring",
    "Adaptive Cruise Control (ACC)": "adaptive_cruise_control",
    "Park Assist": "parking_assist",
    "Rear Cross Traffic Alert": "rear_cross_traffic",
    "Automatic Emergency Braking (AEB)": "automatic_emergency_braking",
    "Lane Keep System": "lane_keep_assist",
    "Night Vision": "night_vision",
    "Pedestrian Automatic Emergency Braking": "pedestrian_detection",
    "Backup Camera": "backup_camera",
    "Dynamic Brake Support (DBS)": "automatic_emergency_braking",
    "Crash Imminent Braking (CIB)": "automatic_emergency_braking",
    "Lane Centering Assistance": "lane_keep_assist",
}

# Decode variables copied onto VinDecodeResult as-is.
_DIRECT_FIELDS: Dict[str, str] = {
    "Model": "model",
    "Trim": "trim",
    "Body Class": "body_class",
    "Drive Type": "drive_type",
    "Engine Configuration": "engine_config",
    "Fuel Type - Primary": "fuel_type",
}

_PRESENT_VALUES = {"standard", "optional", "yes"}


def is_valid_vin(vin: Optional[str]) -> bool:
    """17 characters from the VIN alphabet (no I, O or Q)."""
    if not vin or len(vin) != VIN_LENGTH:
        return False
    return bool(_VIN_CHARS.match(vin.upper()))


def _plausible_vin(candidate: str) -> bool:
    digits = sum(ch.isdigit() for ch in candidate)
    letters = sum(ch.isalpha() for ch in candidate)
    return digits >= 5 and letters >= 5


def _vin_window(value: str) -> Optional[str]:
    compact = _NON_VIN_CHARS.sub("", value)
    for start in range(len(compact) - VIN_LENGTH + 1):
        candidate = compact[start : start + VIN_LENGTH]
        if is_valid_vin(candidate) and _plausible_vin(candidate):
            return candidate
    return None


def extract_vin_from_text(text: Optional[str]) -> Optional[str]:
    """Find a VIN in OCR text.

    Three passes, first hit wins:
    1. whole 17-character tokens;
    2. lines labelled ``VIN`` (joined with the following line when the VIN
       wraps), ignoring spaces, hyphens and colons inside the VIN;
    3. relaxed windows over any run of VIN characters and separators.

    Passes 2 and 3 only accept candidates with at least 5 digits and 5
    letters so part numbers and phone runs are not mistaken for VINs.
    """
    if not text:
        return None
    upper = text.upper()

    for token in _STRICT_VIN.findall(upper):
        if is_valid_vin(token):
            return token

    lines = re.split(r"\r?\n", upper)
    for i, line in enumerate(lines):
        if not _VIN_LABEL.search(line):
            continue
        same_line = _VIN_LABEL_PREFIX.sub("", line)
        vin = _vin_window(same_line)
        if vin:
            return vin
        if i + 1 < len(lines):
            vin = _vin_window(f"{same_line} {lines[i + 1]}")
            if vin:
                return vin

    for segment in _RELAXED_SEGMENT.findall(upper):
        vin = _vin_window(segment)
        if vin:
            return vin

    return None


def year_from_vin(vin: Optional[str]) -> Optional[int]:
    """Model year from the 10th VIN character, if it is a known code."""
    if not vin or len(vin) < 10:
        return None
    return YEAR_CODES.get(vin[9].upper())


def normalize_manufacturer(make: str) -> str:
    """Canonical spelling for decoder manufacturer names ("TOYOTA MOTOR" -> "Toyota")."""
    return MANUFACTURER_NAMES.get(make.strip().upper(), make)


@runtime_checkable
class VinDecoder(Protocol):
    """VIN decoding oracle (e.g. NHTSA vPIC).

    Implementations may raise on network failure; callers treat any
    exception as the oracle being unavailable.
    """

    def decode(self, vin: str) -> VinDecodeResult:
        ...


def decode_result_from_variables(
    vin: str, variables: Iterable[Tuple[str, Optional[str]]]
) -> VinDecodeResult:
    """Build a VinDecodeResult from vPIC-style (variable, value) pairs.

    Empty and "Not Applicable" values are ignored. ADAS features count as
    present when reported as Standard, Optional or Yes. A non-zero
    "Error Code" contributes its "Error Text" to ``errors``.
    """
    result = VinDecodeResult(vin=vin.upper())
    if not is_valid_vin(vin):
        result.errors.append("Invalid VIN format")
        return result

    values: Dict[str, str] = {}
    features: Dict[str, bool] = {}
    for name, value in variables:
        if not value or value == "Not Applicable":
            continue
        values[name] = value

        if name == "Model Year":
            try:
                result.year = int(value)
            except ValueError:
                logger.debug(f"Ignoring non-numeric model year '{value}' for {vin}")
        elif name == "Make":
            result.make = normalize_manufacturer(value)
        elif name in _DIRECT_FIELDS:
            setattr(result, _DIRECT_FIELDS[name], value)

        feature = ADAS_VARIABLE_TO_FEATURE.get(name)
        if feature and value.lower() in _PRESENT_VALUES:
            features[feature] = True

    result.adas_features = AdasFeatures(**features)

    error_code = values.get("Error Code")
    if error_code and error_code != "0" and values.get("Error Text"):
        result.errors.append(values["Error Text"])
    return result
