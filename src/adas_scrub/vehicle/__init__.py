"""Vehicle identification from VINs and estimate text."""

from adas_scrub.vehicle.extraction import extract_vehicle_from_text, extract_vehicle_info
from adas_scrub.vehicle.vin import (
    VinDecoder,
    decode_result_from_variables,
    extract_vin_from_text,
    is_valid_vin,
    normalize_manufacturer,
    year_from_vin,
)

__all__ = [
    "VinDecoder",
    "decode_result_from_variables",
    "extract_vehicle_from_text",
    "extract_vehicle_info",
    "extract_vin_from_text",
    "is_valid_vin",
    "normalize_manufacturer",
    "year_from_vin",
]
