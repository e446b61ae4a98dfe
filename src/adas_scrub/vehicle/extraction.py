"""Detect the vehicle an estimate was written for.

A VIN decode (when a decoder is configured and a VIN is found) is the most
trusted source; estimate text (year voting, make aliases, a model table) fills
whatever the decode leaves open.
"""

import logging
import re
from collections import Counter
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, List, Optional

import yaml

from adas_scrub.errors import OracleUnavailable, ScrubErrorCode
from adas_scrub.schemas.vehicle import (
    ExtractedVehicle,
    VehicleConfidence,
    VehicleSource,
    VinDecodeResult,
)
from adas_scrub.vehicle.vin import VinDecoder, extract_vin_from_text, is_valid_vin, year_from_vin

logger = logging.getLogger(__name__)

VEHICLE_NAMES_RESOURCE = "vehicle_names.yaml"

_YEAR = re.compile(r"\b(199[0-9]|20[0-3][0-9])\b")
RECENT_YEAR_RANGE = (2010, 2030)
MIN_TEXT_YEAR_AFTER_FAILED_DECODE = 2010

# Words that follow a make in headers but are not model names
_NOT_A_MODEL = {"VIN", "THE", "AND", "FOR", "CAR", "AUTO"}


@lru_cache(maxsize=1)
def _vehicle_names() -> Dict[str, Any]:
    resource = resources.files("adas_scrub") / "data" / VEHICLE_NAMES_RESOURCE
    return yaml.safe_load(resource.read_text(encoding="utf-8")) or {}


def make_aliases() -> Dict[str, str]:
    return dict(_vehicle_names().get("make_aliases", {}))


def vehicle_models() -> Dict[str, List[str]]:
    models = _vehicle_names().get("models", {})
    return {make: [str(m) for m in names] for make, names in models.items()}


def _word_pattern(value: str) -> "re.Pattern[str]":
    return re.compile(rf"\b{re.escape(value)}\b", re.IGNORECASE)


def _vote_year(text: str) -> Optional[int]:
    years = [int(y) for y in _YEAR.findall(text)]
    if not years:
        return None
    low, high = RECENT_YEAR_RANGE
    recent = [y for y in years if low <= y <= high]
    if not recent:
        return max(years)
    counts = Counter(recent)
    return max(counts, key=lambda y: (counts[y], y))


def _find_model(text: str, models: List[str]) -> Optional[str]:
    for model in models:
        if _word_pattern(model).search(text):
            return model
    return None


def _model_after_alias(text: str, alias: str, models: List[str]) -> Optional[str]:
    match = re.search(
        rf"{re.escape(alias)}\s+([A-Za-z0-9-]+)(?:\s+(\d{{2,3}}|[A-Za-z]{{1,3}}))?",
        text,
        re.IGNORECASE,
    )
    if not match or re.fullmatch(r"\d{4}", match.group(1)):
        return None
    model_part, variant = match.group(1), match.group(2)
    if model_part.upper() in _NOT_A_MODEL:
        return None
    for model in models:
        if model.lower() == model_part.lower():
            return model
    return f"{model_part} {variant}" if variant else model_part


def extract_vehicle_from_text(text: str) -> Dict[str, Any]:
    """Year/make/model found in estimate text; missing keys were not found.

    Year: most frequent 2010-2030 year (later year on ties), otherwise the
    latest 1990-2039 year. Make: abbreviations first ("NISS", "CHEV"), then
    full make names. Model: the make's known models, or for aliases the word
    following the alias.
    """
    found: Dict[str, Any] = {}
    text = text or ""

    year = _vote_year(text)
    if year is not None:
        found["year"] = year

    models_by_make = vehicle_models()

    for alias, make in make_aliases().items():
        if not _word_pattern(alias).search(text):
            continue
        found["make"] = make
        models = models_by_make.get(make, [])
        model = _find_model(text, models) or _model_after_alias(text, alias, models)
        if model:
            found["model"] = model
        return found

    for make, models in models_by_make.items():
        make_pattern = r"[-\s]?".join(re.escape(part) for part in make.split("-"))
        if not re.search(rf"\b{make_pattern}\b", text, re.IGNORECASE):
            continue
        found["make"] = make
        model = _find_model(text, models)
        if model:
            found["model"] = model
        break

    return found


def _decode(decoder: VinDecoder, vin: str) -> VinDecodeResult:
    try:
        return decoder.decode(vin)
    except Exception as e:
        raise OracleUnavailable(
            f"VIN decode failed for {vin}: {e}", code=ScrubErrorCode.VIN_DECODE_FAILED
        ) from e


def extract_vehicle_info(
    text: str,
    decoder: Optional[VinDecoder] = None,
    vin_hint: Optional[str] = None,
) -> ExtractedVehicle:
    """Combine VIN decoding and text detection into one ExtractedVehicle.

    - Full decode (year, make and model): high confidence, ``vin_api``.
    - Partial decode: medium, ``vin_partial`` (``combined`` when the text
      supplies the make). The VIN year code fills a missing year.
    - Text only: medium when year, make and model were all found, else low.

    A failing decoder is logged and treated like a decode that returned
    nothing but the VIN year code.
    """
    vehicle = ExtractedVehicle()

    vin = extract_vin_from_text(text) or (extract_vin_from_text(vin_hint) if vin_hint else None)
    decoded: Optional[VinDecodeResult] = None

    if vin and is_valid_vin(vin):
        vehicle.vin = vin
        if decoder is not None:
            try:
                decoded = _decode(decoder, vin)
            except OracleUnavailable as e:
                logger.warning(f"{e.message}; falling back to VIN year code")
                vehicle.year = year_from_vin(vin)

        if decoded is not None:
            vehicle.decode_errors = list(decoded.errors)
            vehicle.adas_features = decoded.adas_features
            if decoded.year and decoded.make and decoded.model:
                vehicle.year = decoded.year
                vehicle.make = decoded.make
                vehicle.model = decoded.model
                vehicle.trim = decoded.trim
                vehicle.confidence = VehicleConfidence.HIGH
                vehicle.source = VehicleSource.VIN_API
                logger.info(f"VIN {vin} decoded to {vehicle.year} {vehicle.make} {vehicle.model}")
                return vehicle
            vehicle.year = decoded.year
            vehicle.make = decoded.make
            vehicle.model = decoded.model
            vehicle.trim = decoded.trim

        if decoder is None or decoded is not None:
            vehicle.year = vehicle.year or year_from_vin(vin)
            if vehicle.year or vehicle.make:
                vehicle.confidence = VehicleConfidence.MEDIUM
                vehicle.source = VehicleSource.VIN_PARTIAL

    from_text = extract_vehicle_from_text(text)

    text_year = from_text.get("year")
    if not vehicle.year and text_year:
        if not vehicle.vin:
            vehicle.year = text_year
        elif vehicle.decode_errors and text_year >= MIN_TEXT_YEAR_AFTER_FAILED_DECODE:
            vehicle.year = text_year
    vehicle.make = vehicle.make or from_text.get("make")
    vehicle.model = vehicle.model or from_text.get("model")

    if vehicle.source == VehicleSource.TEXT:
        if vehicle.year and vehicle.make and vehicle.model:
            vehicle.confidence = VehicleConfidence.MEDIUM
        else:
            vehicle.confidence = VehicleConfidence.LOW
    elif vehicle.source == VehicleSource.VIN_PARTIAL and from_text.get("make"):
        vehicle.source = VehicleSource.COMBINED

    logger.info(
        f"Detected vehicle {vehicle.year} {vehicle.make} {vehicle.model} "
        f"(confidence={vehicle.confidence.value}, source={vehicle.source.value})"
    )
    return vehicle
