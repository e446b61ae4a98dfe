"""In-memory vehicle catalog, optionally loaded from a YAML or JSON export.

File layout (YAML shown, JSON is the same structure)::

    vehicles:
      - id: toyota-camry-2018
        year_start: 2018
        year_end: 2024
        make: Toyota
        model: Camry
        adas_systems:
          - system_name: Front Radar / ACC-AEB
            calibration_type: Static
        repair_trigger_mappings:
          - keywords: [front bumper, grille]
            triggered_systems: [Front Radar / ACC-AEB]
            repair_operation: Front bumper R&R

A top-level list of vehicles is accepted too.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Union

import yaml
from pydantic import ValidationError

from adas_scrub.schemas.vehicle import VehicleRecord

logger = logging.getLogger(__name__)


class InMemoryVehicleCatalog:
    """Catalog backed by a list of records. Filters by year only."""

    def __init__(self, vehicles: Iterable[VehicleRecord] = ()):
        self._vehicles: List[VehicleRecord] = list(vehicles)

    def __len__(self) -> int:
        return len(self._vehicles)

    def add(self, vehicle: VehicleRecord) -> None:
        self._vehicles.append(vehicle)

    def find_vehicles(self, year: int, make: str) -> List[VehicleRecord]:
        return [v for v in self._vehicles if v.covers_year(year)]


def _parse_catalog_data(data: Any, path: Path) -> List[VehicleRecord]:
    if isinstance(data, dict):
        data = data.get("vehicles", [])
    if not isinstance(data, list):
        raise ValueError(f"Vehicle catalog {path} must contain a list of vehicles")

    try:
        return [VehicleRecord.model_validate(item) for item in data]
    except ValidationError as e:
        raise ValueError(f"Invalid vehicle record in {path}: {e}") from e


def load_vehicle_catalog(path: Union[str, Path]) -> InMemoryVehicleCatalog:
    """Load a catalog export.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file cannot be parsed or a record is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Vehicle catalog not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValueError(f"Could not parse vehicle catalog {path}: {e}") from e

    vehicles = _parse_catalog_data(data or [], path)
    logger.info(f"Loaded {len(vehicles)} vehicles from {path}")
    return InMemoryVehicleCatalog(vehicles)
