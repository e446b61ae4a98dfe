"""Vehicle catalog access."""

from adas_scrub.catalog.file_catalog import InMemoryVehicleCatalog, load_vehicle_catalog
from adas_scrub.catalog.protocol import VehicleCatalog

__all__ = ["InMemoryVehicleCatalog", "VehicleCatalog", "load_vehicle_catalog"]
