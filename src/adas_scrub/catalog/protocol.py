"""Vehicle catalog protocol.

The scrubber only needs candidate vehicles for a year and make; where the
records live (database, YAML export, API) is the implementation's business.
"""

from typing import List, Protocol, runtime_checkable

from adas_scrub.schemas.vehicle import VehicleRecord


@runtime_checkable
class VehicleCatalog(Protocol):
    """Read-only source of vehicle trigger maps."""

    def find_vehicles(self, year: int, make: str) -> List[VehicleRecord]:
        """Candidate vehicles whose year range covers ``year``.

        Args:
            year: Model year.
            make: Make as written on the estimate. Implementations may use it
                to narrow the query but callers still resolve make/model
                themselves.

        Returns:
            Candidate records; may include other makes.
        """
        ...
