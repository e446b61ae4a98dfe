"""Error taxonomy for estimate scrubbing.

Stable error codes let callers (API layer, CLI) map failures to actionable
messages without parsing exception text.

Only three conditions are raised as exceptions:
- InputError: the caller sent something we refuse to analyze.
- OracleUnavailable: an optional external collaborator failed. The pipeline
  always catches this and continues with less signal.
- PersistenceError: the learning store could not be read or written.

A vehicle that cannot be matched in the catalog is NOT an exception; the
scrubber returns an empty result with ``vehicle=None``.
"""

from enum import Enum
from typing import Optional


class ScrubErrorCode(str, Enum):
    """Stable error codes for scrub failures."""

    # Input issues
    EMPTY_ESTIMATE = "EMPTY_ESTIMATE"  # No text to analyze
    ESTIMATE_TOO_LARGE = "ESTIMATE_TOO_LARGE"  # Text exceeds configured cap
    REPORT_NOT_ESTIMATE = "REPORT_NOT_ESTIMATE"  # Generated report uploaded
    VEHICLE_UNRESOLVED = "VEHICLE_UNRESOLVED"  # Year/make/model not detectable
    INVALID_REVIEW = "INVALID_REVIEW"  # Review transition not allowed

    # Oracle issues
    VIN_DECODE_FAILED = "VIN_DECODE_FAILED"
    ASSIST_FAILED = "ASSIST_FAILED"

    # Persistence issues
    STORE_READ_FAILED = "STORE_READ_FAILED"
    STORE_WRITE_FAILED = "STORE_WRITE_FAILED"


class ScrubError(Exception):
    """Base class for all scrub errors."""

    default_code = ScrubErrorCode.EMPTY_ESTIMATE

    def __init__(self, message: str, code: Optional[ScrubErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code.value}


class InputError(ScrubError):
    """Input rejected before analysis. Not retryable."""

    default_code = ScrubErrorCode.EMPTY_ESTIMATE


class OracleUnavailable(ScrubError):
    """VIN decoder or external assist failed or timed out."""

    default_code = ScrubErrorCode.ASSIST_FAILED


class PersistenceError(ScrubError):
    """Learning store failure."""

    default_code = ScrubErrorCode.STORE_WRITE_FAILED
