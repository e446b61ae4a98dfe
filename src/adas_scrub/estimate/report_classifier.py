"""Input gate: reject empty, oversized or report-shaped documents.

Shops sometimes upload a calibration report this tool (or a competitor)
already generated instead of the original estimate. Reports narrate
"triggered by Line 6" and carry procedure/disclaimer boilerplate, so a
weighted phrase score separates them from raw estimates well enough.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from adas_scrub.config import ScrubSettings
from adas_scrub.errors import InputError, ScrubErrorCode

logger = logging.getLogger(__name__)

REPORT_REJECTION_MESSAGE = (
    "This document looks like a calibration report. "
    "Please upload the original estimate, not a calibration report."
)

# (phrase, weight); phrases are matched case-insensitively
REPORT_PHRASES: List[Tuple[str, int]] = [
    ("calibration report", 3),
    ("adas calibration report", 2),
    ("procedure type:", 2),
    ("calibration type:", 2),
    ("triggered by line", 2),
    ("trigger lines", 2),
    ("recommended calibrations", 2),
    ("this report is provided", 1),
    ("for informational purposes", 1),
    ("refer to oem", 1),
]

ESTIMATE_PHRASES: List[Tuple[str, int]] = [
    ("estimate of record", -2),
    ("ccc one", -2),
    ("preliminary estimate", -2),
    ("workfile id", -2),
]

_LINE_NARRATIVE = re.compile(r"\bline\s+\d{1,3}\b", re.IGNORECASE)
LINE_NARRATIVE_MIN = 4
LINE_NARRATIVE_DENSE = 10


@dataclass
class DocumentClassification:
    """Outcome of the report heuristic."""

    score: int
    is_report: bool
    signals: List[str] = field(default_factory=list)


def classify_document(text: str, threshold: int = 5) -> DocumentClassification:
    """Score how much ``text`` reads like a generated calibration report."""
    lower = (text or "").lower()
    score = 0
    signals: List[str] = []

    for phrase, weight in REPORT_PHRASES + ESTIMATE_PHRASES:
        if phrase in lower:
            score += weight
            signals.append(f"{phrase} ({weight:+d})")

    narrative_count = len(_LINE_NARRATIVE.findall(lower))
    if narrative_count >= LINE_NARRATIVE_MIN:
        score += 2
        signals.append(f"line narrative x{narrative_count} (+2)")
    if narrative_count >= LINE_NARRATIVE_DENSE:
        score += 1
        signals.append("dense line narrative (+1)")

    return DocumentClassification(score=score, is_report=score >= threshold, signals=signals)


def validate_estimate_text(text: str, settings: Optional[ScrubSettings] = None) -> str:
    """Return the stripped estimate text or raise InputError.

    Raises:
        InputError: EMPTY_ESTIMATE, ESTIMATE_TOO_LARGE or REPORT_NOT_ESTIMATE.
    """
    settings = settings or ScrubSettings()
    stripped = (text or "").strip()

    if not stripped:
        raise InputError("Estimate text is empty", code=ScrubErrorCode.EMPTY_ESTIMATE)

    if len(stripped) > settings.max_estimate_chars:
        raise InputError(
            f"Estimate text is too large ({len(stripped)} characters, "
            f"limit {settings.max_estimate_chars})",
            code=ScrubErrorCode.ESTIMATE_TOO_LARGE,
        )

    classification = classify_document(stripped, settings.classifier.report_threshold)
    if classification.is_report:
        logger.info(
            f"Rejected report-like document (score={classification.score}): "
            f"{', '.join(classification.signals)}"
        )
        raise InputError(REPORT_REJECTION_MESSAGE, code=ScrubErrorCode.REPORT_NOT_ESTIMATE)

    return stripped
