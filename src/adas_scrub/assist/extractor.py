"""External text-understanding assist for hard-to-parse estimates.

An LLM reads the estimate text and returns a document classification, the
vehicle, header metadata and the line-item operations it recognized. None of
it is trusted: every field is cleaned, clamped or dropped here before an
AssistExtraction is built.

The pipeline uses the operations as extra scrubber input (see
build_operation_hint_text) and the classification to reject generated
calibration reports.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from adas_scrub.assist.openai_client import get_openai_client, has_openai_credentials
from adas_scrub.config.settings import AssistSettings
from adas_scrub.errors import OracleUnavailable, ScrubErrorCode
from adas_scrub.schemas.assist import (
    AssistExtraction,
    AssistMetadata,
    AssistOperation,
    AssistVehicle,
    DocumentType,
)

logger = logging.getLogger(__name__)

MIN_YEAR = 1980
MAX_YEAR = 2035
MAX_LINE_NUMBER = 999

ALLOWED_OP_CODES = {
    "Rpr", "Repl", "R&I", "R&R", "O/H", "Subl", "Add", "Blend", "Refn",
    "Aim", "Align", "Calibrat", "Repair", "Replace", "Remove", "Overhaul",
}

_OP_CODE_ALIASES: Dict[str, str] = {
    "rpr": "Rpr",
    "repair": "Rpr",
    "repl": "Repl",
    "replace": "Repl",
    "r&i": "R&I",
    "ri": "R&I",
    "removeinstall": "R&I",
    "r&r": "R&R",
    "rr": "R&R",
    "removereplace": "R&R",
    "o/h": "O/H",
    "oh": "O/H",
    "ovhl": "O/H",
    "overhaul": "O/H",
    "subl": "Subl",
    "add": "Add",
    "blend": "Blend",
    "refn": "Refn",
    "refinish": "Refn",
    "aim": "Aim",
    "align": "Align",
    "alignment": "Align",
    "calibrat": "Calibrat",
    "calibration": "Calibrat",
    "calibrate": "Calibrat",
    "remove": "Remove",
}

_REPORT_TYPES = {"adas_report", "report", "calibration_report"}

# Field name in the response -> (AssistMetadata field, max length)
_METADATA_FIELDS = {
    "shopName": ("shop_name", 90),
    "roNumber": ("ro_number", 60),
    "poNumber": ("po_number", 60),
    "claimNumber": ("claim_number", 60),
    "policyNumber": ("policy_number", 60),
    "customerName": ("customer_name", 90),
    "estimatorName": ("estimator_name", 90),
    "adjusterName": ("adjuster_name", 90),
    "lossDate": ("loss_date", 30),
    "createDate": ("create_date", 30),
}

SYSTEM_PROMPT = " ".join(
    [
        "You extract structured estimate signals from collision repair estimate text.",
        "Return strict JSON only. No markdown.",
        "Classify documentType as one of: estimate, adas_report, unknown.",
        "If this is a generated calibration report, set documentType to adas_report and leave operations mostly empty.",
        "Extract vehicle fields (vin, year, make, model) when present.",
        "Extract metadata fields (shopName, roNumber, poNumber, claimNumber, policyNumber, customerName, estimatorName, adjusterName, lossDate, createDate).",
        "Extract only true estimate line-item operations, not narrative guidance/disclaimers.",
        "For each operation, output lineNumber if visible, opCode from this set exactly:",
        "Rpr, Repl, R&I, R&R, O/H, Subl, Add, Blend, Refn, Aim, Align, Calibrat, Repair, Replace, Remove, Overhaul.",
        "Use concise component labels (example: Front Bumper Cover, Windshield, Front Radar Sensor).",
        "Output schema:",
        '{"documentType":"estimate|adas_report|unknown","confidence":0.0,'
        '"vehicle":{"vin":"","year":0,"make":"","model":""},'
        '"metadata":{"shopName":"","roNumber":"","poNumber":"","claimNumber":"","policyNumber":"",'
        '"customerName":"","estimatorName":"","adjusterName":"","lossDate":"","createDate":""},'
        '"operations":[{"lineNumber":1,"opCode":"Rpr","component":"Front Bumper Cover","rawText":""}]}',
    ]
)


# =============================================================================
# Response cleaning
# =============================================================================


def clean_string(value: Any, max_length: int = 140) -> Optional[str]:
    """Whitespace-collapsed, truncated string; None for non-strings and blanks."""
    if not isinstance(value, str):
        return None
    cleaned = re.sub(r"\s+", " ", value).strip()
    return cleaned[:max_length] or None


def _bounded_int(value: Any, low: int, high: int, digits: str) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        number = int(value)
    elif isinstance(value, str) and re.fullmatch(digits, value.strip()):
        number = int(value.strip())
    else:
        return None
    return number if low <= number <= high else None


def clean_year(value: Any) -> Optional[int]:
    return _bounded_int(value, MIN_YEAR, MAX_YEAR, r"\d{4}")


def clean_line_number(value: Any) -> Optional[int]:
    return _bounded_int(value, 1, MAX_LINE_NUMBER, r"\d{1,3}")


def normalize_op_code(value: Any) -> Optional[str]:
    raw = re.sub(r"\s+", "", (clean_string(value, 24) or "").lower())
    return _OP_CODE_ALIASES.get(raw)


def normalize_document_type(value: Any) -> DocumentType:
    raw = (clean_string(value, 30) or "").lower()
    if raw == "estimate":
        return DocumentType.ESTIMATE
    if raw in _REPORT_TYPES:
        return DocumentType.ADAS_REPORT
    return DocumentType.UNKNOWN


def normalize_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


def normalize_operations(value: Any, max_operations: int = 120) -> List[AssistOperation]:
    """Allow-listed, deduplicated (line|op|component) operations."""
    if not isinstance(value, list):
        return []

    operations: List[AssistOperation] = []
    seen = set()
    for entry in value:
        if not isinstance(entry, dict):
            continue
        op_code = normalize_op_code(entry.get("opCode"))
        if not op_code or op_code not in ALLOWED_OP_CODES:
            continue
        component = (
            clean_string(entry.get("component"), 120)
            or clean_string(entry.get("description"), 120)
            or clean_string(entry.get("rawText"), 120)
        )
        if not component:
            continue

        line_number = clean_line_number(entry.get("lineNumber"))
        key = f"{line_number or 0}|{op_code}|{component.lower()}"
        if key in seen:
            continue
        seen.add(key)

        operations.append(
            AssistOperation(
                line_number=line_number,
                op_code=op_code,
                component=component,
                raw_text=clean_string(entry.get("rawText"), 200),
            )
        )
        if len(operations) >= max_operations:
            break
    return operations


def _as_object(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            parts.append(part["text"])
        elif isinstance(getattr(part, "text", None), str):
            parts.append(part.text)
    return "\n".join(parts).strip()


def parse_assist_payload(
    payload: Dict[str, Any], model: str, max_operations: int = 120
) -> AssistExtraction:
    """Build an AssistExtraction from a decoded JSON response object."""
    vehicle = _as_object(payload.get("vehicle"))
    metadata = _as_object(payload.get("metadata"))
    return AssistExtraction(
        model=model,
        document_type=normalize_document_type(payload.get("documentType")),
        confidence=normalize_confidence(payload.get("confidence")),
        vehicle=AssistVehicle(
            vin=clean_string(vehicle.get("vin"), 24),
            year=clean_year(vehicle.get("year")),
            make=clean_string(vehicle.get("make"), 40),
            model=clean_string(vehicle.get("model"), 50),
        ),
        metadata=AssistMetadata(
            **{
                field: clean_string(metadata.get(key), max_length)
                for key, (field, max_length) in _METADATA_FIELDS.items()
            }
        ),
        operations=normalize_operations(payload.get("operations"), max_operations),
    )


def build_operation_hint_text(operations: List[AssistOperation], max_operations: int = 120) -> str:
    """Operations as synthetic estimate lines ("N OpCode Component").

    Operations without a line number are numbered by position.
    """
    lines = []
    for index, operation in enumerate(operations[:max_operations]):
        line_number = operation.line_number or index + 1
        lines.append(f"{line_number} {operation.op_code} {operation.component}".strip())
    return "\n".join(lines)


# =============================================================================
# Assist port and OpenAI implementation
# =============================================================================


@runtime_checkable
class AssistPort(Protocol):
    """Optional text-understanding oracle consulted by the pipeline."""

    def extract(self, estimate_text: str, file_name: Optional[str] = None) -> Optional[AssistExtraction]:
        """Return None when the assist is not available for this call.

        Raises:
            OracleUnavailable: If the assist was called and failed.
        """
        ...


class OpenAIEstimateAssist:
    """AssistPort backed by an OpenAI/Azure OpenAI chat completion."""

    def __init__(self, settings: Optional[AssistSettings] = None, client: Any = None):
        self.settings = settings or AssistSettings()
        self.model = self.settings.resolve_model()
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = get_openai_client(timeout=self.settings.timeout_seconds)
        return self._client

    def is_available(self) -> bool:
        return self._client is not None or has_openai_credentials()

    def extract(self, estimate_text: str, file_name: Optional[str] = None) -> Optional[AssistExtraction]:
        if not self.is_available():
            logger.debug("No OpenAI credentials configured, skipping estimate assist")
            return None

        prompt_text = (estimate_text or "")[: self.settings.max_prompt_chars]
        if not prompt_text.strip():
            return None

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": json.dumps(
                    {"fileName": file_name or "estimate.pdf", "estimateText": prompt_text}
                ),
            },
        ]

        try:
            response = self._get_client().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0,
                response_format={"type": "json_object"},
                timeout=self.settings.timeout_seconds,
            )
            content = _message_text(response.choices[0].message.content)
            payload = json.loads(content) if content else None
        except Exception as e:
            logger.warning(f"Estimate assist call failed: {e}")
            raise OracleUnavailable(
                f"Estimate assist failed: {e}", code=ScrubErrorCode.ASSIST_FAILED
            ) from e

        if not isinstance(payload, dict):
            logger.warning("Estimate assist returned a non-object response, ignoring")
            return None

        extraction = parse_assist_payload(payload, self.model, self.settings.max_operations)
        logger.info(
            f"Estimate assist ({self.model}): {extraction.document_type.value} "
            f"confidence={extraction.confidence:.2f}, {len(extraction.operations)} operations"
        )
        return extraction
