"""Line splitting, noise filtering and cleanup for OCR'd estimate text.

Estimates arrive as text extracted from PDFs: one estimate line per text line
in the good case, concatenated columns ("6Repl Lower Grille622546LY0A1603.82")
in the bad one, mixed with supplier addresses and phone numbers. The helpers
here decide which lines are worth matching and produce display descriptions.
Matching itself always runs on the raw/lowercased line, never on the
display text from clean_repair_description().
"""

import re
from typing import List, Optional

from adas_scrub.schemas.estimate import OperationType, RepairLine

_LINE_BREAK = re.compile(r"\r?\n")
_WHITESPACE = re.compile(r"\s+")

# CCC-style numbered operation ("2 * Rpr Bumper cover", "6 O/H bumper assy")
_NATIVE_OPERATION_NUMBER = re.compile(
    r"^\s*(\d{1,3})\s*\*{0,2}\s*(Rpr|Repl|O/H|Ovhl|R&I|R&R|Subl|Add|Blend|Refn)",
    re.IGNORECASE,
)
# Numbered section header ("1 FRONT BUMPER")
_NATIVE_SECTION_NUMBER = re.compile(r"^\s*(\d{1,3})\s+[A-Z]{2,}")

_ADDRESS_PATTERNS = [
    re.compile(
        r"\d+\s*(NW|NE|SW|SE|N|S|E|W)?\s+\d*(st|nd|rd|th)?\s+(st|ave|blvd|rd|dr|ln|way|ct|pl)",
        re.IGNORECASE,
    ),
    re.compile(r"^\s*\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}"),
    re.compile(r"[A-Za-z]+,?\s+[A-Z]{2}\s+\d{5}"),
    re.compile(r"^A/M\s*(CAPA|NSF|OEM)?\s*\d+\s*(NW|NE|SW|SE|N|S|E|W)", re.IGNORECASE),
]

_OPERATION_LINE = re.compile(
    r"^\s*(\d{1,3})?\s*\*{0,2}\s*"
    r"(Rpr|Repl|Replace|O/H|Ovhl|Overhaul|R&I|R&R|Subl|Add|Blend|Refn|Refinish|"
    r"Repair|Remove|Aim|Align|Calibrat)",
    re.IGNORECASE,
)
_SECTION_HEADER = re.compile(r"^\s*(\d{1,3}\s+)?[A-Z][A-Z&/-]*(\s+[A-Z&][A-Z&/-]*){1,5}\s*$")
_MAX_HEADER_LENGTH = 40


def split_estimate_lines(text: str) -> List[RepairLine]:
    """Tokenize estimate text into RepairLines.

    Empty lines are dropped. ``position`` counts kept lines from 1;
    ``line_number`` prefers the estimate's own numbering when present.
    """
    lines: List[RepairLine] = []
    for raw in _LINE_BREAK.split(text or ""):
        stripped = raw.strip()
        if not stripped:
            continue
        position = len(lines) + 1
        native = extract_native_line_number(stripped)
        lines.append(
            RepairLine(
                line_number=native if native is not None else position,
                position=position,
                raw_text=stripped,
                cleaned_text=clean_line_text(stripped),
                operation_type=parse_operation_type(stripped),
            )
        )
    return lines


def extract_native_line_number(line: str) -> Optional[int]:
    match = _NATIVE_OPERATION_NUMBER.match(line) or _NATIVE_SECTION_NUMBER.match(line)
    if match:
        return int(match.group(1))
    return None


def is_supplier_address_line(line: str) -> bool:
    """True for supplier street addresses, phone numbers and vendor blocks."""
    return any(pattern.search(line) for pattern in _ADDRESS_PATTERNS)


def is_likely_estimate_operation_line(line: str) -> bool:
    """Gate applied before keyword matching.

    Only numbered operation lines and short all-caps section headers pass;
    legal boilerplate, addresses and notes do not.
    """
    stripped = (line or "").strip()
    if len(stripped) < 3:
        return False
    if is_supplier_address_line(stripped):
        return False
    if _OPERATION_LINE.match(stripped):
        return True
    return len(stripped) <= _MAX_HEADER_LENGTH and _SECTION_HEADER.match(stripped) is not None


# ── Cleanup ──────────────────────────────────────────────────────────

_CLEAN_LINE_RULES = [
    re.compile(r"^\s*\d{1,4}\s*"),
    re.compile(r"\b\d{5}-\d{5}\b"),
    re.compile(r"\b[A-Z]{2}\d[A-Z]-[\dA-Z]{5,}\b"),
    re.compile(r"\$?\d+\.\d{2}"),
    re.compile(r"\b\d+\.?\d*\s*(ea|pc|hr|hrs|hour|hours)\b", re.IGNORECASE),
    re.compile(r"\b(incl\.?|included)(?!\w)", re.IGNORECASE),
]


def clean_line_text(line: str) -> str:
    """Strip line number, part numbers, prices, quantities and 'Incl.' markers."""
    cleaned = line
    for pattern in _CLEAN_LINE_RULES:
        cleaned = pattern.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


_OPERATION_TYPE_RULES = [
    (re.compile(r"\br\s*&\s*i\b|remove.*install|r/i\b"), OperationType.RI),
    (re.compile(r"\br\s*&\s*r\b|replace|r/r\b|repl\b"), OperationType.RR),
    (re.compile(r"\bo/h\b|overhaul|ovhl\b|oh\b"), OperationType.OVERHAUL),
    (re.compile(r"\brpr\b|repair\b"), OperationType.REPAIR),
    (re.compile(r"\bblend\b"), OperationType.BLEND),
    (re.compile(r"\brefinish\b|paint\b|color\b"), OperationType.REFINISH),
]


def parse_operation_type(line: str) -> OperationType:
    lower = (line or "").lower()
    for pattern, operation_type in _OPERATION_TYPE_RULES:
        if pattern.search(lower):
            return operation_type
    return OperationType.OTHER


_PART_NUMBER_PATTERNS = [
    re.compile(r"\b(\d{5}-\d{5})\b"),  # Toyota/Lexus
    re.compile(r"\b(\d{5}-[A-Z]{3}-[A-Z0-9]{3})\b"),  # Honda/Acura
    re.compile(r"\b([A-Z]{2}\d[A-Z]-[\dA-Z]{5,})\b"),  # Ford
    re.compile(r"\b(8\d{7})\b"),  # GM
    re.compile(r"\b([A-Z0-9]{8,15})\b"),
]


def extract_part_number(line: str) -> Optional[str]:
    for pattern in _PART_NUMBER_PATTERNS:
        match = pattern.search(line or "")
        if match:
            return match.group(1)
    return None


# ── Display descriptions ─────────────────────────────────────────────

_DESCRIPTION_OPERATIONS = [
    (re.compile(r"^\d*\s*(Repl(?:ace)?|R&R)\s*", re.IGNORECASE), "Replace"),
    (re.compile(r"^\d*\s*(R&I|Remove)\s*", re.IGNORECASE), "R&I"),
    (re.compile(r"^\d*\s*(O/H|Overhaul|Ovhl)\s*", re.IGNORECASE), "Overhaul"),
    (re.compile(r"^\d*\s*(Rpr|Repair)\s*", re.IGNORECASE), "Repair"),
    (re.compile(r"^\d*\s*(Refinish|Blend|Paint)\s*", re.IGNORECASE), "Refinish"),
]

# First hit wins; more specific names come before their generic forms.
COMPONENT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"front\s*bumper\s*(?:&|and)?\s*grille",
        r"front\s*bumper\s*cover",
        r"front\s*bumper",
        r"rear\s*bumper\s*cover",
        r"rear\s*bumper",
        r"bumper\s*cover",
        r"bumper",
        r"lower\s*grille",
        r"upper\s*grille",
        r"front\s*grille",
        r"grille",
        r"grill",
        r"windshield",
        r"front\s*glass",
        r"side\s*mirror",
        r"door\s*mirror",
        r"mirror\s*assembly",
        r"mirror",
        r"hood",
        r"fender",
        r"headlamp",
        r"headlight",
        r"tail\s*lamp",
        r"tail\s*light",
        r"radar\s*sensor",
        r"front\s*radar",
        r"camera",
        r"quarter\s*panel",
        r"rocker\s*panel",
        r"door\s*shell",
        r"door",
        r"trunk",
        r"decklid",
        r"tailgate",
        r"liftgate",
        r"roof",
        r"alignment",
        r"suspension",
        r"strut",
        r"control\s*arm",
    )
]

_QUALITY_MARKER = re.compile(r"\b(A/M|CAPA|OEM|NSF|LKQ|KEYSTONE)\b", re.IGNORECASE)
_FALLBACK_STRIP_RULES = [
    re.compile(r"^\s*\d{1,3}\s*"),
    re.compile(
        r"^(Repl|Replace|R&R|R&I|Remove|O/H|Overhaul|Ovhl|Rpr|Repair|Refinish|Blend)\s*",
        re.IGNORECASE,
    ),
    re.compile(r"[A-Z0-9]*\d{5,}[A-Z0-9]*", re.IGNORECASE),
    re.compile(r"\d+\.\d{2}"),
    re.compile(r"\b(Incl\.?|Included|Inc\.?)(?!\w)", re.IGNORECASE),
]
_QUANTITY_RULES = [
    re.compile(r"\b\d+\s*(ea|pc|hr|hrs)\b", re.IGNORECASE),
    re.compile(r"\bqty[:\s]*\d+", re.IGNORECASE),
]
_EDGE_PUNCTUATION = re.compile(r"^[-,.\s]+|[-,.\s]+$")
_WORD_START = re.compile(r"\b\w")


def _capitalize_words(value: str) -> str:
    return _WORD_START.sub(lambda m: m.group(0).upper(), value)


def _detect_description_operation(line: str) -> str:
    for pattern, operation in _DESCRIPTION_OPERATIONS:
        if pattern.search(line):
            return operation
    return ""


def clean_repair_description(raw_line: str) -> str:
    """Best-effort "Component - Operation" text for display.

    Examples:
        "6Repl Lower Grille622546LY0A1603.82Incl." -> "Lower Grille - Replace"
        "1FRONT BUMPER & GRILLE" -> "FRONT BUMPER & GRILLE"
        "R&I Front Bumper Cover" -> "Front Bumper Cover - R&I"
    """
    operation = _detect_description_operation(raw_line)

    for pattern in COMPONENT_PATTERNS:
        match = pattern.search(raw_line)
        if match:
            component = _WHITESPACE.sub(" ", _capitalize_words(match.group(0))).strip()
            return f"{component} - {operation}" if operation else component

    cleaned = raw_line
    for pattern in _FALLBACK_STRIP_RULES:
        cleaned = pattern.sub("", cleaned)

    markers = _QUALITY_MARKER.findall(cleaned)
    cleaned = _QUALITY_MARKER.sub("", cleaned)
    for pattern in _QUANTITY_RULES:
        cleaned = pattern.sub("", cleaned)

    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    cleaned = _EDGE_PUNCTUATION.sub("", cleaned)
    if cleaned:
        cleaned = _capitalize_words(cleaned)

    if len(cleaned) < 3:
        if markers:
            return f"Part ({markers[0].upper()})"
        return raw_line[:40].strip()

    if operation and operation.lower() not in cleaned.lower():
        return f"{cleaned} - {operation}"
    return cleaned
