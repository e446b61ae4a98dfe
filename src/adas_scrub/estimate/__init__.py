"""Estimate text tokenizing, vocabulary matching and parsing."""

from adas_scrub.estimate.parser import detect_estimate_format, detect_repairs, parse_estimate
from adas_scrub.estimate.report_classifier import classify_document, validate_estimate_text
from adas_scrub.estimate.text import split_estimate_lines
from adas_scrub.estimate.vocabulary import VocabularyConfig, VocabularyMatcher, keyword_matched

__all__ = [
    "VocabularyConfig",
    "VocabularyMatcher",
    "classify_document",
    "detect_estimate_format",
    "detect_repairs",
    "keyword_matched",
    "parse_estimate",
    "split_estimate_lines",
    "validate_estimate_text",
]
