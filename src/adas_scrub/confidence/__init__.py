"""Analysis confidence scoring."""

from adas_scrub.confidence.scorer import build_analysis_confidence, score_to_label

__all__ = ["build_analysis_confidence", "score_to_label"]
