"""End-to-end estimate analysis.

ScrubPipeline.analyze() runs every stage in a fixed order:

1. validate the text (empty / oversized / generated report -> InputError)
2. parse the estimate and detect the vehicle (VIN oracle + text)
3. optional assist: reject reports it recognizes, fill vehicle gaps
4. require a full year/make/model profile
5. rule-based scrub against the vehicle catalog
6. assist re-scrub with its operations appended as synthetic lines
   (kept only when it yields strictly more result lines)
7. inference fallbacks for calibration operations still missing
8. shop learning rules (add/suppress)
9. grouping and confidence

Nothing is persisted except the usage counters of applied learning rules.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from adas_scrub.assist.extractor import AssistPort, build_operation_hint_text
from adas_scrub.calibration.aggregator import group_calibrations
from adas_scrub.calibration.inference import (
    infer_from_repairs,
    infer_steering_from_line_mentions,
    merge_missing_inferred,
)
from adas_scrub.calibration.scrubber import RuleBasedScrubber
from adas_scrub.catalog.protocol import VehicleCatalog
from adas_scrub.config.settings import ScrubSettings
from adas_scrub.confidence.scorer import build_analysis_confidence
from adas_scrub.errors import InputError, OracleUnavailable, ScrubErrorCode
from adas_scrub.estimate.parser import parse_estimate
from adas_scrub.estimate.report_classifier import REPORT_REJECTION_MESSAGE, validate_estimate_text
from adas_scrub.estimate.text import split_estimate_lines
from adas_scrub.estimate.vocabulary import VocabularyConfig, VocabularyMatcher
from adas_scrub.learning.engine import LearningEngine
from adas_scrub.schemas.analysis import AnalysisResult
from adas_scrub.schemas.assist import AssistExtraction, DocumentType
from adas_scrub.schemas.calibration import MatchSource, ScrubOutcome, ScrubResult
from adas_scrub.schemas.confidence import ConfidenceInputs
from adas_scrub.schemas.vehicle import ExtractedVehicle, VehicleProfile
from adas_scrub.vehicle.extraction import extract_vehicle_info
from adas_scrub.vehicle.vin import VinDecoder

logger = logging.getLogger(__name__)

VEHICLE_UNRESOLVED_MESSAGE = (
    "Could not fully detect vehicle year/make/model from this estimate. "
    "Include a page with VIN or vehicle header."
)


def _match_keys(results: List[ScrubResult]) -> Set[Tuple[int, str, str]]:
    return {
        (r.line_number, m.system_name, m.matched_keyword)
        for r in results
        for m in r.calibration_matches
    }


def _tag_new_matches(
    results: List[ScrubResult], known: Set[Tuple[int, str, str]], source: MatchSource
) -> List[ScrubResult]:
    tagged = []
    for result in results:
        matches = [
            m
            if (result.line_number, m.system_name, m.matched_keyword) in known
            else m.model_copy(update={"source": source})
            for m in result.calibration_matches
        ]
        tagged.append(result.model_copy(update={"calibration_matches": matches}))
    return tagged


class ScrubPipeline:
    """Orchestrates one estimate analysis.

    Collaborators are injected; only the catalog is required. Without a
    learning engine (or without a shop id) the learning stage is skipped.
    """

    def __init__(
        self,
        catalog: VehicleCatalog,
        settings: Optional[ScrubSettings] = None,
        learning: Optional[LearningEngine] = None,
        vin_decoder: Optional[VinDecoder] = None,
        assist: Optional[AssistPort] = None,
        matcher: Optional[VocabularyMatcher] = None,
    ):
        self.settings = settings or ScrubSettings()
        self.scrubber = RuleBasedScrubber(catalog)
        self.learning = learning
        self.vin_decoder = vin_decoder
        self.assist = assist
        if matcher is None:
            if self.settings.vocabulary_path:
                matcher = VocabularyMatcher(VocabularyConfig.from_yaml(self.settings.vocabulary_path))
            else:
                matcher = VocabularyMatcher()
        self.matcher = matcher

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _run_assist(self, estimate_text: str, file_name: Optional[str]) -> Optional[AssistExtraction]:
        if self.assist is None or not self.settings.assist.enabled:
            return None
        try:
            return self.assist.extract(estimate_text, file_name)
        except OracleUnavailable as e:
            logger.warning(f"Assist unavailable, continuing without it: {e.message}")
            return None

    def _reject_assist_report(self, extraction: Optional[AssistExtraction]) -> None:
        if extraction is None or extraction.document_type != DocumentType.ADAS_REPORT:
            return
        if extraction.confidence >= self.settings.assist.report_confidence_threshold:
            logger.info(
                f"Assist classified document as a calibration report "
                f"(confidence={extraction.confidence:.2f})"
            )
            raise InputError(REPORT_REJECTION_MESSAGE, code=ScrubErrorCode.REPORT_NOT_ESTIMATE)

    @staticmethod
    def _resolve_profile(
        detected: ExtractedVehicle,
        extraction: Optional[AssistExtraction],
        year: Optional[int],
        make: Optional[str],
        model: Optional[str],
    ) -> VehicleProfile:
        assisted = extraction.vehicle if extraction is not None else None
        year = year or detected.year or (assisted.year if assisted else None)
        make = make or detected.make or (assisted.make if assisted else None)
        model = model or detected.model or (assisted.model if assisted else None)
        if not (year and make and model):
            logger.info(f"Vehicle unresolved: year={year} make={make} model={model}")
            raise InputError(VEHICLE_UNRESOLVED_MESSAGE, code=ScrubErrorCode.VEHICLE_UNRESOLVED)
        return VehicleProfile(year=year, make=make, model=model)

    def _assist_rescrub(
        self,
        estimate_text: str,
        profile: VehicleProfile,
        outcome: ScrubOutcome,
        extraction: Optional[AssistExtraction],
    ) -> Tuple[List[ScrubResult], bool]:
        if extraction is None or not extraction.operations:
            return outcome.results, False

        hint_text = build_operation_hint_text(
            extraction.operations, self.settings.assist.max_operations
        )
        second = self.scrubber.scrub(
            f"{estimate_text}\n{hint_text}", profile.year, profile.make, profile.model
        )
        if len(second.results) <= len(outcome.results):
            logger.debug(
                f"Assist re-scrub not better ({len(second.results)} vs {len(outcome.results)} lines)"
            )
            return outcome.results, False

        logger.info(
            f"Assist operations raised result lines from {len(outcome.results)} "
            f"to {len(second.results)}"
        )
        tagged = _tag_new_matches(second.results, _match_keys(outcome.results), MatchSource.ASSIST)
        return tagged, True

    def _apply_learning(
        self,
        estimate_text: str,
        profile: VehicleProfile,
        shop_id: Optional[str],
        results: List[ScrubResult],
    ) -> Tuple[List[ScrubResult], List[str], bool]:
        if self.learning is None or not shop_id:
            return results, [], False
        try:
            application = self.learning.apply_rules(
                estimate_text, profile.year, profile.make, profile.model, shop_id, results
            )
        except Exception as e:
            logger.warning(
                f"Learning rules could not be applied for shop {shop_id}, "
                f"returning unlearned results: {e}"
            )
            return results, [], True
        return application.results, application.applied_rule_ids, False

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def analyze(
        self,
        estimate_text: str,
        vehicle_year: Optional[int] = None,
        vehicle_make: Optional[str] = None,
        vehicle_model: Optional[str] = None,
        shop_id: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> AnalysisResult:
        """Analyze one estimate.

        Args:
            estimate_text: Raw OCR/PDF text of the estimate.
            vehicle_year, vehicle_make, vehicle_model: Caller-supplied vehicle;
                each overrides the detected value.
            shop_id: Enables the shop's learning rules.
            file_name: Original upload name, passed to the assist and used as
                a VIN hint.

        Raises:
            InputError: Rejected input or unresolvable vehicle profile.
        """
        text = validate_estimate_text(estimate_text, self.settings)
        parsed = parse_estimate(text, self.matcher)
        detected = extract_vehicle_info(text, self.vin_decoder, vin_hint=file_name)

        extraction = self._run_assist(text, file_name)
        self._reject_assist_report(extraction)

        profile = self._resolve_profile(
            detected, extraction, vehicle_year, vehicle_make, vehicle_model
        )

        outcome = self.scrubber.scrub(text, profile.year, profile.make, profile.model)
        results, used_assist = self._assist_rescrub(text, profile, outcome, extraction)

        line_text_by_number: Dict[int, str] = {}
        for line in split_estimate_lines(text):
            line_text_by_number.setdefault(line.line_number, line.raw_text)

        inferred = infer_from_repairs(outcome.detected_repairs, parsed.adas_parts_found)
        results, added = merge_missing_inferred(results, inferred)
        steering = infer_steering_from_line_mentions(text, line_text_by_number)
        results, added_steering = merge_missing_inferred(results, steering)
        used_inference_fallback = added + added_steering > 0

        results, applied_rule_ids, learning_failed = self._apply_learning(
            text, profile, shop_id, results
        )

        grouped = group_calibrations(results)
        confidence = build_analysis_confidence(
            ConfidenceInputs(
                has_vehicle_from_db=outcome.vehicle is not None,
                has_vin=bool(detected.vin),
                extracted_confidence=detected.confidence,
                detected_repair_count=len(outcome.detected_repairs),
                results_count=len(grouped),
                adas_parts_count=len(parsed.adas_parts_found),
                used_external_model=used_assist,
                used_inference_fallback=used_inference_fallback,
            )
        )

        logger.info(
            f"Analyzed {profile.year} {profile.make} {profile.model}: {len(results)} lines, "
            f"{len(grouped)} calibrations, confidence {confidence.score} ({confidence.label.value})"
        )
        return AnalysisResult(
            results=results,
            grouped_calibrations=grouped,
            vehicle=outcome.vehicle,
            analyzed_vehicle=profile,
            detected_vehicle=detected,
            detected_repairs=outcome.detected_repairs,
            estimate_format=parsed.format,
            adas_parts_in_estimate=parsed.adas_parts_found,
            repairs_summary=parsed.repairs_summary,
            applied_rule_ids=applied_rule_ids,
            used_inference_fallback=used_inference_fallback,
            used_assist=used_assist,
            learning_failed=learning_failed,
            confidence=confidence,
        )
