"""Shop-taught learning rules: upsert, audit events and application.

Technicians correct scrub output by teaching rules: ADD attaches a system to
lines containing a keyword, SUPPRESS removes a system from such lines. Rules
are scoped to a shop and a vehicle range (make, model or "All Models",
year_start..year_end). Applied rules are stamped with a usage increment.
"""

import logging
import math
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from adas_scrub.errors import InputError, ScrubErrorCode
from adas_scrub.estimate.text import split_estimate_lines
from adas_scrub.estimate.vocabulary import keyword_matched
from adas_scrub.learning.store import LearningStore, RuleKey, normalize_learning_text
from adas_scrub.schemas.calibration import CalibrationMatch, MatchSource, ScrubResult
from adas_scrub.schemas.learning import (
    LearningAction,
    LearningApplication,
    LearningEvent,
    LearningRule,
    ReviewStatus,
)

logger = logging.getLogger(__name__)

ALL_MODELS = "all models"
LEARNED_OPERATION = "Learned Manual Operation"
DEFAULT_WEIGHT = 0.8
MIN_WEIGHT = 0.1
MAX_WEIGHT = 1.0
DEFAULT_EVENT_LIMIT = 200
MAX_EVENT_LIMIT = 2000


def clamp_weight(value: Optional[float]) -> float:
    """Clamp a confidence weight to [0.1, 1.0]; missing or NaN becomes 0.8."""
    if value is None or math.isnan(value):
        return DEFAULT_WEIGHT
    return max(MIN_WEIGHT, min(MAX_WEIGHT, float(value)))


def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"


class LearningEngine:
    """Applies and maintains learning rules on top of a LearningStore."""

    def __init__(self, store: LearningStore, min_confidence_weight: float = 0.2):
        self.store = store
        self.min_confidence_weight = min_confidence_weight

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def upsert_rule(
        self,
        shop_id: str,
        action: LearningAction,
        make: str,
        model: str,
        year_start: int,
        year_end: int,
        keyword: str,
        system_name: str,
        calibration_type: Optional[str] = None,
        reason: str = "",
        confidence_weight: Optional[float] = None,
        edited_by: Optional[str] = None,
    ) -> LearningRule:
        """Create a rule, or reinforce the existing one with the same identity.

        Reinforcing averages the stored and incoming weights, bumps
        correction_count and takes the latest reason/calibration type.
        """
        action = LearningAction(action)
        incoming_weight = clamp_weight(confidence_weight)
        key = RuleKey(
            shop_id=shop_id,
            action=action,
            make=normalize_learning_text(make),
            model=normalize_learning_text(model),
            year_start=year_start,
            year_end=year_end,
            keyword=normalize_learning_text(keyword),
            system=normalize_learning_text(system_name),
        )

        with self.store.shop_lock(shop_id):
            now = _now()
            existing = self.store.find_rule(shop_id, key)
            if existing is not None:
                rule = existing.model_copy(
                    update={
                        "calibration_type": calibration_type,
                        "reason": reason,
                        "confidence_weight": clamp_weight(
                            (existing.confidence_weight + incoming_weight) / 2
                        ),
                        "correction_count": existing.correction_count + 1,
                        "last_edited_by": edited_by or existing.last_edited_by,
                        "updated_at": now,
                    }
                )
                logger.info(
                    f"Reinforced learning rule {rule.id} for shop {shop_id} "
                    f"(weight {rule.confidence_weight:.2f}, corrections {rule.correction_count})"
                )
            else:
                rule = LearningRule(
                    id=f"rule_{uuid.uuid4().hex[:12]}",
                    shop_id=shop_id,
                    action=action,
                    make=make,
                    model=model,
                    year_start=year_start,
                    year_end=year_end,
                    keyword=keyword,
                    system_name=system_name,
                    calibration_type=calibration_type,
                    reason=reason,
                    confidence_weight=incoming_weight,
                    usage_count=0,
                    correction_count=1,
                    created_at=now,
                    updated_at=now,
                    last_edited_by=edited_by,
                )
                logger.info(
                    f"Created {action.value} rule {rule.id} for shop {shop_id}: "
                    f"'{keyword}' -> {system_name}"
                )
            self.store.save_rule(rule)
        return rule

    def matching_rules(self, shop_id: str, year: int, make: str, model: str) -> List[LearningRule]:
        """Rules of the shop that apply to the vehicle, strongest and newest first."""
        make_key = normalize_learning_text(make)
        model_key = normalize_learning_text(model)
        rules = [
            r
            for r in self.store.list_rules(shop_id)
            if normalize_learning_text(r.make) == make_key
            and r.year_start <= year <= r.year_end
            and r.confidence_weight >= self.min_confidence_weight
            and normalize_learning_text(r.model) in (model_key, ALL_MODELS)
        ]
        rules.sort(key=lambda r: r.updated_at, reverse=True)
        rules.sort(key=lambda r: r.confidence_weight, reverse=True)
        return rules

    def apply_rules(
        self,
        estimate_text: str,
        year: int,
        make: str,
        model: str,
        shop_id: str,
        results: Sequence[ScrubResult],
    ) -> LearningApplication:
        """Apply the shop's rules for this vehicle to ``results``.

        ``results`` is not mutated. The returned results drop lines left
        without matches and are sorted by line number.
        """
        rules = self.matching_rules(shop_id, year, make, model)
        if not rules:
            return LearningApplication(results=list(results), applied_rule_ids=[])

        by_line: Dict[int, ScrubResult] = {r.line_number: r.model_copy(deep=True) for r in results}
        applied: List[str] = []

        for line in split_estimate_lines(estimate_text):
            line_text = normalize_learning_text(line.raw_text)
            for rule in rules:
                rule_keyword = normalize_learning_text(rule.keyword)
                if not keyword_matched(line_text, rule_keyword):
                    continue
                rule_system = normalize_learning_text(rule.system_name)
                current = by_line.get(line.line_number)

                if rule.action == LearningAction.SUPPRESS:
                    if current is None:
                        continue
                    kept = [
                        m
                        for m in current.calibration_matches
                        if normalize_learning_text(m.system_name) != rule_system
                    ]
                    if len(kept) != len(current.calibration_matches):
                        current.calibration_matches = kept
                        logger.debug(
                            f"Rule {rule.id} suppressed {rule.system_name} on line {line.line_number}"
                        )
                        if rule.id not in applied:
                            applied.append(rule.id)
                    continue

                if current is None:
                    current = ScrubResult(line_number=line.line_number, description=line.raw_text)
                    by_line[line.line_number] = current
                exists = any(
                    normalize_learning_text(m.system_name) == rule_system
                    and normalize_learning_text(m.matched_keyword) == rule_keyword
                    for m in current.calibration_matches
                )
                if not exists:
                    current.calibration_matches.append(
                        CalibrationMatch(
                            system_name=rule.system_name,
                            calibration_type=rule.calibration_type,
                            reason=f"{rule.reason} (learned rule)",
                            matched_keyword=rule.keyword,
                            repair_operation=LEARNED_OPERATION,
                            source=MatchSource.LEARNED,
                        )
                    )
                    logger.debug(f"Rule {rule.id} added {rule.system_name} on line {line.line_number}")
                if rule.id not in applied:
                    applied.append(rule.id)

        if applied:
            self.store.record_rule_usage(shop_id, applied, _now())
            logger.info(f"Applied {len(applied)} learning rules for shop {shop_id}")

        updated = sorted(
            (r for r in by_line.values() if r.calibration_matches), key=lambda r: r.line_number
        )
        return LearningApplication(results=updated, applied_rule_ids=applied)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def append_event(
        self,
        shop_id: str,
        action: LearningAction,
        make: str,
        model: str,
        year_start: int,
        year_end: int,
        keyword: str,
        system_name: str,
        rule_id: str = "",
        calibration_type: Optional[str] = None,
        reason: str = "",
        confidence_weight: Optional[float] = None,
        report_id: Optional[str] = None,
        estimate_reference: Optional[str] = None,
        vehicle_vin: Optional[str] = None,
        trigger_lines: Optional[List[int]] = None,
        trigger_descriptions: Optional[List[str]] = None,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
        actor_email: Optional[str] = None,
    ) -> LearningEvent:
        """Record a pending audit event for a taught correction."""
        event = LearningEvent(
            id=f"evt_{uuid.uuid4().hex[:12]}",
            shop_id=shop_id,
            created_at=_now(),
            action=LearningAction(action),
            rule_id=rule_id,
            make=make,
            model=model,
            year_start=year_start,
            year_end=year_end,
            keyword=keyword,
            system_name=system_name,
            calibration_type=calibration_type,
            reason=reason,
            confidence_weight=clamp_weight(confidence_weight),
            report_id=report_id,
            estimate_reference=estimate_reference,
            vehicle_vin=vehicle_vin,
            trigger_lines=list(trigger_lines or []),
            trigger_descriptions=list(trigger_descriptions or []),
            actor_id=actor_id,
            actor_name=actor_name,
            actor_email=actor_email,
            review_status=ReviewStatus.PENDING,
        )
        self.store.append_event(event)
        logger.info(f"Recorded learning event {event.id} for shop {shop_id}")
        return event

    def review_event(
        self, shop_id: str, event_id: str, status: ReviewStatus
    ) -> Optional[LearningEvent]:
        """Approve or reject a pending event.

        Returns:
            The updated event, or None when the shop has no such event.

        Raises:
            InputError: If the status is not a review outcome or the event
                was already reviewed.
        """
        status = ReviewStatus(status)
        if status == ReviewStatus.PENDING:
            raise InputError(
                "Review status must be approved or rejected", code=ScrubErrorCode.INVALID_REVIEW
            )

        with self.store.shop_lock(shop_id):
            event = self.store.get_event(shop_id, event_id)
            if event is None:
                return None
            if event.review_status != ReviewStatus.PENDING:
                raise InputError(
                    f"Event {event_id} was already {event.review_status.value}",
                    code=ScrubErrorCode.INVALID_REVIEW,
                )
            updated = event.model_copy(update={"review_status": status, "reviewed_at": _now()})
            self.store.save_event(updated)

        logger.info(f"Event {event_id} for shop {shop_id} marked {status.value}")
        return updated

    def load_events(self, shop_id: str, limit: int = DEFAULT_EVENT_LIMIT) -> List[LearningEvent]:
        """Newest events first; ``limit`` is clamped to [1, 2000]."""
        bounded = max(1, min(limit, MAX_EVENT_LIMIT))
        return self.store.list_events(shop_id, bounded)
