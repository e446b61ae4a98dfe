"""Tests for LearningEngine: rule upsert, application and the event audit trail."""

import math
from unittest.mock import MagicMock

import pytest

from adas_scrub.calibration.aggregator import group_calibrations
from adas_scrub.errors import InputError, ScrubErrorCode
from adas_scrub.learning.engine import LEARNED_OPERATION, LearningEngine, clamp_weight
from adas_scrub.schemas.calibration import MatchSource
from adas_scrub.schemas.learning import LearningAction, ReviewStatus
from scrub_test_helpers import make_result, make_rule

ESTIMATE = "6 O/H Front Bumper Cover\n9 R&I Windshield"


def _apply(engine, results, text=ESTIMATE, shop_id="shop-1"):
    return engine.apply_rules(text, 2022, "Toyota", "Camry", shop_id, results)


class TestClampWeight:
    @pytest.mark.parametrize(
        "value,expected",
        [(None, 0.8), (math.nan, 0.8), (5, 1.0), (0, 0.1), (-1.0, 0.1), (0.55, 0.55)],
    )
    def test_clamp(self, value, expected):
        assert clamp_weight(value) == pytest.approx(expected)


class TestUpsertRule:
    def test_creates_rule(self, learning_engine, learning_store):
        rule = learning_engine.upsert_rule(
            "shop-1",
            "suppress",
            "Toyota",
            "Camry",
            2022,
            2022,
            "front bumper",
            "Front Radar / ACC-AEB",
            confidence_weight=0.8,
            edited_by="tech-7",
        )

        assert rule.id.startswith("rule_")
        assert len(rule.id) == len("rule_") + 12
        assert rule.action == LearningAction.SUPPRESS
        assert rule.usage_count == 0
        assert rule.correction_count == 1
        assert rule.created_at.endswith("Z")
        assert rule.last_edited_by == "tech-7"
        assert learning_store.list_rules("shop-1") == [rule]

    def test_same_identity_reinforces(self, learning_engine, learning_store):
        """Normalized make/model/keyword/system resolve to the existing rule."""
        first = learning_engine.upsert_rule(
            "shop-1", LearningAction.SUPPRESS, "Toyota", "Camry", 2022, 2022,
            "front bumper", "Front Radar / ACC-AEB", confidence_weight=0.8,
        )
        second = learning_engine.upsert_rule(
            "shop-1", LearningAction.SUPPRESS, " TOYOTA ", "camry", 2022, 2022,
            "Front-Bumper", "front radar / acc aeb", reason="No radar on LE trim",
            confidence_weight=0.4,
        )

        assert second.id == first.id
        assert second.confidence_weight == pytest.approx(0.6)
        assert second.correction_count == 2
        assert second.reason == "No radar on LE trim"
        assert len(learning_store.list_rules("shop-1")) == 1

    def test_different_action_is_new_rule(self, learning_engine, learning_store):
        for action in (LearningAction.SUPPRESS, LearningAction.ADD):
            learning_engine.upsert_rule(
                "shop-1", action, "Toyota", "Camry", 2022, 2022, "front bumper", "Front Radar"
            )
        assert len(learning_store.list_rules("shop-1")) == 2


class TestMatchingRules:
    def test_vehicle_filters(self, learning_engine, learning_store):
        for rule in [
            make_rule(id="rule_camry"),
            make_rule(id="rule_all", model="All Models"),
            make_rule(id="rule_corolla", model="Corolla"),
            make_rule(id="rule_weak", confidence_weight=0.1),
            make_rule(id="rule_honda", make="Honda"),
            make_rule(id="rule_old", year_start=2015, year_end=2019),
            make_rule(id="rule_other_shop", shop_id="shop-2"),
        ]:
            learning_store.save_rule(rule)

        ids = {r.id for r in learning_engine.matching_rules("shop-1", 2022, "TOYOTA", "camry")}
        assert ids == {"rule_camry", "rule_all"}

    def test_strongest_then_newest_first(self, learning_engine, learning_store):
        learning_store.save_rule(make_rule(id="a", confidence_weight=0.9, updated_at="2024-01-01Z"))
        learning_store.save_rule(make_rule(id="b", confidence_weight=0.5, updated_at="2024-06-01Z"))
        learning_store.save_rule(make_rule(id="c", confidence_weight=0.9, updated_at="2024-03-01Z"))

        rules = learning_engine.matching_rules("shop-1", 2022, "Toyota", "Camry")
        assert [r.id for r in rules] == ["c", "a", "b"]

    def test_minimum_weight_configurable(self, learning_store):
        learning_store.save_rule(make_rule(confidence_weight=0.3))
        engine = LearningEngine(learning_store, min_confidence_weight=0.5)
        assert engine.matching_rules("shop-1", 2022, "Toyota", "Camry") == []


class TestApplyRules:
    def test_suppress_empties_results(self, learning_engine, learning_store):
        """A shop-taught suppression removes the rule hit and its grouped row."""
        learning_store.save_rule(make_rule())
        base = [make_result(line_number=6)]

        application = _apply(learning_engine, base)

        assert application.results == []
        assert application.applied_rule_ids == ["rule_000000000001"]
        assert group_calibrations(application.results) == []
        assert len(base[0].calibration_matches) == 1

    def test_suppress_is_idempotent(self, learning_engine, learning_store):
        learning_store.save_rule(make_rule())
        first = _apply(learning_engine, [make_result(line_number=6)])
        second = _apply(learning_engine, first.results)

        assert second.results == []
        assert second.applied_rule_ids == []

    def test_usage_recorded(self, learning_engine, learning_store):
        learning_store.save_rule(make_rule())
        _apply(learning_engine, [make_result(line_number=6)])

        stored = learning_store.list_rules("shop-1")[0]
        assert stored.usage_count == 1
        assert stored.last_applied_at is not None
        assert stored.updated_at == stored.last_applied_at

    def test_add_creates_learned_match(self, learning_engine, learning_store):
        learning_store.save_rule(
            make_rule(
                id="rule_add",
                action=LearningAction.ADD,
                keyword="R&I Windshield",
                system_name="Forward Camera / LDW-LKA",
                calibration_type="Static + Dynamic",
                reason="Camera mounted to glass",
            )
        )

        application = _apply(learning_engine, [])

        assert [r.line_number for r in application.results] == [9]
        assert application.results[0].description == "9 R&I Windshield"
        match = application.results[0].calibration_matches[0]
        assert match.source == MatchSource.LEARNED
        assert match.repair_operation == LEARNED_OPERATION
        assert match.reason == "Camera mounted to glass (learned rule)"
        assert match.calibration_type == "Static + Dynamic"
        assert application.applied_rule_ids == ["rule_add"]

    def test_add_existing_pair_still_counts_as_applied(self, learning_engine, learning_store):
        learning_store.save_rule(
            make_rule(id="rule_add", action=LearningAction.ADD, keyword="windshield",
                      system_name="Forward Camera")
        )
        first = _apply(learning_engine, [])
        second = _apply(learning_engine, first.results)

        assert len(second.results[0].calibration_matches) == 1
        assert second.applied_rule_ids == ["rule_add"]
        assert learning_store.list_rules("shop-1")[0].usage_count == 2

    def test_other_shop_rules_ignored(self, learning_engine, learning_store):
        learning_store.save_rule(make_rule(shop_id="shop-2"))
        base = [make_result(line_number=6)]

        application = _apply(learning_engine, base)

        assert application.results == base
        assert application.applied_rule_ids == []

    def test_keyword_absent_from_estimate(self, learning_engine, learning_store):
        learning_store.save_rule(make_rule(keyword="tailgate"))
        application = _apply(learning_engine, [make_result(line_number=6)])
        assert len(application.results) == 1
        assert application.applied_rule_ids == []


class TestEvents:
    def _append(self, engine, shop_id="shop-1", **kwargs):
        return engine.append_event(
            shop_id, "suppress", "Toyota", "Camry", 2022, 2022,
            "front bumper", "Front Radar / ACC-AEB", **kwargs,
        )

    def test_append_event_is_pending(self, learning_engine, learning_store):
        event = self._append(
            learning_engine, confidence_weight=3, trigger_lines=[6], actor_name="Dana"
        )

        assert event.id.startswith("evt_")
        assert event.review_status == ReviewStatus.PENDING
        assert event.confidence_weight == 1.0
        assert event.trigger_lines == [6]
        assert learning_store.get_event("shop-1", event.id) == event

    def test_approve(self, learning_engine, learning_store):
        event = self._append(learning_engine)
        reviewed = learning_engine.review_event("shop-1", event.id, "approved")

        assert reviewed.review_status == ReviewStatus.APPROVED
        assert reviewed.reviewed_at is not None
        assert learning_store.get_event("shop-1", event.id).review_status == ReviewStatus.APPROVED

    def test_second_review_rejected(self, learning_engine):
        event = self._append(learning_engine)
        learning_engine.review_event("shop-1", event.id, ReviewStatus.REJECTED)

        with pytest.raises(InputError) as exc_info:
            learning_engine.review_event("shop-1", event.id, ReviewStatus.APPROVED)
        assert exc_info.value.code == ScrubErrorCode.INVALID_REVIEW

    def test_pending_is_not_a_review_outcome(self, learning_engine):
        event = self._append(learning_engine)
        with pytest.raises(InputError) as exc_info:
            learning_engine.review_event("shop-1", event.id, ReviewStatus.PENDING)
        assert exc_info.value.code == ScrubErrorCode.INVALID_REVIEW

    def test_unknown_event(self, learning_engine):
        event = self._append(learning_engine)
        assert learning_engine.review_event("shop-1", "evt_missing", "approved") is None
        assert learning_engine.review_event("shop-2", event.id, "approved") is None

    def test_load_events_newest_first(self, learning_engine):
        ids = [self._append(learning_engine).id for _ in range(3)]

        assert [e.id for e in learning_engine.load_events("shop-1")] == list(reversed(ids))
        assert [e.id for e in learning_engine.load_events("shop-1", limit=0)] == [ids[-1]]

    def test_load_events_limit_clamped(self):
        store = MagicMock()
        LearningEngine(store).load_events("shop-1", limit=5000)
        store.list_events.assert_called_once_with("shop-1", 2000)
