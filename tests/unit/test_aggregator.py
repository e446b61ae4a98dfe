"""Tests for grouping line matches into recommended calibrations."""

from adas_scrub.calibration.aggregator import group_calibrations
from adas_scrub.calibration.canonical import (
    FRONT_RADAR_OPERATION,
    REQUIRED_PROCEDURE,
    STATIC_DYNAMIC,
    STEERING_ANGLE_OPERATION,
)
from adas_scrub.schemas.calibration import MatchSource, ScrubResult
from scrub_test_helpers import make_match, make_result


def _inferred_radar(line_number=9, **overrides):
    match = make_match(
        calibration_type="Static or Dynamic",
        matched_keyword="Bumper R&I",
        repair_operation="inferred radar trigger",
        source=MatchSource.INFERRED,
        reason="Front fascia/radar-zone repair commonly requires front-radar calibration.",
        **overrides,
    )
    return ScrubResult(line_number=line_number, description="Bumper Cover - R&I", calibration_matches=[match])


class TestGroupCalibrations:
    def test_rule_and_inferred_radar_share_one_row(self):
        """A rule hit on line 6 and a legacy inferred label on line 9 group together."""
        grouped = group_calibrations([make_result(line_number=6), _inferred_radar(9)])

        assert len(grouped) == 1
        row = grouped[0]
        assert row.system_name == "Front Radar / ACC-AEB"
        assert row.repair_operation == FRONT_RADAR_OPERATION
        assert row.trigger_lines == [6, 9]
        assert row.calibration_type == STATIC_DYNAMIC
        assert row.reason == 'Repair operation "Front Bumper R&R" triggers calibration'
        assert row.sources == [MatchSource.RULE, MatchSource.INFERRED]
        assert row.matched_keywords == ["front bumper", "Bumper R&I"]
        assert row.trigger_descriptions == ["Front Bumper Cover - Overhaul", "Bumper Cover - R&I"]

    def test_trigger_lines_sorted(self):
        grouped = group_calibrations([_inferred_radar(9), make_result(line_number=6)])
        assert grouped[0].trigger_lines == [6, 9]

    def test_system_spelling_variants_unified(self):
        results = [
            make_result(line_number=6),
            make_result(
                line_number=7,
                matches=[make_match(system_name="front radar / acc-aeb", matched_keyword="grille")],
            ),
        ]
        grouped = group_calibrations(results)
        assert len(grouped) == 1
        assert grouped[0].matched_keywords == ["front bumper", "grille"]

    def test_keywords_and_descriptions_deduplicated(self):
        results = [
            make_result(line_number=6),
            make_result(
                line_number=7,
                description="front bumper cover overhaul",
                matches=[make_match(matched_keyword="Front Bumper")],
            ),
        ]
        row = group_calibrations(results)[0]
        assert row.matched_keywords == ["front bumper"]
        assert row.trigger_descriptions == ["Front Bumper Cover - Overhaul"]
        assert row.trigger_lines == [6, 7]

    def test_higher_priority_procedure_kept(self):
        results = [
            make_result(line_number=6, matches=[make_match(procedure_type="Inspect only")]),
            make_result(
                line_number=7,
                matches=[make_match(matched_keyword="grille", procedure_type="Must perform")],
            ),
            make_result(line_number=8, matches=[make_match(matched_keyword="bumper")]),
        ]
        assert group_calibrations(results)[0].procedure_type == REQUIRED_PROCEDURE

    def test_no_procedure(self):
        assert group_calibrations([make_result()])[0].procedure_type is None

    def test_sorted_by_first_line_then_label(self):
        steering = make_match(
            system_name="Steering Angle Sensor",
            calibration_type="Initialization",
            matched_keyword="Alignment",
            repair_operation="SAS relearn",
        )
        blind_spot = make_match(
            system_name="Blind Spot Monitor",
            matched_keyword="Rear Bumper",
            repair_operation="Blind spot radar aim",
        )
        results = [
            make_result(line_number=6),
            make_result(line_number=3, description="Alignment", matches=[steering]),
            make_result(line_number=3, description="Rear Bumper", matches=[blind_spot]),
        ]
        grouped = group_calibrations(results)

        assert [g.system_name for g in grouped] == [
            "Blind Spot / Rear Cross Traffic",
            "Steering Angle Sensor",
            "Front Radar / ACC-AEB",
        ]
        assert grouped[1].repair_operation == STEERING_ANGLE_OPERATION

    def test_one_row_per_operation(self):
        results = [
            make_result(line_number=6),
            _inferred_radar(9),
            make_result(
                line_number=9,
                matches=[make_match(system_name="Forward Camera", matched_keyword="windshield")],
            ),
        ]
        grouped = group_calibrations(results)
        operations = [g.repair_operation for g in grouped]
        assert len(operations) == len(set(operations)) == 2

    def test_empty(self):
        assert group_calibrations([]) == []
