"""Tests for keyword matching and the repair/ADAS-part vocabulary."""

import logging

import pytest
import yaml

from adas_scrub.estimate.vocabulary import VocabularyConfig, VocabularyMatcher, keyword_matched


class TestKeywordMatched:
    """Word-boundary keyword matching."""

    @pytest.mark.parametrize(
        "line,keyword",
        [
            ("6 O/H Front  Bumper Cover", "front bumper"),
            ("FRONT BUMPER", "front bumper"),
            ("Repl hood panel", "hood"),
            ("R&I w/s glass", "w/s"),
            ("2Rprbumper cover", "bumper"),
        ],
    )
    def test_matches(self, line, keyword):
        assert keyword_matched(line, keyword) is True

    @pytest.mark.parametrize(
        "line,keyword",
        [
            ("Childhood seat", "hood"),
            ("Repl grilles", "grille"),
            ("Front fender", "front bumper"),
            ("Anything", ""),
            ("Anything", "   "),
            ("", "hood"),
        ],
    )
    def test_no_match(self, line, keyword):
        assert keyword_matched(line, keyword) is False

    def test_case_insensitive(self):
        assert keyword_matched("REPL WINDSHIELD", "Windshield") is True


class TestVocabularyConfig:
    def test_default_vocabulary_loads(self):
        config = VocabularyConfig.default()
        assert "frontBumper" in config.repair_keywords
        assert "frontRadar" in config.adas_part_indicators
        assert config.adas_descriptions["frontRadar"] == "Front Radar Sensor (ACC/AEB)"

    def test_from_dict_stringifies_keywords(self):
        config = VocabularyConfig.from_dict(
            {"repair_keywords": {"ram": [1500, "tailgate"]}, "adas_part_indicators": None}
        )
        assert config.repair_keywords == {"ram": ["1500", "tailgate"]}
        assert config.adas_part_indicators == {}

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "vocab.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "repair_keywords": {"hood": ["hood", "bonnet"]},
                    "adas_part_indicators": {"nightVision": ["night vision camera"]},
                    "adas_descriptions": {"nightVision": "Night Vision Camera"},
                }
            ),
            encoding="utf-8",
        )
        config = VocabularyConfig.from_yaml(path)
        assert config.repair_keywords["hood"] == ["hood", "bonnet"]
        assert config.adas_descriptions["nightVision"] == "Night Vision Camera"


class TestVocabularyMatcher:
    @pytest.fixture
    def matcher(self):
        return VocabularyMatcher()

    def test_repair_categories(self, matcher):
        categories = matcher.match_repair_categories("6 O/H Front Bumper Cover")
        assert "frontBumper" in categories
        assert "rearBumper" not in categories

    def test_adas_parts(self, matcher):
        assert "frontRadar" in matcher.detect_adas_parts("3 Repl Front Radar Sensor")
        assert matcher.detect_adas_parts("Rpr Fender") == []

    def test_describe_unknown_system_returns_key(self, matcher):
        assert matcher.describe_adas_system("nightVision") == "nightVision"

    def test_empty_config_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="adas_scrub.estimate.vocabulary"):
            matcher = VocabularyMatcher(VocabularyConfig())
        assert "no repair keywords" in caplog.text
        assert matcher.match_repair_categories("front bumper") == []
