"""Tests for the in-memory and file-backed learning stores."""

import json

import pytest

from adas_scrub.errors import PersistenceError, ScrubErrorCode
from adas_scrub.learning.store import (
    FileLearningStore,
    InMemoryLearningStore,
    LearningStore,
    normalize_learning_text,
    rule_key,
)
from adas_scrub.schemas.learning import LearningAction, LearningEvent
from scrub_test_helpers import make_rule


def _event(event_id="evt_000000000001", shop_id="shop-1", created_at="2024-01-01T00:00:00Z"):
    return LearningEvent(
        id=event_id,
        shop_id=shop_id,
        created_at=created_at,
        action=LearningAction.SUPPRESS,
        make="Toyota",
        model="Camry",
        year_start=2022,
        year_end=2022,
        keyword="front bumper",
        system_name="Front Radar / ACC-AEB",
    )


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    """Both reference stores behave the same through the protocol."""
    if request.param == "memory":
        return InMemoryLearningStore()
    return FileLearningStore(tmp_path / "learning")


class TestNormalization:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("  Front-Bumper ", "front bumper"),
            ("R&I  Windshield", "r i windshield"),
            (None, ""),
        ],
    )
    def test_normalize_learning_text(self, value, expected):
        assert normalize_learning_text(value) == expected

    def test_rule_key_normalizes_identity(self):
        a = rule_key(make_rule(make="TOYOTA", keyword="Front-Bumper"))
        b = rule_key(make_rule(id="rule_other", keyword="front bumper"))
        assert a == b


class TestStoreContract:
    def test_implements_protocol(self, store):
        assert isinstance(store, LearningStore)

    def test_save_and_list_rules(self, store):
        store.save_rule(make_rule())
        store.save_rule(make_rule(id="rule_000000000002", keyword="grille"))
        store.save_rule(make_rule(reason="updated"))

        rules = store.list_rules("shop-1")
        assert [r.id for r in rules] == ["rule_000000000001", "rule_000000000002"]
        assert rules[0].reason == "updated"
        assert store.list_rules("shop-2") == []

    def test_find_rule(self, store):
        rule = make_rule()
        store.save_rule(rule)
        assert store.find_rule("shop-1", rule_key(rule)).id == rule.id
        assert store.find_rule("shop-1", rule_key(make_rule(keyword="hood"))) is None

    def test_record_rule_usage(self, store):
        store.save_rule(make_rule())
        store.save_rule(make_rule(id="rule_000000000002", keyword="grille"))
        store.record_rule_usage("shop-1", ["rule_000000000001"], "2024-02-01T00:00:00Z")

        rules = {r.id: r for r in store.list_rules("shop-1")}
        assert rules["rule_000000000001"].usage_count == 1
        assert rules["rule_000000000001"].last_applied_at == "2024-02-01T00:00:00Z"
        assert rules["rule_000000000002"].usage_count == 0

    def test_events_newest_first(self, store):
        store.append_event(_event("evt_a", created_at="2024-01-01T00:00:00Z"))
        store.append_event(_event("evt_b", created_at="2024-03-01T00:00:00Z"))
        store.append_event(_event("evt_c", created_at="2024-02-01T00:00:00Z"))

        assert [e.id for e in store.list_events("shop-1", 10)] == ["evt_b", "evt_c", "evt_a"]
        assert [e.id for e in store.list_events("shop-1", 1)] == ["evt_b"]

    def test_save_event_replaces(self, store):
        store.append_event(_event())
        store.save_event(_event().model_copy(update={"reason": "reviewed"}))
        assert store.get_event("shop-1", "evt_000000000001").reason == "reviewed"

    def test_save_missing_event_fails(self, store):
        with pytest.raises(PersistenceError) as exc_info:
            store.save_event(_event("evt_missing"))
        assert exc_info.value.code == ScrubErrorCode.STORE_WRITE_FAILED

    def test_get_event_scoped_by_shop(self, store):
        store.append_event(_event())
        assert store.get_event("shop-2", "evt_000000000001") is None


class TestInMemoryLearningStore:
    def test_returns_copies(self):
        store = InMemoryLearningStore()
        store.save_rule(make_rule())

        listed = store.list_rules("shop-1")[0]
        listed.usage_count = 99
        assert store.list_rules("shop-1")[0].usage_count == 0


class TestFileLearningStore:
    def test_persists_across_instances(self, tmp_path):
        FileLearningStore(tmp_path).save_rule(make_rule())
        FileLearningStore(tmp_path).append_event(_event())

        reopened = FileLearningStore(tmp_path)
        assert [r.id for r in reopened.list_rules("shop-1")] == ["rule_000000000001"]
        assert reopened.get_event("shop-1", "evt_000000000001") is not None

    def test_file_layout(self, tmp_path):
        store = FileLearningStore(tmp_path)
        store.save_rule(make_rule())
        store.append_event(_event())

        payload = json.loads((tmp_path / "shop-1" / "rules.json").read_text(encoding="utf-8"))
        assert payload["shop_id"] == "shop-1"
        assert payload["rules"][0]["action"] == "suppress"
        lines = (tmp_path / "shop-1" / "events.jsonl").read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[0])["id"] == "evt_000000000001"
        assert list(tmp_path.rglob("*.tmp")) == []

    def test_missing_directory_reads_empty(self, tmp_path):
        store = FileLearningStore(tmp_path / "nowhere")
        assert store.list_rules("shop-1") == []
        assert store.list_events("shop-1", 10) == []

    def test_shop_id_sanitized(self, tmp_path):
        store = FileLearningStore(tmp_path)
        store.save_rule(make_rule(shop_id="../acme/east"))
        assert (tmp_path / ".._acme_east" / "rules.json").exists()
        assert [r.shop_id for r in store.list_rules("../acme/east")] == ["../acme/east"]

    def test_corrupt_rules_file(self, tmp_path):
        (tmp_path / "shop-1").mkdir()
        (tmp_path / "shop-1" / "rules.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError) as exc_info:
            FileLearningStore(tmp_path).list_rules("shop-1")
        assert exc_info.value.code == ScrubErrorCode.STORE_READ_FAILED

    def test_corrupt_events_file(self, tmp_path):
        (tmp_path / "shop-1").mkdir()
        (tmp_path / "shop-1" / "events.jsonl").write_text('{"id": "evt_x"}\n', encoding="utf-8")

        with pytest.raises(PersistenceError) as exc_info:
            FileLearningStore(tmp_path).list_events("shop-1", 10)
        assert exc_info.value.code == ScrubErrorCode.STORE_READ_FAILED
