"""Learning rule/event storage.

``LearningStore`` is the repository the engine talks to. Every call is
scoped by ``shop_id``; shops never see each other's rules. Two reference
implementations are provided:

- InMemoryLearningStore: dict-backed, for tests and single-process use.
- FileLearningStore: one directory per shop holding ``rules.json`` (the
  full rule set, rewritten atomically) and ``events.jsonl`` (one event per
  line).

Writes for one shop are serialized by a per-shop lock which the engine also
holds around read-check-write sequences such as upsert.
"""

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import (
    Any,
    ContextManager,
    Dict,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Protocol,
    runtime_checkable,
)

from pydantic import ValidationError

from adas_scrub.errors import PersistenceError, ScrubErrorCode
from adas_scrub.schemas.learning import LearningAction, LearningEvent, LearningRule

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")


def normalize_learning_text(value: Optional[str]) -> str:
    """Lowercase, non-alphanumerics to spaces, whitespace collapsed."""
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub(" ", (value or "").lower())).strip()


class RuleKey(NamedTuple):
    """Identity of a learning rule within a shop."""

    shop_id: str
    action: LearningAction
    make: str
    model: str
    year_start: int
    year_end: int
    keyword: str
    system: str


def rule_key(rule: LearningRule) -> RuleKey:
    return RuleKey(
        shop_id=rule.shop_id,
        action=LearningAction(rule.action),
        make=normalize_learning_text(rule.make),
        model=normalize_learning_text(rule.model),
        year_start=rule.year_start,
        year_end=rule.year_end,
        keyword=normalize_learning_text(rule.keyword),
        system=normalize_learning_text(rule.system_name),
    )


@runtime_checkable
class LearningStore(Protocol):
    """Shop-scoped persistence for learning rules and events."""

    def shop_lock(self, shop_id: str) -> ContextManager[Any]:
        """Lock serializing writes for ``shop_id``."""
        ...

    def list_rules(self, shop_id: str) -> List[LearningRule]:
        """Snapshot copies of every rule of the shop."""
        ...

    def find_rule(self, shop_id: str, key: RuleKey) -> Optional[LearningRule]:
        ...

    def save_rule(self, rule: LearningRule) -> None:
        """Insert or replace a rule by id."""
        ...

    def record_rule_usage(self, shop_id: str, rule_ids: Iterable[str], applied_at: str) -> None:
        """Increment usage_count and stamp last_applied_at for all ids in one write."""
        ...

    def append_event(self, event: LearningEvent) -> None:
        ...

    def get_event(self, shop_id: str, event_id: str) -> Optional[LearningEvent]:
        ...

    def save_event(self, event: LearningEvent) -> None:
        """Replace an existing event by id."""
        ...

    def list_events(self, shop_id: str, limit: int) -> List[LearningEvent]:
        """Newest first."""
        ...


class _ShopLocks:
    """Per-shop lock map."""

    def __init__(self):
        self._locks: Dict[str, Any] = {}
        self._locks_guard = threading.Lock()

    def shop_lock(self, shop_id: str) -> ContextManager[Any]:
        with self._locks_guard:
            lock = self._locks.get(shop_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[shop_id] = lock
            return lock


def _apply_usage(rules: List[LearningRule], rule_ids: Iterable[str], applied_at: str) -> int:
    wanted = set(rule_ids)
    touched = 0
    for i, rule in enumerate(rules):
        if rule.id in wanted:
            rules[i] = rule.model_copy(
                update={
                    "usage_count": rule.usage_count + 1,
                    "last_applied_at": applied_at,
                    "updated_at": applied_at,
                }
            )
            touched += 1
    return touched


def _newest_first(events: List[LearningEvent], limit: int) -> List[LearningEvent]:
    ordered = sorted(
        enumerate(events), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True
    )
    return [event for _, event in ordered[:limit]]


class InMemoryLearningStore(_ShopLocks):
    """Dict-backed store."""

    def __init__(self):
        super().__init__()
        self._rules: Dict[str, List[LearningRule]] = {}
        self._events: Dict[str, List[LearningEvent]] = {}

    def list_rules(self, shop_id: str) -> List[LearningRule]:
        return [r.model_copy() for r in self._rules.get(shop_id, [])]

    def find_rule(self, shop_id: str, key: RuleKey) -> Optional[LearningRule]:
        for rule in self._rules.get(shop_id, []):
            if rule_key(rule) == key:
                return rule.model_copy()
        return None

    def save_rule(self, rule: LearningRule) -> None:
        with self.shop_lock(rule.shop_id):
            rules = self._rules.setdefault(rule.shop_id, [])
            for i, existing in enumerate(rules):
                if existing.id == rule.id:
                    rules[i] = rule.model_copy()
                    return
            rules.append(rule.model_copy())

    def record_rule_usage(self, shop_id: str, rule_ids: Iterable[str], applied_at: str) -> None:
        with self.shop_lock(shop_id):
            _apply_usage(self._rules.get(shop_id, []), rule_ids, applied_at)

    def append_event(self, event: LearningEvent) -> None:
        with self.shop_lock(event.shop_id):
            self._events.setdefault(event.shop_id, []).append(event.model_copy(deep=True))

    def get_event(self, shop_id: str, event_id: str) -> Optional[LearningEvent]:
        for event in self._events.get(shop_id, []):
            if event.id == event_id:
                return event.model_copy(deep=True)
        return None

    def save_event(self, event: LearningEvent) -> None:
        with self.shop_lock(event.shop_id):
            events = self._events.get(event.shop_id, [])
            for i, existing in enumerate(events):
                if existing.id == event.id:
                    events[i] = event.model_copy(deep=True)
                    return
        raise PersistenceError(
            f"Event {event.id} not found for shop {event.shop_id}",
            code=ScrubErrorCode.STORE_WRITE_FAILED,
        )

    def list_events(self, shop_id: str, limit: int) -> List[LearningEvent]:
        events = _newest_first(self._events.get(shop_id, []), limit)
        return [e.model_copy(deep=True) for e in events]


_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class FileLearningStore(_ShopLocks):
    """JSON/JSONL files under ``<root>/<shop_id>/``.

    A missing shop directory or file reads as empty. A file that exists but
    cannot be read or parsed raises PersistenceError.
    """

    RULES_FILE = "rules.json"
    EVENTS_FILE = "events.jsonl"

    def __init__(self, root_dir: Path):
        super().__init__()
        self.root_dir = Path(root_dir)

    def _shop_dir(self, shop_id: str) -> Path:
        safe = _UNSAFE_PATH_CHARS.sub("_", shop_id) or "_"
        return self.root_dir / safe

    # -------------------------------------------------------------------------
    # Low-level file access
    # -------------------------------------------------------------------------

    @staticmethod
    def _atomic_write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = path.with_name(path.name + ".tmp")
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            tmp_file.replace(path)
        except OSError as e:
            if tmp_file.exists():
                tmp_file.unlink()
            raise PersistenceError(
                f"Failed to write {path}: {e}", code=ScrubErrorCode.STORE_WRITE_FAILED
            ) from e

    def _read_rules(self, shop_id: str) -> List[LearningRule]:
        path = self._shop_dir(shop_id) / self.RULES_FILE
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [LearningRule.model_validate(item) for item in data.get("rules", [])]
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
            raise PersistenceError(
                f"Failed to read learning rules from {path}: {e}",
                code=ScrubErrorCode.STORE_READ_FAILED,
            ) from e

    def _write_rules(self, shop_id: str, rules: List[LearningRule]) -> None:
        path = self._shop_dir(shop_id) / self.RULES_FILE
        payload = {"shop_id": shop_id, "rules": [r.model_dump(mode="json") for r in rules]}
        self._atomic_write(path, json.dumps(payload, indent=2, ensure_ascii=False))

    def _read_events(self, shop_id: str) -> List[LearningEvent]:
        path = self._shop_dir(shop_id) / self.EVENTS_FILE
        if not path.exists():
            return []
        events: List[LearningEvent] = []
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        events.append(LearningEvent.model_validate(json.loads(line)))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise PersistenceError(
                f"Failed to read learning events from {path}: {e}",
                code=ScrubErrorCode.STORE_READ_FAILED,
            ) from e
        return events

    def _write_events(self, shop_id: str, events: List[LearningEvent]) -> None:
        path = self._shop_dir(shop_id) / self.EVENTS_FILE
        content = "".join(
            json.dumps(e.model_dump(mode="json"), ensure_ascii=False) + "\n" for e in events
        )
        self._atomic_write(path, content)

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def list_rules(self, shop_id: str) -> List[LearningRule]:
        return self._read_rules(shop_id)

    def find_rule(self, shop_id: str, key: RuleKey) -> Optional[LearningRule]:
        for rule in self._read_rules(shop_id):
            if rule_key(rule) == key:
                return rule
        return None

    def save_rule(self, rule: LearningRule) -> None:
        with self.shop_lock(rule.shop_id):
            rules = self._read_rules(rule.shop_id)
            for i, existing in enumerate(rules):
                if existing.id == rule.id:
                    rules[i] = rule
                    break
            else:
                rules.append(rule)
            self._write_rules(rule.shop_id, rules)
            logger.debug(f"Saved learning rule {rule.id} for shop {rule.shop_id}")

    def record_rule_usage(self, shop_id: str, rule_ids: Iterable[str], applied_at: str) -> None:
        with self.shop_lock(shop_id):
            rules = self._read_rules(shop_id)
            if _apply_usage(rules, rule_ids, applied_at):
                self._write_rules(shop_id, rules)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def append_event(self, event: LearningEvent) -> None:
        with self.shop_lock(event.shop_id):
            events = self._read_events(event.shop_id)
            events.append(event)
            self._write_events(event.shop_id, events)
            logger.debug(f"Appended learning event {event.id} for shop {event.shop_id}")

    def get_event(self, shop_id: str, event_id: str) -> Optional[LearningEvent]:
        for event in self._read_events(shop_id):
            if event.id == event_id:
                return event
        return None

    def save_event(self, event: LearningEvent) -> None:
        with self.shop_lock(event.shop_id):
            events = self._read_events(event.shop_id)
            for i, existing in enumerate(events):
                if existing.id == event.id:
                    events[i] = event
                    break
            else:
                raise PersistenceError(
                    f"Event {event.id} not found for shop {event.shop_id}",
                    code=ScrubErrorCode.STORE_WRITE_FAILED,
                )
            self._write_events(event.shop_id, events)

    def list_events(self, shop_id: str, limit: int) -> List[LearningEvent]:
        return _newest_first(self._read_events(shop_id), limit)
