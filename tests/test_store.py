"""Tests for the YAML alarm store."""
import yaml

from smartcoaster.alarms.models import AlarmRecord
from smartcoaster.alarms.store import COUNTER_KEY, AlarmStore
from smartcoaster.alarms.types import AlarmKind


def _one_shot(alarm_id=1, name="Tea", fire_at_ms=1_700_000_001_000):
    return AlarmRecord(id=alarm_id, name=name, kind=AlarmKind.ONE_SHOT, fire_at_ms=fire_at_ms)


def _recurring(alarm_id=2, interval_ms=5000):
    return AlarmRecord(
        id=alarm_id,
        name="Stir",
        kind=AlarmKind.RECURRING,
        fire_at_ms=1_700_000_005_000,
        interval_ms=interval_ms,
    )


class TestAlarmStore:
    """Tests for AlarmStore."""

    def test_load_missing_file(self, store):
        assert store.load_all() == []
        assert not store.path.exists()

    def test_put_survives_restart(self, tmp_path):
        path = tmp_path / "alarms.yaml"
        one_shot, recurring = _one_shot(), _recurring()
        store = AlarmStore(path)
        store.put(one_shot)
        store.put(recurring)

        reloaded = AlarmStore(path).load_all()

        assert reloaded == [one_shot, recurring]

    def test_put_replaces_record(self, store):
        record = _recurring()
        store.put(record)
        record.fire_at_ms += 5000
        store.put(record)

        loaded = store.load_all()
        assert len(loaded) == 1
        assert loaded[0].fire_at_ms == 1_700_000_010_000

    def test_remove(self, store):
        store.put(_one_shot(1))
        store.put(_one_shot(2))

        assert store.remove(1) is True
        assert store.remove(1) is False
        assert [r.id for r in store.load_all()] == [2]

    def test_next_id_is_monotonic_and_persisted(self, tmp_path):
        path = tmp_path / "alarms.yaml"
        store = AlarmStore(path)
        assert store.next_id() == 1
        assert store.next_id() == 2

        assert AlarmStore(path).next_id() == 3

    def test_next_id_never_collides_with_stored_record(self, store):
        store.put(_one_shot(7))
        assert store.next_id() == 8

    def test_load_resyncs_counter(self, store):
        store.path.write_text(yaml.safe_dump({COUNTER_KEY: 1, "5": _one_shot(5).to_dict()}))

        store.load_all()

        data = yaml.safe_load(store.path.read_text())
        assert data[COUNTER_KEY] == 5
        assert store.next_id() == 6

    def test_corrupt_counter_is_repaired(self, store, log_messages):
        store.path.write_text(yaml.safe_dump({COUNTER_KEY: "lots", "3": _one_shot(3).to_dict()}))

        store.load_all()

        assert store.next_id() == 4
        assert any("corrupt id counter" in m for m in log_messages)

    def test_malformed_entries_are_skipped(self, store, log_messages):
        good = _one_shot(1)
        store.path.write_text(yaml.safe_dump({
            COUNTER_KEY: 4,
            "1": good.to_dict(),
            "2": {"id": 2, "name": "Broken", "kind": "weekly", "fire_at_ms": 10},
            "3": "not a record",
            "4": {"id": 9, "name": "Wrong key", "kind": "one_shot", "fire_at_ms": 10},
            "theme": "dark",
        }))

        assert store.load_all() == [good]
        assert sum("Skipping alarm entry" in m for m in log_messages) == 4

    def test_unknown_keys_preserved_on_write(self, store):
        store.path.write_text(yaml.safe_dump({"theme": "dark"}))

        store.put(_one_shot(1))

        data = yaml.safe_load(store.path.read_text())
        assert data["theme"] == "dark"
        assert "1" in data

    def test_recurring_without_interval_is_corrupt(self, store):
        bad = _recurring().to_dict()
        bad["interval_ms"] = None
        store.path.write_text(yaml.safe_dump({"2": bad}))

        assert store.load_all() == []

    def test_unreadable_document_is_moved_aside(self, store, log_messages):
        store.path.write_text("{{{ not yaml")

        assert store.load_all() == []
        assert store.path.with_name("alarms.yaml.corrupt").exists()

        store.put(_one_shot(1))
        assert [r.id for r in store.load_all()] == [1]

    def test_unmovable_document_is_logged(self, store, log_messages, monkeypatch):
        store.path.write_text("{{{ not yaml")

        def refuse(self, target):
            raise PermissionError("read-only directory")

        monkeypatch.setattr(type(store.path), "replace", refuse)

        assert store.load_all() == []
        assert any("Failed to move" in m for m in log_messages)

    def test_get(self, store):
        store.put(_one_shot(1))
        store.put(_recurring(2))

        assert store.get(1) == _one_shot(1)
        assert store.get(2) == _recurring(2)
        assert store.get(3) is None

    def test_get_unreadable_entry(self, store, log_messages):
        store.path.write_text(yaml.safe_dump({"1": {"id": 1, "name": "Tea"}}))

        assert store.get(1) is None
        assert any("Skipping alarm entry" in m for m in log_messages)

    def test_clear_keeps_counter(self, store):
        store.put(_one_shot(store.next_id()))
        store.put(_one_shot(store.next_id()))

        assert store.clear() == 2
        assert store.load_all() == []
        assert store.next_id() == 3
