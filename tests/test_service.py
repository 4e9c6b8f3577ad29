"""Integration tests: real wake scheduler, completion bus and YAML store."""
import threading
from pathlib import Path

import pytest

from smartcoaster.alarms.models import AlarmRecord
from smartcoaster.alarms.schedule import now_ms
from smartcoaster.alarms.service import AlarmService
from smartcoaster.alarms.store import AlarmStore
from smartcoaster.alarms.types import AlarmKind
from smartcoaster.app import build_companion
from smartcoaster.config import Settings

from conftest import RecordingEffects


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", wake_lock_timeout_ms=5000)


def _wait_for(manager, predicate, timeout=5.0):
    changed = threading.Event()
    unsubscribe = manager.subscribe(lambda alarms: predicate(alarms) and changed.set())
    try:
        return changed.wait(timeout)
    finally:
        unsubscribe()


class TestAlarmService:

    def test_one_shot_fires_and_is_removed(self, settings):
        effects = RecordingEffects()
        service = AlarmService(settings, effects=effects)
        service.start()
        try:
            alarm = service.manager.set_one_shot("Tea", now_ms() + 200)

            assert _wait_for(service.manager, lambda alarms: not alarms)
            assert ("start", "Tea") in effects.events
            assert service.store.load_all() == []
            assert not service.scheduler.is_scheduled(alarm.id)
        finally:
            service.stop()

    def test_recurring_fires_and_reschedules(self, settings):
        effects = RecordingEffects()
        service = AlarmService(settings, effects=effects)
        service.start()
        try:
            alarm = service.manager.set_recurring("Stir", 300).alarm
            first_fire_at = alarm.fire_at_ms

            assert _wait_for(
                service.manager,
                lambda alarms: alarms and alarms[0].fire_at_ms > first_fire_at,
            )
            assert service.scheduler.is_scheduled(alarm.id)
            stored = service.store.load_all()
            assert stored[0].kind == AlarmKind.RECURRING
            assert stored[0].fire_at_ms > first_fire_at
        finally:
            service.manager.cancel_all()
            service.stop()

    def test_alarms_survive_restart(self, settings):
        first = AlarmService(settings, effects=RecordingEffects())
        first.start()
        alarm = first.manager.set_one_shot("Tomorrow", now_ms() + 86_400_000)
        first.stop()

        second = AlarmService(settings, effects=RecordingEffects())
        second.start()
        try:
            assert second.manager.list_alarms() == [alarm]
            assert second.scheduler.is_scheduled(alarm.id)
        finally:
            second.stop()

    def test_overdue_one_shot_rings_after_restart(self, tmp_path):
        settings = Settings(
            data_dir=tmp_path / "data",
            wake_lock_timeout_ms=5000,
            exact_alarms_allowed=False,
            best_effort_grace_seconds=1,
        )
        store = AlarmStore(settings.store_path)
        store.put(AlarmRecord(store.next_id(), "Tea", AlarmKind.ONE_SHOT, now_ms() - 120_000))

        effects = RecordingEffects()
        service = AlarmService(settings, effects=effects)
        service.start()
        try:
            assert _wait_for(service.manager, lambda alarms: not alarms)
            assert ("start", "Tea") in effects.events
            assert service.store.load_all() == []
        finally:
            service.stop()

    def test_stop_ringing(self, settings):
        effects = RecordingEffects()
        service = AlarmService(settings, effects=effects)

        service.stop_ringing()

        assert effects.events == [("stop",)]


class TestComposition:

    def test_build_companion(self, settings):
        companion = build_companion(settings, configure_logging=False)

        assert companion.alarms.store.path == Path(settings.data_dir) / "alarms.yaml"
        assert companion.temperature.preferred_temperature == 40.0
        companion.start()
        companion.stop()
        assert not companion.alarms.running
