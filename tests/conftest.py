"""Shared fixtures: in-memory fakes for the wake-up facility, effects and clock."""
import os
import sys

import pytest
from loguru import logger

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from smartcoaster.alarms.events import CompletionBus
from smartcoaster.alarms.manager import AlarmManager
from smartcoaster.alarms.store import AlarmStore

T0 = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start_ms: int = T0):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingWakeScheduler:
    """Stands in for WakeScheduler; records every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple] = []
        self.registrations: dict[int, tuple] = {}
        self.deliver = None

    def schedule_absolute(self, alarm_id, at_ms, label=""):
        self.calls.append(("absolute", alarm_id, at_ms))
        if self.fail:
            return False
        self.registrations[alarm_id] = ("absolute", at_ms)
        return True

    def schedule_relative(self, alarm_id, after_ms, label=""):
        self.calls.append(("relative", alarm_id, after_ms))
        if self.fail:
            return False
        self.registrations[alarm_id] = ("relative", after_ms)
        return True

    def resume_relative(self, alarm_id, delay_ms, interval_ms, label=""):
        self.calls.append(("resume", alarm_id, delay_ms, interval_ms))
        if self.fail:
            return False
        self.registrations[alarm_id] = ("relative", delay_ms)
        return True

    def cancel(self, alarm_id):
        self.calls.append(("cancel", alarm_id))
        self.registrations.pop(alarm_id, None)

    def scheduled_ids(self):
        return set(self.registrations)

    def is_scheduled(self, alarm_id):
        return alarm_id in self.registrations

    def cancels(self) -> list[int]:
        return [c[1] for c in self.calls if c[0] == "cancel"]


class RecordingEffects:
    def __init__(self, fail_start: bool = False):
        self.fail_start = fail_start
        self.events: list[tuple] = []

    def start(self, label):
        self.events.append(("start", label))
        if self.fail_start:
            raise RuntimeError("speaker unavailable")

    def stop(self):
        self.events.append(("stop",))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return AlarmStore(tmp_path / "alarms.yaml")


@pytest.fixture
def wake():
    return RecordingWakeScheduler()


@pytest.fixture
def effects():
    return RecordingEffects()


@pytest.fixture
def bus():
    return CompletionBus(max_attempts=3)


@pytest.fixture
def manager(store, wake, clock):
    return AlarmManager(store, wake, clock=clock)


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
