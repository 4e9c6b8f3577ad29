"""Alarm manager: the active-alarm list, its store and its wake-up registrations.

One lock guards the in-memory list and the store together, so a user cancel
and a firing completion for the same alarm cannot interleave. Whichever gets
the lock first wins; the other finds the alarm gone and does nothing.
"""
import threading
from typing import Callable

from loguru import logger

from ..errors import AlreadyActiveError, StaleCompletion
from .events import ValueCell
from .models import AlarmRecord, SetAlarmResult
from .schedule import next_fire_at_ms, now_ms, remaining_ms
from .store import AlarmStore
from .types import AlarmKind, CompletionEvent, RemoveResult
from .wake import WakeScheduler

logger = logger.bind(module="alarms.manager")

DEFAULT_ALARM_NAME = "Alarm"


class AlarmManager:
    """Creates, cancels and tracks alarms.

    Observers receive the full active list (copies, ordered by next firing)
    after every change.
    """

    def __init__(
        self,
        store: AlarmStore,
        scheduler: WakeScheduler,
        clock: Callable[[], int] = now_ms,
        reregister_on_load: bool = True,
    ):
        """Initialize the manager.

        Args:
            store: Durable record store (source of truth across restarts)
            scheduler: Wake-up facility adapter
            clock: Wall-clock source in epoch milliseconds
            reregister_on_load: Re-arm every loaded alarm in ``on_load``
        """
        self.store = store
        self.scheduler = scheduler
        self.clock = clock
        self.reregister_on_load = reregister_on_load

        self._alarms: dict[int, AlarmRecord] = {}
        self._lock = threading.RLock()
        self.active_alarms: ValueCell[list[AlarmRecord]] = ValueCell([])

    # ============== Queries ==============

    def list_alarms(self) -> list[AlarmRecord]:
        with self._lock:
            return self._snapshot()

    def get(self, alarm_id: int) -> AlarmRecord | None:
        with self._lock:
            alarm = self._alarms.get(alarm_id)
            return alarm.copy() if alarm else None

    def active_recurring(self) -> AlarmRecord | None:
        with self._lock:
            for alarm in self._alarms.values():
                if alarm.is_recurring:
                    return alarm.copy()
        return None

    def subscribe(self, callback: Callable[[list[AlarmRecord]], None]) -> Callable[[], None]:
        """Receive the active list now and after every change."""
        return self.active_alarms.subscribe(callback)

    def _snapshot(self) -> list[AlarmRecord]:
        return [a.copy() for a in sorted(self._alarms.values(), key=lambda a: (a.fire_at_ms, a.id))]

    def _publish(self) -> None:
        self.active_alarms.set(self._snapshot())

    # ============== Create ==============

    def set_one_shot(self, name: str | None, at_ms: int) -> AlarmRecord:
        """Create an alarm that fires once at ``at_ms`` (epoch milliseconds)."""
        name = (name or "").strip() or DEFAULT_ALARM_NAME
        with self._lock:
            if at_ms <= self.clock():
                logger.warning(f"One-shot alarm {name!r} is set in the past; it will fire immediately")

            alarm = AlarmRecord(
                id=self.store.next_id(),
                name=name,
                kind=AlarmKind.ONE_SHOT,
                fire_at_ms=at_ms,
            )
            self.store.put(alarm)
            if not self.scheduler.schedule_absolute(alarm.id, at_ms, label=name):
                logger.warning(f"Alarm {alarm.id} is stored but not scheduled")
            self._alarms[alarm.id] = alarm
            self._publish()

        logger.info(f"Created one-shot alarm {alarm.id} ({name!r}) at {at_ms}")
        return alarm.copy()

    def set_recurring(self, name: str | None, interval_ms: int) -> SetAlarmResult:
        """Create the recurring alarm, firing every ``interval_ms``.

        Returns:
            SetAlarmResult with the new alarm, or with AlreadyActiveError if a
            recurring alarm exists (state is left unchanged)
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        name = (name or "").strip() or DEFAULT_ALARM_NAME

        with self._lock:
            for existing in self._alarms.values():
                if existing.is_recurring:
                    logger.info(f"Refusing recurring alarm {name!r}: {existing.id} is active")
                    return SetAlarmResult(error=AlreadyActiveError(existing.copy()))

            alarm = AlarmRecord(
                id=self.store.next_id(),
                name=name,
                kind=AlarmKind.RECURRING,
                fire_at_ms=next_fire_at_ms(interval_ms, self.clock()),
                interval_ms=interval_ms,
            )
            self.store.put(alarm)
            if not self.scheduler.schedule_relative(alarm.id, interval_ms, label=name):
                logger.warning(f"Alarm {alarm.id} is stored but not scheduled")
            self._alarms[alarm.id] = alarm
            self._publish()

        logger.info(f"Created recurring alarm {alarm.id} ({name!r}) every {interval_ms}ms")
        return SetAlarmResult(alarm=alarm.copy())

    # ============== Cancel ==============

    def cancel(self, alarm_id: int) -> RemoveResult:
        """Cancel an alarm. Cancelling an unknown id is a no-op."""
        with self._lock:
            self.scheduler.cancel(alarm_id)
            stored = self.store.remove(alarm_id)
            alarm = self._alarms.pop(alarm_id, None)
            if alarm is None and not stored:
                return RemoveResult(alarm_id, removed=False, reason="not active")
            self._publish()

        logger.info(f"Cancelled alarm {alarm_id}")
        return RemoveResult(alarm_id, removed=True)

    def cancel_all(self) -> int:
        """Cancel every active alarm.

        Returns:
            Number of alarms cancelled
        """
        with self._lock:
            ids = sorted(self._alarms)
            for alarm_id in ids:
                self.scheduler.cancel(alarm_id)
            self.store.clear()
            self._alarms.clear()
            self._publish()

        logger.info(f"Cancelled all alarms ({len(ids)})")
        return len(ids)

    # ============== Lifecycle ==============

    def on_load(self) -> None:
        """Load persisted alarms into the active list.

        Repairs a store holding more than one recurring alarm (the lowest id
        is kept). With ``reregister_on_load`` every loaded alarm is re-armed
        and registrations without a record are cancelled.
        """
        with self._lock:
            records = self.store.load_all()

            recurring = [r for r in records if r.is_recurring]
            for extra in recurring[1:]:
                logger.warning(
                    f"Removing recurring alarm {extra.id}: {recurring[0].id} is already active"
                )
                self.scheduler.cancel(extra.id)
                self.store.remove(extra.id)
                records.remove(extra)

            self._alarms = {r.id: r for r in records}
            if self.reregister_on_load:
                self._repair_registrations()
            self._publish()

        logger.info(f"Loaded {len(records)} active alarms")

    def _repair_registrations(self) -> None:
        for stray in self.scheduler.scheduled_ids() - set(self._alarms):
            logger.warning(f"Cancelling registration for unknown alarm {stray}")
            self.scheduler.cancel(stray)

        now = self.clock()
        for alarm in self._alarms.values():
            if alarm.is_recurring:
                ok = self.scheduler.resume_relative(
                    alarm.id,
                    remaining_ms(alarm.fire_at_ms, now),
                    alarm.interval_ms,
                    label=alarm.name,
                )
            else:
                ok = self.scheduler.schedule_absolute(alarm.id, alarm.fire_at_ms, label=alarm.name)
            if not ok:
                logger.warning(f"Alarm {alarm.id} is loaded but not scheduled")

    def on_fire_completed(
        self,
        event: CompletionEvent | int,
        kind: AlarmKind | None = None,
        interval_ms: int | None = None,
    ) -> None:
        """Apply a completion reported by the wake handler.

        One-shot alarms are removed. Recurring alarms get their next firing
        time; re-arming the wake-up itself is the handler's job. Completions
        for alarms that are no longer active are ignored, and a recurring
        registration left behind for a removed alarm is cancelled.
        """
        if not isinstance(event, CompletionEvent):
            if kind is None:
                raise ValueError("kind is required when passing an alarm id")
            event = CompletionEvent(event, AlarmKind(kind), interval_ms)

        try:
            with self._lock:
                alarm = self._alarms.get(event.alarm_id)
                if alarm is None:
                    if event.kind == AlarmKind.RECURRING and self.store.get(event.alarm_id) is None:
                        # the handler may have re-armed it after a cancel
                        self.scheduler.cancel(event.alarm_id)
                    raise StaleCompletion(event.alarm_id)

                if event.kind == AlarmKind.ONE_SHOT:
                    self.store.remove(alarm.id)
                    del self._alarms[alarm.id]
                    logger.info(f"One-shot alarm {alarm.id} completed")
                else:
                    interval = event.interval_ms or alarm.interval_ms
                    if not interval:
                        logger.error(f"Recurring alarm {alarm.id} completed without an interval")
                        return
                    alarm.fire_at_ms = next_fire_at_ms(interval, self.clock())
                    self.store.put(alarm)
                    logger.info(f"Recurring alarm {alarm.id} next fires at {alarm.fire_at_ms}")
                self._publish()
        except StaleCompletion as e:
            logger.debug(f"Ignoring completion: {e}")
