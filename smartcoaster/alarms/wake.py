"""Wake-up facility adapter.

Absolute wake-ups go through APScheduler's date trigger. Relative wake-ups
use a timer per alarm, whose wait runs on the monotonic clock so wall-clock
adjustments (DST, manual changes) neither delay nor repeat them.

Every registration carries its WakeIntent; the callback hands that intent to
``deliver`` and nothing else.
"""
import threading
from datetime import datetime, timezone
from typing import Callable

from apscheduler.events import EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from loguru import logger

from ..errors import SchedulingDenied
from .models import WakeIntent
from .schedule import now_ms

logger = logger.bind(module="alarms.wake")

DeliverCallback = Callable[[WakeIntent], None]


def _job_id(alarm_id: int) -> str:
    return f"alarm-{alarm_id}"


class WakeLock:
    """Scoped wake-assertion.

    Held while a wake-up is being handled. The safety timer releases it after
    ``timeout_ms`` even if the holder never returns. ``on_acquire`` and
    ``on_release`` let a host bind a platform sleep inhibitor.
    """

    def __init__(
        self,
        tag: str,
        timeout_ms: int = 60000,
        on_acquire: Callable[[str], None] | None = None,
        on_release: Callable[[str], None] | None = None,
    ):
        self.tag = tag
        self.timeout_ms = timeout_ms
        self.on_acquire = on_acquire
        self.on_release = on_release
        self._held = False
        self._lock = threading.Lock()
        self._safety: threading.Timer | None = None

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        with self._lock:
            if self._held:
                return
            self._held = True
            self._safety = threading.Timer(self.timeout_ms / 1000, self._expire)
            self._safety.daemon = True
            self._safety.start()
        if self.on_acquire:
            self.on_acquire(self.tag)
        logger.debug(f"Wake lock {self.tag} acquired ({self.timeout_ms}ms)")

    def release(self) -> None:
        with self._lock:
            if not self._held:
                return
            self._held = False
            if self._safety:
                self._safety.cancel()
                self._safety = None
        if self.on_release:
            self.on_release(self.tag)
        logger.debug(f"Wake lock {self.tag} released")

    def _expire(self) -> None:
        logger.warning(f"Wake lock {self.tag} timed out after {self.timeout_ms}ms")
        self.release()

    def __enter__(self) -> "WakeLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class WakeScheduler:
    """Registers wake-ups and delivers their intents when they are due.

    Scheduling failures are logged and reported as ``False``; they never
    propagate to the caller.
    """

    def __init__(
        self,
        deliver: DeliverCallback | None = None,
        exact_allowed: bool | Callable[[], bool] = True,
        best_effort_grace_seconds: int = 60,
        scheduler: BaseScheduler | None = None,
    ):
        """Initialize the adapter.

        Args:
            deliver: Called with the intent of every wake-up that fires
            exact_allowed: Whether exact wake-ups are permitted (flag or check)
            best_effort_grace_seconds: Misfire grace used when exact is denied
            scheduler: APScheduler instance; a BackgroundScheduler by default
        """
        self.deliver = deliver
        self.exact_allowed = exact_allowed
        self.best_effort_grace_seconds = best_effort_grace_seconds
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self._timers: dict[int, threading.Timer] = {}
        self._payloads: dict[int, dict] = {}
        self._lock = threading.Lock()
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

    # ============== Lifecycle ==============

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Wake scheduler started")

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Wake scheduler stopped")

    # ============== Registration ==============

    def _can_schedule_exact(self) -> bool:
        if callable(self.exact_allowed):
            return bool(self.exact_allowed())
        return bool(self.exact_allowed)

    def schedule_absolute(self, alarm_id: int, at_ms: int, label: str = "") -> bool:
        """Register a wake-up at a wall-clock instant.

        Args:
            alarm_id: Alarm id; replaces any earlier registration for it
            at_ms: Epoch milliseconds
            label: Shown by the side effects when it fires

        Returns:
            True if the wake-up was registered
        """
        intent = WakeIntent.one_shot(alarm_id, label=label)
        payload = intent.model_dump(mode="json")
        run_date = datetime.fromtimestamp(at_ms / 1000, tz=timezone.utc)
        try:
            try:
                if not self._can_schedule_exact():
                    raise SchedulingDenied(alarm_id)
                misfire_grace_time = None  # a late wake-up still fires
            except SchedulingDenied as e:
                logger.warning(f"{e}; falling back to best-effort delivery")
                misfire_grace_time = self.best_effort_grace_seconds
            if at_ms <= now_ms():
                # already overdue; any grace window would discard it outright
                logger.info(f"Alarm {alarm_id} is overdue; delivering it now")
                misfire_grace_time = None

            self._cancel_timer(alarm_id)
            with self._lock:
                self._payloads[alarm_id] = payload
            self._scheduler.add_job(
                self._fire,
                trigger=DateTrigger(run_date=run_date),
                args=[payload],
                id=_job_id(alarm_id),
                name=label or _job_id(alarm_id),
                replace_existing=True,
                coalesce=True,
                misfire_grace_time=misfire_grace_time,
            )
        except Exception as e:
            with self._lock:
                self._payloads.pop(alarm_id, None)
            logger.error(f"Failed to schedule alarm {alarm_id} at {run_date.isoformat()}: {e}")
            return False

        logger.info(f"Alarm {alarm_id} scheduled at {run_date.isoformat()}")
        return True

    def schedule_relative(self, alarm_id: int, after_ms: int, label: str = "") -> bool:
        """Register a wake-up ``after_ms`` from now on the monotonic clock.

        The interval travels with the intent so the handler can re-arm the
        next occurrence.

        Returns:
            True if the wake-up was registered
        """
        intent = WakeIntent.recurring(alarm_id, interval_ms=after_ms, label=label)
        return self._start_timer(alarm_id, after_ms, intent)

    def resume_relative(self, alarm_id: int, delay_ms: int, interval_ms: int, label: str = "") -> bool:
        """Re-arm a recurring alarm whose next firing is ``delay_ms`` away."""
        intent = WakeIntent.recurring(alarm_id, interval_ms=interval_ms, label=label)
        return self._start_timer(alarm_id, delay_ms, intent)

    def _start_timer(self, alarm_id: int, delay_ms: int, intent: WakeIntent) -> bool:
        try:
            self._remove_job(alarm_id)
            timer = threading.Timer(
                max(0, delay_ms) / 1000,
                self._fire,
                args=[intent.model_dump(mode="json")],
            )
            timer.daemon = True
            timer.name = f"wake-{_job_id(alarm_id)}"
            with self._lock:
                previous = self._timers.pop(alarm_id, None)
                self._timers[alarm_id] = timer
            if previous:
                previous.cancel()
            timer.start()
        except Exception as e:
            logger.error(f"Failed to schedule alarm {alarm_id} in {delay_ms}ms: {e}")
            return False

        logger.info(f"Alarm {alarm_id} scheduled in {delay_ms}ms")
        return True

    def cancel(self, alarm_id: int) -> None:
        """Cancel a registration; unknown ids are ignored."""
        removed = self._remove_job(alarm_id)
        removed = self._cancel_timer(alarm_id) or removed
        if removed:
            logger.info(f"Alarm {alarm_id} cancelled")
        else:
            logger.debug(f"No registration to cancel for alarm {alarm_id}")

    def _remove_job(self, alarm_id: int) -> bool:
        with self._lock:
            self._payloads.pop(alarm_id, None)
        try:
            self._scheduler.remove_job(_job_id(alarm_id))
            return True
        except JobLookupError:
            return False

    def _cancel_timer(self, alarm_id: int) -> bool:
        with self._lock:
            timer = self._timers.pop(alarm_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def is_scheduled(self, alarm_id: int) -> bool:
        return alarm_id in self.scheduled_ids()

    def scheduled_ids(self) -> set[int]:
        """Ids with a live registration."""
        with self._lock:
            ids = set(self._timers)
        for job in self._scheduler.get_jobs():
            if job.id.startswith("alarm-"):
                ids.add(int(job.id[len("alarm-"):]))
        return ids

    # ============== Delivery ==============

    def _fire(self, payload: dict) -> None:
        intent = WakeIntent.model_validate(payload)
        with self._lock:
            timer = self._timers.get(intent.alarm_id)
            if timer is threading.current_thread():
                del self._timers[intent.alarm_id]
            if self._payloads.get(intent.alarm_id) is payload:
                del self._payloads[intent.alarm_id]

        if self.deliver is None:
            logger.warning(f"Wake-up for alarm {intent.alarm_id} dropped: no handler attached")
            return
        try:
            self.deliver(intent)
        except Exception:
            logger.exception(f"Wake-up delivery failed for alarm {intent.alarm_id}")

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        """Deliver a best-effort wake-up that ran past its grace window."""
        if not event.job_id.startswith("alarm-"):
            return
        alarm_id = int(event.job_id[len("alarm-"):])
        with self._lock:
            payload = self._payloads.pop(alarm_id, None)
        if payload is None:
            logger.warning(f"Wake-up for alarm {alarm_id} was missed and cannot be recovered")
            return
        logger.warning(
            f"Wake-up for alarm {alarm_id} missed its window at "
            f"{event.scheduled_run_time.isoformat()}; delivering it late"
        )
        self._fire(payload)
