"""Wake-up handler: the entry point the wake-up facility calls when an alarm is due.

The handler keeps no state between calls. Everything it needs arrives in the
WakeIntent or is read from the alarm store, so a wake-up delivered to a freshly restarted process is handled
exactly like one delivered to a long-running process:

1. hold a wake lock for the duration of the call
2. STOP intents silence the side effects and return
3. FIRE intents for an alarm that is no longer stored are dropped
4. other FIRE intents start the side effects, then
   - one-shot: cancel the registration and report completion
   - recurring: arm the next occurrence and report completion
"""
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError

from .effects import AlarmEffects
from .events import CompletionBus
from .models import WakeIntent
from .store import AlarmStore
from .types import AlarmKind, CompletionEvent, WakeAction
from .wake import WakeLock, WakeScheduler

logger = logger.bind(module="alarms.handler")

WAKE_LOCK_TAG = "SmartCoaster:AlarmWakelock"
WAKE_LOCK_TIMEOUT_MS = 60000


class WakeHandler:
    """Handles wake-up intents delivered by the WakeScheduler."""

    def __init__(
        self,
        scheduler: WakeScheduler,
        effects: AlarmEffects,
        completions: CompletionBus,
        wake_lock_factory: Callable[[], WakeLock] | None = None,
        store: AlarmStore | None = None,
    ):
        """Initialize the handler.

        Args:
            scheduler: Used to clear one-shots and re-arm recurring alarms
            effects: Sound/vibration/notification collaborator
            completions: Receives a CompletionEvent after every firing
            wake_lock_factory: Builds the wake lock held during a call
            store: Persisted alarms; wake-ups for ids it no longer holds are dropped
        """
        self.scheduler = scheduler
        self.effects = effects
        self.completions = completions
        self.store = store
        self.wake_lock_factory = wake_lock_factory or (
            lambda: WakeLock(WAKE_LOCK_TAG, WAKE_LOCK_TIMEOUT_MS)
        )

    def on_receive(self, intent: WakeIntent | dict[str, Any]) -> None:
        """Handle one wake-up. Never raises."""
        wake_lock = self.wake_lock_factory()
        wake_lock.acquire()
        try:
            if not isinstance(intent, WakeIntent):
                intent = WakeIntent.model_validate(intent)

            if intent.action == WakeAction.STOP:
                self._handle_stop()
            else:
                self._handle_fire(intent)
        except ValidationError as e:
            logger.error(f"Dropping malformed wake-up payload: {e}")
        except Exception:
            logger.exception("Wake-up handling failed")
        finally:
            wake_lock.release()

    def _handle_fire(self, intent: WakeIntent) -> None:
        if self.store is not None and self.store.get(intent.alarm_id) is None:
            # cancelled while the wake-up was in flight
            logger.info(f"Alarm {intent.alarm_id} is no longer active; dropping its wake-up")
            self.scheduler.cancel(intent.alarm_id)
            return

        logger.info(f"Alarm {intent.alarm_id} fired ({intent.kind.value if intent.kind else 'unknown'})")

        # Ringing is cosmetic; the schedule must advance even if it fails
        try:
            self.effects.start(intent.label)
        except Exception as e:
            logger.error(f"Failed to start alarm effects for {intent.alarm_id}: {e}")

        if intent.kind == AlarmKind.ONE_SHOT:
            # The wake-up should already be spent; cancel anyway so it cannot fire again
            self.scheduler.cancel(intent.alarm_id)
            self.completions.publish(CompletionEvent(intent.alarm_id, AlarmKind.ONE_SHOT))
        elif intent.kind == AlarmKind.RECURRING:
            if intent.interval_ms <= 0:
                logger.error(f"Recurring alarm {intent.alarm_id} has no interval; not re-arming")
                return
            if not self.scheduler.schedule_relative(intent.alarm_id, intent.interval_ms, label=intent.label):
                logger.warning(f"Recurring alarm {intent.alarm_id} is active but not re-armed")
            self.completions.publish(
                CompletionEvent(intent.alarm_id, AlarmKind.RECURRING, intent.interval_ms)
            )
        else:
            logger.warning(f"Wake-up for alarm {intent.alarm_id} carries no alarm kind")

    def _handle_stop(self) -> None:
        logger.info("Stop requested")
        self.effects.stop()
