"""Alarm service: wires store, wake scheduler, handler, completion bus and manager."""
from loguru import logger

from ..config import Settings, settings as default_settings
from .effects import AlarmEffects, LoggingEffects
from .events import CompletionBus
from .handler import WAKE_LOCK_TAG, WakeHandler
from .manager import AlarmManager
from .models import WakeIntent
from .store import AlarmStore
from .wake import WakeLock, WakeScheduler

logger = logger.bind(module="alarms.service")


class AlarmService:
    """Owns the alarm subsystem for one process.

    Data flow: UI -> manager -> store + wake scheduler; wake-up -> handler ->
    effects + completion bus -> manager -> observers.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        effects: AlarmEffects | None = None,
        scheduler: WakeScheduler | None = None,
    ):
        self.settings = settings or default_settings
        self.effects = effects or LoggingEffects()

        self.store = AlarmStore(self.settings.store_path)
        self.completions = CompletionBus(max_attempts=self.settings.completion_max_attempts)
        self.scheduler = scheduler or WakeScheduler(
            exact_allowed=self.settings.exact_alarms_allowed,
            best_effort_grace_seconds=self.settings.best_effort_grace_seconds,
        )
        self.handler = WakeHandler(
            self.scheduler,
            self.effects,
            self.completions,
            wake_lock_factory=lambda: WakeLock(WAKE_LOCK_TAG, self.settings.wake_lock_timeout_ms),
            store=self.store,
        )
        self.scheduler.deliver = self.handler.on_receive
        self.manager = AlarmManager(
            self.store,
            self.scheduler,
            reregister_on_load=self.settings.reregister_on_load,
        )
        self.completions.subscribe(self.manager.on_fire_completed)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start delivery and load persisted alarms."""
        if self._running:
            return
        self.scheduler.start()
        self.completions.start()
        self.manager.on_load()
        self._running = True
        logger.info(f"Alarm service started ({self.settings.store_path})")

    def stop(self) -> None:
        """Stop delivery. Persisted alarms are kept for the next start."""
        if not self._running:
            return
        self.completions.stop()
        self.scheduler.shutdown()
        self.effects.stop()
        self._running = False
        logger.info("Alarm service stopped")

    def stop_ringing(self) -> None:
        """The "Stop Alarm" action: silence without touching any schedule."""
        self.handler.on_receive(WakeIntent.stop())
