"""Side effects of a ringing alarm: sound, vibration, notification.

The alarm core only needs ``start(label)`` and ``stop()``; playback and
rendering live with the host.
"""
import threading
from typing import Protocol, runtime_checkable

from loguru import logger

logger = logger.bind(module="alarms.effects")


@runtime_checkable
class AlarmEffects(Protocol):
    """Protocol for alarm side effects."""

    def start(self, label: str) -> None:
        """Start ringing for the alarm labelled ``label``."""
        ...

    def stop(self) -> None:
        """Silence everything; must be safe when nothing is ringing."""
        ...


class LoggingEffects:
    """Headless effects: records what is ringing and logs it."""

    def __init__(self):
        self._lock = threading.Lock()
        self.ringing: str | None = None

    @property
    def is_ringing(self) -> bool:
        return self.ringing is not None

    def start(self, label: str) -> None:
        with self._lock:
            self.ringing = label or "Alarm"
        logger.info(f"Alarm ringing: {self.ringing}")

    def stop(self) -> None:
        with self._lock:
            label, self.ringing = self.ringing, None
        if label is not None:
            logger.info(f"Alarm silenced: {label}")


class CompositeEffects:
    """Fans start/stop out to several collaborators.

    A failing collaborator is logged and does not keep the others from
    running.
    """

    def __init__(self, *effects: AlarmEffects):
        self.effects: list[AlarmEffects] = list(effects)

    def register(self, effect: AlarmEffects) -> None:
        self.effects.append(effect)

    def start(self, label: str) -> None:
        for effect in self.effects:
            try:
                effect.start(label)
            except Exception as e:
                logger.error(f"Failed to start {type(effect).__name__}: {e}")

    def stop(self) -> None:
        for effect in self.effects:
            try:
                effect.stop()
            except Exception as e:
                logger.error(f"Failed to stop {type(effect).__name__}: {e}")
