"""Composition root for a companion process."""
from dataclasses import dataclass

from .alarms.effects import AlarmEffects
from .alarms.service import AlarmService
from .config import Settings, settings as default_settings
from .device.link import TemperatureController
from .logging_config import setup_logging


@dataclass
class Companion:
    """Everything a companion UI talks to."""
    settings: Settings
    alarms: AlarmService
    temperature: TemperatureController

    def start(self) -> None:
        self.alarms.start()

    def stop(self) -> None:
        self.alarms.stop()
        self.temperature.close()


def build_companion(
    settings: Settings | None = None,
    effects: AlarmEffects | None = None,
    configure_logging: bool = True,
) -> Companion:
    """Build (but do not start) the alarm service and temperature link."""
    settings = settings or default_settings
    if configure_logging:
        setup_logging(settings.log_level)
    return Companion(
        settings=settings,
        alarms=AlarmService(settings, effects=effects),
        temperature=TemperatureController(settings.preferred_temperature),
    )
