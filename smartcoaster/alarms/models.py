"""Data models for alarms and wake-up payloads."""
from dataclasses import dataclass, replace
from typing import Any

from pydantic import BaseModel, ConfigDict

from ..errors import AlreadyActiveError, PersistenceCorruption
from .types import AlarmKind, WakeAction


def _require_int(data: dict[str, Any], name: str, key: str) -> int:
    value = data.get(name)
    # bool is an int subclass; a flag is never a valid id or timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        raise PersistenceCorruption(key, f"{name} must be an integer, got {value!r}")
    return value


@dataclass
class AlarmRecord:
    """An active alarm.

    For recurring alarms ``fire_at_ms`` is the next scheduled instant and is
    recomputed on every firing.
    """
    id: int
    name: str
    kind: AlarmKind
    fire_at_ms: int
    interval_ms: int | None = None

    @property
    def is_recurring(self) -> bool:
        return self.kind == AlarmKind.RECURRING

    def copy(self) -> "AlarmRecord":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "fire_at_ms": self.fire_at_ms,
            "interval_ms": self.interval_ms,
        }

    @classmethod
    def from_dict(cls, data: Any, key: str = "?") -> "AlarmRecord":
        """Create from a stored dictionary.

        Raises:
            PersistenceCorruption: if any field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise PersistenceCorruption(key, f"expected a mapping, got {type(data).__name__}")

        alarm_id = _require_int(data, "id", key)
        fire_at_ms = _require_int(data, "fire_at_ms", key)

        name = data.get("name", "")
        if not isinstance(name, str):
            raise PersistenceCorruption(key, f"name must be a string, got {name!r}")

        try:
            kind = AlarmKind(data.get("kind"))
        except ValueError:
            raise PersistenceCorruption(key, f"unknown kind {data.get('kind')!r}") from None

        interval_ms = None
        if kind == AlarmKind.RECURRING:
            interval_ms = _require_int(data, "interval_ms", key)
            if interval_ms <= 0:
                raise PersistenceCorruption(key, f"interval_ms must be positive, got {interval_ms}")

        return cls(
            id=alarm_id,
            name=name,
            kind=kind,
            fire_at_ms=fire_at_ms,
            interval_ms=interval_ms,
        )


@dataclass
class SetAlarmResult:
    """Result of a set-alarm request: the created alarm or the reason it was refused."""
    alarm: AlarmRecord | None = None
    error: AlreadyActiveError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.alarm is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "alarm": self.alarm.to_dict() if self.alarm else None,
            "error": str(self.error) if self.error else None,
        }


class WakeIntent(BaseModel):
    """Payload delivered with a wake-up callback.

    Everything the handler needs travels in the payload, so a wake-up that
    arrives in a freshly started process is handled the same way.
    """
    model_config = ConfigDict(frozen=True)

    action: WakeAction = WakeAction.FIRE
    alarm_id: int = 0
    kind: AlarmKind | None = None
    interval_ms: int = 0
    label: str = ""

    @classmethod
    def stop(cls) -> "WakeIntent":
        """The "Stop Alarm" action; not tied to any alarm id."""
        return cls(action=WakeAction.STOP)

    @classmethod
    def one_shot(cls, alarm_id: int, label: str = "") -> "WakeIntent":
        return cls(alarm_id=alarm_id, kind=AlarmKind.ONE_SHOT, label=label)

    @classmethod
    def recurring(cls, alarm_id: int, interval_ms: int, label: str = "") -> "WakeIntent":
        return cls(
            alarm_id=alarm_id,
            kind=AlarmKind.RECURRING,
            interval_ms=interval_ms,
            label=label,
        )
