"""Core type definitions for the alarm subsystem.

This module defines:
- Alarm kinds (one-shot / recurring)
- Wake actions carried by an OS wake-up callback
- The completion event the wake handler emits
- Result types returned by the alarm manager
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any


# ============== Alarm Types ==============

class AlarmKind(str, Enum):
    """Kind of alarm."""
    ONE_SHOT = "one_shot"      # Fires once at an absolute time, then is removed
    RECURRING = "recurring"    # Re-arms itself every interval_ms


class WakeAction(str, Enum):
    """Action tag carried with a wake-up callback."""
    FIRE = "fire"   # A registered alarm reached its time
    STOP = "stop"   # The user asked to silence whatever is ringing


# ============== Event Types ==============

@dataclass(frozen=True)
class CompletionEvent:
    """Emitted by the wake handler after an alarm fired and was re-armed or cleared."""
    alarm_id: int
    kind: AlarmKind
    interval_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "alarm_id": self.alarm_id,
            "kind": self.kind.value,
            "interval_ms": self.interval_ms,
        }


# ============== Result Types ==============

@dataclass
class RemoveResult:
    """Result of cancelling an alarm."""
    alarm_id: int
    removed: bool
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "alarm_id": self.alarm_id,
            "removed": self.removed,
            "reason": self.reason,
        }
