"""Durable alarm scheduling for the SmartCoaster companion."""
from .effects import AlarmEffects, CompositeEffects, LoggingEffects
from .events import CompletionBus, ValueCell
from .handler import WakeHandler
from .manager import AlarmManager
from .models import AlarmRecord, SetAlarmResult, WakeIntent
from .service import AlarmService
from .store import AlarmStore
from .types import AlarmKind, CompletionEvent, RemoveResult, WakeAction
from .wake import WakeLock, WakeScheduler

__all__ = [
    "AlarmEffects",
    "AlarmKind",
    "AlarmManager",
    "AlarmRecord",
    "AlarmService",
    "AlarmStore",
    "CompletionBus",
    "CompletionEvent",
    "CompositeEffects",
    "LoggingEffects",
    "RemoveResult",
    "SetAlarmResult",
    "ValueCell",
    "WakeAction",
    "WakeHandler",
    "WakeIntent",
    "WakeLock",
    "WakeScheduler",
]
