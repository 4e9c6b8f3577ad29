"""Shared error types for the companion.

Synchronous API misuse is returned to the caller as a typed result; failures
that originate in the wake-up facility or on disk are logged and absorbed at
the boundary nearest their origin.
"""


class SmartCoasterError(Exception):
    """Base error for the companion."""


class SchedulingDenied(SmartCoasterError):
    """The platform refused an exact wake-up; scheduling degrades to best-effort."""

    def __init__(self, alarm_id: int, reason: str = "exact alarms not permitted"):
        super().__init__(f"Exact scheduling denied for alarm {alarm_id}: {reason}")
        self.alarm_id = alarm_id
        self.reason = reason


class AlreadyActiveError(SmartCoasterError):
    """A recurring alarm is already active."""

    def __init__(self, active):
        super().__init__(f"Recurring alarm {active.id} ({active.name!r}) is already active")
        self.active = active


class PersistenceCorruption(SmartCoasterError):
    """A persisted alarm record could not be read."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Unreadable alarm record {key!r}: {reason}")
        self.key = key
        self.reason = reason


class StaleCompletion(SmartCoasterError):
    """A completion event referenced an alarm that is no longer active."""

    def __init__(self, alarm_id: int):
        super().__init__(f"Alarm {alarm_id} is no longer active")
        self.alarm_id = alarm_id


class LinkError(SmartCoasterError):
    """The device link is detached or a write failed."""
