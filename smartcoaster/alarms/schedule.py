"""Schedule calculation and display utilities.

One-shot alarms are expressed in wall-clock epoch milliseconds; the delay of a
recurring alarm is measured on the monotonic clock.
"""
import time
from datetime import datetime

from .models import AlarmRecord
from .types import AlarmKind


def now_ms() -> int:
    """Get current wall-clock timestamp in milliseconds."""
    return int(time.time() * 1000)


def monotonic_ms() -> int:
    """Get the monotonic clock in milliseconds (unaffected by clock changes)."""
    return int(time.monotonic() * 1000)


def next_fire_at_ms(interval_ms: int, current_ms: int | None = None) -> int:
    """Compute the next firing of a recurring alarm.

    Args:
        interval_ms: Repeat period in milliseconds
        current_ms: Current timestamp in ms (defaults to now)

    Returns:
        Timestamp of the next firing in milliseconds
    """
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")
    if current_ms is None:
        current_ms = now_ms()
    return current_ms + interval_ms


def remaining_ms(fire_at_ms: int, current_ms: int | None = None) -> int:
    """Milliseconds until ``fire_at_ms``, never negative."""
    if current_ms is None:
        current_ms = now_ms()
    return max(0, fire_at_ms - current_ms)


def format_time(timestamp_ms: int) -> str:
    """Format a timestamp as local ``HH:MM``."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M")


def format_countdown(target_ms: int, current_ms: int | None = None) -> str:
    """Format the time left until ``target_ms`` as ``MM:SS``."""
    left = remaining_ms(target_ms, current_ms)
    minutes, seconds = divmod(left // 1000, 60)
    return f"{minutes:02d}:{seconds:02d}"


def interval_to_human(interval_ms: int) -> str:
    """Convert interval in milliseconds to a human-readable description.

    Args:
        interval_ms: Interval in milliseconds

    Returns:
        Description such as "every 5 minutes"
    """
    seconds = interval_ms // 1000

    if seconds < 60:
        value, unit = seconds, "second"
    elif seconds < 3600:
        value, unit = seconds // 60, "minute"
    elif seconds < 86400:
        value, unit = seconds // 3600, "hour"
    else:
        value, unit = seconds // 86400, "day"

    if value == 1:
        return f"every {unit}"
    return f"every {value} {unit}s"


def describe_alarm(alarm: AlarmRecord) -> str:
    """One line for the active-alarm list."""
    if alarm.kind == AlarmKind.RECURRING and alarm.interval_ms:
        return f"{alarm.name} - {alarm.kind.value} - {interval_to_human(alarm.interval_ms)}"
    return f"{alarm.name} - {alarm.kind.value} - at {format_time(alarm.fire_at_ms)}"
