"""Publish/subscribe primitives for the alarm subsystem.

- ValueCell: a reactive value; subscribers receive the full value on every change
- CompletionBus: at-least-once queue of completion events from the wake handler
"""
import queue
import threading
from typing import Callable, Generic, TypeVar

from loguru import logger

from .types import CompletionEvent

logger = logger.bind(module="alarms.events")

T = TypeVar("T")


class ValueCell(Generic[T]):
    """Holds a value and pushes it to subscribers whenever it is set."""

    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Replace the value and notify every subscriber."""
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)
        for callback in subscribers:
            self._notify(callback, value)

    def subscribe(self, callback: Callable[[T], None], replay: bool = True) -> Callable[[], None]:
        """Subscribe to changes.

        Args:
            callback: Called with the new value on every change
            replay: Also call it right away with the current value

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)
            current = self._value
        if replay:
            self._notify(callback, current)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @staticmethod
    def _notify(callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception(f"Subscriber {callback!r} failed")


class CompletionBus:
    """Queue that carries completion events from the wake handler to the manager.

    The handler publishes and returns immediately; a dispatcher thread hands
    each event to the subscribers. A subscriber that raises is retried, so
    subscribers must tolerate seeing the same event more than once.
    """

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max(1, max_attempts)
        self._queue: queue.Queue[CompletionEvent] = queue.Queue()
        self._subscribers: list[Callable[[CompletionEvent], None]] = []
        self._thread: threading.Thread | None = None
        self._running = threading.Event()

    def subscribe(self, callback: Callable[[CompletionEvent], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, event: CompletionEvent) -> None:
        """Enqueue an event (never blocks)."""
        self._queue.put(event)
        logger.debug(f"Queued completion {event.to_dict()}")

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ============== Dispatch ==============

    def start(self) -> None:
        """Start the dispatcher thread."""
        if self._thread and self._thread.is_alive():
            return
        self._running.set()
        self._thread = threading.Thread(target=self._loop, name="alarm-completions", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the dispatcher thread; queued events stay queued."""
        self._running.clear()
        if self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None

    def join(self) -> None:
        """Block until every queued event has been dispatched."""
        self._queue.join()

    def drain(self) -> int:
        """Dispatch queued events on the calling thread.

        Returns:
            Number of events dispatched
        """
        count = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return count
            try:
                self._dispatch(event)
            finally:
                self._queue.task_done()
            count += 1

    def _loop(self) -> None:
        while self._running.is_set():
            try:
                event = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            try:
                self._dispatch(event)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: CompletionEvent) -> None:
        for callback in list(self._subscribers):
            for attempt in range(1, self.max_attempts + 1):
                try:
                    callback(event)
                    break
                except Exception as e:
                    if attempt == self.max_attempts:
                        logger.exception(
                            f"Dropping completion for alarm {event.alarm_id} after {attempt} attempts"
                        )
                    else:
                        logger.warning(
                            f"Completion for alarm {event.alarm_id} failed (attempt {attempt}): {e}"
                        )
