"""Temperature link to the coaster.

The coaster streams its temperature as newline-terminated decimal text and
accepts setpoint commands:
- ``N1<value>``: preferred temperature
- ``N2<value>``: upper band
- ``N3<value>``: lower band

Reads run on their own blocking loop; writes go through a single worker so
neither side ever waits on the other.
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import BinaryIO

from loguru import logger

from ..alarms.events import ValueCell
from ..errors import LinkError

logger = logger.bind(module="device.link")

READ_CHUNK_SIZE = 1024


def parse_temperature(message: str) -> float | None:
    """Parse one message from the coaster; None if it is not a number."""
    try:
        return float(message.strip())
    except ValueError:
        return None


class TemperatureController:
    """Live temperature reading and setpoint commands."""

    def __init__(self, preferred_temperature: float = 40.0):
        self.current_temperature: ValueCell[float] = ValueCell(0.0)
        self.preferred_temperature = preferred_temperature
        self.threshold = 0.0

        self._reader: BinaryIO | None = None
        self._writer: BinaryIO | None = None
        self._reader_thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._sender = ThreadPoolExecutor(max_workers=1, thread_name_prefix="coaster-send")

    @property
    def attached(self) -> bool:
        return self._writer is not None

    # ============== Connection ==============

    def attach(self, reader: BinaryIO | None, writer: BinaryIO | None) -> None:
        """Bind the link streams and start the read loop."""
        self.detach()
        self._reader = reader
        self._writer = writer
        self._stop.clear()
        if reader is not None:
            self._reader_thread = threading.Thread(
                target=self._read_loop, name="coaster-read", daemon=True
            )
            self._reader_thread.start()
        logger.info("Coaster link attached")

    def detach(self, timeout: float = 1.0) -> None:
        """Stop reading and forget the streams."""
        self._stop.set()
        thread, self._reader_thread = self._reader_thread, None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if self._reader is not None or self._writer is not None:
            logger.info("Coaster link detached")
        self._reader = None
        self._writer = None

    def close(self) -> None:
        self.detach()
        self._sender.shutdown(wait=True)

    def wait_closed(self, timeout: float | None = None) -> bool:
        """Wait for the read loop to finish (EOF or error)."""
        thread = self._reader_thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    # ============== Commands ==============

    def update_preferred_temperature(self, value: float) -> Future:
        self.preferred_temperature = value
        return self._send(f"N1{float(value)}")

    def update_threshold(self, value: float) -> Future:
        self.threshold = value
        self._send(f"N2{float(value)}")
        return self._send(f"N3{float(value)}")

    def _send(self, command: str) -> Future:
        return self._sender.submit(self._write, command)

    def _write(self, command: str) -> bool:
        try:
            if self._writer is None:
                raise LinkError("coaster link is not attached")
            self._writer.write(f"{command}\n".encode("utf-8"))
            self._writer.flush()
        except (LinkError, OSError, ValueError) as e:
            logger.error(f"Failed to send {command!r}: {e}")
            return False
        logger.debug(f"Sent {command!r}")
        return True

    # ============== Read loop ==============

    def _read_loop(self) -> None:
        reader = self._reader
        buffer = b""
        try:
            while reader is not None and not self._stop.is_set():
                chunk = reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                buffer += chunk
                *lines, buffer = buffer.split(b"\n")
                for line in lines:
                    self._handle_message(line)
            if buffer.strip() and not self._stop.is_set():
                self._handle_message(buffer)
        except (OSError, ValueError) as e:
            logger.error(f"Coaster link read failed: {e}")
        logger.info("Coaster read loop ended")

    def _handle_message(self, raw: bytes) -> None:
        message = raw.decode("utf-8", errors="replace").strip()
        if not message:
            return
        temperature = parse_temperature(message)
        if temperature is None:
            logger.warning(f"Ignoring unreadable coaster message {message!r}")
            return
        logger.debug(f"Coaster temperature {temperature}")
        self.current_temperature.set(temperature)
