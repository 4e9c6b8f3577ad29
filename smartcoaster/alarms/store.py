"""YAML key/value store for alarm records.

Layout: one flat mapping in ``alarms.yaml``.
- ``request_code_counter``: the last id handed out
- ``"<id>"``: one serialized alarm record per active alarm

Every write rewrites the whole mapping through a temp file and a rename, so a
crash leaves either the old or the new document on disk. Entries this version
cannot read are skipped on load and left untouched on rewrite.
"""
import threading
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from ..errors import PersistenceCorruption
from .models import AlarmRecord

logger = logger.bind(module="alarms.store")

COUNTER_KEY = "request_code_counter"


class AlarmStore:
    """Durable store of alarm records and the id counter.

    Thread-safety: every operation holds a re-entrant lock for the whole
    read-modify-write cycle.
    """

    def __init__(self, path: str | Path):
        """Initialize store.

        Args:
            path: Location of the YAML document
        """
        self.path = Path(path).expanduser()
        self._lock = threading.RLock()

    # ============== YAML I/O ==============

    def _read(self) -> dict[Any, Any]:
        """Load the raw mapping; an unreadable document is moved aside."""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            self._quarantine(f"invalid YAML: {e}")
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            self._quarantine(f"expected a mapping, got {type(data).__name__}")
            return {}
        return data

    def _quarantine(self, reason: str) -> None:
        corrupt_path = self.path.with_name(self.path.name + ".corrupt")
        logger.error(f"Alarm store {self.path} is unreadable ({reason}); moving it to {corrupt_path}")
        try:
            self.path.replace(corrupt_path)
        except OSError as e:
            logger.error(f"Failed to move {self.path} aside: {e}; it will be overwritten on the next write")

    def _write(self, data: dict[Any, Any]) -> None:
        """Write the mapping (atomic)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                data,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
        temp_path.replace(self.path)

    @staticmethod
    def _counter(data: dict[Any, Any]) -> int:
        value = data.get(COUNTER_KEY, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            logger.warning(f"Ignoring corrupt id counter {value!r}")
            return 0
        return value

    @staticmethod
    def _records(data: dict[Any, Any]) -> list[AlarmRecord]:
        records = []
        for key, value in data.items():
            if key == COUNTER_KEY:
                continue
            key = str(key)
            try:
                record = AlarmRecord.from_dict(value, key=key)
                if str(record.id) != key:
                    raise PersistenceCorruption(key, f"key does not match id {record.id}")
            except PersistenceCorruption as e:
                logger.warning(f"Skipping alarm entry: {e}")
                continue
            records.append(record)
        return records

    # ============== Record CRUD ==============

    def put(self, record: AlarmRecord) -> None:
        """Insert or replace a record."""
        with self._lock:
            data = self._read()
            data[str(record.id)] = record.to_dict()
            self._write(data)
        logger.debug(f"Stored alarm {record.id}")

    def get(self, alarm_id: int) -> AlarmRecord | None:
        """Return the stored record for ``alarm_id``, or None if absent or unreadable."""
        with self._lock:
            data = self._read()
        value = data.get(str(alarm_id), data.get(alarm_id))
        if value is None:
            return None
        try:
            return AlarmRecord.from_dict(value, key=str(alarm_id))
        except PersistenceCorruption as e:
            logger.warning(f"Skipping alarm entry: {e}")
            return None

    def remove(self, alarm_id: int) -> bool:
        """Remove a record; removing an unknown id returns False."""
        with self._lock:
            data = self._read()
            removed = data.pop(str(alarm_id), None)
            if removed is None:
                # hand-edited documents may use bare integer keys
                removed = data.pop(alarm_id, None)
            if removed is None:
                return False
            self._write(data)
        logger.debug(f"Removed alarm {alarm_id} from store")
        return True

    def load_all(self) -> list[AlarmRecord]:
        """Load every readable record, ordered by id.

        Malformed entries are skipped. A counter lower than the largest stored
        id is raised to it and persisted.
        """
        with self._lock:
            data = self._read()
            records = self._records(data)
            counter = self._counter(data)
            max_id = max((r.id for r in records), default=0)
            if max_id > counter or data.get(COUNTER_KEY, 0) != counter:
                logger.warning(f"Resynchronizing id counter from {counter} to {max(counter, max_id)}")
                data[COUNTER_KEY] = max(counter, max_id)
                self._write(data)

        records.sort(key=lambda r: r.id)
        logger.info(f"Loaded {len(records)} alarms from {self.path}")
        return records

    def next_id(self) -> int:
        """Allocate the next id and persist the counter in the same write."""
        with self._lock:
            data = self._read()
            max_id = max((r.id for r in self._records(data)), default=0)
            alarm_id = max(self._counter(data), max_id) + 1
            data[COUNTER_KEY] = alarm_id
            self._write(data)
        return alarm_id

    def clear(self) -> int:
        """Remove every record but keep the id counter.

        Returns:
            Number of entries removed
        """
        with self._lock:
            data = self._read()
            counter = max(self._counter(data), max((r.id for r in self._records(data)), default=0))
            removed = sum(1 for key in data if key != COUNTER_KEY)
            self._write({COUNTER_KEY: counter})
        logger.info(f"Cleared {removed} alarm entries")
        return removed
