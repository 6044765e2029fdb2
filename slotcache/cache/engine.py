"""
Cache Engine Module

Runs a single command against the slot table, the eviction list and the
operation log as one unit. The engine is not thread-safe by itself: every
call is expected to come from the CommandSequencer's single worker.

Invariant: between calls, the keys held by the eviction list and the keys
held by the slot table are the same set.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

from ..config.settings import settings
from ..exceptions import RingFullError
from .entry import Entry
from .eviction import EvictionList
from .oplog import LogOp, LogRecord, OperationLog
from .ring import SlotTable

logger = logging.getLogger(__name__)

FORBIDDEN_KEY_CHARS = (',', '\n', '\r')


class CacheEngine:
    """
    Bounded key-value cache with hashed slot placement and log recovery.

    put: place in slot table, append to eviction list, evict the oldest
         entry from both if over capacity
    get: exact lookup by default, ring successor lookup when enabled
    delete: remove from both structures

    Exact lookup is the default because successor lookup answers a GET for
    an absent or evicted key with whichever neighbour owns its ring position.

    Every accepted mutation is written to the operation log before it is
    applied, so a failed write leaves the in-memory state untouched.

    Usage:
        engine = CacheEngine(capacity=2, slot_space_size=100, log_path="cache.log")
        engine.put("a", 1)
        engine.get("a")  # 1
        engine.close()

    Attributes:
        capacity: Maximum number of resident keys
        slot_space_size: Number of slots in the slot table
        successor_lookup: Whether get() resolves through ring ownership
    """

    def __init__(
            self,
            capacity: int = None,
            slot_space_size: int = None,
            log_path: Union[str, Path] = None,
            fsync: bool = None,
            successor_lookup: bool = None,
    ):
        """
        Initialize the engine and recover state from the operation log.

        Args:
            capacity: Eviction list bound (default from settings.CAPACITY)
            slot_space_size: Slot table size (default from settings.SLOT_SPACE_SIZE)
            log_path: Operation log file (default from settings.LOG_PATH)
            fsync: fsync every append (default from settings.FSYNC)
            successor_lookup: Ring successor semantics for get()
                (default from settings.SUCCESSOR_LOOKUP)

        Raises:
            ValueError: If capacity < 1 or slot_space_size < capacity
        """
        self.capacity = capacity if capacity is not None else settings.CAPACITY
        self.slot_space_size = slot_space_size if slot_space_size is not None else settings.SLOT_SPACE_SIZE
        self.successor_lookup = successor_lookup if successor_lookup is not None else settings.SUCCESSOR_LOOKUP

        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")
        if self.slot_space_size < self.capacity:
            raise ValueError("slot_space_size must be at least capacity")

        self.evictions = EvictionList(self.capacity)
        self.ring = SlotTable(self.slot_space_size)
        self.oplog = OperationLog(
            log_path if log_path is not None else settings.LOG_PATH,
            fsync=fsync if fsync is not None else settings.FSYNC,
        )

        self._evicted_total = 0
        self.recovered = self.recover()
        self.oplog.open()

    def recover(self) -> int:
        """
        Rebuild state by replaying the operation log.

        Records go through the same apply path as live commands, so capacity
        eviction happens during replay exactly as it did originally.

        Returns:
            Number of records applied
        """
        applied = 0
        for record in self.oplog.replay():
            if record.op == LogOp.PUT:
                if not self.ring.can_place(record.key):
                    logger.warning(f"Skipping replayed PUT {record.key}: no free slot")
                    continue
                self._apply_put(record.key, record.value)
            else:
                self._apply_delete(record.key)
            applied += 1

        logger.info(f"Recovered {self.size()} key(s) from {applied} log record(s) in {self.oplog.path}")
        return applied

    def put(self, key: str, value: int) -> Optional[str]:
        """
        Insert or update a key.

        Args:
            key: The key to store
            value: The integer value

        Returns:
            The key evicted to make room, or None

        Raises:
            ValueError: If the key cannot be stored in the log format or
                the value is not an integer
            RingFullError: If no slot is free (nothing is logged or changed)
            LogWriteError: If the log append failed (nothing is changed)
        """
        self._check_key(key)
        self._check_value(value)
        if not self.ring.can_place(key):
            raise RingFullError(key, self.slot_space_size)

        self.oplog.append(LogRecord.put(key, value))
        return self._apply_put(key, value)

    def get(self, key: str) -> Optional[int]:
        """
        Retrieve the value for a key.

        Returns:
            The value, or None if not found

        With successor_lookup enabled, a key whose home slot is held by
        another key resolves to that key's value.
        """
        if self.successor_lookup:
            entry = self.ring.lookup(key)
        else:
            entry = self.ring.find(key)
        return entry.value if entry is not None else None

    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key was resident and removed, False otherwise.
            Only actual removals are written to the log.

        Raises:
            LogWriteError: If the log append failed (nothing is changed)
        """
        if not self.ring.contains(key):
            return False

        self.oplog.append(LogRecord.delete(key))
        return self._apply_delete(key)

    def _apply_put(self, key: str, value: int) -> Optional[str]:
        entry = Entry(key, value)
        self.ring.place(entry)
        evicted = self.evictions.upsert(entry)
        if evicted is None:
            return None

        self.ring.remove(evicted.key)
        self._evicted_total += 1
        logger.debug(f"Evicted {evicted.key} to make room for {key}")
        return evicted.key

    def _apply_delete(self, key: str) -> bool:
        removed = self.ring.remove(key)
        if removed is None:
            return False
        self.evictions.remove(key)
        return True

    @staticmethod
    def _check_key(key: str) -> None:
        if not key:
            raise ValueError("key must not be empty")
        if any(ch in key for ch in FORBIDDEN_KEY_CHARS):
            raise ValueError(f"key must not contain commas or line breaks: {key!r}")

    @staticmethod
    def _check_value(value: int) -> None:
        # bool is an int subclass but would be logged as True/False
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"value must be an integer: {value!r}")

    def keys(self) -> List[str]:
        """Get resident keys, oldest insertion first."""
        return self.evictions.keys()

    def slot_keys(self) -> List[str]:
        """Get resident keys in slot order."""
        return self.ring.keys()

    def size(self) -> int:
        return self.evictions.size()

    def close(self) -> None:
        """Release the operation log file handle."""
        self.oplog.close()

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the engine.

        Returns:
            Dictionary containing eviction list and slot table stats,
            total evictions and log record counts
        """
        return {
            "keys": self.size(),
            "evicted_total": self._evicted_total,
            "recovered_records": self.recovered,
            "appended_records": self.oplog.appended,
            "successor_lookup": self.successor_lookup,
            "eviction_list": self.evictions.get_stats(),
            "slot_table": self.ring.get_stats(),
        }
