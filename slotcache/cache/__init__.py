"""Cache module for SlotCache."""

from .engine import CacheEngine
from .entry import Entry
from .eviction import EvictionList
from .oplog import LogOp, LogRecord, OperationLog
from .ring import SlotTable
from .sequencer import CommandSequencer

__all__ = [
    "CacheEngine",
    "CommandSequencer",
    "Entry",
    "EvictionList",
    "LogOp",
    "LogRecord",
    "OperationLog",
    "SlotTable",
]
