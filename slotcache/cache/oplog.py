"""
Operation Log Module

Append-only record of every accepted mutation, replayed at startup.

File format (one record per line, comma-separated):
    PUT,<key>,<value>
    DEL,<key>

The log is never compacted or rewritten; it grows with the number of
mutations.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, TextIO, Union

from ..exceptions import LogWriteError

logger = logging.getLogger(__name__)


class LogOp(Enum):
    """Record types stored in the operation log."""
    PUT = "PUT"
    DEL = "DEL"


@dataclass(frozen=True)
class LogRecord:
    """
    A single operation log record.

    Attributes:
        op: PUT or DEL
        key: The key the mutation applies to
        value: The stored value (PUT only)
    """
    op: LogOp
    key: str
    value: Optional[int] = None

    @classmethod
    def put(cls, key: str, value: int) -> "LogRecord":
        return cls(op=LogOp.PUT, key=key, value=value)

    @classmethod
    def delete(cls, key: str) -> "LogRecord":
        return cls(op=LogOp.DEL, key=key)

    def to_line(self) -> str:
        """Format the record as a log line (with trailing newline)."""
        if self.op == LogOp.PUT:
            return f"{self.op.value},{self.key},{self.value}\n"
        return f"{self.op.value},{self.key}\n"

    @classmethod
    def from_line(cls, line: str) -> Optional["LogRecord"]:
        """
        Parse a log line.

        Returns:
            The record, or None if the line is malformed or truncated
        """
        parts = line.rstrip('\r\n').split(',')

        if len(parts) == 3 and parts[0] == LogOp.PUT.value and parts[1]:
            try:
                return cls.put(parts[1], int(parts[2]))
            except ValueError:
                return None

        if len(parts) == 2 and parts[0] == LogOp.DEL.value and parts[1]:
            return cls.delete(parts[1])

        return None


class OperationLog:
    """
    Durable, append-only operation log backed by a text file.

    The file is opened once in append mode and owned exclusively by the
    cache engine. Each append is flushed (and fsync'ed unless disabled)
    before it returns.

    Usage:
        oplog = OperationLog("logs/cache_log.txt")
        for record in oplog.replay():
            ...
        oplog.append(LogRecord.put("a", 1))
        oplog.close()
    """

    def __init__(self, path: Union[str, Path], fsync: bool = True):
        """
        Initialize the log.

        Args:
            path: Location of the log file
            fsync: Whether to fsync after every append
        """
        self.path = Path(path)
        self.fsync = fsync
        self._file: Optional[TextIO] = None
        self._appended = 0

    def replay(self) -> Iterator[LogRecord]:
        """
        Yield every well-formed record in file order.

        A missing file yields nothing. An unreadable file is reported and
        yields nothing. Malformed lines (e.g. a torn final write) are skipped.
        """
        if not self.path.exists():
            logger.info(f"No operation log at {self.path}, starting empty")
            return

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                for lineno, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    record = LogRecord.from_line(line)
                    if record is None:
                        logger.warning(f"Skipping malformed log record at {self.path}:{lineno}: {line.rstrip()!r}")
                        continue
                    yield record
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Error reading operation log {self.path}: {e}")

    def open(self) -> None:
        """Open the log file for appending, creating parent directories."""
        if self._file is not None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, 'a', encoding='utf-8')
        except OSError as e:
            raise LogWriteError(f"cannot open operation log {self.path}: {e}") from e

    def append(self, record: LogRecord) -> None:
        """
        Durably append one record.

        Raises:
            LogWriteError: If the record could not be written
        """
        if self._file is None:
            self.open()

        try:
            self._file.write(record.to_line())
            self._file.flush()
            if self.fsync:
                os.fsync(self._file.fileno())
        except OSError as e:
            logger.error(f"Error logging operation {record.op.value} {record.key}: {e}")
            raise LogWriteError(f"cannot append to operation log {self.path}: {e}") from e

        self._appended += 1

    def close(self) -> None:
        """Close the log file handle."""
        if self._file is None:
            return
        try:
            self._file.close()
        finally:
            self._file = None

    @property
    def closed(self) -> bool:
        return self._file is None

    @property
    def appended(self) -> int:
        """Number of records appended by this instance."""
        return self._appended
