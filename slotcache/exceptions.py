"""
SlotCache exceptions.

Absence of a key is not an error: ``get`` returns ``None`` for it.
"""


class SlotCacheError(Exception):
    """Base class for all cache engine errors."""


class RingFullError(SlotCacheError):
    """
    Raised when a key cannot be placed because every slot is occupied.

    Nothing is mutated and nothing is written to the operation log.
    """

    def __init__(self, key: str, slot_space_size: int):
        self.key = key
        self.slot_space_size = slot_space_size
        super().__init__(f"no free slot for key {key!r} (all {slot_space_size} slots occupied)")


class LogWriteError(SlotCacheError):
    """
    Raised when a record could not be appended to the operation log.

    The record is written before the in-memory mutation, so the cache
    state is unchanged when this is raised.
    """


class EngineClosedError(SlotCacheError):
    """Raised when a command is submitted after shutdown has started."""


class CacheBusyError(SlotCacheError):
    """Raised by non-blocking submissions when the command queue is full."""


class ShutdownTimeoutError(SlotCacheError):
    """Raised when queued commands could not be drained before the deadline."""

    def __init__(self, timeout: float, aborted: int):
        self.timeout = timeout
        self.aborted = aborted
        super().__init__(f"shutdown deadline of {timeout}s exceeded, {aborted} queued command(s) aborted")
