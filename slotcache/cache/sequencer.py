"""
Command Sequencer Module

The serialization boundary of the cache: any number of tasks submit
commands, a single worker task executes them one at a time in submission
order against the CacheEngine.

Each request carries its own reply future, so the queue is the request
channel and the future is the response channel. Nothing else touches the
engine, which is why the engine needs no locks.

Key asyncio concepts used:
- asyncio.Queue: FIFO request channel, optionally bounded (backpressure)
- asyncio.Future: per-request reply
- Queue.join(): drain on shutdown, bounded by asyncio.wait_for()
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..config.settings import settings
from ..exceptions import (
    CacheBusyError,
    EngineClosedError,
    ShutdownTimeoutError,
)
from ..protocol.commands import Command, CommandType
from .engine import CacheEngine

logger = logging.getLogger(__name__)


@dataclass
class Request:
    """A queued command and the future its result is delivered to."""
    command: Command
    reply: Optional[asyncio.Future] = None


class CommandSequencer:
    """
    Executes cache commands strictly one at a time, in submission order.

    PUT and DEL can be awaited for their outcome or submitted
    fire-and-forget with the *_nowait variants. GET is always awaited.

    A GET whose caller stopped waiting (its reply future was cancelled)
    is skipped. Mutations always run once queued.

    Usage:
        sequencer = CommandSequencer(CacheEngine())
        sequencer.start()
        await sequencer.put("a", 1)
        value = await sequencer.get("a")
        await sequencer.shutdown(timeout=5)

    Attributes:
        engine: The CacheEngine commands are executed against
        queue_size: Maximum queued commands (0 = unbounded)
    """

    def __init__(self, engine: CacheEngine, queue_size: int = None):
        self.engine = engine
        self.queue_size = queue_size if queue_size is not None else settings.QUEUE_SIZE
        self._queue: "asyncio.Queue[Request]" = asyncio.Queue(maxsize=self.queue_size)
        self._worker: Optional[asyncio.Task] = None
        self._closed = False

        self._executed = 0
        self._skipped = 0
        self._failed = 0

    def start(self) -> None:
        """Start the worker task. Must be called from a running event loop."""
        if self._worker is not None:
            return
        if self._closed:
            raise EngineClosedError("sequencer has been shut down")
        self._worker = asyncio.create_task(self._run(), name="slotcache-sequencer")

    async def __aenter__(self) -> "CommandSequencer":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    async def submit(self, command: Command) -> asyncio.Future:
        """
        Queue a command, waiting for room if the queue is bounded and full.

        Returns:
            Future resolved with the command result, or failed with the
            engine error
        """
        self._check_open()
        reply = asyncio.get_running_loop().create_future()
        await self._queue.put(Request(command, reply))
        return reply

    def submit_nowait(self, command: Command) -> None:
        """
        Queue a command without waiting for room or for its outcome.

        Raises:
            CacheBusyError: If the queue is full
        """
        self._check_open()
        try:
            self._queue.put_nowait(Request(command))
        except asyncio.QueueFull:
            raise CacheBusyError(f"command queue full ({self.queue_size} pending)") from None

    async def execute(self, command: Command) -> Any:
        """Queue a command and wait for its result."""
        reply = await self.submit(command)
        return await reply

    async def put(self, key: str, value: int) -> Optional[str]:
        """
        Store a key.

        Returns:
            The key evicted to make room, or None

        Raises:
            RingFullError: If no slot is free
            LogWriteError: If the mutation could not be logged
        """
        return await self.execute(Command(type=CommandType.PUT, key=key, value=value))

    def put_nowait(self, key: str, value: int) -> None:
        """Store a key, acknowledging only acceptance into the queue."""
        self.submit_nowait(Command(type=CommandType.PUT, key=key, value=value))

    async def get(self, key: str) -> Optional[int]:
        """Get the value for a key, or None if not found."""
        return await self.execute(Command(type=CommandType.GET, key=key))

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it was resident."""
        return await self.execute(Command(type=CommandType.DELETE, key=key))

    def delete_nowait(self, key: str) -> None:
        """Delete a key, acknowledging only acceptance into the queue."""
        self.submit_nowait(Command(type=CommandType.DELETE, key=key))

    async def stats(self) -> dict:
        """Get engine stats as of this point in the command order."""
        return await self.execute(Command(type=CommandType.STATS))

    async def _run(self) -> None:
        """Worker loop: take one request at a time and execute it."""
        while True:
            request = await self._queue.get()
            try:
                self._execute(request)
            finally:
                self._queue.task_done()
            # get() does not suspend on a non-empty queue
            await asyncio.sleep(0)

    def _execute(self, request: Request) -> None:
        command, reply = request.command, request.reply

        if reply is not None and reply.cancelled() and not command.is_mutation:
            self._skipped += 1
            logger.debug(f"Skipping abandoned {command.type.name} {command.key}")
            return

        try:
            result = self._dispatch(command)
        except Exception as exc:
            self._failed += 1
            if reply is not None and not reply.done():
                reply.set_exception(exc)
            else:
                logger.error(f"{command.type.name} {command.key} failed: {exc}")
            return

        self._executed += 1
        if reply is not None and not reply.done():
            reply.set_result(result)

    def _dispatch(self, command: Command) -> Any:
        if command.type == CommandType.PUT:
            return self.engine.put(command.key, command.value)
        if command.type == CommandType.GET:
            return self.engine.get(command.key)
        if command.type == CommandType.DELETE:
            return self.engine.delete(command.key)
        if command.type == CommandType.STATS:
            return self.get_stats()
        raise ValueError(f"cannot execute {command.type.name} command")

    def _check_open(self) -> None:
        if self._closed:
            raise EngineClosedError("sequencer is shutting down")
        if self._worker is None:
            self.start()

    async def shutdown(self, timeout: float = None) -> None:
        """
        Stop accepting commands, drain the queue and close the engine.

        Args:
            timeout: Seconds to wait for queued commands
                (default from settings.SHUTDOWN_TIMEOUT)

        Raises:
            ShutdownTimeoutError: If the queue was not drained in time;
                the remaining commands are aborted and never logged
        """
        timeout = timeout if timeout is not None else settings.SHUTDOWN_TIMEOUT
        if self._closed and self._worker is None:
            return
        self._closed = True

        aborted = 0
        if self._worker is not None:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                aborted = self._abort_pending(timeout)

            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        else:
            aborted = self._abort_pending(timeout)

        self.engine.close()
        logger.info(f"Sequencer stopped: {self._executed} executed, {self._skipped} skipped, {aborted} aborted")

        if aborted:
            raise ShutdownTimeoutError(timeout, aborted)

    def _abort_pending(self, timeout: float) -> int:
        aborted = 0
        while True:
            try:
                request = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            aborted += 1
            if request.reply is not None and not request.reply.done():
                request.reply.set_exception(ShutdownTimeoutError(timeout, 1))
            self._queue.task_done()
        return aborted

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of commands waiting to execute."""
        return self._queue.qsize()

    def get_stats(self) -> dict:
        """
        Get sequencer statistics.

        Returns:
            Dictionary with command counters, queue depth and engine stats
        """
        return {
            "executed": self._executed,
            "skipped": self._skipped,
            "failed": self._failed,
            "pending": self._queue.qsize(),
            "queue_size": self.queue_size,
            "engine": self.engine.get_stats(),
        }
