"""
Async TCP Server Module

Thin network adapter over the CommandSequencer: reads one command per line,
runs it through the sequencer and writes one response per line.

Key asyncio concepts used:
- asyncio.start_server(): Create a TCP server
- StreamReader.readline(): Read a line from client
- StreamWriter.write() / drain(): Send data to client
- Proper connection cleanup with writer.close() / wait_closed()
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..cache.engine import CacheEngine
from ..cache.sequencer import CommandSequencer
from ..config.settings import settings
from ..exceptions import RingFullError, SlotCacheError
from ..protocol.commands import Command, CommandType, Response
from ..protocol.parser import ProtocolParser

logger = logging.getLogger(__name__)


class KVServer:
    """
    Asynchronous TCP server for the SlotCache service.

    Each client connection is handled in its own coroutine. All connections
    share one CommandSequencer, so commands from every client are executed
    in a single total order.

    Usage:
        server = KVServer(host='0.0.0.0', port=7171)
        await server.start()  # Runs until stop()

    Attributes:
        host: Server bind address (e.g., '0.0.0.0')
        port: Server port number (e.g., 7171)
        sequencer: The CommandSequencer shared by all connections
        parser: The ProtocolParser for parsing commands
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            sequencer: CommandSequencer = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings)
            sequencer: CommandSequencer instance (creates one over a
                default CacheEngine if not provided)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.sequencer = sequencer if sequencer is not None else CommandSequencer(CacheEngine())
        self.parser = ProtocolParser()

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads commands until the client disconnects or sends QUIT.
        Malformed commands get an error response and the connection stays open.
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        logger.debug(f"Client connected: {addr}")

        try:
            while True:
                data = await reader.readline()
                if not data:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                try:
                    raw = data.decode().rstrip('\r\n')
                except UnicodeDecodeError:
                    response = Response.error("invalid command")
                    writer.write(self.parser.format_response(response).encode())
                    await writer.drain()
                    continue

                command = self.parser.parse_request(raw)

                if command.type == CommandType.QUIT:
                    logger.debug(f"Client requested quit: {addr}")
                    break

                if not command.is_valid:
                    response = Response.error("invalid command")
                else:
                    self._total_requests += 1
                    response = await self._execute_command(command)

                writer.write(self.parser.format_response(response).encode())
                await writer.drain()

        except ConnectionResetError:
            logger.debug(f"Connection reset by client: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                pass

    async def _execute_command(self, command: Command) -> Response:
        """
        Run a parsed command through the sequencer and map the outcome.

        RingFullError maps to 'ring full', a missing key to 'key not found',
        any other engine error to 'internal error'.
        """
        try:
            if command.type == CommandType.PUT:
                await self.sequencer.put(command.key, command.value)
                return Response.stored()

            if command.type == CommandType.GET:
                value = await self.sequencer.get(command.key)
                return Response.value_response(value) if value is not None else Response.key_not_found()

            if command.type == CommandType.DELETE:
                await self.sequencer.delete(command.key)
                return Response.deleted()

            if command.type == CommandType.STATS:
                stats = await self.sequencer.stats()
                stats["server"] = self._server_stats()
                return self.parser.format_stats(stats)

        except RingFullError as exc:
            logger.warning(f"PUT {command.key} rejected: {exc}")
            return Response.ring_full()
        except SlotCacheError as exc:
            logger.error(f"{command.type.name} {command.key} failed: {exc}")
            return Response.internal_error()

        return Response.error("invalid command")

    async def start(self) -> None:
        """
        Start the server and begin accepting connections.

        Runs until stop() is called or the task is cancelled.

        Example:
            server = KVServer(port=7171)
            asyncio.run(server.start())
        """
        if self._running:
            return

        self.sequencer.start()
        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=settings.READ_BUFFER_SIZE,
        )
        self._running = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Serving on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def stop(self, timeout: float = None) -> None:
        """
        Stop the server gracefully.

        Closes the listening socket, then drains queued commands and closes
        the operation log.

        Args:
            timeout: Drain deadline in seconds (default from settings.SHUTDOWN_TIMEOUT)

        Raises:
            ShutdownTimeoutError: If queued commands had to be aborted
        """
        if self._server is not None:
            self._server.close()
            try:
                await self._server.wait_closed()
            finally:
                self._server = None
                self._running = False

        await self.sequencer.shutdown(timeout=timeout)

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def _server_stats(self) -> dict:
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
        }

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with server stats including connection counts,
            request counts, and sequencer statistics.
        """
        stats = self._server_stats()
        stats["sequencer_stats"] = self.sequencer.get_stats()
        return stats
