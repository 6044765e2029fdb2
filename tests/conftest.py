"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
from collections import defaultdict
from contextlib import closing
from pathlib import Path
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio

from slotcache.cache.engine import CacheEngine
from slotcache.cache.eviction import EvictionList
from slotcache.cache.oplog import OperationLog
from slotcache.cache.ring import SlotTable
from slotcache.cache.sequencer import CommandSequencer
from slotcache.network.tcp_server import KVServer
from slotcache.protocol.parser import ProtocolParser


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Key Helpers
# ============================================================================

def colliding_keys(limit: int, count: int = 2, prefix: str = "key") -> List[str]:
    """Find `count` keys that share one home slot in a slot space of `limit`."""
    table = SlotTable(limit)
    by_slot = defaultdict(list)
    i = 0
    while True:
        key = f"{prefix}{i}"
        bucket = by_slot[table.home_slot(key)]
        bucket.append(key)
        if len(bucket) == count:
            return bucket
        i += 1


def keys_with_home(limit: int, slot: int, count: int = 1, prefix: str = "key") -> List[str]:
    """Find `count` keys whose home slot is `slot`."""
    table = SlotTable(limit)
    found = []
    i = 0
    while len(found) < count:
        key = f"{prefix}{i}"
        if table.home_slot(key) == slot:
            found.append(key)
        i += 1
    return found


def distinct_home_keys(limit: int, count: int, prefix: str = "key") -> List[str]:
    """Find `count` keys that all have different home slots."""
    table = SlotTable(limit)
    seen = set()
    found = []
    i = 0
    while len(found) < count:
        key = f"{prefix}{i}"
        home = table.home_slot(key)
        if home not in seen:
            seen.add(home)
            found.append(key)
        i += 1
    return found


def read_log(path: Path) -> List[str]:
    """Read operation log lines without newlines."""
    if not path.exists():
        return []
    return path.read_text(encoding='utf-8').splitlines()


# ============================================================================
# Core Structure Fixtures
# ============================================================================

@pytest.fixture
def eviction_list() -> EvictionList:
    """Create an eviction list for testing (5 entries max)."""
    return EvictionList(capacity=5)


@pytest.fixture
def slot_table() -> SlotTable:
    """Create a slot table with a small slot space (10 slots)."""
    return SlotTable(limit=10)


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    """Location of the operation log for a test (parent dir not created)."""
    return tmp_path / "logs" / "cache_log.txt"


@pytest.fixture
def oplog(log_path: Path):
    """Create an operation log without fsync."""
    log = OperationLog(log_path, fsync=False)
    yield log
    log.close()


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def engine_factory(log_path: Path):
    """
    Factory fixture for engines over the test's operation log.

    Usage:
        def test_something(engine_factory):
            engine = engine_factory(capacity=2)
    """
    engines = []

    def factory(**kwargs) -> CacheEngine:
        kwargs.setdefault("capacity", 5)
        kwargs.setdefault("slot_space_size", 100)
        kwargs.setdefault("log_path", log_path)
        kwargs.setdefault("fsync", False)
        kwargs.setdefault("successor_lookup", False)
        engine = CacheEngine(**kwargs)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.close()


@pytest.fixture
def engine(engine_factory) -> CacheEngine:
    """Create an engine with capacity 5 and 100 slots."""
    return engine_factory()


@pytest.fixture
def small_engine(engine_factory) -> CacheEngine:
    """Create an engine with capacity 2 for eviction testing."""
    return engine_factory(capacity=2)


@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


# ============================================================================
# Sequencer Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def sequencer(engine: CacheEngine) -> AsyncGenerator[CommandSequencer, None]:
    """Create and start a sequencer over the default test engine."""
    seq = CommandSequencer(engine, queue_size=0)
    seq.start()

    yield seq

    if not seq.closed:
        await seq.shutdown(timeout=5)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


async def start_server(port: int, engine: CacheEngine):
    """Start a KVServer in a background task and wait for it to listen."""
    srv = KVServer(host='127.0.0.1', port=port, sequencer=CommandSequencer(engine))
    task = asyncio.create_task(srv.start())
    await asyncio.sleep(0.1)
    return srv, task


async def stop_server(srv: KVServer, task: asyncio.Task) -> None:
    """Stop a server started with start_server()."""
    await srv.stop(timeout=5)
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@pytest_asyncio.fixture
async def server(server_port: int, engine: CacheEngine) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVServer on a random free port over the test engine
    2. Starts it in a background task
    3. Yields the server for testing
    4. Stops it (draining the sequencer) after the test
    """
    srv, task = await start_server(server_port, engine)

    yield srv

    await stop_server(srv, task)


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', 7171) as client:
            response = await client.send_command("PUT key 1")
            assert response == "OK stored"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except Exception:
                pass

    async def send_command(self, command: str) -> str:
        """
        Send a command and receive the response.

        Returns:
            Response string (stripped of trailing newline)
        """
        if not command.endswith('\n'):
            command += '\n'

        self.writer.write(command.encode())
        await self.writer.drain()

        response = await self.reader.readline()
        return response.decode().strip()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("GET key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
