"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from typing import AsyncGenerator

from respkv.cache.store import KVStore
from respkv.exceptions import IncompleteFrameError
from respkv.network.tcp_server import KVServer
from respkv.protocol import resp
from respkv.protocol.dispatcher import CommandDispatcher
from respkv.protocol.resp import RespParser


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


# ============================================================================
# KVStore Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> KVStore:
    """Create a fresh KVStore driven by the fake clock."""
    return KVStore(clock=clock)


@pytest.fixture
def real_store() -> KVStore:
    """Create a KVStore on the wall clock."""
    return KVStore()


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> RespParser:
    """Create a RespParser instance."""
    return RespParser()


@pytest.fixture
def dispatcher(store: KVStore) -> CommandDispatcher:
    """Create a CommandDispatcher over the fake-clock store."""
    return CommandDispatcher(store)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVServer on a random free port
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    srv = KVServer(host='127.0.0.1', port=server_port, cleanup_interval=0)

    # Start server in background task
    server_task = asyncio.create_task(srv.start())

    # Wait for server to be ready
    await asyncio.sleep(0.1)

    yield srv

    # Cleanup
    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', port) as client:
            reply = await client.send_command("SET", "key", "value")
            assert reply == resp.ok()
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None
        self._buffer = b''

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
            except OSError:
                pass

    async def send_raw(self, data: bytes) -> None:
        """Write raw bytes without waiting for a reply."""
        self.writer.write(data)
        await self.writer.drain()

    async def read_reply(self, timeout: float = 2.0):
        """Read and decode exactly one reply frame."""
        while True:
            try:
                reply, consumed = resp.decode_frame(self._buffer)
            except IncompleteFrameError:
                reply = None
            if reply is not None:
                self._buffer = self._buffer[consumed:]
                return reply

            chunk = await asyncio.wait_for(self.reader.read(4096), timeout)
            if not chunk:
                raise ConnectionError("server closed the connection")
            self._buffer += chunk

    async def read_raw_reply(self, timeout: float = 2.0) -> bytes:
        """Read one reply frame and return its exact bytes."""
        reply = await self.read_reply(timeout)
        return resp.encode(reply)

    async def send_command(self, *parts: str):
        """Send a command as an array of bulk strings and decode the reply."""
        await self.send_raw(resp.encode(resp.command(*parts)))
        return await self.read_reply()

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
                reply = await client.send_command("GET", "key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


@pytest_asyncio.fixture
async def client_reader_writer(
    server: KVServer,
    server_port: int
) -> AsyncGenerator[tuple, None]:
    """
    Create a raw reader/writer pair connected to the server.

    Useful for low-level protocol testing.
    """
    reader, writer = await asyncio.open_connection('127.0.0.1', server_port)

    yield reader, writer

    writer.close()
    await writer.wait_closed()


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

