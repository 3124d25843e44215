"""
Test configuration and fixtures for NakenBridge tests.

Provides:
- An in-process chat server speaking the line protocol over raw TCP
- Relay instances bound to an ephemeral port
- A controllable clock for pending-send expiry
"""

import asyncio
import socket
import struct
from dataclasses import dataclass
from typing import List, Optional

import pytest
import pytest_asyncio
from websockets.asyncio.client import ClientConnection

from NakenBridge.core.logging import configure_logging, create_testing_config
from NakenBridge.core.relay import MODE_FIXED, RelayServer, Target


@dataclass
class BridgeTestConfig:
    """Configuration for relay tests."""
    host: str = "127.0.0.1"
    timeout: float = 5.0
    connect_timeout: float = 2.0


class FakeChatServer:
    """
    Minimal stand-in for a Naken chat server.

    Records every line a client writes and lets the test push text to
    connected clients.
    """

    def __init__(self, host: str = "127.0.0.1", banner: str = ""):
        self.host = host
        self.port: Optional[int] = None
        self.banner = banner
        self.lines: "asyncio.Queue[str]" = asyncio.Queue()
        self.writers: List[asyncio.StreamWriter] = []
        self.connections = 0
        self._connected = asyncio.Event()
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, self.host, 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        await self.close_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.writers.append(writer)
        self.connections += 1
        self._connected.set()
        if self.banner:
            writer.write(self.banner.encode("utf-8"))
            await writer.drain()
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                await self.lines.put(line.decode("utf-8"))
        except (ConnectionError, OSError):
            pass

    async def wait_connected(self, timeout: float = 5.0) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def next_line(self, timeout: float = 5.0) -> str:
        return await asyncio.wait_for(self.lines.get(), timeout)

    async def send(self, data) -> None:
        """Write text (or raw bytes) to every connected client."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        for writer in self.writers:
            writer.write(data)
            await writer.drain()

    async def close_clients(self) -> None:
        writers, self.writers = self.writers, []
        for writer in writers:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def abort_clients(self) -> None:
        """Reset every client connection instead of closing it cleanly."""
        writers, self.writers = self.writers, []
        for writer in writers:
            sock = writer.get_extra_info("socket")
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
            writer.transport.abort()


async def recv_until(websocket: ClientConnection, expected: str, timeout: float = 5.0) -> str:
    """Receive frames until their concatenation contains ``expected``."""
    received = ""

    async def _collect():
        nonlocal received
        while expected not in received:
            frame = await websocket.recv()
            received += frame if isinstance(frame, str) else frame.decode("utf-8")

    await asyncio.wait_for(_collect(), timeout)
    return received


async def wait_until(predicate, timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it is true."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


def unused_port() -> int:
    """A port with (very likely) nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def test_config() -> BridgeTestConfig:
    """Provide test configuration."""
    return BridgeTestConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def chat_server(test_config: BridgeTestConfig):
    """Start a fake chat server on an ephemeral port."""
    server = FakeChatServer(test_config.host)
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def relay(test_config: BridgeTestConfig):
    """Negotiated-mode relay on an ephemeral port."""
    server = RelayServer(connect_timeout=test_config.connect_timeout)
    async with server.run(test_config.host, 0):
        yield server


@pytest_asyncio.fixture
async def fixed_relay(test_config: BridgeTestConfig, chat_server: FakeChatServer):
    """Fixed-mode relay pointed at the fake chat server."""
    server = RelayServer(
        mode=MODE_FIXED,
        fixed_target=Target(chat_server.host, chat_server.port),
        connect_timeout=test_config.connect_timeout
    )
    async with server.run(test_config.host, 0):
        yield server


@pytest.fixture
def relay_url(relay: RelayServer, test_config: BridgeTestConfig) -> str:
    return f"ws://{test_config.host}:{relay.port}"


def pytest_configure(config):
    """Configure logging and register custom markers."""
    configure_logging(create_testing_config())
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
