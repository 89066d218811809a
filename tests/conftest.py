"""
Pytest configuration and shared fixtures for nostrpool tests.

Provides:
- FakeWebSocket: in-memory relay socket recording outbound frames
- FakeTransport: transport factory that can refuse, hang or gate connects
- Relay, pool and event factories with short timeouts
"""

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import pytest

from nostrpool.client import PoolConfig, RelayConfig, RelayConnection, RelayPool
from nostrpool.client.configs import RelayTimeoutsConfig
from nostrpool.models import Event
from nostrpool.utils.crypto import always_true


RELAY_URL = "wss://relay.example.com"


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fake Transport
# ============================================================================


class FakeWebSocket:
    """In-memory WebSocket: tests feed inbound frames and inspect ``sent``."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[str | Exception | None] = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise OSError("send on closed socket")
        self.sent.append(message)

    async def messages(self):
        while (item := await self._inbox.get()) is not None:
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.closed = True

    def feed(self, *envelopes: Any) -> None:
        """Queue inbound frames; non-strings are JSON encoded compactly."""
        for envelope in envelopes:
            if not isinstance(envelope, str):
                envelope = json.dumps(envelope, separators=(",", ":"))
            self._inbox.put_nowait(envelope)

    def remote_close(self) -> None:
        self._inbox.put_nowait(None)

    def fail(self, error: Exception | None = None) -> None:
        self._inbox.put_nowait(error or OSError("connection reset by peer"))

    def frames(self, message_type: str | None = None) -> list[list[Any]]:
        """Decoded outbound frames, optionally only those of *message_type*."""
        decoded = [json.loads(message) for message in self.sent]
        if message_type is None:
            return decoded
        return [frame for frame in decoded if frame[0] == message_type]


class FakeTransport:
    """Transport factory handing out FakeWebSocket instances by URL."""

    def __init__(self) -> None:
        self.sockets: dict[str, FakeWebSocket] = {}
        self.attempts: list[str] = []
        self.refused: set[str] = set()
        self.hanging: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}

    async def __call__(self, url: str) -> FakeWebSocket:
        self.attempts.append(url)
        if url in self.gates:
            await self.gates[url].wait()
        if url in self.refused:
            raise OSError(f"connection refused: {url}")
        if url in self.hanging:
            await asyncio.Event().wait()
        ws = FakeWebSocket(url)
        self.sockets[url] = ws
        return ws

    def gate(self, url: str) -> asyncio.Event:
        """Hold connects to *url* until the returned event is set."""
        self.gates[url] = asyncio.Event()
        return self.gates[url]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


# ============================================================================
# Client Fixtures
# ============================================================================


@pytest.fixture
def relay_config() -> RelayConfig:
    """Relay config with timeouts short enough for unit tests."""
    return RelayConfig(
        timeouts=RelayTimeoutsConfig(connection=0.2, eose=0.2, publish=0.1, count=0.1)
    )


@pytest.fixture
def make_relay(
    transport: FakeTransport, relay_config: RelayConfig
) -> Callable[..., RelayConnection]:
    """Factory for connections over the fake transport that accept every event."""

    def _make(url: str = RELAY_URL, **kwargs: Any) -> RelayConnection:
        kwargs.setdefault("config", relay_config)
        kwargs.setdefault("verify", always_true)
        kwargs.setdefault("transport_factory", transport)
        return RelayConnection(url, **kwargs)

    return _make


@pytest.fixture
def pool(transport: FakeTransport, relay_config: RelayConfig) -> RelayPool:
    return RelayPool(
        PoolConfig(relay=relay_config), verify=always_true, transport_factory=transport
    )


# ============================================================================
# Sample Data
# ============================================================================


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory for well-formed (unsigned) events with distinct ids."""

    def _make(
        n: int = 1,
        *,
        kind: int = 1,
        created_at: int = 1_700_000_000,
        tags: tuple[tuple[str, ...], ...] = (),
        content: str = "",
        pubkey: str = "a" * 64,
    ) -> Event:
        return Event(
            id=f"{n:064x}",
            pubkey=pubkey,
            created_at=created_at,
            kind=kind,
            tags=tags,
            content=content,
            sig="b" * 128,
        )

    return _make
