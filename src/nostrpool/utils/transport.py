"""WebSocket transport for relay connections.

Provides the text-message connection primitive that
[RelayConnection][nostrpool.client.relay.RelayConnection] speaks the wire
protocol over. The client layer only depends on the
[WebSocketConnection][nostrpool.utils.transport.WebSocketConnection]
protocol, so tests and alternative transports can be injected through a
``transport_factory``.

The default implementation is built on ``aiohttp``. Overlay networks (Tor,
I2P, Lokinet) are reached through a SOCKS5 proxy via ``aiohttp_socks``.

Note:
    ``allow_insecure=True`` creates an ``ssl.SSLContext`` with ``CERT_NONE``
    and ``check_hostname=False``, accepting self-signed or expired
    certificates. It is off by default and should only be enabled for
    relays known to need it.

Examples:
    ```python
    ws = await connect_websocket("wss://relay.example.com")
    await ws.send('["REQ","sub:1",{"kinds":[1]}]')
    async for frame in ws.messages():
        ...
    await ws.close()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol

import aiohttp
from aiohttp_socks import ProxyConnector


logger = logging.getLogger(__name__)

_WS_CLOSE_TIMEOUT = 5.0


class WebSocketConnection(Protocol):
    """Ordered, full-duplex text message connection to one relay."""

    async def send(self, message: str) -> None: ...

    def messages(self) -> AsyncIterator[str]:
        """Yield inbound text frames until the peer closes.

        Ends normally on a clean close and raises ``OSError`` if the
        connection fails.
        """
        ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str], Awaitable[WebSocketConnection]]


class AiohttpWebSocket:
    """[WebSocketConnection][nostrpool.utils.transport.WebSocketConnection] over aiohttp.

    Owns both the WebSocket and its ``ClientSession``; closing one closes
    the other.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: aiohttp.ClientSession,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self._ws = ws
        self._session = session
        self._close_timeout = close_timeout

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send(self, message: str) -> None:
        try:
            await self._ws.send_str(message)
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise OSError(f"WebSocket send failed: {e}") from e

    async def messages(self) -> AsyncIterator[str]:
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield msg.data.decode("utf-8", errors="replace")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise OSError(f"WebSocket error: {self._ws.exception()}")
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                return

    async def close(self) -> None:
        """Close the WebSocket and session with timeouts to prevent hanging."""
        # aiohttp can raise ClientError, ServerDisconnectedError, etc. during close
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._ws.close(), timeout=self._close_timeout)
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._session.close(), timeout=self._close_timeout)


def _insecure_ssl_context() -> ssl.SSLContext:
    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE
    return ssl_context


async def connect_websocket(
    url: str,
    *,
    proxy_url: str | None = None,
    allow_insecure: bool = False,
    heartbeat: float | None = None,
    close_timeout: float = _WS_CLOSE_TIMEOUT,
) -> AiohttpWebSocket:
    """Open a WebSocket to *url*.

    Args:
        url: Normalized relay URL (``ws://`` or ``wss://``).
        proxy_url: Optional SOCKS5 proxy (e.g. ``socks5://tor:9050``).
        allow_insecure: Disable TLS certificate verification.
        heartbeat: Send WebSocket pings at this interval (seconds).
        close_timeout: Upper bound for closing the socket and session.

    Returns:
        An open [AiohttpWebSocket][nostrpool.utils.transport.AiohttpWebSocket].

    Raises:
        OSError: On connection failure (refused, DNS, TLS, handshake).
        asyncio.CancelledError: If cancelled; the session is closed first.

    Note:
        No overall deadline is applied here; callers wrap the call in
        ``asyncio.timeout()``.
    """
    ssl_context: ssl.SSLContext | bool = _insecure_ssl_context() if allow_insecure else True

    connector: aiohttp.BaseConnector
    if proxy_url:
        connector = ProxyConnector.from_url(proxy_url, ssl=ssl_context)
    else:
        connector = aiohttp.TCPConnector(ssl=ssl_context)
    session = aiohttp.ClientSession(connector=connector)

    try:
        ws = await session.ws_connect(url, heartbeat=heartbeat, autoping=True)
    except aiohttp.ClientError as e:
        await session.close()
        logger.debug("ws_connect_failed url=%s error=%s", url, str(e))
        raise OSError(f"Connection failed: {e}") from e
    except asyncio.CancelledError:
        await session.close()
        raise
    except Exception as e:
        await session.close()
        logger.debug("ws_connect_error url=%s error_type=%s", url, type(e).__name__)
        raise OSError(f"Connection failed: {e}") from e

    logger.debug("ws_connected url=%s proxy=%s insecure=%s", url, bool(proxy_url), allow_insecure)
    return AiohttpWebSocket(ws, session, close_timeout=close_timeout)
