"""
Unit tests for utils.transport module.

Tests:
- connect_websocket() - connector selection (direct, insecure, SOCKS5 proxy)
- connect_websocket() - failure mapping to OSError and session cleanup
- AiohttpWebSocket.messages() - frame types, clean close and errors
- AiohttpWebSocket.send() / close()
"""

import ssl
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from nostrpool.utils.transport import AiohttpWebSocket, connect_websocket


URL = "wss://relay.example.com"


def _session(ws=None, error=None):
    session = MagicMock()
    session.ws_connect = AsyncMock(return_value=ws or MagicMock(), side_effect=error)
    session.close = AsyncMock()
    return session


def _msg(msg_type, data=None):
    return SimpleNamespace(type=msg_type, data=data)


# =============================================================================
# connect_websocket() Tests
# =============================================================================


class TestConnectWebsocket:
    """connect_websocket() connector setup."""

    @pytest.mark.asyncio
    async def test_direct(self):
        session = _session()
        with (
            patch("nostrpool.utils.transport.aiohttp.TCPConnector") as tcp,
            patch("nostrpool.utils.transport.aiohttp.ClientSession", return_value=session),
        ):
            conn = await connect_websocket(URL, heartbeat=30.0)

        tcp.assert_called_once_with(ssl=True)
        session.ws_connect.assert_awaited_once_with(URL, heartbeat=30.0, autoping=True)
        assert isinstance(conn, AiohttpWebSocket)

    @pytest.mark.asyncio
    async def test_insecure(self):
        with (
            patch("nostrpool.utils.transport.aiohttp.TCPConnector") as tcp,
            patch("nostrpool.utils.transport.aiohttp.ClientSession", return_value=_session()),
        ):
            await connect_websocket(URL, allow_insecure=True)

        ctx = tcp.call_args.kwargs["ssl"]
        assert isinstance(ctx, ssl.SSLContext)
        assert ctx.verify_mode == ssl.CERT_NONE
        assert ctx.check_hostname is False

    @pytest.mark.asyncio
    async def test_proxy(self):
        with (
            patch("nostrpool.utils.transport.ProxyConnector") as proxy,
            patch("nostrpool.utils.transport.aiohttp.TCPConnector") as tcp,
            patch("nostrpool.utils.transport.aiohttp.ClientSession", return_value=_session()),
        ):
            await connect_websocket(URL, proxy_url="socks5://127.0.0.1:9050")

        proxy.from_url.assert_called_once_with("socks5://127.0.0.1:9050", ssl=True)
        tcp.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_error_becomes_oserror(self):
        session = _session(error=aiohttp.ClientConnectionError("refused"))
        with (
            patch("nostrpool.utils.transport.aiohttp.TCPConnector"),
            patch("nostrpool.utils.transport.aiohttp.ClientSession", return_value=session),
            pytest.raises(OSError, match="Connection failed"),
        ):
            await connect_websocket(URL)
        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_oserror(self):
        session = _session(error=ValueError("bad handshake"))
        with (
            patch("nostrpool.utils.transport.aiohttp.TCPConnector"),
            patch("nostrpool.utils.transport.aiohttp.ClientSession", return_value=session),
            pytest.raises(OSError),
        ):
            await connect_websocket(URL)
        session.close.assert_awaited_once()


# =============================================================================
# AiohttpWebSocket Tests
# =============================================================================


class TestAiohttpWebSocket:
    """AiohttpWebSocket adapter."""

    @pytest.fixture
    def ws(self):
        ws = MagicMock()
        ws.send_str = AsyncMock()
        ws.close = AsyncMock()
        ws.closed = False
        return ws

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.close = AsyncMock()
        return session

    @pytest.mark.asyncio
    async def test_messages_until_close(self, ws, session):
        ws.receive = AsyncMock(
            side_effect=[
                _msg(aiohttp.WSMsgType.TEXT, '["EOSE","sub:1"]'),
                _msg(aiohttp.WSMsgType.BINARY, b'["NOTICE","hi"]'),
                _msg(aiohttp.WSMsgType.PING),
                _msg(aiohttp.WSMsgType.CLOSE),
            ]
        )
        conn = AiohttpWebSocket(ws, session)
        frames = [frame async for frame in conn.messages()]
        assert frames == ['["EOSE","sub:1"]', '["NOTICE","hi"]']

    @pytest.mark.asyncio
    async def test_messages_error(self, ws, session):
        ws.receive = AsyncMock(return_value=_msg(aiohttp.WSMsgType.ERROR))
        ws.exception = MagicMock(return_value=ConnectionResetError("reset"))
        conn = AiohttpWebSocket(ws, session)
        with pytest.raises(OSError, match="WebSocket error"):
            async for _ in conn.messages():
                pass

    @pytest.mark.asyncio
    async def test_send(self, ws, session):
        await AiohttpWebSocket(ws, session).send('["CLOSE","sub:1"]')
        ws.send_str.assert_awaited_once_with('["CLOSE","sub:1"]')

    @pytest.mark.asyncio
    async def test_send_error(self, ws, session):
        ws.send_str.side_effect = aiohttp.ClientConnectionError("gone")
        with pytest.raises(OSError, match="send failed"):
            await AiohttpWebSocket(ws, session).send("x")

    @pytest.mark.asyncio
    async def test_close(self, ws, session):
        await AiohttpWebSocket(ws, session).close()
        ws.close.assert_awaited_once()
        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_suppresses_errors(self, ws, session):
        ws.close.side_effect = aiohttp.ClientError("boom")
        await AiohttpWebSocket(ws, session).close()
        session.close.assert_awaited_once()

    def test_closed_property(self, ws, session):
        ws.closed = True
        assert AiohttpWebSocket(ws, session).closed is True


class TestModuleLogger:
    """Module logger naming."""

    def test_named_after_module(self):
        from nostrpool.utils import transport

        assert transport.logger.name == "nostrpool.utils.transport"
