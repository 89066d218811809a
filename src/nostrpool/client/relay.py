"""
Protocol engine for one persistent connection to one relay.

[RelayConnection][nostrpool.client.relay.RelayConnection] multiplexes many
subscriptions and correlated request/response exchanges (publish, auth,
count) over a single WebSocket and tears all of them down deterministically
when the connection goes away.

Architecture:
    Three background tasks per open connection, all on the caller's loop:

    * reader: pulls frames off the WebSocket into an
      [InboundMessageQueue][nostrpool.client.queue.InboundMessageQueue].
    * drain: started on demand when the queue is non-empty; dispatches
      one frame per loop turn, so a burst from one relay cannot monopolize
      the loop. Frames on one connection are handled strictly in arrival
      order.
    * writer: the single writer of the socket. Frames sent before the
      connection opens wait in its outbox; ``close()`` flushes it before
      the socket is closed.

Teardown:
    Every path (our ``close()``, remote close, transport error, failed
    connect) closes all subscriptions with a reason and rejects every
    pending publish and count with
    [ConnectionClosedError][nostrpool.core.exceptions.ConnectionClosedError]
    before returning:

    ==============================  ====================================
    Trigger                         Reason
    ==============================  ====================================
    connect deadline expired        ``relay connection timed out``
    transport error                 ``relay connection errored``
    relay closed the socket         ``relay connection closed``
    ``close()``                     ``relay connection closed by us``
    ==============================  ====================================

Examples:
    ```python
    async with RelayConnection("relay.example.com") as relay:
        sub = relay.subscribe(
            [Filter(kinds=(1,), limit=10)],
            SubscriptionParams(on_event=print, on_eose=lambda: print("eose")),
        )
        reason = await relay.publish(event)
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any

from nostrpool.core.exceptions import (
    AuthenticationError,
    ConnectionClosedError,
    ProtocolError,
    PublishRejectedError,
    RelayConnectionError,
    RelayTimeoutError,
)
from nostrpool.core.logger import Logger
from nostrpool.core.metrics import PUBLISH_RESULTS_TOTAL, RELAY_CONNECTIONS, RELAY_MESSAGES_TOTAL
from nostrpool.models import (
    AuthMessage,
    ClosedMessage,
    CountMessage,
    EoseMessage,
    Event,
    EventMessage,
    Filter,
    MessageType,
    NoticeMessage,
    OkMessage,
    make_auth_event,
    match_filters,
    normalize_url,
    parse_relay_message,
)
from nostrpool.models.messages import encode_auth, encode_count, encode_event
from nostrpool.utils.crypto import Signer, Verifier, verify_event
from nostrpool.utils.fakejson import get_hex64, get_subscription_id
from nostrpool.utils.transport import TransportFactory, WebSocketConnection, connect_websocket

from .configs import RelayConfig
from .queue import InboundMessageQueue
from .subscription import Subscription, SubscriptionParams


REASON_TIMED_OUT = "relay connection timed out"
REASON_ERRORED = "relay connection errored"
REASON_CLOSED = "relay connection closed"
REASON_CLOSED_BY_US = "relay connection closed by us"


def _consume_exception(future: asyncio.Future[Any]) -> None:
    # Results nobody awaited must not be reported as "never retrieved".
    if not future.cancelled():
        future.exception()


@dataclass(slots=True)
class PendingRequest:
    """A request awaiting exactly one correlated reply.

    Whichever of reply, timeout or teardown comes first settles the future;
    later attempts are no-ops.
    """

    id: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None

    def resolve(self, value: Any) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)

    def discard(self) -> None:
        self._cancel_timer()
        self.future.cancel()

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class RelayConnection:
    """One WebSocket connection to one relay.

    Attributes:
        url: Normalized relay URL.
        connection_timeout: Seconds allowed for the WebSocket to open.
        eose_timeout: Default local EOSE deadline of new subscriptions.
        publish_timeout: Seconds to wait for an ``OK`` after ``EVENT``/``AUTH``.
        count_timeout: Seconds to wait for a ``COUNT`` reply, or ``None``
            to wait until the connection closes.
        verify: Event verifier; ``verify_event`` unless the relay is trusted.
        on_close: Called when the connection is lost or fails to open (not
            on our own ``close()``).
        on_notice: Called with each ``NOTICE`` text; logs by default.
        on_auth: Called with each ``AUTH`` challenge.
        on_protocol_error: Called with each undecodable frame or malformed
            event, which is then discarded; logs by default.
    """

    def __init__(
        self,
        url: str,
        *,
        config: RelayConfig | None = None,
        verify: Verifier = verify_event,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.url = normalize_url(url)
        self.config = config or RelayConfig()

        timeouts = self.config.timeouts
        self.connection_timeout: float = timeouts.connection
        self.eose_timeout: float = timeouts.eose
        self.publish_timeout: float = timeouts.publish
        self.count_timeout: float | None = timeouts.count

        self.verify = verify
        self.on_close: Callable[[], None] | None = None
        self.on_notice: Callable[[str], None] = self._log_notice
        self.on_auth: Callable[[str], None] | None = None
        self.on_protocol_error: Callable[[ProtocolError], None] = self._log_protocol_error

        if transport_factory is None:
            transport = self.config.transport
            transport_factory = partial(
                connect_websocket,
                proxy_url=transport.proxy_url,
                allow_insecure=transport.allow_insecure,
                heartbeat=transport.heartbeat,
                close_timeout=transport.close_timeout,
            )
        self._transport_factory = transport_factory
        self._logger = Logger("client.relay").bind(relay=self.url)

        self._connected = False
        self._challenge: str | None = None
        self._serial = 0
        self._connect_task: asyncio.Task[None] | None = None
        self._ws: WebSocketConnection | None = None
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._reader_task: asyncio.Task[None] | None = None
        self._drain_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()

        self._subscriptions: dict[str, Subscription] = {}
        self._publishes: dict[str, PendingRequest] = {}
        self._count_requests: dict[str, PendingRequest] = {}
        self._queue = InboundMessageQueue()

    def __repr__(self) -> str:
        return f"RelayConnection(url={self.url!r}, connected={self._connected})"

    @classmethod
    async def open(cls, url: str, **kwargs: Any) -> RelayConnection:
        """Create a connection and wait until it is open."""
        relay = cls(url, **kwargs)
        await relay.connect()
        return relay

    async def __aenter__(self) -> RelayConnection:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        self.close()
        await self.wait_closed()

    # -- State -----------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def connecting(self) -> bool:
        """True while a connection attempt is in flight."""
        return self._connect_task is not None and not self._connected

    @property
    def challenge(self) -> str | None:
        """Latest NIP-42 challenge received on the current connection."""
        return self._challenge

    @property
    def subscriptions(self) -> dict[str, Subscription]:
        """Snapshot of the open subscriptions by id."""
        return dict(self._subscriptions)

    # -- Connection lifecycle --------------------------------------------------

    async def connect(self) -> None:
        """Open the WebSocket, or join the attempt already in flight.

        Once open, further calls return immediately. A failed attempt is
        forgotten, so calling ``connect()`` again starts a new one.

        Raises:
            RelayTimeoutError: If the socket did not open within
                ``connection_timeout``.
            RelayConnectionError: If the transport failed to open.
            ConnectionClosedError: If ``close()`` was called meanwhile.
        """
        if self._connect_task is None:
            self._challenge = None
            self._outbox = asyncio.Queue()
            task = asyncio.get_running_loop().create_task(
                self._open(), name=f"relay-connect:{self.url}"
            )
            task.add_done_callback(_consume_exception)
            self._connect_task = task
        task = self._connect_task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # The attempt itself was cancelled by close(), not our caller.
            current = asyncio.current_task()
            if task.cancelled() and current is not None and not current.cancelling():
                raise ConnectionClosedError(REASON_CLOSED_BY_US) from None
            raise

    async def _open(self) -> None:
        self._logger.debug("relay_connecting", timeout=self.connection_timeout)
        try:
            async with asyncio.timeout(self.connection_timeout):
                ws = await self._transport_factory(self.url)
        except TimeoutError:
            self._fail_connect(REASON_TIMED_OUT)
            raise RelayTimeoutError(f"connection to {self.url} timed out") from None
        except Exception as e:
            self._fail_connect(REASON_ERRORED, e)
            raise RelayConnectionError(f"failed to connect to {self.url}: {e}") from e

        self._ws = ws
        self._connected = True
        self._reader_task = self._spawn(self._read_loop(ws), "reader")
        self._spawn(self._write_loop(ws, self._outbox), "writer")
        RELAY_CONNECTIONS.inc()
        self._logger.info("relay_connected")

    def _fail_connect(self, reason: str, error: BaseException | None = None) -> None:
        self._connect_task = None
        self._outbox = asyncio.Queue()
        if error is not None:
            self._logger.warning("relay_connect_failed", reason=reason, error=str(error))
        else:
            self._logger.warning("relay_connect_failed", reason=reason)
        self._notify_close()
        self._close_all(reason)

    def close(self) -> None:
        """Close the connection and everything multiplexed over it.

        Synchronous: on return every subscription has been closed (``CLOSE``
        queued for each while the socket was still open) and every pending
        publish and count has been rejected. The socket itself is closed in
        the background once queued frames are written; await
        [wait_closed()][nostrpool.client.relay.RelayConnection.wait_closed]
        to observe that.
        """
        was_connected = self._connected
        self._close_all(REASON_CLOSED_BY_US)
        self._connected = False

        connect_task, self._connect_task = self._connect_task, None
        if connect_task is not None and not connect_task.done():
            connect_task.cancel()
        self._queue.clear()

        if was_connected:
            self._stop_transport()
            RELAY_CONNECTIONS.dec()
            self._logger.info("relay_closed")

    async def wait_closed(self) -> None:
        """Wait for background tasks to finish flushing and closing the socket."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _on_transport_lost(self, reason: str, error: BaseException | None = None) -> None:
        if not self._connected:
            return
        self._connected = False
        self._connect_task = None
        self._stop_transport()
        RELAY_CONNECTIONS.dec()
        if error is not None:
            self._logger.warning("relay_disconnected", reason=reason, error=str(error))
        else:
            self._logger.info("relay_disconnected", reason=reason)
        self._notify_close()
        self._close_all(reason)

    def _stop_transport(self) -> None:
        # The writer flushes whatever is queued, then closes the socket.
        self._outbox.put_nowait(None)
        self._outbox = asyncio.Queue()
        reader, self._reader_task = self._reader_task, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        self._ws = None

    def _close_all(self, reason: str) -> None:
        for subscription in list(self._subscriptions.values()):
            try:
                subscription.close(reason)
            except Exception:
                self._logger.exception("subscription_callback_error", subscription=subscription.id)
        self._subscriptions.clear()

        for pending in self._publishes.values():
            PUBLISH_RESULTS_TOTAL.labels(outcome="closed").inc()
            pending.reject(ConnectionClosedError(reason))
        self._publishes.clear()

        for pending in self._count_requests.values():
            pending.reject(ConnectionClosedError(reason))
        self._count_requests.clear()

    def _notify_close(self) -> None:
        if self.on_close is None:
            return
        try:
            self.on_close()
        except Exception:
            self._logger.exception("relay_on_close_error")

    def _spawn(self, coro: Any, role: str) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro, name=f"relay-{role}:{self.url}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # -- Transport tasks -------------------------------------------------------

    async def _read_loop(self, ws: WebSocketConnection) -> None:
        try:
            async for message in ws.messages():
                self._on_message(message)
        except Exception as e:
            self._on_transport_lost(REASON_ERRORED, e)
        else:
            self._on_transport_lost(REASON_CLOSED)

    async def _write_loop(self, ws: WebSocketConnection, outbox: asyncio.Queue[str | None]) -> None:
        try:
            while (message := await outbox.get()) is not None:
                await ws.send(message)
        except Exception as e:
            self._on_transport_lost(REASON_ERRORED, e)
        finally:
            await ws.close()

    # -- Outbound --------------------------------------------------------------

    def send(self, message: str) -> None:
        """Queue a raw frame behind connection completion.

        Raises:
            ConnectionClosedError: If no connection attempt is in progress
                or open.
        """
        if self._connect_task is None:
            raise ConnectionClosedError("sending on closed connection")
        self._outbox.put_nowait(message)

    def subscribe(
        self,
        filters: Sequence[Filter],
        params: SubscriptionParams | None = None,
    ) -> Subscription:
        """Register a subscription and send its ``REQ``.

        Returns immediately; events arrive through the params' callbacks.

        Raises:
            ConnectionClosedError: If the connection was never started.
            ValueError: If ``params.id`` is already open on this connection.
        """
        subscription = self.prepare_subscription(filters, params)
        try:
            subscription.fire()
        except ConnectionClosedError:
            self.forget_subscription(subscription)
            raise
        return subscription

    def prepare_subscription(
        self,
        filters: Sequence[Filter],
        params: SubscriptionParams | None = None,
    ) -> Subscription:
        """Register a subscription without sending ``REQ``; call ``fire()`` later."""
        params = params or SubscriptionParams()
        self._serial += 1
        subscription_id = params.id or f"sub:{self._serial}"
        if subscription_id in self._subscriptions:
            raise ValueError(f"subscription {subscription_id!r} is already open")
        subscription = Subscription(self, subscription_id, filters, params)
        self._subscriptions[subscription_id] = subscription
        return subscription

    def forget_subscription(self, subscription: Subscription) -> None:
        """Drop *subscription* from the routing table if it is still registered."""
        if self._subscriptions.get(subscription.id) is subscription:
            del self._subscriptions[subscription.id]

    async def publish(self, event: Event) -> str:
        """Send ``EVENT`` and wait for the relay's ``OK``.

        A second publish of an event whose acknowledgement is still pending
        waits on the same reply instead of resending.

        Returns:
            The relay's acceptance message (often empty).

        Raises:
            PublishRejectedError: If the relay answered ``OK`` false.
            RelayTimeoutError: If no ``OK`` arrived within ``publish_timeout``.
            ConnectionClosedError: If the connection closed first, or was
                never started.
        """
        return await self._correlate(event.id, encode_event(event))

    async def authenticate(self, sign: Signer) -> str:
        """Answer the relay's latest NIP-42 challenge.

        Args:
            sign: Async callable turning the auth template into a signed
                event (see [make_signer()][nostrpool.utils.crypto.make_signer]).

        Raises:
            AuthenticationError: If no challenge has been received.
            PublishRejectedError: If the relay rejected the auth event.
            RelayTimeoutError: If no ``OK`` arrived within ``publish_timeout``.
        """
        if not self._challenge:
            raise AuthenticationError("can't perform auth, no challenge was received")
        event = await sign(make_auth_event(self.url, self._challenge))
        return await self._correlate(event.id, encode_auth(event))

    async def _correlate(self, event_id: str, frame: str) -> str:
        pending = self._publishes.get(event_id)
        if pending is None:
            pending = self._new_pending(event_id)
            pending.timer = asyncio.get_running_loop().call_later(
                self.publish_timeout, self._expire_publish, pending
            )
            self._publishes[event_id] = pending
            try:
                self.send(frame)
            except ConnectionClosedError:
                del self._publishes[event_id]
                pending.discard()
                raise
        return await asyncio.shield(pending.future)

    async def count(self, filters: Sequence[Filter], *, id: str | None = None) -> int:  # noqa: A002
        """Send ``COUNT`` and wait for the relay's reply.

        Raises:
            RelayTimeoutError: If ``count_timeout`` is set and expires.
            ConnectionClosedError: If the connection closed first, or was
                never started.
            ValueError: If a count with the same id is already pending.
        """
        self._serial += 1
        request_id = id or f"count:{self._serial}"
        if request_id in self._count_requests:
            raise ValueError(f"count request {request_id!r} is already pending")

        pending = self._new_pending(request_id)
        if self.count_timeout is not None:
            pending.timer = asyncio.get_running_loop().call_later(
                self.count_timeout, self._expire_count, pending
            )
        self._count_requests[request_id] = pending
        try:
            self.send(encode_count(request_id, filters))
        except ConnectionClosedError:
            del self._count_requests[request_id]
            pending.discard()
            raise
        return await asyncio.shield(pending.future)

    def _new_pending(self, request_id: str) -> PendingRequest:
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        return PendingRequest(request_id, future)

    def _expire_publish(self, pending: PendingRequest) -> None:
        if self._publishes.get(pending.id) is not pending:
            return
        del self._publishes[pending.id]
        PUBLISH_RESULTS_TOTAL.labels(outcome="timeout").inc()
        self._logger.info("publish_timeout", event_id=pending.id, timeout=self.publish_timeout)
        pending.reject(RelayTimeoutError("publish timed out"))

    def _expire_count(self, pending: PendingRequest) -> None:
        if self._count_requests.get(pending.id) is not pending:
            return
        del self._count_requests[pending.id]
        self._logger.info("count_timeout", request_id=pending.id, timeout=self.count_timeout)
        pending.reject(RelayTimeoutError("count timed out"))

    # -- Inbound ---------------------------------------------------------------

    def _on_message(self, message: str) -> None:
        self._queue.enqueue(message)
        if self._drain_task is None:
            self._drain_task = self._spawn(self._run_queue(), "drain")

    async def _run_queue(self) -> None:
        try:
            while (message := self._queue.dequeue()) is not None:
                try:
                    self._handle_next(message)
                except Exception:
                    self._logger.exception("relay_dispatch_error")
                await asyncio.sleep(0)
        finally:
            self._drain_task = None

    def _handle_next(self, raw: str) -> None:
        # Cheap scan first; frames it cannot read are deduplicated after parsing.
        deduplicated = False
        subscription_id = get_subscription_id(raw)
        if subscription_id is not None:
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                return
            event_id = get_hex64(raw, "id")
            if event_id is not None:
                if self._seen_before(subscription, event_id):
                    return
                deduplicated = True

        try:
            message = parse_relay_message(raw)
        except ValueError as e:
            RELAY_MESSAGES_TOTAL.labels(type="invalid").inc()
            self.on_protocol_error(ProtocolError(str(e)))
            return
        if message is None:
            return

        match message:
            case EventMessage(subscription_id=sid, event=payload):
                RELAY_MESSAGES_TOTAL.labels(type=MessageType.EVENT).inc()
                self._dispatch_event(sid, payload, deduplicated=deduplicated)
            case CountMessage(request_id=rid, count=count):
                RELAY_MESSAGES_TOTAL.labels(type=MessageType.COUNT).inc()
                pending = self._count_requests.pop(rid, None)
                if pending is not None:
                    pending.resolve(count)
            case EoseMessage(subscription_id=sid):
                RELAY_MESSAGES_TOTAL.labels(type=MessageType.EOSE).inc()
                subscription = self._subscriptions.get(sid)
                if subscription is not None:
                    subscription.received_eose()
            case OkMessage(event_id=eid, ok=ok, reason=reason):
                RELAY_MESSAGES_TOTAL.labels(type=MessageType.OK).inc()
                self._settle_publish(eid, ok, reason)
            case ClosedMessage(subscription_id=sid, reason=reason):
                RELAY_MESSAGES_TOTAL.labels(type=MessageType.CLOSED).inc()
                subscription = self._subscriptions.get(sid)
                if subscription is not None:
                    subscription.closed_by_server = True
                    subscription.close(reason)
            case NoticeMessage(text=text):
                RELAY_MESSAGES_TOTAL.labels(type=MessageType.NOTICE).inc()
                self.on_notice(text)
            case AuthMessage(challenge=challenge):
                RELAY_MESSAGES_TOTAL.labels(type=MessageType.AUTH).inc()
                self._challenge = challenge
                if self.on_auth is not None:
                    self.on_auth(challenge)

    def _seen_before(self, subscription: Subscription, event_id: str) -> bool:
        already_have = bool(
            subscription.already_have_event and subscription.already_have_event(event_id)
        )
        if subscription.received_event is not None:
            subscription.received_event(self, event_id)
        if already_have:
            RELAY_MESSAGES_TOTAL.labels(type="duplicate").inc()
        return already_have

    def _dispatch_event(
        self, subscription_id: str, payload: dict[str, Any], *, deduplicated: bool = False
    ) -> None:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            return
        try:
            event = Event.from_dict(payload)
        except (TypeError, ValueError) as e:
            self.on_protocol_error(ProtocolError(f"invalid event on {subscription_id}: {e}"))
            return
        if not deduplicated and self._seen_before(subscription, event.id):
            return
        if not self.verify(event):
            self._logger.debug("relay_unverified_event", subscription=subscription_id, event_id=event.id)
            return
        if match_filters(subscription.filters, event):
            subscription.on_event(event)

    def _settle_publish(self, event_id: str, ok: bool, reason: str) -> None:
        pending = self._publishes.pop(event_id, None)
        if pending is None:
            return
        if ok:
            PUBLISH_RESULTS_TOTAL.labels(outcome="accepted").inc()
            pending.resolve(reason)
        else:
            PUBLISH_RESULTS_TOTAL.labels(outcome="rejected").inc()
            self._logger.info("publish_rejected", event_id=event_id, reason=reason)
            pending.reject(PublishRejectedError(reason))

    def _log_notice(self, text: str) -> None:
        self._logger.info("relay_notice", notice=text)

    def _log_protocol_error(self, error: ProtocolError) -> None:
        self._logger.debug("relay_protocol_error", error=str(error))
