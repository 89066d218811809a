"""
One live query registered with one relay connection.

A [Subscription][nostrpool.client.subscription.Subscription] is created by
[RelayConnection.subscribe()][nostrpool.client.relay.RelayConnection.subscribe]
and owned by that connection, which routes ``EVENT``, ``EOSE`` and
``CLOSED`` envelopes to it by id.

Lifecycle:

```text
         fire()          EOSE / deadline           close()
(new) ----------> OPEN ------------------> EOSED ------------> CLOSED
                   |                                              ^
                   +----------------------------------------------+
                          close() / CLOSED / connection teardown
```

``on_eose`` fires at most once, whichever of the relay's signal or the
local deadline comes first. ``on_close`` fires exactly once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from nostrpool.core.logger import Logger
from nostrpool.models import Event, Filter, SubscriptionState
from nostrpool.models.messages import encode_close, encode_req


if TYPE_CHECKING:
    from .relay import RelayConnection


_logger = Logger("client.subscription")

DEFAULT_CLOSE_REASON = "closed by caller"


@dataclass(frozen=True, slots=True)
class SubscriptionParams:
    """Options and callbacks for a single-relay subscription.

    Attributes:
        id: Subscription id sent in ``REQ``; ``sub:<serial>`` when omitted.
        on_event: Called with each verified event matching the filters.
        on_eose: Called once when stored events are exhausted.
        on_close: Called once with the close reason.
        already_have_event: Predicate consulted with the raw event id
            before parsing; a true result suppresses delivery.
        received_event: Called with the connection and event id for every
            event frame addressed to this subscription, including the
            suppressed ones.
        eose_timeout: Local EOSE deadline in seconds; the connection's
            default when omitted.
    """

    id: str | None = None
    on_event: Callable[[Event], None] | None = None
    on_eose: Callable[[], None] | None = None
    on_close: Callable[[str], None] | None = None
    already_have_event: Callable[[str], bool] | None = None
    received_event: Callable[[RelayConnection, str], None] | None = None
    eose_timeout: float | None = None


class Subscription:
    """Filter-bound live query on one relay.

    Attributes:
        relay: Owning connection.
        id: Subscription id, unique among the connection's open subscriptions.
        filters: Filters sent in ``REQ`` and re-checked locally per event.
        closed_by_server: True once the relay sent ``CLOSED`` for this id.
    """

    def __init__(
        self,
        relay: RelayConnection,
        id: str,  # noqa: A002
        filters: Sequence[Filter],
        params: SubscriptionParams | None = None,
    ) -> None:
        params = params or SubscriptionParams()
        self.relay = relay
        self.id = id
        self.filters: tuple[Filter, ...] = tuple(filters)
        self.on_event: Callable[[Event], None] = params.on_event or self._warn_unhandled
        self.on_eose = params.on_eose
        self.on_close = params.on_close
        self.already_have_event = params.already_have_event
        self.received_event = params.received_event
        self.eose_timeout: float = params.eose_timeout or relay.eose_timeout
        self.closed_by_server = False

        self._eosed = False
        self._closed = False
        self._eose_timer: asyncio.TimerHandle | None = None

    def __repr__(self) -> str:
        return f"Subscription(id={self.id!r}, relay={self.relay.url!r}, state={self.state.value})"

    @property
    def state(self) -> SubscriptionState:
        if self._closed:
            return SubscriptionState.CLOSED
        if self._eosed:
            return SubscriptionState.EOSED
        return SubscriptionState.OPEN

    @property
    def eosed(self) -> bool:
        return self._eosed

    @property
    def closed(self) -> bool:
        return self._closed

    def fire(self) -> None:
        """Send ``REQ`` and arm the EOSE deadline.

        Raises:
            ConnectionClosedError: If the relay never started connecting.
        """
        self.relay.send(encode_req(self.id, self.filters))
        loop = asyncio.get_running_loop()
        self._eose_timer = loop.call_later(self.eose_timeout, self._eose_deadline)

    def received_eose(self) -> None:
        """Mark stored events as exhausted; no-op after the first call."""
        if self._eosed or self._closed:
            return
        self._cancel_timer()
        self._eosed = True
        if self.on_eose is not None:
            self.on_eose()

    def close(self, reason: str = DEFAULT_CLOSE_REASON) -> None:
        """Close the subscription; no-op after the first call.

        Sends ``CLOSE`` unless the relay closed it first or the connection
        is already down, unregisters it from the connection, then fires
        ``on_close(reason)``.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        if not self.closed_by_server and (self.relay.connected or self.relay.connecting):
            self.relay.send(encode_close(self.id))
        self.relay.forget_subscription(self)
        if self.on_close is not None:
            self.on_close(reason)

    def _eose_deadline(self) -> None:
        self._eose_timer = None
        if not self._eosed and not self._closed:
            _logger.debug("subscription_eose_timeout", relay=self.relay.url, subscription=self.id)
        try:
            self.received_eose()
        except Exception:
            _logger.exception("subscription_callback_error", relay=self.relay.url, subscription=self.id)

    def _cancel_timer(self) -> None:
        if self._eose_timer is not None:
            self._eose_timer.cancel()
            self._eose_timer = None

    def _warn_unhandled(self, event: Event) -> None:
        _logger.warning(
            "subscription_event_unhandled",
            relay=self.relay.url,
            subscription=self.id,
            event_id=event.id,
        )
