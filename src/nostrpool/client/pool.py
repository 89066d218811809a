"""
Fan-out of subscriptions and publishes across many relays.

[RelayPool][nostrpool.client.pool.RelayPool] keeps at most one
[RelayConnection][nostrpool.client.relay.RelayConnection] per normalized
URL and coordinates N of them into one aggregated result:

* one merged event stream, deduplicated by event id (first relay wins);
* one aggregate ``on_eose``, fired once every relay has reached EOSE by
  signal, deadline, connect failure or close;
* one aggregate ``on_close`` carrying every relay's reason.

A failure on one relay only closes that relay's slot; it never aborts the
aggregate.

Examples:
    ```python
    pool = RelayPool.from_yaml("pool.yaml")
    events = await pool.query_sync(
        ["wss://relay.damus.io", "nos.lol"], Filter(kinds=(1,), limit=20)
    )
    newest = await pool.get(pool.config.relays, Filter(authors=(pubkey,), kinds=(0,)))
    pool.destroy()
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from nostrpool.core.exceptions import DuplicateRelayError
from nostrpool.core.logger import Logger
from nostrpool.core.yaml import load_yaml
from nostrpool.models import Event, Filter, normalize_url
from nostrpool.utils.crypto import Verifier, always_true, verify_event
from nostrpool.utils.transport import TransportFactory

from .configs import PoolConfig
from .relay import RelayConnection
from .subscription import DEFAULT_CLOSE_REASON, Subscription, SubscriptionParams


DUPLICATE_URL_REASON = "duplicate url"


@dataclass(frozen=True, slots=True)
class SubscribeManyParams:
    """Options and callbacks for a multi-relay subscription.

    Attributes:
        id: Subscription id used on every relay (``sub:<serial>`` per relay
            when omitted).
        on_event: Called once per distinct event id across all relays.
        on_eose: Called once when every relay has reached EOSE.
        on_close: Called once when every relay's subscription has closed,
            with the reasons in request order.
        already_have_event: Caller-side dedup predicate, consulted before
            the pool's own seen-set.
        max_wait: EOSE deadline per relay in seconds. Also bounds connection
            time to ``max(0.8 * max_wait, max_wait - 1)``.
    """

    id: str | None = None
    on_event: Callable[[Event], None] | None = None
    on_eose: Callable[[], None] | None = None
    on_close: Callable[[list[str]], None] | None = None
    already_have_event: Callable[[str], bool] | None = None
    max_wait: float | None = None


class SubCloser:
    """Handle returned by ``subscribe_many``; closing it closes every relay's slot.

    ``close()`` is synchronous. Relays still connecting when it is called
    never send ``REQ``; their slots close with the caller's reason.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    def close(self) -> None:
        self._closed = True
        for subscription in list(self._subscriptions):
            subscription.close()

    async def wait_opened(self) -> None:
        """Wait until every relay has either subscribed or failed."""
        await asyncio.gather(*self._tasks)

    def _add(self, subscription: Subscription) -> None:
        self._subscriptions.append(subscription)


class _FanIn:
    """Per-call aggregation of relay slots into single EOSE and close signals."""

    def __init__(self, total: int, params: SubscribeManyParams) -> None:
        self._total = total
        self._params = params
        self._eosed: set[int] = set()
        self._reasons: dict[int, str] = {}
        self._eose_fired = False
        self._close_fired = False
        self._known_ids: set[str] = set()

    def eose(self, index: int) -> None:
        self._eosed.add(index)
        if not self._eose_fired and len(self._eosed) == self._total:
            self._eose_fired = True
            if self._params.on_eose is not None:
                self._params.on_eose()

    def close(self, index: int, reason: str) -> None:
        self.eose(index)
        self._reasons.setdefault(index, reason)
        if not self._close_fired and len(self._reasons) == self._total:
            self._close_fired = True
            if self._params.on_close is not None:
                self._params.on_close([self._reasons[i] for i in range(self._total)])

    def settle_empty(self) -> None:
        """Fire both aggregate signals for a call that named no relays."""
        self._eose_fired = self._close_fired = True
        if self._params.on_eose is not None:
            self._params.on_eose()
        if self._params.on_close is not None:
            self._params.on_close([])

    def already_have(self, event_id: str) -> bool:
        if self._params.already_have_event is not None and self._params.already_have_event(
            event_id
        ):
            return True
        have = event_id in self._known_ids
        self._known_ids.add(event_id)
        return have


class RelayPool:
    """Connections to many relays behind one fan-out API.

    Attributes:
        config: Pool configuration.
        relays: Open or opening connections keyed by normalized URL.
        seen_on: Event id to the connections that delivered or accepted it;
            maintained only when ``track_relays`` is true.
        track_relays: Whether ``seen_on`` is maintained.
        trusted_relay_urls: Normalized URLs whose events skip verification.
    """

    def __init__(
        self,
        config: PoolConfig | None = None,
        *,
        verify: Verifier = verify_event,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.config = config or PoolConfig()
        self.relays: dict[str, RelayConnection] = {}
        self.seen_on: dict[str, set[RelayConnection]] = {}
        self.track_relays = self.config.track_relays
        self.trusted_relay_urls: set[str] = set(self.config.trusted_relays)
        self._verify = verify
        self._transport_factory = transport_factory
        self._logger = Logger("client.pool")

    @classmethod
    def from_yaml(cls, config_path: str, **kwargs: Any) -> RelayPool:
        """Create a pool from a YAML configuration file.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file is not valid YAML.
            pydantic.ValidationError: If the contents do not match
                [PoolConfig][nostrpool.client.configs.PoolConfig].
        """
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any], **kwargs: Any) -> RelayPool:
        """Create a pool from a configuration dictionary."""
        return cls(PoolConfig(**config_dict), **kwargs)

    async def __aenter__(self) -> RelayPool:
        return self

    async def __aexit__(self, *_: object) -> None:
        relays = list(self.relays.values())
        self.destroy()
        for relay in relays:
            await relay.wait_closed()

    # -- Connections -----------------------------------------------------------

    async def ensure_relay(
        self, url: str, *, connection_timeout: float | None = None
    ) -> RelayConnection:
        """Return the open connection for *url*, opening it if needed.

        Concurrent calls for the same relay share one connection. A
        connection whose last attempt failed is retried.

        Args:
            url: Relay URL in any form accepted by
                [normalize_url()][nostrpool.models.relay_url.normalize_url].
            connection_timeout: Overrides the configured timeout when the
                connection is created by this call.

        Raises:
            ValueError: If *url* is not a valid relay URL.
            ConnectivityError: If the connection could not be opened.
        """
        url = normalize_url(url)
        relay = self.relays.get(url)
        if relay is None:
            relay = RelayConnection(
                url,
                config=self.config.relay,
                verify=always_true if url in self.trusted_relay_urls else self._verify,
                transport_factory=self._transport_factory,
            )
            if connection_timeout is not None:
                relay.connection_timeout = connection_timeout
            self.relays[url] = relay
        await relay.connect()
        return relay

    def list_connection_status(self) -> dict[str, bool]:
        """Return the connected flag of every known relay by URL."""
        return {url: relay.connected for url, relay in self.relays.items()}

    def close(self, urls: Sequence[str]) -> None:
        """Close the connections to *urls*; unknown URLs are ignored."""
        for url in urls:
            relay = self.relays.get(normalize_url(url))
            if relay is not None:
                relay.close()

    def destroy(self) -> None:
        """Close every connection and forget them, along with ``seen_on``."""
        for relay in self.relays.values():
            relay.close()
        self._logger.info("pool_destroyed", relays=len(self.relays))
        self.relays = {}
        self.seen_on = {}

    # -- Subscriptions ---------------------------------------------------------

    def subscribe_many(
        self,
        urls: Sequence[str],
        filters: Sequence[Filter],
        params: SubscribeManyParams | None = None,
    ) -> SubCloser:
        """Subscribe to the same *filters* on every relay in *urls*.

        Returns immediately; connections open in the background. Repeated
        URLs (after normalization) close their slot with ``duplicate url``.
        """
        return self._subscribe(
            [(url, filters) for url in urls], params or SubscribeManyParams(), SubCloser()
        )

    def subscribe_many_map(
        self,
        requests: Mapping[str, Sequence[Filter]],
        params: SubscribeManyParams | None = None,
    ) -> SubCloser:
        """Subscribe with per-relay filters, ``{url: filters}``."""
        return self._subscribe(
            list(requests.items()), params or SubscribeManyParams(), SubCloser()
        )

    def subscribe_many_eose(
        self,
        urls: Sequence[str],
        filters: Sequence[Filter],
        params: SubscribeManyParams | None = None,
    ) -> SubCloser:
        """Like ``subscribe_many``, closing everything once aggregate EOSE fires."""
        params = params or SubscribeManyParams()
        closer = SubCloser()
        caller_on_eose = params.on_eose

        def on_eose() -> None:
            if caller_on_eose is not None:
                caller_on_eose()
            closer.close()

        return self._subscribe(
            [(url, filters) for url in urls], replace(params, on_eose=on_eose), closer
        )

    def _subscribe(
        self,
        requests: list[tuple[str, Sequence[Filter]]],
        params: SubscribeManyParams,
        closer: SubCloser,
    ) -> SubCloser:
        fan = _FanIn(len(requests), params)
        connection_timeout = (
            max(params.max_wait * 0.8, params.max_wait - 1.0) if params.max_wait else None
        )
        loop = asyncio.get_running_loop()
        seen_urls: set[str] = set()

        for index, (url, filters) in enumerate(requests):
            try:
                url = normalize_url(url)
            except ValueError as e:
                fan.close(index, str(e))
                continue
            if url in seen_urls:
                fan.close(index, DUPLICATE_URL_REASON)
                continue
            seen_urls.add(url)
            closer._tasks.append(
                loop.create_task(
                    self._subscribe_one(
                        index, url, filters, params, fan, closer, connection_timeout
                    )
                )
            )

        if not requests:
            fan.settle_empty()
        return closer

    async def _subscribe_one(
        self,
        index: int,
        url: str,
        filters: Sequence[Filter],
        params: SubscribeManyParams,
        fan: _FanIn,
        closer: SubCloser,
        connection_timeout: float | None,
    ) -> None:
        try:
            relay = await self.ensure_relay(url, connection_timeout=connection_timeout)
        except Exception as e:
            self._logger.info("relay_unavailable", relay=url, error=str(e))
            fan.close(index, str(e) or type(e).__name__)
            return

        if closer.closed:
            fan.close(index, DEFAULT_CLOSE_REASON)
            return

        try:
            subscription = relay.subscribe(
                filters,
                SubscriptionParams(
                    id=params.id,
                    on_event=params.on_event,
                    on_eose=lambda: fan.eose(index),
                    on_close=lambda reason: fan.close(index, reason),
                    already_have_event=fan.already_have,
                    received_event=self._record_seen if self.track_relays else None,
                    eose_timeout=params.max_wait,
                ),
            )
        except Exception as e:
            self._logger.info("subscribe_failed", relay=url, error=str(e))
            fan.close(index, str(e) or type(e).__name__)
            return
        closer._add(subscription)

    def _record_seen(self, relay: RelayConnection, event_id: str) -> None:
        self.seen_on.setdefault(event_id, set()).add(relay)

    # -- One-shot queries ------------------------------------------------------

    async def query_sync(
        self,
        urls: Sequence[str],
        flt: Filter,
        params: SubscribeManyParams | None = None,
    ) -> list[Event]:
        """Collect every event matching *flt* until all relays reach EOSE."""
        params = params or SubscribeManyParams()
        events: list[Event] = []
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_close(_reasons: list[str]) -> None:
            if not done.done():
                done.set_result(None)

        closer = self.subscribe_many_eose(
            urls, [flt], replace(params, on_event=events.append, on_close=on_close)
        )
        try:
            await done
        finally:
            closer.close()
        return events

    async def get(
        self,
        urls: Sequence[str],
        flt: Filter,
        params: SubscribeManyParams | None = None,
    ) -> Event | None:
        """Return the newest event matching *flt* across *urls*, or ``None``.

        The filter sent is a copy of *flt* with ``limit=1``.
        """
        events = await self.query_sync(urls, replace(flt, limit=1), params)
        return max(events, key=lambda e: e.created_at, default=None)

    # -- Publishing ------------------------------------------------------------

    def publish(self, urls: Sequence[str], event: Event) -> list[asyncio.Task[str]]:
        """Publish *event* to every relay, one task per entry of *urls*.

        Each task resolves with that relay's acceptance message or fails
        with its own error; repeated URLs fail with
        [DuplicateRelayError][nostrpool.core.exceptions.DuplicateRelayError].
        """
        loop = asyncio.get_running_loop()
        seen_urls: set[str] = set()
        tasks: list[asyncio.Task[str]] = []
        for url in urls:
            try:
                normalized = normalize_url(url)
            except ValueError as e:
                tasks.append(loop.create_task(self._fail(e)))
                continue
            if normalized in seen_urls:
                tasks.append(
                    loop.create_task(self._fail(DuplicateRelayError(DUPLICATE_URL_REASON)))
                )
                continue
            seen_urls.add(normalized)
            tasks.append(loop.create_task(self._publish_one(normalized, event)))
        return tasks

    async def _publish_one(self, url: str, event: Event) -> str:
        relay = await self.ensure_relay(url)
        reason = await relay.publish(event)
        if self.track_relays:
            self._record_seen(relay, event.id)
        return reason

    @staticmethod
    async def _fail(error: Exception) -> str:
        raise error
