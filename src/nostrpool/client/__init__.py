"""Relay protocol engine: connections, subscriptions and the multi-relay pool.

Top of the diamond DAG; depends on ``nostrpool.core``, ``nostrpool.utils``
and ``nostrpool.models``.

Attributes:
    RelayConnection: One WebSocket to one relay, multiplexing subscriptions,
        publishes and counts. See
        [RelayConnection][nostrpool.client.relay.RelayConnection].
    Subscription: A filter-bound live query on one connection.
    RelayPool: Fan-out across relays with deduplicated, aggregated results.
        See [RelayPool][nostrpool.client.pool.RelayPool].
    InboundMessageQueue: FIFO between socket reads and dispatch.
    PoolConfig: Pydantic configuration loaded by
        [RelayPool.from_yaml()][nostrpool.client.pool.RelayPool.from_yaml].

Examples:
    ```python
    from nostrpool.client import RelayPool, SubscribeManyParams
    from nostrpool.models import Filter

    async with RelayPool() as pool:
        events = await pool.query_sync(["nos.lol"], Filter(kinds=(1,), limit=5))
    ```
"""

from .configs import PoolConfig, RelayConfig, RelayTimeoutsConfig, TransportConfig
from .pool import DUPLICATE_URL_REASON, RelayPool, SubCloser, SubscribeManyParams
from .queue import InboundMessageQueue
from .relay import (
    REASON_CLOSED,
    REASON_CLOSED_BY_US,
    REASON_ERRORED,
    REASON_TIMED_OUT,
    PendingRequest,
    RelayConnection,
)
from .subscription import DEFAULT_CLOSE_REASON, Subscription, SubscriptionParams


__all__ = [
    "DEFAULT_CLOSE_REASON",
    "DUPLICATE_URL_REASON",
    "REASON_CLOSED",
    "REASON_CLOSED_BY_US",
    "REASON_ERRORED",
    "REASON_TIMED_OUT",
    "InboundMessageQueue",
    "PendingRequest",
    "PoolConfig",
    "RelayConfig",
    "RelayConnection",
    "RelayPool",
    "RelayTimeoutsConfig",
    "SubCloser",
    "SubscribeManyParams",
    "Subscription",
    "SubscriptionParams",
    "TransportConfig",
]
