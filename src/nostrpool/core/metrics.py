"""
Prometheus metrics for relay connections.

Defines module-level metric objects (singletons, thread-safe) updated by
[RelayConnection][nostrpool.client.relay.RelayConnection]. Applications that
already expose a Prometheus endpoint pick them up from the default registry;
nothing here starts a server.

Architecture:
    RELAY_CONNECTIONS:        Gauge of currently open relay connections.
    RELAY_MESSAGES_TOTAL:     Inbound envelopes by type (``invalid`` for
                              undecodable frames, ``duplicate`` for events
                              short-circuited before parsing).
    PUBLISH_RESULTS_TOTAL:    Publish outcomes (accepted, rejected, timeout,
                              closed).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge


RELAY_CONNECTIONS = Gauge(
    "nostrpool_relay_connections",
    "Number of relay connections currently open",
)

RELAY_MESSAGES_TOTAL = Counter(
    "nostrpool_relay_messages_total",
    "Inbound relay envelopes processed, by type",
    ["type"],
)

PUBLISH_RESULTS_TOTAL = Counter(
    "nostrpool_publish_results_total",
    "Publish acknowledgements, by outcome",
    ["outcome"],
)
