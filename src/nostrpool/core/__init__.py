"""Core layer providing logging, errors, metrics and config loading.

Sits beside utils in the diamond DAG, depending only on
``nostrpool.models`` and depended upon by ``nostrpool.client``.

Attributes:
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrpool.core.logger.Logger].
    Exceptions: Typed hierarchy rooted at
        [NostrPoolError][nostrpool.core.exceptions.NostrPoolError].
    Metrics: Prometheus counters and gauges updated by relay connections.
        See [nostrpool.core.metrics][nostrpool.core.metrics].
    YAML: Safe YAML loading with ``yaml.safe_load()`` to prevent code execution.
        See [load_yaml()][nostrpool.core.yaml.load_yaml].

Examples:
    ```python
    from nostrpool.core import Logger, load_yaml

    logger = Logger("client.pool")
    config = load_yaml("pool.yaml")
    ```

See Also:
    [nostrpool.models][nostrpool.models]: Pure dataclass models consumed by this layer.
    [nostrpool.client][nostrpool.client]: The protocol engine built on this layer.
"""

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectionClosedError,
    ConnectivityError,
    DuplicateRelayError,
    NostrPoolError,
    ProtocolError,
    PublishingError,
    PublishRejectedError,
    RelayConnectionError,
    RelayTimeoutError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import PUBLISH_RESULTS_TOTAL, RELAY_CONNECTIONS, RELAY_MESSAGES_TOTAL
from .yaml import load_yaml


__all__ = [
    "PUBLISH_RESULTS_TOTAL",
    "RELAY_CONNECTIONS",
    "RELAY_MESSAGES_TOTAL",
    "AuthenticationError",
    "ConfigurationError",
    "ConnectionClosedError",
    "ConnectivityError",
    "DuplicateRelayError",
    "Logger",
    "NostrPoolError",
    "ProtocolError",
    "PublishRejectedError",
    "PublishingError",
    "RelayConnectionError",
    "RelayTimeoutError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
]
