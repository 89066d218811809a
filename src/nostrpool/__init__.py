r"""nostrpool -- Nostr relay protocol client and multi-relay connection pool.

A [RelayConnection][nostrpool.client.relay.RelayConnection] keeps one
WebSocket to one relay and multiplexes subscriptions, publishes and counts
over it. A [RelayPool][nostrpool.client.pool.RelayPool] fans the same
operation out across many relays and merges their replies.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              client           Relay connections, subscriptions, pool
             /      \
          core      utils      Logging, errors, metrics | crypto, transport
             \      /
              models           Pure frozen dataclasses (zero I/O)
```

Note:
    Top-level imports (``from nostrpool import RelayPool``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrpool")

__all__ = [
    "Event",
    "EventTemplate",
    "Filter",
    "Logger",
    "NostrPoolError",
    "PoolConfig",
    "RelayConnection",
    "RelayPool",
    "RelayUrl",
    "SubscribeManyParams",
    "Subscription",
    "SubscriptionParams",
    "normalize_url",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("nostrpool.core", "Logger"),
    "NostrPoolError": ("nostrpool.core", "NostrPoolError"),
    "Event": ("nostrpool.models", "Event"),
    "EventTemplate": ("nostrpool.models", "EventTemplate"),
    "Filter": ("nostrpool.models", "Filter"),
    "RelayUrl": ("nostrpool.models", "RelayUrl"),
    "normalize_url": ("nostrpool.models", "normalize_url"),
    "PoolConfig": ("nostrpool.client", "PoolConfig"),
    "RelayConnection": ("nostrpool.client", "RelayConnection"),
    "RelayPool": ("nostrpool.client", "RelayPool"),
    "SubscribeManyParams": ("nostrpool.client", "SubscribeManyParams"),
    "Subscription": ("nostrpool.client", "Subscription"),
    "SubscriptionParams": ("nostrpool.client", "SubscriptionParams"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrpool' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
