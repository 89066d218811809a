"""nostrpool exception hierarchy.

Provides typed exceptions for every failure a caller can observe, so that
relay-level problems can be told apart from configuration mistakes and
``CancelledError`` propagates untouched.

Exception hierarchy:

```text
NostrPoolError (base -- never raised directly)
├── ConfigurationError        -- config validation, missing keys, bad YAML
├── ConnectivityError         -- relay unreachable or connection lost
│   ├── RelayConnectionError  -- transport refused or errored while opening
│   ├── RelayTimeoutError     -- connect, publish or count timed out
│   └── ConnectionClosedError -- operation on (or torn down with) a closed connection
├── ProtocolError             -- malformed relay envelope
├── PublishingError           -- event publication failures
│   ├── PublishRejectedError  -- relay answered OK false
│   └── DuplicateRelayError   -- same relay listed twice in one call
└── AuthenticationError       -- NIP-42 auth not possible
```

See Also:
    [RelayConnection][nostrpool.client.relay.RelayConnection]: Raises the
        connectivity, publishing and authentication errors.
    [RelayPool][nostrpool.client.pool.RelayPool]: Surfaces per-relay
        failures without aborting aggregate operations.
"""

from __future__ import annotations


class NostrPoolError(Exception):
    """Base exception for all nostrpool errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrPoolError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(NostrPoolError):
    """Base for all relay/network connectivity errors."""


class RelayConnectionError(ConnectivityError):
    """The transport failed while opening: refused, DNS failure, TLS error."""


class RelayTimeoutError(ConnectivityError):
    """A connection attempt, publish acknowledgement or count reply timed out."""


class ConnectionClosedError(ConnectivityError):
    """The connection was closed before the operation could complete.

    Raised when sending on a connection that was never opened, and used to
    reject every pending request when a connection is torn down. The message
    carries the teardown reason (e.g. ``relay connection closed by us``).
    """


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NostrPoolError):
    """A relay sent an envelope that could not be decoded.

    Never propagated out of the dispatch path: the offending frame is logged
    and discarded.
    """


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(NostrPoolError):
    """Failed to publish a Nostr event to a relay."""


class PublishRejectedError(PublishingError):
    """The relay answered ``["OK", <id>, false, <reason>]``.

    Attributes:
        reason: The machine-readable prefix and message sent by the relay
            (e.g. ``blocked: not on whitelist``).
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DuplicateRelayError(PublishingError):
    """The same normalized relay URL appeared more than once in one call."""


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthenticationError(NostrPoolError):
    """NIP-42 authentication was requested before any challenge arrived."""
