"""Shared constants for the models layer.

Defines the wire envelope tags, well-known event kinds, subscription states,
and the default protocol timeouts used across the client layer. Placing them
here avoids circular dependencies between the models, utils, and client
layers.

See Also:
    [nostrpool.models.messages][]: Uses [MessageType][nostrpool.models.constants.MessageType]
        to decode relay envelopes.
    [nostrpool.client.subscription][]: Uses
        [SubscriptionState][nostrpool.models.constants.SubscriptionState]
        for its lifecycle.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Final


class MessageType(StrEnum):
    """First element of every NIP-01 wire envelope.

    Client to relay: ``REQ``, ``CLOSE``, ``EVENT``, ``COUNT``, ``AUTH``.
    Relay to client: ``EVENT``, ``EOSE``, ``OK``, ``CLOSED``, ``COUNT``,
    ``NOTICE``, ``AUTH``.
    """

    REQ = "REQ"
    CLOSE = "CLOSE"
    EVENT = "EVENT"
    COUNT = "COUNT"
    AUTH = "AUTH"
    EOSE = "EOSE"
    OK = "OK"
    CLOSED = "CLOSED"
    NOTICE = "NOTICE"


class EventKind(IntEnum):
    """Well-known Nostr event kinds used by the client.

    Attributes:
        TEXT_NOTE: Kind 1 -- short text note (NIP-01).
        CLIENT_AUTH: Kind 22242 -- ephemeral client authentication (NIP-42).
    """

    TEXT_NOTE = 1
    CLIENT_AUTH = 22_242


class SubscriptionState(StrEnum):
    """Lifecycle of a [Subscription][nostrpool.client.subscription.Subscription].

    Transitions are one-way: ``OPEN`` -> ``EOSED`` -> ``CLOSED``, with
    ``OPEN`` -> ``CLOSED`` allowed directly.

    Attributes:
        OPEN: ``REQ`` sent, stored events may still be arriving.
        EOSED: The relay signalled end of stored events, or the local
            deadline expired first.
        CLOSED: Cancelled by the caller, closed by the relay, or torn down
            with its connection.
    """

    OPEN = "open"
    EOSED = "eosed"
    CLOSED = "closed"


EVENT_KIND_MAX: Final[int] = 65_535

# Protocol timeouts (seconds)
DEFAULT_CONNECTION_TIMEOUT: Final[float] = 4.4
DEFAULT_EOSE_TIMEOUT: Final[float] = 4.4
DEFAULT_PUBLISH_TIMEOUT: Final[float] = 4.4
DEFAULT_COUNT_TIMEOUT: Final[float] = 4.4
