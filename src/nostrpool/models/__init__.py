"""Pure frozen dataclasses with zero I/O for relay addresses, events, filters and envelopes.

The models layer is the foundation of the package. It depends on no other
nostrpool package; every model uses ``@dataclass(frozen=True, slots=True)``
and validates in ``__post_init__`` so invalid instances never escape the
constructor.

Attributes:
    RelayUrl: Normalized relay WebSocket address; the key of every
        connection map. See [normalize_url()][nostrpool.models.relay_url.normalize_url].
    Event: Signed NIP-01 event decoded from the wire.
    EventTemplate: Unsigned event handed to a signer.
    Filter: NIP-01 filter with local matching via
        [match_filter()][nostrpool.models.filter.match_filter] and
        [match_filters()][nostrpool.models.filter.match_filters].
    RelayMessage: Tagged variant of relay-to-client envelopes, decoded by
        [parse_relay_message()][nostrpool.models.messages.parse_relay_message].

See Also:
    [nostrpool.utils.crypto][]: Hashing, signing and verification of
        [Event][nostrpool.models.event.Event] instances.
    [nostrpool.client][]: The protocol engine built on these models.
"""

from .constants import (
    DEFAULT_CONNECTION_TIMEOUT,
    DEFAULT_COUNT_TIMEOUT,
    DEFAULT_EOSE_TIMEOUT,
    DEFAULT_PUBLISH_TIMEOUT,
    EVENT_KIND_MAX,
    EventKind,
    MessageType,
    SubscriptionState,
)
from .event import Event, EventTemplate, make_auth_event
from .filter import Filter, match_filter, match_filters
from .messages import (
    AuthMessage,
    ClosedMessage,
    CountMessage,
    EoseMessage,
    EventMessage,
    NoticeMessage,
    OkMessage,
    RelayMessage,
    parse_relay_message,
)
from .relay_url import RelayUrl, normalize_url


__all__ = [
    "DEFAULT_CONNECTION_TIMEOUT",
    "DEFAULT_COUNT_TIMEOUT",
    "DEFAULT_EOSE_TIMEOUT",
    "DEFAULT_PUBLISH_TIMEOUT",
    "EVENT_KIND_MAX",
    "AuthMessage",
    "ClosedMessage",
    "CountMessage",
    "EoseMessage",
    "Event",
    "EventKind",
    "EventMessage",
    "EventTemplate",
    "Filter",
    "MessageType",
    "NoticeMessage",
    "OkMessage",
    "RelayMessage",
    "RelayUrl",
    "SubscriptionState",
    "make_auth_event",
    "match_filter",
    "match_filters",
    "normalize_url",
    "parse_relay_message",
]
