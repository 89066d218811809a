"""
NIP-01 wire envelopes as a tagged variant.

Relay-to-client envelopes are decoded by
[parse_relay_message()][nostrpool.models.messages.parse_relay_message] into one
frozen dataclass per message kind, so dispatch code can ``match`` on the type
instead of indexing into loosely typed JSON arrays. Client-to-relay envelopes
are produced by the ``encode_*`` helpers.

Decoding policy:

* Invalid JSON, a non-array envelope, or a known tag with malformed
  arguments raises ``ValueError``; the client layer reports it as a
  protocol error and discards the frame.
* An unknown tag returns ``None`` so callers can ignore it without failing
  the whole decode.
* ``EVENT`` payloads are kept as the raw decoded object; building and
  verifying an [Event][nostrpool.models.event.Event] is the dispatcher's job.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .constants import MessageType
from .event import Event
from .filter import Filter


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Relay -> client
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EventMessage:
    """``["EVENT", <subscription_id>, <event>]``."""

    subscription_id: str
    event: dict[str, Any]


@dataclass(frozen=True, slots=True)
class EoseMessage:
    """``["EOSE", <subscription_id>]``."""

    subscription_id: str


@dataclass(frozen=True, slots=True)
class OkMessage:
    """``["OK", <event_id>, <accepted>, <reason>]``."""

    event_id: str
    ok: bool
    reason: str


@dataclass(frozen=True, slots=True)
class ClosedMessage:
    """``["CLOSED", <subscription_id>, <reason>]``."""

    subscription_id: str
    reason: str


@dataclass(frozen=True, slots=True)
class CountMessage:
    """``["COUNT", <request_id>, {"count": <n>}]``."""

    request_id: str
    count: int


@dataclass(frozen=True, slots=True)
class NoticeMessage:
    """``["NOTICE", <text>]``."""

    text: str


@dataclass(frozen=True, slots=True)
class AuthMessage:
    """``["AUTH", <challenge>]``."""

    challenge: str


RelayMessage = (
    EventMessage
    | EoseMessage
    | OkMessage
    | ClosedMessage
    | CountMessage
    | NoticeMessage
    | AuthMessage
)


def _arg(data: list[Any], index: int, expected: type, tag: str) -> Any:
    if len(data) <= index:
        raise ValueError(f"{tag} message is missing argument {index}")
    value = data[index]
    if isinstance(value, bool) and expected is not bool:
        raise ValueError(f"{tag} argument {index} must be {expected.__name__}")
    if not isinstance(value, expected):
        raise ValueError(f"{tag} argument {index} must be {expected.__name__}")
    return value


def parse_relay_message(raw: str) -> RelayMessage | None:
    """Decode one relay-to-client text frame.

    Args:
        raw: The JSON text received from the relay.

    Returns:
        The decoded message, or ``None`` if the envelope tag is unknown.

    Raises:
        ValueError: If the frame is not a JSON array, or a known tag
            carries missing or mistyped arguments.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ValueError(f"Invalid JSON: {e}") from None

    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        raise ValueError("Envelope must be a non-empty array starting with a type string")

    tag = data[0]
    if tag == MessageType.EVENT:
        return EventMessage(_arg(data, 1, str, tag), _arg(data, 2, dict, tag))
    if tag == MessageType.EOSE:
        return EoseMessage(_arg(data, 1, str, tag))
    if tag == MessageType.OK:
        reason = data[3] if len(data) > 3 and isinstance(data[3], str) else ""
        return OkMessage(_arg(data, 1, str, tag), _arg(data, 2, bool, tag), reason)
    if tag == MessageType.CLOSED:
        reason = data[2] if len(data) > 2 and isinstance(data[2], str) else ""
        return ClosedMessage(_arg(data, 1, str, tag), reason)
    if tag == MessageType.COUNT:
        payload = _arg(data, 2, dict, tag)
        count = payload.get("count")
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValueError("COUNT payload must carry an integer count")
        return CountMessage(_arg(data, 1, str, tag), count)
    if tag == MessageType.NOTICE:
        return NoticeMessage(_arg(data, 1, str, tag))
    if tag == MessageType.AUTH:
        return AuthMessage(_arg(data, 1, str, tag))
    return None


# ---------------------------------------------------------------------------
# Client -> relay
# ---------------------------------------------------------------------------


def encode_req(subscription_id: str, filters: Sequence[Filter]) -> str:
    """Encode ``["REQ", <subscription_id>, <filter>...]``."""
    return _dumps([MessageType.REQ.value, subscription_id, *(f.to_dict() for f in filters)])


def encode_close(subscription_id: str) -> str:
    """Encode ``["CLOSE", <subscription_id>]``."""
    return _dumps([MessageType.CLOSE.value, subscription_id])


def encode_event(event: Event) -> str:
    """Encode ``["EVENT", <event>]``."""
    return _dumps([MessageType.EVENT.value, event.to_dict()])


def encode_count(request_id: str, filters: Sequence[Filter]) -> str:
    """Encode ``["COUNT", <request_id>, <filter>...]``."""
    return _dumps([MessageType.COUNT.value, request_id, *(f.to_dict() for f in filters)])


def encode_auth(event: Event) -> str:
    """Encode ``["AUTH", <event>]``."""
    return _dumps([MessageType.AUTH.value, event.to_dict()])
