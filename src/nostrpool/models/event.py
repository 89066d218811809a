"""
Immutable Nostr event and unsigned event template.

[Event][nostrpool.models.event.Event] is the record exchanged with relays in
``EVENT`` envelopes. It is a plain frozen dataclass decoded from the wire via
[from_dict()][nostrpool.models.event.Event.from_dict]; cryptographic checks
(content hash and Schnorr signature) live in
[nostrpool.utils.crypto][nostrpool.utils.crypto] so that this layer stays
free of I/O and third-party bindings.

See Also:
    [nostrpool.utils.crypto][]: ``get_event_hash``, ``verify_event`` and
        ``finalize_event`` operating on these models.
    [nostrpool.models.filter][]: Filter matching against
        [Event][nostrpool.models.event.Event] fields.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

from ._validation import (
    validate_hex,
    validate_instance,
    validate_str_no_null,
    validate_tags,
    validate_timestamp,
)
from .constants import EVENT_KIND_MAX, EventKind


Tags = tuple[tuple[str, ...], ...]


def _freeze_tags(tags: Any) -> Tags:
    return tuple(tuple(tag) for tag in tags)


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable signed Nostr event.

    Attributes:
        id: 32-byte SHA-256 of the canonical serialization, hex encoded.
        pubkey: Author public key (x-only, hex encoded).
        created_at: Unix timestamp in seconds.
        kind: Event kind (0-65535).
        tags: Ordered tag entries, each an ordered tuple of strings.
        content: Free-form content string.
        sig: 64-byte Schnorr signature over ``id``, hex encoded.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If hex fields are malformed or ``kind`` is out of range.

    Examples:
        ```python
        event = Event.from_dict(json.loads(raw)[2])
        event.kind          # 1
        event.tag_values("e")
        ```

    Note:
        Field shapes are validated on construction, but ``id`` is not
        recomputed here. Use
        [verify_event()][nostrpool.utils.crypto.verify_event] before trusting
        an event received from a relay.
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: Tags
    content: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex(self.id, "id", 64)
        validate_hex(self.pubkey, "pubkey", 64)
        validate_hex(self.sig, "sig", 128)
        validate_timestamp(self.created_at, "created_at")
        validate_timestamp(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind must be <= {EVENT_KIND_MAX}")
        validate_tags(self.tags, "tags")
        validate_instance(self.content, str, "content")
        object.__setattr__(self, "tags", _freeze_tags(self.tags))

    @classmethod
    def from_dict(cls, data: Any) -> Event:
        """Build an event from its decoded JSON object.

        Args:
            data: Mapping with the seven NIP-01 event fields. Unknown keys
                are ignored.

        Returns:
            A validated [Event][nostrpool.models.event.Event].

        Raises:
            TypeError: If *data* is not a dict or a field has the wrong type.
            ValueError: If a field is missing or malformed.
        """
        validate_instance(data, dict, "event")
        try:
            return cls(
                id=data["id"],
                pubkey=data["pubkey"],
                created_at=data["created_at"],
                kind=data["kind"],
                tags=data["tags"],
                content=data["content"],
                sig=data["sig"],
            )
        except KeyError as e:
            raise ValueError(f"event is missing field {e.args[0]!r}") from None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready NIP-01 object."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        """Return the compact JSON encoding used on the wire."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in order."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]


@dataclass(frozen=True, slots=True)
class EventTemplate:
    """Unsigned event content handed to a signer.

    Attributes:
        kind: Event kind.
        content: Free-form content string.
        tags: Ordered tag entries.
        created_at: Unix timestamp in seconds (defaults to now).
    """

    kind: int
    content: str = ""
    tags: Tags = ()
    created_at: int = field(default_factory=lambda: int(time.time()))

    def __post_init__(self) -> None:
        validate_timestamp(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind must be <= {EVENT_KIND_MAX}")
        validate_str_no_null(self.content, "content")
        validate_tags(self.tags, "tags")
        validate_timestamp(self.created_at, "created_at")
        object.__setattr__(self, "tags", _freeze_tags(self.tags))


def make_auth_event(relay_url: str, challenge: str) -> EventTemplate:
    """Build the NIP-42 authentication template for *relay_url*.

    The template binds the relay URL and the challenge string the relay sent
    in its ``AUTH`` envelope, and must be signed by the caller's key before
    being sent back.
    """
    return EventTemplate(
        kind=EventKind.CLIENT_AUTH,
        content="",
        tags=(("relay", relay_url), ("challenge", challenge)),
    )
