"""Event hashing, signing and verification.

Wraps the Rust-backed ``nostr_sdk`` bindings behind the small collaborator
surface the client layer needs:

* [get_event_hash()][nostrpool.utils.crypto.get_event_hash] -- NIP-01 id of
  an event, computed locally with ``hashlib``.
* [verify_event()][nostrpool.utils.crypto.verify_event] -- id and Schnorr
  signature check; the default verifier of every
  [RelayConnection][nostrpool.client.relay.RelayConnection].
* [finalize_event()][nostrpool.utils.crypto.finalize_event] -- sign an
  [EventTemplate][nostrpool.models.event.EventTemplate] with ``nostr_sdk.Keys``.
* [always_true()][nostrpool.utils.crypto.always_true] -- verifier used for
  trusted relays.
* [make_signer()][nostrpool.utils.crypto.make_signer] -- async signer
  callable accepted by
  [RelayConnection.authenticate()][nostrpool.client.relay.RelayConnection.authenticate].

See Also:
    [nostrpool.utils.keys][]: Loading ``nostr_sdk.Keys`` from the environment.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Awaitable, Callable

from nostr_sdk import Event as NostrEvent
from nostr_sdk import EventBuilder, Keys, Kind, NostrSdkError, Tag, Timestamp

from nostrpool.models import Event, EventTemplate


logger = logging.getLogger(__name__)

Verifier = Callable[[Event], bool]
Signer = Callable[[EventTemplate], Awaitable[Event]]


def serialize_event(event: Event | EventTemplate, pubkey: str | None = None) -> str:
    """Return the canonical serialization hashed into an event id.

    The serialization is the compact JSON array
    ``[0, pubkey, created_at, kind, tags, content]`` with non-ASCII
    characters left unescaped.
    """
    if pubkey is None:
        if not isinstance(event, Event):
            raise ValueError("pubkey is required to serialize an unsigned template")
        pubkey = event.pubkey
    return json.dumps(
        [0, pubkey, event.created_at, event.kind, [list(t) for t in event.tags], event.content],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def get_event_hash(event: Event | EventTemplate, pubkey: str | None = None) -> str:
    """Return the hex SHA-256 of the canonical serialization."""
    return hashlib.sha256(serialize_event(event, pubkey).encode("utf-8")).hexdigest()


def verify_event(event: Event) -> bool:
    """Check that *event*'s id matches its content and its signature is valid.

    Never raises: malformed keys or signatures rejected by ``nostr_sdk``
    are reported as ``False``.
    """
    if get_event_hash(event) != event.id:
        return False
    try:
        return bool(NostrEvent.from_json(event.to_json()).verify())
    except NostrSdkError as e:
        logger.debug("event_verification_error id=%s error=%s", event.id, e)
        return False


def always_true(_event: Event) -> bool:
    """Verifier that accepts every event without checking it."""
    return True


def finalize_event(template: EventTemplate, keys: Keys) -> Event:
    """Sign *template* with *keys* and return the resulting event.

    Raises:
        nostr_sdk.NostrSdkError: If the bindings reject the template.
    """
    builder = (
        EventBuilder(Kind(template.kind), template.content)
        .tags([Tag.parse(list(tag)) for tag in template.tags])
        .custom_created_at(Timestamp.from_secs(template.created_at))
    )
    signed = builder.sign_with_keys(keys)
    return Event.from_dict(json.loads(signed.as_json()))


def make_signer(keys: Keys) -> Signer:
    """Return an async signer bound to *keys*."""

    async def sign(template: EventTemplate) -> Event:
        return finalize_event(template, keys)

    return sign
