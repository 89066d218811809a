"""
Unit tests for utils.crypto module.

Tests:
- serialize_event() canonical NIP-01 serialization
- get_event_hash() id computation
- finalize_event() signing with real nostr_sdk keys
- verify_event() acceptance of signed events and rejection of tampering
- always_true() and make_signer()
"""

import hashlib
from dataclasses import replace

import pytest
from nostr_sdk import Keys

from nostrpool.models import EventTemplate, make_auth_event
from nostrpool.utils.crypto import (
    always_true,
    finalize_event,
    get_event_hash,
    make_signer,
    serialize_event,
    verify_event,
)


@pytest.fixture(scope="module")
def keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def template() -> EventTemplate:
    return EventTemplate(
        kind=1,
        content="hello nostr ☀",
        tags=(("t", "nostr"), ("p", "a" * 64, "wss://relay.example.com")),
        created_at=1_700_000_000,
    )


class TestSerializeEvent:
    """Canonical serialization."""

    def test_template_with_pubkey(self, template):
        raw = serialize_event(template, "a" * 64)
        assert raw == (
            '[0,"' + "a" * 64 + '",1700000000,1,'
            '[["t","nostr"],["p","' + "a" * 64 + '","wss://relay.example.com"]],'
            '"hello nostr ☀"]'
        )

    def test_template_requires_pubkey(self, template):
        with pytest.raises(ValueError, match="pubkey"):
            serialize_event(template)

    def test_hash_is_sha256_of_serialization(self, template):
        expected = hashlib.sha256(serialize_event(template, "a" * 64).encode()).hexdigest()
        assert get_event_hash(template, "a" * 64) == expected


class TestFinalizeAndVerify:
    """Signing and verification with nostr_sdk."""

    def test_finalize_fields(self, keys, template):
        event = finalize_event(template, keys)
        assert event.pubkey == keys.public_key().to_hex()
        assert event.kind == 1
        assert event.created_at == 1_700_000_000
        assert event.content == template.content
        assert event.tags == template.tags

    def test_id_matches_hash(self, keys, template):
        event = finalize_event(template, keys)
        assert event.id == get_event_hash(event)

    def test_verify_signed(self, keys, template):
        assert verify_event(finalize_event(template, keys)) is True

    def test_tampered_content(self, keys, template):
        event = finalize_event(template, keys)
        assert verify_event(replace(event, content="forged")) is False

    def test_tampered_signature(self, keys, template):
        event = finalize_event(template, keys)
        assert verify_event(replace(event, sig="0" * 128)) is False

    def test_signature_from_other_key(self, keys, template):
        event = finalize_event(template, keys)
        other = finalize_event(template, Keys.generate())
        assert verify_event(replace(event, sig=other.sig)) is False


class TestAlwaysTrue:
    def test_accepts_anything(self, keys, template):
        event = finalize_event(template, keys)
        assert always_true(replace(event, content="forged")) is True


class TestMakeSigner:
    """Async signer used for NIP-42 auth."""

    @pytest.mark.asyncio
    async def test_signs_auth_template(self, keys):
        sign = make_signer(keys)
        event = await sign(make_auth_event("wss://relay.example.com", "challenge"))
        assert event.kind == 22_242
        assert event.tag_values("challenge") == ["challenge"]
        assert verify_event(event)


class TestModuleLogger:
    """Module logger naming."""

    def test_named_after_module(self):
        from nostrpool.utils import crypto

        assert crypto.logger.name == "nostrpool.utils.crypto"
