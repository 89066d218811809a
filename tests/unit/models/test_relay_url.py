"""
Unit tests for models.relay_url module.

Tests:
- Scheme defaulting and case folding
- Default-port stripping and explicit port preservation
- Path slash collapsing and trailing slash removal
- Query parameter ordering and fragment removal
- Rejection of non-WebSocket schemes and malformed input
- Idempotence of normalize_url()
"""

import pytest

from nostrpool.models import RelayUrl, normalize_url


class TestNormalizeUrl:
    """normalize_url() canonical forms."""

    def test_scheme_defaults_to_wss(self):
        assert normalize_url("relay.example.com") == "wss://relay.example.com"

    def test_default_port_and_duplicate_slashes(self):
        assert normalize_url("wss://relay.example.com:443/a//b/") == "wss://relay.example.com/a/b"

    def test_ws_default_port_stripped(self):
        assert normalize_url("ws://relay.example.com:80") == "ws://relay.example.com"

    def test_non_default_port_kept(self):
        assert normalize_url("wss://relay.example.com:8080") == "wss://relay.example.com:8080"

    def test_wss_port_80_kept(self):
        assert normalize_url("wss://relay.example.com:80") == "wss://relay.example.com:80"

    def test_host_and_scheme_lowercased(self):
        assert normalize_url("WSS://Relay.Example.COM") == "wss://relay.example.com"

    def test_trailing_slash_stripped(self):
        assert normalize_url("wss://relay.example.com/") == "wss://relay.example.com"

    def test_path_kept(self):
        assert normalize_url("wss://relay.example.com/nostr") == "wss://relay.example.com/nostr"

    def test_query_sorted(self):
        assert (
            normalize_url("wss://relay.example.com/inbox?b=2&a=1")
            == "wss://relay.example.com/inbox?a=1&b=2"
        )

    def test_fragment_dropped(self):
        assert normalize_url("wss://relay.example.com/x#top") == "wss://relay.example.com/x"

    def test_surrounding_whitespace_ignored(self):
        assert normalize_url("  relay.example.com  ") == "wss://relay.example.com"


class TestEquivalentInputs:
    """Equivalent spellings collapse to one key."""

    @pytest.mark.parametrize(
        "raw",
        [
            "relay.example.com",
            "wss://relay.example.com",
            "wss://RELAY.example.com:443",
            "wss://relay.example.com/",
            "wss://relay.example.com:443//",
        ],
    )
    def test_same_key(self, raw):
        assert normalize_url(raw) == "wss://relay.example.com"

    def test_query_order_insensitive(self):
        a = normalize_url("wss://relay.example.com/?x=1&y=2")
        b = normalize_url("wss://relay.example.com/?y=2&x=1")
        assert a == b


class TestIdempotence:
    """normalize(normalize(x)) == normalize(x)."""

    @pytest.mark.parametrize(
        "raw",
        [
            "relay.example.com",
            "wss://relay.example.com:443/a//b/",
            "ws://relay.example.com:8080/path/",
            "wss://relay.example.com/inbox?b=2&a=1",
            "WSS://Relay.Example.com/X#frag",
        ],
    )
    def test_idempotent(self, raw):
        once = normalize_url(raw)
        assert normalize_url(once) == once


class TestInvalid:
    """Rejected inputs raise ValueError."""

    def test_http_scheme(self):
        with pytest.raises(ValueError, match="scheme"):
            normalize_url("https://relay.example.com")

    def test_null_byte(self):
        with pytest.raises(ValueError, match="null"):
            normalize_url("wss://relay.example.com\x00")

    def test_missing_host(self):
        with pytest.raises(ValueError):
            normalize_url("wss://")


class TestRelayUrl:
    """RelayUrl components."""

    def test_components(self):
        relay = RelayUrl("wss://Relay.Example.com:7447/nostr/?b=1&a=2")
        assert relay.scheme == "wss"
        assert relay.host == "relay.example.com"
        assert relay.port == 7447
        assert relay.path == "/nostr"
        assert relay.query == "a=2&b=1"

    def test_root_has_no_path(self):
        relay = RelayUrl("relay.example.com")
        assert relay.port is None
        assert relay.path is None
        assert relay.query is None

    def test_str(self):
        assert str(RelayUrl("relay.example.com")) == "wss://relay.example.com"

    def test_equality_ignores_raw_input(self):
        assert RelayUrl("relay.example.com") == RelayUrl("wss://relay.example.com:443/")

    def test_frozen(self):
        relay = RelayUrl("relay.example.com")
        with pytest.raises(AttributeError):
            relay.url = "wss://other.example.com"  # type: ignore[misc]
