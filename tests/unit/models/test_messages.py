"""
Unit tests for models.messages module.

Tests:
- parse_relay_message() for every relay-to-client envelope
- Unknown tags are ignored, malformed frames raise ValueError
- encode_* helpers produce compact client-to-relay envelopes
"""

import json

import pytest

from nostrpool.models import (
    AuthMessage,
    ClosedMessage,
    CountMessage,
    EoseMessage,
    Event,
    EventMessage,
    Filter,
    NoticeMessage,
    OkMessage,
    parse_relay_message,
)
from nostrpool.models.messages import (
    encode_auth,
    encode_close,
    encode_count,
    encode_event,
    encode_req,
)


E1 = "1" * 64


class TestParseRelayMessage:
    """Decoding relay envelopes."""

    def test_event(self):
        payload = {"id": E1, "kind": 1}
        msg = parse_relay_message(json.dumps(["EVENT", "sub:1", payload]))
        assert msg == EventMessage("sub:1", payload)

    def test_eose(self):
        assert parse_relay_message('["EOSE","sub:1"]') == EoseMessage("sub:1")

    def test_ok_accepted(self):
        assert parse_relay_message(f'["OK","{E1}",true,""]') == OkMessage(E1, True, "")

    def test_ok_rejected(self):
        msg = parse_relay_message(f'["OK","{E1}",false,"blocked: spam"]')
        assert msg == OkMessage(E1, False, "blocked: spam")

    def test_ok_without_reason(self):
        assert parse_relay_message(f'["OK","{E1}",true]') == OkMessage(E1, True, "")

    def test_closed(self):
        msg = parse_relay_message('["CLOSED","sub:1","error: shutting down"]')
        assert msg == ClosedMessage("sub:1", "error: shutting down")

    def test_closed_without_reason(self):
        assert parse_relay_message('["CLOSED","sub:1"]') == ClosedMessage("sub:1", "")

    def test_count(self):
        assert parse_relay_message('["COUNT","count:2",{"count":42}]') == CountMessage(
            "count:2", 42
        )

    def test_notice(self):
        assert parse_relay_message('["NOTICE","slow down"]') == NoticeMessage("slow down")

    def test_auth(self):
        assert parse_relay_message('["AUTH","challenge"]') == AuthMessage("challenge")

    def test_unknown_tag_ignored(self):
        assert parse_relay_message('["PING","x"]') is None


class TestParseErrors:
    """Malformed frames raise ValueError."""

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"EVENT":1}',
            "[]",
            "[1,2]",
            '["EOSE"]',
            '["EVENT","sub:1","not an object"]',
            '["OK","id","true",""]',
            '["COUNT","c",{"count":"many"}]',
            '["COUNT","c",{"count":true}]',
            '["NOTICE",5]',
        ],
    )
    def test_malformed(self, raw):
        with pytest.raises(ValueError):
            parse_relay_message(raw)


class TestEncoders:
    """Client-to-relay envelopes."""

    def test_req(self):
        raw = encode_req("sub:1", [Filter(kinds=(1,)), Filter(authors=("a" * 64,))])
        assert raw == '["REQ","sub:1",{"kinds":[1]},{"authors":["' + "a" * 64 + '"]}]'

    def test_close(self):
        assert encode_close("sub:1") == '["CLOSE","sub:1"]'

    def test_count(self):
        assert encode_count("count:3", [Filter(kinds=(7,))]) == '["COUNT","count:3",{"kinds":[7]}]'

    def test_event_and_auth(self):
        event = Event(
            id=E1,
            pubkey="a" * 64,
            created_at=1,
            kind=1,
            tags=(),
            content="",
            sig="b" * 128,
        )
        assert json.loads(encode_event(event)) == ["EVENT", event.to_dict()]
        assert json.loads(encode_auth(event)) == ["AUTH", event.to_dict()]
