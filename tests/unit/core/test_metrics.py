"""
Unit tests for core.metrics module.

Tests:
- Metric names and label sets registered in the default registry
- Counters move when relay connections process traffic
"""

import asyncio

import pytest
from prometheus_client import REGISTRY

from nostrpool.core.metrics import PUBLISH_RESULTS_TOTAL, RELAY_CONNECTIONS, RELAY_MESSAGES_TOTAL


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestDefinitions:
    """Metric definitions."""

    def test_names(self):
        assert RELAY_CONNECTIONS._name == "nostrpool_relay_connections"
        assert RELAY_MESSAGES_TOTAL._name == "nostrpool_relay_messages"
        assert PUBLISH_RESULTS_TOTAL._name == "nostrpool_publish_results"

    def test_labels(self):
        assert RELAY_MESSAGES_TOTAL._labelnames == ("type",)
        assert PUBLISH_RESULTS_TOTAL._labelnames == ("outcome",)


class TestUpdates:
    """Metrics updated by RelayConnection."""

    @pytest.mark.asyncio
    async def test_connection_gauge(self, make_relay):
        before = _sample("nostrpool_relay_connections")
        relay = make_relay()
        await relay.connect()
        assert _sample("nostrpool_relay_connections") == before + 1
        relay.close()
        assert _sample("nostrpool_relay_connections") == before

    @pytest.mark.asyncio
    async def test_message_counter(self, make_relay, transport):
        labels = {"type": "NOTICE"}
        before = _sample("nostrpool_relay_messages_total", labels)
        relay = make_relay()
        relay.on_notice = lambda text: None
        await relay.connect()
        transport.sockets[relay.url].feed(["NOTICE", "hello"])
        await asyncio.sleep(0.01)
        assert _sample("nostrpool_relay_messages_total", labels) == before + 1
        relay.close()

    @pytest.mark.asyncio
    async def test_invalid_counter(self, make_relay, transport):
        labels = {"type": "invalid"}
        before = _sample("nostrpool_relay_messages_total", labels)
        relay = make_relay()
        await relay.connect()
        transport.sockets[relay.url].feed("garbage")
        await asyncio.sleep(0.01)
        assert _sample("nostrpool_relay_messages_total", labels) == before + 1
        relay.close()
