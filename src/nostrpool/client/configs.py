"""Pydantic configuration models for relay connections and the relay pool.

All timeouts are in seconds. Defaults match the protocol constants in
[nostrpool.models.constants][nostrpool.models.constants].

Examples:
    ```yaml
    # pool.yaml
    relays:
      - wss://relay.damus.io
      - nos.lol
    trusted_relays:
      - wss://relay.example.com
    track_relays: true
    relay:
      timeouts:
        connection: 5.0
        eose: 8.0
        publish: 6.0
        count: null        # wait for COUNT replies indefinitely
      transport:
        proxy_url: socks5://127.0.0.1:9050
    ```

See Also:
    [RelayConnection][nostrpool.client.relay.RelayConnection]: Consumes
        [RelayConfig][nostrpool.client.configs.RelayConfig].
    [RelayPool.from_yaml()][nostrpool.client.pool.RelayPool.from_yaml]:
        Loads [PoolConfig][nostrpool.client.configs.PoolConfig].
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from nostrpool.models import (
    DEFAULT_CONNECTION_TIMEOUT,
    DEFAULT_COUNT_TIMEOUT,
    DEFAULT_EOSE_TIMEOUT,
    DEFAULT_PUBLISH_TIMEOUT,
    normalize_url,
)


class RelayTimeoutsConfig(BaseModel):
    """Per-connection protocol timeouts (in seconds).

    Note:
        ``count`` may be ``None`` to wait for a ``COUNT`` reply until the
        connection closes.

    See Also:
        [RelayConfig][nostrpool.client.configs.RelayConfig]: Parent
            configuration that embeds this model.
    """

    connection: float = Field(
        default=DEFAULT_CONNECTION_TIMEOUT, gt=0.0, description="WebSocket open timeout"
    )
    eose: float = Field(
        default=DEFAULT_EOSE_TIMEOUT, gt=0.0, description="Local end-of-stored-events deadline"
    )
    publish: float = Field(
        default=DEFAULT_PUBLISH_TIMEOUT, gt=0.0, description="OK acknowledgement timeout"
    )
    count: float | None = Field(
        default=DEFAULT_COUNT_TIMEOUT, gt=0.0, description="COUNT reply timeout (None disables)"
    )


class TransportConfig(BaseModel):
    """WebSocket transport settings.

    Warning:
        ``allow_insecure`` disables TLS certificate verification entirely.
    """

    proxy_url: str | None = Field(default=None, description="SOCKS5 proxy URL")
    allow_insecure: bool = Field(default=False, description="Skip TLS certificate checks")
    heartbeat: float | None = Field(default=None, gt=0.0, description="WebSocket ping interval")
    close_timeout: float = Field(default=5.0, gt=0.0, description="Socket close timeout")


class RelayConfig(BaseModel):
    """Configuration of a single [RelayConnection][nostrpool.client.relay.RelayConnection]."""

    timeouts: RelayTimeoutsConfig = Field(default_factory=RelayTimeoutsConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)


class PoolConfig(BaseModel):
    """Configuration of a [RelayPool][nostrpool.client.pool.RelayPool].

    Attributes:
        relay: Settings applied to every connection the pool opens.
        relays: Default relay URLs used when an operation names none
            (e.g. the CLI without ``--relay``).
        trusted_relays: Relays whose events skip signature verification.
        track_relays: Record which relays delivered each event id.

    Raises:
        pydantic.ValidationError: If a relay URL cannot be normalized.
    """

    relay: RelayConfig = Field(default_factory=RelayConfig)
    relays: list[str] = Field(default_factory=list, description="Default relay URLs")
    trusted_relays: list[str] = Field(
        default_factory=list, description="Relays exempt from signature verification"
    )
    track_relays: bool = Field(default=False, description="Maintain event seen-on map")

    @field_validator("relays", "trusted_relays")
    @classmethod
    def normalize_relays(cls, v: list[str]) -> list[str]:
        """Normalize every URL, keeping first occurrences in order."""
        return list(dict.fromkeys(normalize_url(url) for url in v))
