"""
Canonical relay WebSocket addresses.

Relays are keyed by their normalized URL everywhere in the client layer, so
that ``relay.example.com``, ``wss://Relay.Example.com:443/`` and
``wss://relay.example.com`` all resolve to the same
[RelayConnection][nostrpool.client.relay.RelayConnection].

Normalization rules:

* ``wss://`` is assumed when the input carries no scheme.
* Scheme and host are lowercased (RFC 3986 normalization).
* Duplicate path slashes collapse and the trailing slash is stripped.
* The default port for the scheme (80 for ``ws``, 443 for ``wss``) is dropped.
* Query parameters are sorted by key (stable for repeated keys).
* Any fragment is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar
from urllib.parse import parse_qsl, urlencode

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class RelayUrl:
    """Immutable, normalized relay URL.

    Attributes:
        url: Fully normalized URL, the comparison key used by the pool.
        scheme: ``ws`` or ``wss``.
        host: Lowercased hostname or bracketed IPv6 literal.
        port: Explicit non-default port, or ``None``.
        path: Normalized path, or ``None`` for the root.
        query: Sorted query string, or ``None``.

    Raises:
        ValueError: If the URL contains null bytes, has no host, uses a
            scheme other than ``ws``/``wss``, or is otherwise invalid.

    Examples:
        ```python
        RelayUrl("relay.example.com").url
        # 'wss://relay.example.com'
        RelayUrl("wss://relay.example.com:443/a//b/").url
        # 'wss://relay.example.com/a/b'
        ```
    """

    raw_url: str = field(repr=False, compare=False)

    url: str = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)
    query: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}

    def __post_init__(self) -> None:
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        parsed = self._parse(self.raw_url)

        # Bypass frozen restriction to set computed fields
        for name, value in parsed.items():
            object.__setattr__(self, name, value)

    @classmethod
    def _parse(cls, raw: str) -> dict[str, Any]:
        """Parse and normalize a raw relay URL string.

        Returns:
            Dictionary with ``url``, ``scheme``, ``host``, ``port``, ``path``
            and ``query``.

        Raises:
            ValueError: If the scheme is not ``ws``/``wss`` or the URI is invalid.
        """
        raw = raw.strip()
        if "://" not in raw:
            raw = f"wss://{raw}"

        uri = uri_reference(raw).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )

        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        scheme = uri.scheme
        host = uri.host
        if not host:
            raise ValueError("Invalid URL: missing host")
        port = int(uri.port) if uri.port else None
        if port == cls._DEFAULT_PORTS[scheme]:
            port = None

        # Collapse duplicate slashes and strip trailing slash
        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        query = None
        if uri.query:
            pairs = parse_qsl(uri.query, keep_blank_values=True)
            query = urlencode(sorted(pairs, key=lambda pair: pair[0])) or None

        url = f"{scheme}://{host}"
        if port is not None:
            url += f":{port}"
        url += path or ""
        if query:
            url += f"?{query}"

        return {
            "url": url,
            "scheme": scheme,
            "host": host,
            "port": port,
            "path": path,
            "query": query,
        }

    def __str__(self) -> str:
        return self.url


def normalize_url(url: str) -> str:
    """Return the canonical form of a relay address.

    Idempotent: ``normalize_url(normalize_url(x)) == normalize_url(x)``.

    Raises:
        ValueError: If *url* is not a valid ``ws``/``wss`` address.
    """
    return RelayUrl(url).url
