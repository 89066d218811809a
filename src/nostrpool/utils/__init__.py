"""Event cryptography, key loading, frame scanning and WebSocket transport.

The utils layer sits beside core in the diamond DAG, depending only on
[nostrpool.models][nostrpool.models]. It provides the collaborators that
[nostrpool.client][nostrpool.client] plugs into its protocol engine.

Attributes:
    crypto: Event id hashing, Schnorr verification and signing via
        ``nostr_sdk``. Supplies the default verifier and the NIP-42 signer.
    fakejson: Substring scans extracting the subscription id and event id
        from raw ``EVENT`` frames without a full JSON decode.
    keys: Nostr key loading from environment variables (nsec1 bech32 or
        hex format) with Pydantic validation.
    transport: ``aiohttp`` WebSocket connections, optionally through a
        SOCKS5 proxy or with TLS verification disabled.

Note:
    The utils layer has **zero** imports from ``nostrpool.core`` or
    ``nostrpool.client``.

Examples:
    ```python
    from nostrpool.utils.crypto import verify_event, make_signer
    from nostrpool.utils.transport import connect_websocket
    ```
"""
