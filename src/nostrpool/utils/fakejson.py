"""Substring scans over raw relay frames that avoid a full JSON decode.

Used by the inbound dispatcher to pull the subscription id and event id out
of an ``EVENT`` envelope so that duplicates can be dropped before paying for
parsing and signature verification. The scans assume the compact layout
relays actually emit; when the layout is unexpected they return ``None``
and the caller falls back to the full decode path.

Examples:
    ```python
    raw = '["EVENT","sub:1",{"id":"ab12...","pubkey":...}]'
    get_subscription_id(raw)   # 'sub:1'
    get_hex64(raw, "id")       # 'ab12...' (64 chars)
    ```
"""

from __future__ import annotations


def get_hex64(raw: str, field: str) -> str | None:
    """Return the 64 characters following ``"<field>":"`` in *raw*.

    Returns:
        The candidate value, or ``None`` if the key does not occur. The
        result is not validated as hex; a truncated frame yields a shorter
        string.
    """
    key = raw.find(f'"{field}":')
    if key == -1:
        return None
    idx = key + len(field) + 3
    quote = raw.find('"', idx)
    if quote == -1:
        return None
    start = quote + 1
    return raw[start : start + 64]


def get_subscription_id(raw: str) -> str | None:
    """Return the subscription id of an ``EVENT`` envelope, or ``None``.

    Only the head of the frame is scanned: the ``"EVENT"`` tag must start
    within the first 22 characters and the id must close before character
    80.
    """
    idx = raw[:22].find('"EVENT"')
    if idx == -1:
        return None

    after_tag = idx + 8
    open_quote = raw[after_tag:].find('"')
    if open_quote == -1:
        return None

    start = after_tag + open_quote + 1
    end = raw[start:80].find('"')
    if end == -1:
        return None
    return raw[start : start + end]
