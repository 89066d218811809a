"""
NIP-01 subscription filters and local event matching.

A [Filter][nostrpool.models.filter.Filter] is sent to relays inside ``REQ``
and ``COUNT`` envelopes and is also evaluated locally against every event a
relay returns, so that a misbehaving relay cannot push events the
subscription never asked for.

Matching rules:

* Every present predicate must hold (logical AND within a filter).
* Absent or empty predicates are wildcards.
* ``#<name>`` predicates hold if the event carries a tag named ``<name>``
  whose first value is in the requested set.
* ``since`` and ``until`` are inclusive bounds on ``created_at``.
* ``limit`` and ``search`` are relay-side hints and never exclude locally.
* A filter set matches if any filter matches (logical OR across filters).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_instance, validate_timestamp
from .event import Event


def _str_tuple(values: Iterable[Any] | None, name: str) -> tuple[str, ...] | None:
    if values is None:
        return None
    result = tuple(values)
    for value in result:
        validate_instance(value, str, name)
    return result


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable NIP-01 filter.

    Attributes:
        ids: Candidate event ids.
        kinds: Candidate event kinds.
        authors: Candidate author public keys.
        tags: Tag name (without ``#``) to the set of accepted first values.
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        limit: Maximum number of stored events the relay should return.
        search: NIP-50 full-text query (relay-side only).

    Examples:
        ```python
        f = Filter(kinds=(1,), tags={"t": ("nostr",)}, limit=10)
        f.to_dict()   # {'kinds': [1], '#t': ['nostr'], 'limit': 10}
        Filter.from_dict({"authors": ["ab..."], "#e": ["cd..."]})
        ```
    """

    ids: tuple[str, ...] | None = None
    kinds: tuple[int, ...] | None = None
    authors: tuple[str, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", _str_tuple(self.ids, "ids"))
        object.__setattr__(self, "authors", _str_tuple(self.authors, "authors"))
        if self.kinds is not None:
            kinds = tuple(self.kinds)
            for kind in kinds:
                validate_timestamp(kind, "kinds")
            object.__setattr__(self, "kinds", kinds)
        tags: dict[str, tuple[str, ...]] = {}
        for name, values in self.tags.items():
            validate_instance(name, str, "tag name")
            tags[name.removeprefix("#")] = _str_tuple(values, f"#{name}") or ()
        object.__setattr__(self, "tags", tags)
        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)
        if self.search is not None:
            validate_instance(self.search, str, "search")

    def __hash__(self) -> int:
        return hash(
            (
                self.ids,
                self.kinds,
                self.authors,
                tuple(sorted(self.tags.items())),
                self.since,
                self.until,
                self.limit,
                self.search,
            )
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        """Build a filter from its wire shape (``#x`` keys for tag predicates).

        Raises:
            TypeError: If a predicate has the wrong type.
            ValueError: If *data* contains an unknown key.
        """
        kwargs: dict[str, Any] = {}
        tags: dict[str, Any] = {}
        for key, value in data.items():
            if key.startswith("#"):
                tags[key[1:]] = value
            elif key in ("ids", "kinds", "authors", "since", "until", "limit", "search"):
                kwargs[key] = value
            else:
                raise ValueError(f"Unknown filter field: {key!r}")
        return cls(tags=tags, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready wire shape, omitting absent predicates."""
        result: dict[str, Any] = {}
        if self.ids is not None:
            result["ids"] = list(self.ids)
        if self.kinds is not None:
            result["kinds"] = list(self.kinds)
        if self.authors is not None:
            result["authors"] = list(self.authors)
        for name, values in self.tags.items():
            result[f"#{name}"] = list(values)
        for name in ("since", "until", "limit", "search"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result

    def matches(self, event: Event) -> bool:
        """Return True if *event* satisfies every present predicate."""
        return match_filter(self, event)


def match_filter(flt: Filter, event: Event) -> bool:
    """Return True if *event* satisfies every present predicate of *flt*."""
    if flt.ids and event.id not in flt.ids:
        return False
    if flt.kinds and event.kind not in flt.kinds:
        return False
    if flt.authors and event.pubkey not in flt.authors:
        return False
    for name, values in flt.tags.items():
        if not values:
            continue
        if not any(len(tag) > 1 and tag[0] == name and tag[1] in values for tag in event.tags):
            return False
    if flt.since is not None and event.created_at < flt.since:
        return False
    return not (flt.until is not None and event.created_at > flt.until)


def match_filters(filters: Sequence[Filter], event: Event) -> bool:
    """Return True if *event* matches at least one filter in *filters*."""
    return any(match_filter(flt, event) for flt in filters)
