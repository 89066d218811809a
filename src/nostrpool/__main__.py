"""CLI entry point for one-shot relay operations.

Results are printed to stdout as JSON; logs go to stderr.

Examples:
    ```bash
    python -m nostrpool get --relay nos.lol --author <hex> --kind 0
    python -m nostrpool query --relay nos.lol --relay relay.damus.io --kind 1 --limit 20
    python -m nostrpool count --config pool.yaml --kind 7 --tag e=<event-id>
    PRIVATE_KEY=nsec1... python -m nostrpool publish --relay nos.lol --content "hello"
    ```
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from nostr_sdk import NostrSdkError

from nostrpool.client import RelayPool, SubscribeManyParams
from nostrpool.core.exceptions import NostrPoolError
from nostrpool.core.logger import Logger, StructuredFormatter
from nostrpool.core.yaml import load_yaml
from nostrpool.models import EventKind, EventTemplate, Filter
from nostrpool.utils.crypto import finalize_event
from nostrpool.utils.keys import KeysConfig


logger = Logger("cli")


def _print_json(value: Any) -> None:
    print(json.dumps(value, ensure_ascii=False, indent=2))


def _parse_tag(value: str) -> tuple[str, str]:
    name, sep, tag_value = value.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    return name.removeprefix("#"), tag_value


def build_filter(args: argparse.Namespace) -> Filter:
    """Build a [Filter][nostrpool.models.filter.Filter] from the CLI filter flags."""
    tags: dict[str, list[str]] = {}
    for name, value in args.tag or []:
        tags.setdefault(name, []).append(value)
    return Filter(
        ids=tuple(args.id) if args.id else None,
        kinds=tuple(args.kind) if args.kind else None,
        authors=tuple(args.author) if args.author else None,
        tags={name: tuple(values) for name, values in tags.items()},
        since=args.since,
        until=args.until,
        limit=args.limit,
        search=args.search,
    )


async def run_get(pool: RelayPool, relays: list[str], args: argparse.Namespace) -> int:
    event = await pool.get(relays, build_filter(args), SubscribeManyParams(max_wait=args.max_wait))
    _print_json(event.to_dict() if event is not None else None)
    return 0 if event is not None else 1


async def run_query(pool: RelayPool, relays: list[str], args: argparse.Namespace) -> int:
    events = await pool.query_sync(
        relays, build_filter(args), SubscribeManyParams(max_wait=args.max_wait)
    )
    events.sort(key=lambda e: e.created_at, reverse=True)
    _print_json([event.to_dict() for event in events])
    return 0


async def run_count(pool: RelayPool, relays: list[str], args: argparse.Namespace) -> int:
    flt = build_filter(args)

    async def count_one(url: str) -> int:
        relay = await pool.ensure_relay(url)
        return await relay.count([flt])

    results = await asyncio.gather(*(count_one(url) for url in relays), return_exceptions=True)
    output: dict[str, Any] = {}
    for url, result in zip(relays, results, strict=True):
        if isinstance(result, BaseException):
            output[url] = {"error": str(result) or type(result).__name__}
        else:
            output[url] = {"count": result}
    _print_json(output)
    return 0 if any("count" in v for v in output.values()) else 1


async def run_publish(pool: RelayPool, relays: list[str], args: argparse.Namespace) -> int:
    try:
        keys = KeysConfig.model_validate({"keys_env": args.keys_env}).keys
    except (ValueError, NostrSdkError) as e:
        logger.error("keys_unavailable", error=str(e))
        return 1

    template = EventTemplate(
        kind=args.kind[0] if args.kind else EventKind.TEXT_NOTE,
        content=args.content,
        tags=tuple((name, value) for name, value in args.tag or []),
    )
    event = finalize_event(template, keys)

    results = await asyncio.gather(*pool.publish(relays, event), return_exceptions=True)
    output: dict[str, Any] = {}
    for url, result in zip(relays, results, strict=True):
        if isinstance(result, BaseException):
            output[url] = {"ok": False, "error": str(result) or type(result).__name__}
        else:
            output[url] = {"ok": True, "message": result}
    _print_json({"id": event.id, "relays": output})
    return 0 if any(v["ok"] for v in output.values()) else 1


COMMANDS: dict[str, Callable[[RelayPool, list[str], argparse.Namespace], Awaitable[int]]] = {
    "get": run_get,
    "query": run_query,
    "count": run_count,
    "publish": run_publish,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--relay",
        action="append",
        metavar="URL",
        help="Relay URL (repeatable; default: relays from --config)",
    )
    common.add_argument("--config", type=Path, help="Pool config YAML path")
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    common.add_argument(
        "--max-wait",
        type=float,
        help="Per-relay EOSE deadline in seconds (get/query)",
    )

    filters = argparse.ArgumentParser(add_help=False)
    filters.add_argument("--id", action="append", help="Event id (repeatable)")
    filters.add_argument("--kind", type=int, action="append", help="Event kind (repeatable)")
    filters.add_argument("--author", action="append", help="Author pubkey hex (repeatable)")
    filters.add_argument(
        "--tag", type=_parse_tag, action="append", metavar="NAME=VALUE", help="Tag (repeatable)"
    )
    filters.add_argument("--since", type=int, help="Unix timestamp lower bound")
    filters.add_argument("--until", type=int, help="Unix timestamp upper bound")
    filters.add_argument("--limit", type=int, help="Maximum stored events per relay")
    filters.add_argument("--search", help="NIP-50 search query")

    parser = argparse.ArgumentParser(prog="nostrpool", description="Nostr relay pool client")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("get", parents=[common, filters], help="Fetch the newest matching event")
    sub.add_parser("query", parents=[common, filters], help="Fetch all stored matching events")
    sub.add_parser("count", parents=[common, filters], help="Count matching events per relay")

    publish = sub.add_parser("publish", parents=[common], help="Sign and publish an event")
    publish.add_argument("--kind", type=int, action="append", help="Event kind (default: 1)")
    publish.add_argument("--content", default="", help="Event content")
    publish.add_argument(
        "--tag", type=_parse_tag, action="append", metavar="NAME=VALUE", help="Tag (repeatable)"
    )
    publish.add_argument(
        "--keys-env",
        default="PRIVATE_KEY",
        help="Environment variable holding the private key (default: PRIVATE_KEY)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting on stderr.

    Installs a ``StructuredFormatter`` on the root handler so that all
    log output -- from both ``Logger`` (with ``structured_kv`` extra) and
    plain ``logging.getLogger()`` calls in models/utils -- is unified as
    ``level name message key=value ...``.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the pool, and run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config_dict = load_yaml(args.config) if args.config else {}
        pool = RelayPool.from_dict(config_dict)
    except (FileNotFoundError, ValueError, NostrPoolError) as e:
        logger.error("config_invalid", error=str(e))
        return 2

    relays = args.relay or pool.config.relays
    if not relays:
        logger.error("no_relays", hint="pass --relay or list relays in --config")
        return 2

    try:
        async with pool:
            return await COMMANDS[args.command](pool, list(relays), args)
    except (NostrPoolError, ValueError) as e:
        logger.error(f"{args.command}_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
