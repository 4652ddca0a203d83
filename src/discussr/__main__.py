"""CLI entry point for discussr.

Reads discussions, posts and memos from the configured relays. ``watch``
keeps refreshing the moderation state of a discussion and serves Prometheus
metrics until interrupted.

Examples:
    ```bash
    python -m discussr discussions --author npub1...
    python -m discussr posts --discussion naddr1... --pending
    python -m discussr memo --stop central-station --stop harbour
    python -m discussr watch --config config.yaml --interval 30
    ```
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

from discussr.core.config import NostrServiceConfig
from discussr.core.exceptions import ConfigurationError, DiscussrError
from discussr.core.logger import Logger, StructuredFormatter
from discussr.core.metrics import MetricsServer
from discussr.models.discussion import Discussion
from discussr.nips.aggregation import pick_latest_discussion
from discussr.nips.nip19 import extract_discussion_from_naddr, npub_to_hex, parse_coordinate
from discussr.nips.parsers import parse_posts
from discussr.services.memo import effective_approvals, load_memo
from discussr.services.moderation import ModerationController
from discussr.services.nostr import NostrService, create_nostr_service


DEFAULT_CONFIG = Path("config.yaml")

logger = Logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="discussr",
        description="Nostr discussion and moderation client",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Config path (default: {DEFAULT_CONFIG}; built-in defaults if missing)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    discussions = commands.add_parser("discussions", help="List discussions of an author")
    discussions.add_argument("--author", help="npub or hex (default: admin_pubkey)")

    posts = commands.add_parser("posts", help="List posts of a discussion with approval state")
    posts.add_argument("--discussion", help="naddr or coordinate (default: discussion_id)")
    posts.add_argument("--stop", action="append", default=[], help="Restrict to a bus stop")
    state = posts.add_mutually_exclusive_group()
    state.add_argument("--pending", action="store_true", help="Only pending posts")
    state.add_argument("--approved", action="store_true", help="Only approved posts")

    memo = commands.add_parser("memo", help="Top approved post per bus stop")
    memo.add_argument("--discussion", help="naddr or coordinate (default: discussion_id)")
    memo.add_argument("--stop", action="append", required=True, help="Bus stop tag")

    watch = commands.add_parser("watch", help="Refresh moderation state until interrupted")
    watch.add_argument("--discussion", help="naddr or coordinate (default: discussion_id)")
    watch.add_argument(
        "--interval", type=float, default=60.0, help="Seconds between refreshes (default: 60)"
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install a ``StructuredFormatter`` on the root handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def load_config(path: Path) -> NostrServiceConfig:
    if not path.exists():
        logger.debug("config_not_found", path=str(path))
        return NostrServiceConfig()
    return NostrServiceConfig.from_yaml(path)


def resolve_discussion_id(value: str | None, config: NostrServiceConfig) -> str:
    """Accept an ``naddr`` or a coordinate, falling back to the configured discussion."""
    raw = value or config.discussion_id
    if not raw:
        raise ConfigurationError("no discussion given and discussion_id is not configured")
    if raw.startswith("naddr1"):
        info = extract_discussion_from_naddr(raw)
        if info is None:
            raise ConfigurationError(f"not a discussion naddr: {raw}")
        return info.discussion_id
    if parse_coordinate(raw) is None:
        raise ConfigurationError(f"invalid discussion coordinate: {raw}")
    return raw


async def fetch_discussion(service: NostrService, discussion_id: str) -> Discussion:
    parts = parse_coordinate(discussion_id)
    if parts is None:
        raise ConfigurationError(f"invalid discussion coordinate: {discussion_id}")
    _, author, d_tag = parts
    events = await service.get_events_on_eose([service.discussion_meta_filter(author, d_tag)])
    discussion = pick_latest_discussion(events)
    if discussion is None:
        raise DiscussrError(f"discussion not found: {discussion_id}")
    return discussion


def emit(record: dict[str, object]) -> None:
    sys.stdout.write(json.dumps(record, ensure_ascii=False) + "\n")


# =============================================================================
# Commands
# =============================================================================


async def cmd_discussions(
    service: NostrService, config: NostrServiceConfig, author: str | None
) -> int:
    pubkey = npub_to_hex(author) if author else config.admin_pubkey
    if not pubkey:
        raise ConfigurationError("no author given and admin_pubkey is not configured")
    for discussion in await service.get_discussions(pubkey):
        emit(
            {
                "id": discussion.id,
                "title": discussion.title,
                "moderators": discussion.moderator_pubkeys,
                "created_at": discussion.created_at,
            }
        )
    return 0


async def cmd_posts(service: NostrService, discussion_id: str, args: argparse.Namespace) -> int:
    post_events = await service.get_discussion_posts(discussion_id, args.stop or None)
    approval_events = await service.get_approvals_for_posts(
        [e.id for e in post_events], discussion_id
    )
    deletion_events = await service.get_deletions([e.id for e in approval_events])
    approvals = effective_approvals(approval_events, deletion_events)
    for post in parse_posts(post_events, approvals):
        if (args.pending and post.approved) or (args.approved and not post.approved):
            continue
        emit(
            {
                "id": post.id,
                "author": post.author_pubkey,
                "bus_stop": post.bus_stop_tag,
                "approved": post.approved,
                "approved_by": list(post.approved_by),
                "content": post.content,
            }
        )
    return 0


async def cmd_memo(service: NostrService, discussion_id: str, stops: list[str]) -> int:
    memo = await load_memo(service, discussion_id, stops)
    for stop in stops:
        top = memo.get(stop)
        emit(
            {
                "bus_stop": stop,
                "post_id": top.id if top else None,
                "score": top.score if top else None,
                "content": top.post.content if top else None,
            }
        )
    return 0


async def cmd_watch(
    service: NostrService,
    config: NostrServiceConfig,
    discussion_id: str,
    interval: float,
) -> int:
    discussion = await fetch_discussion(service, discussion_id)
    controller = ModerationController(service, None, discussion, None, config.admin_pubkey)

    stop = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    metrics_server = MetricsServer(config.metrics)
    await metrics_server.start()
    if metrics_server.running:
        logger.info("metrics_server_started", host=config.metrics.host, port=config.metrics.port)

    try:
        while not stop.is_set():
            if await controller.refresh():
                logger.info(
                    "moderation_snapshot",
                    discussion=discussion.id,
                    pending=len(controller.pending_posts),
                    approved=len(controller.approved_posts),
                )
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                continue
    finally:
        await metrics_server.stop()
    return 0


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the service and run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
        service = create_nostr_service(config)
        async with service:
            if args.command == "discussions":
                return await cmd_discussions(service, config, args.author)
            discussion_id = resolve_discussion_id(args.discussion, config)
            if args.command == "posts":
                return await cmd_posts(service, discussion_id, args)
            if args.command == "memo":
                return await cmd_memo(service, discussion_id, args.stop)
            return await cmd_watch(service, config, discussion_id, args.interval)
    except FileNotFoundError as e:
        logger.error("config_not_found", error=str(e))
        return 1
    except DiscussrError as e:
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
