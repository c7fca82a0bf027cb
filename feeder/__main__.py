from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from feeder.config import Config, load_config
from feeder.feeds.decoders import FEED_TYPE_ATOM, FEED_TYPE_CUSTOM, FEED_TYPE_RSS
from feeder.feeds.errors import UnimplementedFeedType
from feeder.jobs.ingest import build_ingest_context, close_ingest_context, run_once
from feeder.logging_setup import setup_logging
from feeder.storage.db import Storage


logger = logging.getLogger(__name__)

EXIT_UNIMPLEMENTED = 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="feeder")
    parser.add_argument(
        "--env",
        default=".env",
        help="Path to .env file (default: .env).",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Fetch every feed once and store new posts (default).")

    add = sub.add_parser("add-feed", help="Subscribe to a feed.")
    add.add_argument("name")
    add.add_argument("url")
    add.add_argument("--type", dest="feed_type", default=FEED_TYPE_RSS, choices=[FEED_TYPE_RSS, FEED_TYPE_ATOM, FEED_TYPE_CUSTOM])

    remove = sub.add_parser("remove-feed", help="Delete a feed and its posts.")
    remove.add_argument("feed_id", type=int)

    sub.add_parser("feeds", help="List subscribed feeds.")

    posts = sub.add_parser("posts", help="List stored posts.")
    posts.add_argument("--view", default="inbox", choices=["inbox", "archive", "starred"])

    for name in ("archive", "unarchive", "star", "unstar"):
        flag = sub.add_parser(name, help=f"{name.capitalize()} a post.")
        flag.add_argument("post_id", type=int)

    return parser.parse_args(argv)


async def _run(config: Config) -> int:
    ctx = await build_ingest_context(config)
    try:
        await run_once(ctx)
    except UnimplementedFeedType as e:
        logger.error("run halted: %s", e)
        return EXIT_UNIMPLEMENTED
    finally:
        if config.metrics_textfile:
            ctx.metrics.write_textfile(config.metrics_textfile)
        await close_ingest_context(ctx)
    return 0


async def _manage(config: Config, args: argparse.Namespace) -> int:
    storage = Storage(config.sqlite_path)
    await storage.connect()
    try:
        if args.command == "add-feed":
            feed_id = await storage.create_feed(args.name, args.url, args.feed_type)
            print(f"added feed {feed_id}: {args.name}")
        elif args.command == "remove-feed":
            if not await storage.delete_feed(args.feed_id):
                print(f"no feed with id {args.feed_id}", file=sys.stderr)
                return 1
        elif args.command == "feeds":
            for feed in await storage.list_feeds():
                print(f"{feed.id}\t{feed.feed_type}\t{feed.name}\t{feed.url}\t{feed.last_updated_at or '-'}")
        elif args.command == "posts":
            listing = {
                "inbox": storage.list_inbox,
                "archive": storage.list_archive,
                "starred": storage.list_starred,
            }[args.view]
            for post in await listing():
                star = "*" if post.is_starred else " "
                print(f"{post.id}\t{star}\t{post.published_at}\t{post.feed_name}\t{post.title}\t{post.url}")
        else:
            if args.command in ("archive", "unarchive"):
                found = await storage.set_archived(args.post_id, args.command == "archive")
            else:
                found = await storage.set_starred(args.post_id, args.command == "star")
            if not found:
                print(f"no post with id {args.post_id}", file=sys.stderr)
                return 1
    finally:
        await storage.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    env_path = Path(args.env)
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    config = load_config()
    setup_logging(config.log_level, config.log_file)

    if args.command in (None, "run"):
        return asyncio.run(_run(config))
    return asyncio.run(_manage(config, args))


if __name__ == "__main__":
    sys.exit(main())
