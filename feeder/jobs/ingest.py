from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

import httpx

from feeder.config import Config
from feeder.feeds.dates import resolve_date, to_canonical
from feeder.feeds.decoders import FeedDocument, decoder_for
from feeder.feeds.errors import DateParseError, DecodeError, FetchError, UnimplementedFeedType
from feeder.feeds.fetcher import Fetcher
from feeder.feeds.normalize import normalize
from feeder.metrics.metrics import Metrics
from feeder.storage.db import Storage
from feeder.storage.types import FeedRow
from feeder.utils import now_utc


logger = logging.getLogger(__name__)


@dataclass
class IngestContext:
    config: Config
    storage: Storage
    fetcher: Fetcher
    metrics: Metrics


@dataclass
class FeedResult:
    feed_id: int
    created: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed_writes: int = 0
    detected_format: str | None = None
    format_updated: bool = False
    last_updated_at: str | None = None


@dataclass
class RunSummary:
    results: list[FeedResult] = field(default_factory=list)
    feeds_failed: int = 0
    feeds_skipped: int = 0

    @property
    def posts_created(self) -> int:
        return sum(r.created for r in self.results)


async def build_ingest_context(
    config: Config,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IngestContext:
    storage = Storage(config.sqlite_path)
    await storage.connect()

    fetcher = Fetcher(
        timeout_seconds=config.http_timeout_seconds,
        user_agent=config.user_agent,
        transport=transport,
    )

    return IngestContext(
        config=config,
        storage=storage,
        fetcher=fetcher,
        metrics=Metrics(),
    )


async def close_ingest_context(ctx: IngestContext) -> None:
    await ctx.fetcher.aclose()
    await ctx.storage.close()


def _resolve_last_updated(raw: str, hint: str | None) -> str:
    if not raw:
        # document carries no feed-level date; record when we ingested it
        return to_canonical(now_utc())
    try:
        return to_canonical(resolve_date(raw, hint).timestamp)
    except DateParseError:
        logger.info("keeping raw last-updated value %r", raw)
        return raw


async def ingest_feed(ctx: IngestContext, feed: FeedRow, document: FeedDocument) -> FeedResult:
    """Persist one decoded feed document and update the feed's hints.

    Items are independent: a bad date or failed write skips only that item.
    The format hint and last-updated value are written once, after all items,
    and only if every item write reached the store.
    """
    normalized = normalize(document)
    result = FeedResult(feed_id=feed.id)
    metrics = ctx.metrics

    for item in normalized.items:
        if not item.url:
            logger.warning("skipping post without url feed=%s title=%r", feed.name, item.title)
            result.skipped += 1
            metrics.items_skipped_total.labels(reason="missing_url").inc()
            continue

        try:
            resolved = resolve_date(item.published, feed.date_format)
        except DateParseError as e:
            logger.warning("failed parsing date for post %r feed=%s: %s", item.title, feed.name, e)
            result.skipped += 1
            metrics.items_skipped_total.labels(reason="date").inc()
            continue

        metrics.date_resolutions_total.labels(path="hint" if resolved.from_hint else "scan").inc()
        if result.detected_format is None:
            result.detected_format = resolved.used_format

        try:
            created = await ctx.storage.create_post(
                item.title,
                item.url,
                to_canonical(resolved.timestamp),
                feed.id,
            )
        except sqlite3.Error as e:
            logger.warning("failed writing post url=%s feed=%s: %s", item.url, feed.name, e)
            result.failed_writes += 1
            metrics.items_skipped_total.labels(reason="write").inc()
            continue

        if created:
            result.created += 1
            metrics.posts_created_total.inc()
        else:
            result.duplicates += 1
            metrics.posts_duplicate_total.inc()

    if result.failed_writes:
        logger.warning(
            "feed=%s had %s failed writes, leaving date format and last-updated untouched",
            feed.name,
            result.failed_writes,
        )
        return result

    try:
        if result.detected_format and result.detected_format != feed.date_format:
            await ctx.storage.update_feed_date_format(feed.id, result.detected_format)
            result.format_updated = True
            logger.info("feed=%s date format set to %r", feed.name, result.detected_format)

        hint = result.detected_format or feed.date_format
        last_updated = _resolve_last_updated(normalized.last_updated, hint)
        await ctx.storage.update_feed_last_updated(feed.id, last_updated)
        result.last_updated_at = last_updated
    except sqlite3.Error as e:
        logger.warning("failed updating feed=%s: %s", feed.name, e)

    return result


async def _ingest_fetched(
    ctx: IngestContext,
    feed: FeedRow,
    decoder: Callable[[bytes], FeedDocument],
    fetch_task: asyncio.Task,
) -> FeedResult | None:
    try:
        body = await fetch_task
    except FetchError as e:
        logger.warning("can't fetch feed %s (%s): %s", feed.name, feed.url, e)
        ctx.metrics.feeds_failed_total.labels(stage="fetch").inc()
        return None

    try:
        document = decoder(body)
    except DecodeError as e:
        logger.warning("can't parse feed %s: %s", feed.name, e)
        ctx.metrics.feeds_failed_total.labels(stage="decode").inc()
        return None

    result = await ingest_feed(ctx, feed, document)
    ctx.metrics.feeds_ingested_total.inc()
    logger.info(
        "feed=%s created=%s duplicates=%s skipped=%s",
        feed.name,
        result.created,
        result.duplicates,
        result.skipped,
    )
    return result


async def run_once(ctx: IngestContext) -> RunSummary:
    """One ingestion pass over every stored feed.

    At most ``fetch_concurrency`` feeds are in flight or waiting to be
    written at any time; decoding and writes happen in feed order. A
    ``custom`` feed halts the pass once the feeds before it are done.
    """
    feeds = await ctx.storage.list_feeds()
    summary = RunSummary()

    planned: list[tuple[FeedRow, Callable[[bytes], FeedDocument]]] = []
    halt: UnimplementedFeedType | None = None
    for feed in feeds:
        try:
            decoder = decoder_for(feed.feed_type)
        except UnimplementedFeedType as e:
            halt = e
            logger.error("feed=%s: %s", feed.name, e)
            break
        if decoder is None:
            logger.info("skipping feed=%s with unrecognized type %r", feed.name, feed.feed_type)
            summary.feeds_skipped += 1
            continue
        planned.append((feed, decoder))

    upcoming = iter(planned)
    window: deque[tuple[FeedRow, Callable[[bytes], FeedDocument], asyncio.Task]] = deque()

    def refill() -> None:
        while len(window) < ctx.config.fetch_concurrency:
            nxt = next(upcoming, None)
            if nxt is None:
                return
            feed, decoder = nxt
            task = asyncio.create_task(ctx.fetcher.fetch(feed.url), name=f"fetch_feed_{feed.id}")
            window.append((feed, decoder, task))

    try:
        refill()
        while window:
            feed, decoder, task = window.popleft()
            result = await _ingest_fetched(ctx, feed, decoder, task)
            if result is None:
                summary.feeds_failed += 1
            else:
                summary.results.append(result)
            refill()
    finally:
        tasks = [task for _, _, task in window]
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    if halt is not None:
        raise halt

    logger.info(
        "run finished: feeds=%s failed=%s skipped=%s posts_created=%s",
        len(summary.results),
        summary.feeds_failed,
        summary.feeds_skipped,
        summary.posts_created,
    )
    return summary
