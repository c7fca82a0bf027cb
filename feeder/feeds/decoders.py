from __future__ import annotations

import logging
import xml.sax
from dataclasses import dataclass
from typing import Any, Callable, Union

import feedparser

from feeder.feeds.errors import DecodeError, UnimplementedFeedType


logger = logging.getLogger(__name__)


FEED_TYPE_RSS = "rss"
FEED_TYPE_ATOM = "atom"
FEED_TYPE_CUSTOM = "custom"


@dataclass(frozen=True)
class RssItem:
    title: str
    link: str
    pub_date: str


@dataclass(frozen=True)
class RssChannel:
    items: list[RssItem]
    last_build_date: str


@dataclass(frozen=True)
class AtomLink:
    href: str


@dataclass(frozen=True)
class AtomEntry:
    title: str
    link: AtomLink
    published: str


@dataclass(frozen=True)
class AtomFeed:
    entries: list[AtomEntry]
    updated: str


FeedDocument = Union[RssChannel, AtomFeed]


def _parse(body: bytes, expected_prefix: str) -> Any:
    # titles and links are stored as the document holds them; feedparser
    # still trims surrounding whitespace from element text
    parsed = feedparser.parse(body, sanitize_html=False, resolve_relative_uris=False)
    exc = getattr(parsed, "bozo_exception", None)
    if getattr(parsed, "bozo", 0) and isinstance(exc, xml.sax.SAXException):
        raise DecodeError(f"malformed {expected_prefix} document: {exc}")

    version = getattr(parsed, "version", "") or ""
    if not version.startswith(expected_prefix):
        raise DecodeError(f"expected {expected_prefix} document, got {version or 'unknown format'}")

    if getattr(parsed, "bozo", 0):
        logger.debug("feed parsed with bozo=%s error=%s", parsed.bozo, exc)
    return parsed


def _text(node: Any, key: str) -> str:
    value = node.get(key)
    return str(value) if value is not None else ""


def _entry_href(entry: Any) -> str:
    link = entry.get("link")
    if link:
        return str(link)
    for candidate in entry.get("links") or []:
        href = candidate.get("href")
        if href:
            return str(href)
    return ""


def decode_rss(body: bytes) -> RssChannel:
    parsed = _parse(body, "rss")
    items = [
        RssItem(
            title=_text(entry, "title"),
            # without <link>, feedparser uses a permalink <guid> as the link
            link=_text(entry, "link"),
            pub_date=_text(entry, "published"),
        )
        for entry in parsed.entries
    ]
    # feedparser files <lastBuildDate> under "updated"
    return RssChannel(items=items, last_build_date=_text(parsed.feed, "updated"))


def decode_atom(body: bytes) -> AtomFeed:
    parsed = _parse(body, "atom")
    entries = [
        AtomEntry(
            title=_text(entry, "title"),
            link=AtomLink(href=_entry_href(entry)),
            published=_text(entry, "published"),
        )
        for entry in parsed.entries
    ]
    return AtomFeed(entries=entries, updated=_text(parsed.feed, "updated"))


_DECODERS: dict[str, Callable[[bytes], FeedDocument]] = {
    FEED_TYPE_RSS: decode_rss,
    FEED_TYPE_ATOM: decode_atom,
}


def decoder_for(feed_type: str) -> Callable[[bytes], FeedDocument] | None:
    """Return the decoder for a declared feed type.

    ``custom`` raises UnimplementedFeedType; unknown types return None so the
    caller can skip the feed.
    """
    if feed_type == FEED_TYPE_CUSTOM:
        raise UnimplementedFeedType(feed_type)
    return _DECODERS.get(feed_type)
