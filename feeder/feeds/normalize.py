from __future__ import annotations

from dataclasses import dataclass

from feeder.feeds.decoders import AtomFeed, FeedDocument, RssChannel


@dataclass(frozen=True)
class NormalizedItem:
    title: str
    url: str
    published: str


@dataclass(frozen=True)
class NormalizedFeed:
    items: list[NormalizedItem]
    last_updated: str


def _from_rss(channel: RssChannel) -> NormalizedFeed:
    items = [NormalizedItem(title=it.title, url=it.link, published=it.pub_date) for it in channel.items]
    return NormalizedFeed(items=items, last_updated=channel.last_build_date)


def _from_atom(feed: AtomFeed) -> NormalizedFeed:
    items = [NormalizedItem(title=e.title, url=e.link.href, published=e.published) for e in feed.entries]
    return NormalizedFeed(items=items, last_updated=feed.updated)


def normalize(document: FeedDocument) -> NormalizedFeed:
    """Map a decoded RSS channel or Atom feed onto the canonical item list.

    Titles and URLs are passed through untouched.
    """
    if isinstance(document, RssChannel):
        return _from_rss(document)
    if isinstance(document, AtomFeed):
        return _from_atom(document)
    raise TypeError(f"unsupported feed document: {type(document).__name__}")
