from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FeedRow:
    id: int
    name: str
    url: str
    feed_type: str
    last_updated_at: str | None
    date_format: str | None


@dataclass(frozen=True)
class PostRow:
    id: int
    title: str
    url: str
    published_at: str
    feed_id: int
    is_archived: bool
    is_starred: bool
    feed_name: str
