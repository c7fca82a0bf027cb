from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path

import aiosqlite

from feeder.feeds.errors import PersistenceConflict
from feeder.storage.schema import SCHEMA_SQL
from feeder.storage.types import FeedRow, PostRow


logger = logging.getLogger(__name__)


_POSTS_WITH_FEED_SQL = (
    "SELECT p.id, p.title, p.url, p.published_at, p.feed_id, p.is_archived, p.is_starred, f.name AS feed_name "
    "FROM posts p JOIN feeds f ON p.feed_id=f.id "
    "WHERE (? IS NULL OR p.is_archived=?) AND (? IS NULL OR p.is_starred=?) "
    "ORDER BY p.published_at DESC"
)


def _flag(value: bool | None) -> int | None:
    return None if value is None else int(bool(value))


def _post_from_row(row: aiosqlite.Row) -> PostRow:
    return PostRow(
        id=int(row["id"]),
        title=row["title"],
        url=row["url"],
        published_at=row["published_at"],
        feed_id=int(row["feed_id"]),
        is_archived=bool(row["is_archived"]),
        is_starred=bool(row["is_starred"]),
        feed_name=row["feed_name"],
    )


class Storage:
    """Subscribed feeds and their posts, on one aiosqlite connection.

    Every query takes ``_lock`` so concurrent ingestion tasks never interleave
    statements on the shared connection.
    """

    def __init__(self, sqlite_path: Path):
        self._path = sqlite_path
        self._lock = asyncio.Lock()
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database file, creating it and the feed/post tables if needed."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self._path.as_posix())
        db.row_factory = aiosqlite.Row
        await db.executescript(SCHEMA_SQL)
        await db.commit()
        self._db = db
        logger.info("storage ready at %s", self._path)

    async def close(self) -> None:
        db, self._db = self._db, None
        if db is not None:
            await db.close()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError(f"storage at {self._path} is not connected")
        return self._db

    # Feeds

    async def list_feeds(self) -> list[FeedRow]:
        async with self._lock:
            conn = self._conn()
            cursor = await conn.execute("SELECT * FROM feeds ORDER BY id ASC")
            rows = await cursor.fetchall()
            return [FeedRow(**dict(r)) for r in rows]

    async def get_feed(self, feed_id: int) -> FeedRow | None:
        async with self._lock:
            conn = self._conn()
            cursor = await conn.execute("SELECT * FROM feeds WHERE id=?", (feed_id,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return FeedRow(**dict(row))

    async def create_feed(self, name: str, url: str, feed_type: str) -> int:
        async with self._lock:
            conn = self._conn()
            cursor = await conn.execute(
                "INSERT INTO feeds(name, url, feed_type) VALUES(?, ?, ?)",
                (name, url, feed_type),
            )
            await conn.commit()
            return int(cursor.lastrowid)

    async def delete_feed(self, feed_id: int) -> bool:
        async with self._lock:
            conn = self._conn()
            cursor = await conn.execute("DELETE FROM feeds WHERE id=?", (feed_id,))
            await conn.commit()
            return cursor.rowcount > 0

    async def update_feed_last_updated(self, feed_id: int, value: str) -> None:
        async with self._lock:
            conn = self._conn()
            await conn.execute(
                "UPDATE feeds SET last_updated_at=? WHERE id=?",
                (value, feed_id),
            )
            await conn.commit()

    async def update_feed_date_format(self, feed_id: int, date_format: str) -> None:
        async with self._lock:
            conn = self._conn()
            await conn.execute(
                "UPDATE feeds SET date_format=? WHERE id=?",
                (date_format, feed_id),
            )
            await conn.commit()

    # Posts

    async def insert_post(self, title: str, url: str, published_at: str, feed_id: int) -> int:
        """Insert a post, raising PersistenceConflict if (url, feed_id) exists."""
        async with self._lock:
            return await self._insert_post_locked(title, url, published_at, feed_id)

    async def _insert_post_locked(self, title: str, url: str, published_at: str, feed_id: int) -> int:
        conn = self._conn()
        try:
            cursor = await conn.execute(
                "INSERT INTO posts(title, url, published_at, feed_id) VALUES(?, ?, ?, ?)",
                (title, url, published_at, feed_id),
            )
        except sqlite3.IntegrityError as e:
            await conn.rollback()
            if "UNIQUE" in str(e):
                raise PersistenceConflict(url, feed_id) from e
            raise
        await conn.commit()
        return int(cursor.lastrowid)

    async def create_post(self, title: str, url: str, published_at: str, feed_id: int) -> bool:
        """Store a post; returns False when it was already stored for this feed."""
        async with self._lock:
            try:
                await self._insert_post_locked(title, url, published_at, feed_id)
            except PersistenceConflict:
                return False
            return True

    async def list_posts(
        self,
        is_archived: bool | None = None,
        is_starred: bool | None = None,
    ) -> list[PostRow]:
        archived = _flag(is_archived)
        starred = _flag(is_starred)
        async with self._lock:
            conn = self._conn()
            cursor = await conn.execute(_POSTS_WITH_FEED_SQL, (archived, archived, starred, starred))
            rows = await cursor.fetchall()
            return [_post_from_row(r) for r in rows]

    async def list_inbox(self) -> list[PostRow]:
        return await self.list_posts(is_archived=False)

    async def list_archive(self) -> list[PostRow]:
        return await self.list_posts(is_archived=True)

    async def list_starred(self) -> list[PostRow]:
        return await self.list_posts(is_starred=True)

    async def set_archived(self, post_id: int, archived: bool) -> bool:
        async with self._lock:
            conn = self._conn()
            cursor = await conn.execute(
                "UPDATE posts SET is_archived=? WHERE id=?",
                (int(archived), post_id),
            )
            await conn.commit()
            return cursor.rowcount > 0

    async def set_starred(self, post_id: int, starred: bool) -> bool:
        async with self._lock:
            conn = self._conn()
            cursor = await conn.execute(
                "UPDATE posts SET is_starred=? WHERE id=?",
                (int(starred), post_id),
            )
            await conn.commit()
            return cursor.rowcount > 0
