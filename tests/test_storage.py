import asyncio
import sqlite3

import pytest

from feeder.feeds.errors import PersistenceConflict
from feeder.storage.db import Storage


def _with_storage(tmp_path, scenario):
    async def runner():
        storage = Storage(tmp_path / "data" / "feeder.db")
        await storage.connect()
        try:
            return await scenario(storage)
        finally:
            await storage.close()

    return asyncio.run(runner())


# ── feeds ─────────────────────────────────────────────────────

class TestFeeds:
    def test_create_and_list(self, tmp_path):
        async def scenario(storage):
            first = await storage.create_feed("Blog", "https://e/rss", "rss")
            second = await storage.create_feed("News", "https://e/atom", "atom")
            return first, second, await storage.list_feeds()

        first, second, feeds = _with_storage(tmp_path, scenario)
        assert [f.id for f in feeds] == [first, second]
        assert feeds[0].feed_type == "rss"
        assert feeds[0].last_updated_at is None
        assert feeds[0].date_format is None

    def test_rejects_unknown_type(self, tmp_path):
        async def scenario(storage):
            await storage.create_feed("Odd", "https://e/x", "weird")

        with pytest.raises(sqlite3.IntegrityError):
            _with_storage(tmp_path, scenario)

    def test_update_hint_and_last_updated(self, tmp_path):
        async def scenario(storage):
            feed_id = await storage.create_feed("Blog", "https://e/rss", "rss")
            await storage.update_feed_date_format(feed_id, "%Y-%m-%d")
            await storage.update_feed_last_updated(feed_id, "2024-01-01T00:00:00Z")
            return await storage.get_feed(feed_id)

        feed = _with_storage(tmp_path, scenario)
        assert feed.date_format == "%Y-%m-%d"
        assert feed.last_updated_at == "2024-01-01T00:00:00Z"

    def test_get_missing_feed(self, tmp_path):
        async def scenario(storage):
            return await storage.get_feed(42)

        assert _with_storage(tmp_path, scenario) is None

    def test_delete_cascades_to_posts(self, tmp_path):
        async def scenario(storage):
            feed_id = await storage.create_feed("Blog", "https://e/rss", "rss")
            await storage.create_post("A", "https://e/a", "2024-01-01T00:00:00Z", feed_id)
            deleted = await storage.delete_feed(feed_id)
            return deleted, await storage.list_posts(), await storage.delete_feed(feed_id)

        deleted, posts, deleted_again = _with_storage(tmp_path, scenario)
        assert deleted is True
        assert posts == []
        assert deleted_again is False


# ── posts ─────────────────────────────────────────────────────

class TestPosts:
    def test_create_post_is_idempotent(self, tmp_path):
        async def scenario(storage):
            feed_id = await storage.create_feed("Blog", "https://e/rss", "rss")
            first = await storage.create_post("A", "https://e/a", "2024-01-01T00:00:00Z", feed_id)
            second = await storage.create_post("A again", "https://e/a", "2024-01-02T00:00:00Z", feed_id)
            return first, second, await storage.list_posts()

        first, second, posts = _with_storage(tmp_path, scenario)
        assert (first, second) == (True, False)
        assert len(posts) == 1
        assert posts[0].title == "A"

    def test_insert_post_raises_conflict(self, tmp_path):
        async def scenario(storage):
            feed_id = await storage.create_feed("Blog", "https://e/rss", "rss")
            await storage.insert_post("A", "https://e/a", "2024-01-01T00:00:00Z", feed_id)
            await storage.insert_post("A", "https://e/a", "2024-01-01T00:00:00Z", feed_id)

        with pytest.raises(PersistenceConflict):
            _with_storage(tmp_path, scenario)

    def test_same_url_in_two_feeds(self, tmp_path):
        async def scenario(storage):
            a = await storage.create_feed("A", "https://a/rss", "rss")
            b = await storage.create_feed("B", "https://b/rss", "rss")
            await storage.create_post("X", "https://shared/x", "2024-01-01T00:00:00Z", a)
            await storage.create_post("X", "https://shared/x", "2024-01-01T00:00:00Z", b)
            return await storage.list_posts()

        posts = _with_storage(tmp_path, scenario)
        assert sorted(p.feed_name for p in posts) == ["A", "B"]

    def test_unknown_feed_is_not_a_conflict(self, tmp_path):
        async def scenario(storage):
            await storage.create_post("A", "https://e/a", "2024-01-01T00:00:00Z", 999)

        with pytest.raises(sqlite3.IntegrityError):
            _with_storage(tmp_path, scenario)

    def test_new_posts_are_unflagged(self, tmp_path):
        async def scenario(storage):
            feed_id = await storage.create_feed("Blog", "https://e/rss", "rss")
            await storage.create_post("A", "https://e/a", "2024-01-01T00:00:00Z", feed_id)
            return await storage.list_posts()

        post = _with_storage(tmp_path, scenario)[0]
        assert post.is_archived is False
        assert post.is_starred is False
        assert post.feed_name == "Blog"


# ── browsing views ────────────────────────────────────────────

class TestViews:
    def test_inbox_archive_starred(self, tmp_path):
        async def scenario(storage):
            feed_id = await storage.create_feed("Blog", "https://e/rss", "rss")
            await storage.create_post("Old", "https://e/old", "2024-01-01T00:00:00Z", feed_id)
            await storage.create_post("New", "https://e/new", "2024-02-01T00:00:00Z", feed_id)
            await storage.create_post("Mid", "https://e/mid", "2024-01-15T00:00:00Z", feed_id)
            posts = {p.title: p.id for p in await storage.list_posts()}
            await storage.set_archived(posts["Old"], True)
            await storage.set_starred(posts["Mid"], True)
            return (
                await storage.list_inbox(),
                await storage.list_archive(),
                await storage.list_starred(),
            )

        inbox, archive, starred = _with_storage(tmp_path, scenario)
        assert [p.title for p in inbox] == ["New", "Mid"]
        assert [p.title for p in archive] == ["Old"]
        assert [p.title for p in starred] == ["Mid"]

    def test_unflag(self, tmp_path):
        async def scenario(storage):
            feed_id = await storage.create_feed("Blog", "https://e/rss", "rss")
            await storage.create_post("A", "https://e/a", "2024-01-01T00:00:00Z", feed_id)
            post_id = (await storage.list_posts())[0].id
            await storage.set_archived(post_id, True)
            await storage.set_archived(post_id, False)
            await storage.set_starred(post_id, True)
            await storage.set_starred(post_id, False)
            return await storage.list_posts()

        post = _with_storage(tmp_path, scenario)[0]
        assert post.is_archived is False
        assert post.is_starred is False

    def test_flag_missing_post(self, tmp_path):
        async def scenario(storage):
            return await storage.set_archived(7, True), await storage.set_starred(7, True)

        assert _with_storage(tmp_path, scenario) == (False, False)


# ── connection lifecycle ──────────────────────────────────────

class TestLifecycle:
    def test_reopen_keeps_data(self, tmp_path):
        async def scenario(storage):
            return await storage.create_feed("Blog", "https://e/rss", "rss")

        feed_id = _with_storage(tmp_path, scenario)

        async def reopen(storage):
            return await storage.list_feeds()

        feeds = _with_storage(tmp_path, reopen)
        assert [f.id for f in feeds] == [feed_id]

    def test_closed_storage_refuses_queries(self, tmp_path):
        async def runner():
            storage = Storage(tmp_path / "feeder.db")
            await storage.connect()
            await storage.close()
            await storage.close()
            await storage.list_feeds()

        with pytest.raises(RuntimeError, match="not connected"):
            asyncio.run(runner())
