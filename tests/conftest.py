from __future__ import annotations

from xml.sax.saxutils import escape, quoteattr

import pytest

from feeder.config import Config


def _build_rss(items, last_build_date=None) -> bytes:
    parts = ['<?xml version="1.0" encoding="utf-8"?>', '<rss version="2.0"><channel>', "<title>Example</title>"]
    if last_build_date is not None:
        parts.append(f"<lastBuildDate>{escape(last_build_date)}</lastBuildDate>")
    for title, link, pub_date in items:
        parts.append(
            f"<item><title>{escape(title)}</title><link>{escape(link)}</link>"
            f"<pubDate>{escape(pub_date)}</pubDate></item>"
        )
    parts.append("</channel></rss>")
    return "".join(parts).encode("utf-8")


def _build_atom(entries, updated=None) -> bytes:
    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        '<feed xmlns="http://www.w3.org/2005/Atom">',
        "<title>Example</title>",
        "<id>urn:example:feed</id>",
    ]
    if updated is not None:
        parts.append(f"<updated>{escape(updated)}</updated>")
    for i, (title, href, published) in enumerate(entries):
        parts.append(
            f"<entry><id>urn:example:{i}</id><title>{escape(title)}</title>"
            f"<link href={quoteattr(href)}/><published>{escape(published)}</published></entry>"
        )
    parts.append("</feed>")
    return "".join(parts).encode("utf-8")


@pytest.fixture
def rss_xml():
    return _build_rss


@pytest.fixture
def atom_xml():
    return _build_atom


@pytest.fixture
def config(tmp_path):
    return Config(
        sqlite_path=tmp_path / "feeder.db",
        http_timeout_seconds=5,
        fetch_concurrency=2,
        user_agent="feeder-tests",
        metrics_textfile="",
        log_level="INFO",
        log_file="",
    )
