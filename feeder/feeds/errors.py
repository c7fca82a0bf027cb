from __future__ import annotations


class FeederError(Exception):
    """Base class for ingestion failures."""


class FetchError(FeederError):
    def __init__(self, error_type: str, detail: str = ""):
        super().__init__(f"{error_type}: {detail}")
        self.error_type = error_type
        self.detail = detail


class DecodeError(FeederError):
    pass


class DateParseError(FeederError):
    def __init__(self, value: str):
        super().__init__(f"unable to parse date: {value!r}")
        self.value = value


class PersistenceConflict(FeederError):
    """A post with the same (url, feed_id) already exists."""

    def __init__(self, url: str, feed_id: int):
        super().__init__(f"post already stored: feed_id={feed_id} url={url}")
        self.url = url
        self.feed_id = feed_id


class UnimplementedFeedType(FeederError):
    def __init__(self, feed_type: str):
        super().__init__(f"'{feed_type}' feed type is not implemented yet")
        self.feed_type = feed_type


ERROR_TIMEOUT = "TIMEOUT"
ERROR_HTTP = "HTTP_ERROR"
ERROR_NETWORK = "NETWORK"
