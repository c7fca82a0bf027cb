from __future__ import annotations

import logging
from pathlib import Path

from prometheus_client import CollectorRegistry, Counter, write_to_textfile


logger = logging.getLogger(__name__)


class Metrics:
    def __init__(self) -> None:
        # private registry so repeated runs in one process (tests) don't collide
        self.registry = CollectorRegistry()

        self.feeds_ingested_total = Counter(
            "feeder_feeds_ingested_total", "Feeds fetched, decoded and persisted", registry=self.registry
        )
        self.feeds_failed_total = Counter(
            "feeder_feeds_failed_total", "Feeds skipped after a failure", ["stage"], registry=self.registry
        )
        self.posts_created_total = Counter(
            "feeder_posts_created_total", "Posts inserted", registry=self.registry
        )
        self.posts_duplicate_total = Counter(
            "feeder_posts_duplicate_total", "Posts already stored for their feed", registry=self.registry
        )
        self.items_skipped_total = Counter(
            "feeder_items_skipped_total", "Items dropped before persistence", ["reason"], registry=self.registry
        )
        self.date_resolutions_total = Counter(
            "feeder_date_resolutions_total", "Resolved dates by path", ["path"], registry=self.registry
        )

    def value(self, name: str, labels: dict[str, str] | None = None) -> float:
        return self.registry.get_sample_value(name, labels) or 0.0

    def write_textfile(self, path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(path, self.registry)
        logger.info("metrics written to %s", path)
