from __future__ import annotations

import logging
import time

import httpx

from feeder.feeds.errors import ERROR_HTTP, ERROR_NETWORK, ERROR_TIMEOUT, FetchError
from feeder.utils import redact_detail


logger = logging.getLogger(__name__)


class Fetcher:
    """Single-shot HTTP GET for feed documents. No retry."""

    def __init__(
        self,
        timeout_seconds: int,
        user_agent: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "User-Agent": user_agent,
                "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5",
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str) -> bytes:
        started = time.perf_counter()
        try:
            async with self._client.stream("GET", url) as resp:
                if not resp.is_success:
                    raise FetchError(ERROR_HTTP, f"{resp.status_code} from {url}")
                body = await resp.aread()
        except httpx.TimeoutException as e:
            raise FetchError(ERROR_TIMEOUT, redact_detail(str(e) or url)) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(ERROR_NETWORK, redact_detail(str(e) or url)) from e

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.debug("fetched url=%s bytes=%s duration_ms=%s", url, len(body), duration_ms)
        return body
