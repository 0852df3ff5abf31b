"""HTTP content fetcher for monitored sources."""

from __future__ import annotations

from urllib.parse import urlparse

import requests
import structlog

from src.core.errors import ExtractionFailure
from src.utils.retry import RetryableHTTPError, retry_with_logging

logger = structlog.get_logger(__name__)


class HttpContentFetcher:
    """Fetches raw page, feed or channel listing text over HTTP."""

    def __init__(
        self,
        timeout: float = 30.0,
        max_attempts: int = 3,
        user_agent: str = "content-monitor/0.1",
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def fetch(self, source_ref: str) -> str:
        """Return the body of ``source_ref``.

        Transient failures are retried; anything left over is raised as an
        ExtractionFailure.
        """
        scheme = urlparse(source_ref).scheme
        if scheme not in ("http", "https"):
            msg = f"unsupported source {source_ref!r}"
            raise ExtractionFailure(msg, source=source_ref)

        try:
            text = retry_with_logging(max_attempts=self.max_attempts)(self._get)(source_ref)
        except (requests.RequestException, RetryableHTTPError, OSError) as exc:
            logger.warning("content_fetch_failed", url=source_ref, error=str(exc))
            msg = f"fetch failed for {source_ref}: {exc}"
            raise ExtractionFailure(msg, source=source_ref) from exc

        logger.debug("content_fetched", url=source_ref, length=len(text))
        return text

    def _get(self, url: str) -> str:
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableHTTPError(response.status_code, url)
        response.raise_for_status()
        return response.text
