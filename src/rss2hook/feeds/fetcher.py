from __future__ import annotations

import logging

import requests

from rss2hook.config import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)


class NetworkError(RuntimeError):
    """Raised when a feed cannot be retrieved."""


class FeedFetcher:
    def __init__(
        self,
        timeout_seconds: float,
        user_agent: str = DEFAULT_USER_AGENT,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.session = session or requests.Session()

    def fetch(self, url: str) -> bytes:
        headers = {"User-Agent": self.user_agent}
        try:
            response = self.session.get(url, timeout=self.timeout_seconds, headers=headers)
            status = response.status_code
            # Covers 4xx/5xx as well as 1xx and redirects that were not followed.
            if not 200 <= status < 300:
                raise NetworkError(f"fetching {url} returned HTTP {status}")
            content = response.content
        except requests.RequestException as exc:
            raise NetworkError(f"fetching {url} failed: {exc}") from exc

        logger.debug("Fetched %d bytes from %s", len(content), url)
        return content

    def close(self) -> None:
        self.session.close()
