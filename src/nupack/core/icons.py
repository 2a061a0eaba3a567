"""Package icon download with an on-disk cache."""

import hashlib
import logging
from pathlib import Path

import httpx

from nupack.core.config import DEFAULT_ICON_TIMEOUT

logger = logging.getLogger(__name__)


class IconCache:
    """Fetches icons once and keeps them under cache_dir, keyed by URL hash."""

    def __init__(
        self,
        cache_dir: Path,
        timeout: float = DEFAULT_ICON_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.cache_dir = cache_dir
        self.timeout = timeout
        self.transport = transport

    def path_for(self, url: str) -> Path:
        return self.cache_dir / hashlib.md5(url.encode("utf-8")).hexdigest()

    def fetch(self, url: str) -> bytes | None:
        """Return icon bytes, or None if the icon can't be had in time."""
        if not url:
            return None

        cached = self.path_for(url)
        if cached.is_file():
            return cached.read_bytes()

        try:
            with httpx.Client(
                timeout=self.timeout, follow_redirects=True, transport=self.transport
            ) as client:
                response = client.get(url)
        except httpx.HTTPError as e:
            logger.debug("Icon download failed for %s: %s", url, e)
            return None

        if response.status_code != 200:
            logger.debug("Icon download failed for %s: HTTP %d", url, response.status_code)
            return None

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        cached.write_bytes(response.content)
        return response.content
