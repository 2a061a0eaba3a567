"""Feed credentials looked up once per feed and kept for the session."""

import logging
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    username: str
    password: str


CredentialProvider = Callable[[str], Credential | None]


def truncated_feed_uri(url: str) -> str:
    """Reduce a request URL to the feed it belongs to.

    The query is dropped, and a trailing method segment such as
    "FindPackagesById()" is removed, so every request against one feed
    shares a cache key.
    """
    parts = urlsplit(url)
    path = parts.path
    if path.endswith(")"):
        path = path[: path.rfind("/")]
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class CredentialCache:
    """Credentials keyed by truncated feed URI.

    A provider is asked at most once per feed, including when it has nothing
    to offer. The cache is only invalidated by clear().
    """

    def __init__(self, provider: CredentialProvider | None = None):
        self.provider = provider
        self._entries: dict[str, Credential | None] = {}

    def get(self, url: str) -> Credential | None:
        key = truncated_feed_uri(url)
        if key in self._entries:
            return self._entries[key]

        credential = None
        if self.provider is not None:
            logger.debug("Requesting credentials for %s", key)
            credential = self.provider(key)
        self._entries[key] = credential
        return credential

    def set(self, url: str, credential: Credential) -> None:
        self._entries[truncated_feed_uri(url)] = credential

    def clear(self) -> None:
        logger.debug("Clearing %d cached credential(s)", len(self._entries))
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
