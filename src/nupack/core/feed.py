"""HTTP client for OData package feeds."""

import logging
import time

import httpx

from nupack.core.config import DEFAULT_TIMEOUT
from nupack.core.credentials import CredentialCache
from nupack.core.odata import parse_feed
from nupack.errors import FeedError, FeedNotFoundError
from nupack.models.package import Package
from nupack.models.source import PackageSource

logger = logging.getLogger(__name__)


class FeedClient:
    """Client for querying remote package feeds."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        credentials: CredentialCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.credentials = credentials or CredentialCache()
        self.client = httpx.Client(
            headers={"Accept": "application/atom+xml, application/xml"},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        self.client.close()

    def auth_for(self, url: str, source: PackageSource | None) -> httpx.BasicAuth | None:
        """Basic auth from the source's saved password, else the credential cache."""
        if source is not None and source.has_password:
            return httpx.BasicAuth(source.user_name or "", source.expanded_password or "")

        credential = self.credentials.get(url)
        if credential is not None:
            return httpx.BasicAuth(credential.username, credential.password)
        return None

    def get(self, url: str, source: PackageSource | None = None) -> httpx.Response:
        """GET a feed URL, mapping transport problems onto FeedError."""
        try:
            response = self.client.get(url, auth=self.auth_for(url, source))
        except httpx.HTTPError as e:
            raise FeedError(f"Unable to retrieve {url}: {e}")

        if response.status_code == 404:
            raise FeedNotFoundError(f"{url} not found")
        if response.status_code != 200:
            raise FeedError(f"Unable to retrieve {url}: HTTP {response.status_code}")
        return response

    def get_packages(self, url: str, source: PackageSource | None = None) -> list[Package]:
        """Fetch an Atom feed and parse its entries, tagging them with source."""
        logger.debug("Getting packages from: %s", url)
        started = time.monotonic()

        response = self.get(url, source)
        packages = parse_feed(response.content)
        for package in packages:
            package.source = source

        logger.debug(
            "Retrieved %d packages in %d ms",
            len(packages),
            (time.monotonic() - started) * 1000,
        )
        return packages
