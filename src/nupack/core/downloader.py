"""Download functionality with progress reporting."""

import logging
from pathlib import Path
from typing import Callable

import httpx

from nupack.errors import DownloadError

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60.0


def _write_stream(
    response: httpx.Response,
    file_path: Path,
    progress: Callable[[int, int], None] | None,
) -> None:
    total = int(response.headers.get("content-length", 0))
    written = 0

    with open(file_path, "wb") as f:
        for chunk in response.iter_bytes(chunk_size=8192):
            f.write(chunk)
            written += len(chunk)
            if progress is not None and total > 0:
                progress(written, total)


def download_file(
    url: str,
    file_path: Path,
    client: httpx.Client | None = None,
    auth: httpx.Auth | None = None,
    progress: Callable[[int, int], None] | None = None,
) -> Path:
    """Download a file from URL.

    Args:
        url: URL to download from
        file_path: Where to save the file
        client: Client to send the request with (defaults to a one-off client)
        auth: Credentials for the request
        progress: Called with (bytes written, total bytes) after each chunk
            when the server sends a content length

    Returns:
        Path to downloaded file
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Downloading %s to %s", url, file_path)

    try:
        if client is None:
            with httpx.stream(
                "GET", url, auth=auth, follow_redirects=True, timeout=DOWNLOAD_TIMEOUT
            ) as response:
                _check(response, url)
                _write_stream(response, file_path, progress)
        else:
            with client.stream("GET", url, auth=auth, timeout=DOWNLOAD_TIMEOUT) as response:
                _check(response, url)
                _write_stream(response, file_path, progress)
    except httpx.HTTPError as e:
        file_path.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download {url}: {e}")
    except DownloadError:
        file_path.unlink(missing_ok=True)
        raise

    return file_path


def _check(response: httpx.Response, url: str) -> None:
    if response.status_code != 200:
        raise DownloadError(f"Failed to download {url}: HTTP {response.status_code}")
