"""
Network fetch of prebuilt archives.

This module provides the single network operation of the pipeline:
- HTTP/HTTPS GET with TLS verification
- Proxy configuration taken from the environment (HTTP_PROXY, HTTPS_PROXY, ...)
- A long timeout suitable for large binary archives
- A hard check that the received byte count equals Content-Length
- Optional bounded retries with exponential backoff (single attempt by default)
- Progress reporting (bytes, percentage, speed, ETA)
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from .exceptions import NetworkError

logger = logging.getLogger(__name__)

# Seconds; prebuilt archives are several hundred megabytes
DEFAULT_TIMEOUT = 1800

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


def fetch_bytes(
    url: str,
    timeout: int = DEFAULT_TIMEOUT,
    max_retries: int = 1,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    session: Optional[requests.Session] = None,
) -> bytes:
    """
    Fetch a URL into memory.

    Args:
        url: URL to download from
        timeout: Request timeout in seconds
        max_retries: Total number of attempts (1 = fail fast)
        progress_callback: Optional callback for progress updates
        session: Optional requests session (a new one honoring the
            environment's proxy settings is used otherwise)

    Returns:
        The response body

    Raises:
        NetworkError: If the request fails, the server omits Content-Length,
            or fewer/more bytes than declared arrive
        ValueError: If URL is empty

    Example:
        >>> data = fetch_bytes("https://example.com/sherpa-onnx.tar.bz2")
        >>> len(data)
        104857600
    """
    if not url:
        raise ValueError("URL cannot be empty")

    attempts = max(1, max_retries)
    own_session = session is None
    if own_session:
        session = requests.Session()
        # Proxies come from HTTP_PROXY / HTTPS_PROXY / NO_PROXY
        session.trust_env = True

    try:
        for attempt in range(attempts):
            try:
                return _fetch_once(url, session, timeout, progress_callback)
            except NetworkError as e:
                if attempt == attempts - 1:
                    raise

                backoff_seconds = 2**attempt
                logger.warning(
                    f"Download attempt {attempt + 1} failed: {e}. "
                    f"Retrying in {backoff_seconds}s..."
                )
                time.sleep(backoff_seconds)
    finally:
        if own_session:
            session.close()

    raise NetworkError(f"Failed to GET `{url}`", url=url)


def _fetch_once(
    url: str,
    session: requests.Session,
    timeout: int,
    progress_callback: Optional[Callable[[DownloadProgress], None]],
) -> bytes:
    """Perform one streaming GET and validate the transfer length."""
    logger.info(f"Downloading from {url}")

    try:
        response = session.get(url, stream=True, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except RequestException as e:
        raise NetworkError(f"Failed to GET `{url}`: {e}", url=url) from e

    with response:
        content_length = response.headers.get("content-length")
        if content_length is None or not content_length.isdigit():
            raise NetworkError(
                f"Content-Length header should be present on archive response: {url}",
                url=url,
            )
        total_size = int(content_length)
        logger.debug(f"Fetch file {url} {total_size}")

        buffer = bytearray()
        start_time = time.time()
        last_progress_time = start_time

        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                buffer.extend(chunk)

                # Report progress (max once per 0.5 seconds to avoid spam)
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or len(buffer) == total_size
                ):
                    elapsed = current_time - start_time
                    speed = len(buffer) / elapsed if elapsed > 0 else 0
                    remaining = max(total_size - len(buffer), 0)
                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=len(buffer),
                            total_bytes=total_size,
                            percentage=(len(buffer) / total_size * 100)
                            if total_size > 0
                            else 100.0,
                            speed_bps=speed,
                            eta_seconds=remaining / speed if speed > 0 else 0,
                        )
                    )
                    last_progress_time = current_time
        except RequestException as e:
            raise NetworkError(f"Failed to download from `{url}`: {e}", url=url) from e

    if len(buffer) != total_size:
        raise NetworkError(
            f"Truncated transfer from `{url}`: received {len(buffer)} bytes, "
            f"server declared {total_size}",
            url=url,
        )

    logger.info(f"Download complete: {len(buffer)} bytes")
    return bytes(buffer)


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        return f"{mb_downloaded:.1f} MB " f"at {speed_mbps:.1f} MB/s"


__all__ = [
    "DEFAULT_TIMEOUT",
    "DownloadProgress",
    "fetch_bytes",
    "format_progress",
]
