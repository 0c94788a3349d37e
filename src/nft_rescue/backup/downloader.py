# ABOUTME: Resilient asset downloads for NFT media.
# ABOUTME: Retries with exponential backoff and substitutes IPFS gateways for /ipfs/<cid> URLs.

import logging
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import requests

from ..classifier import extract_ipfs_cid
from ..config import DownloadConfig

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

CONTENT_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "text/html": ".html",
    "application/pdf": ".pdf",
}

_URL_EXTENSION_PATTERN = re.compile(r"\.([a-zA-Z0-9]+)$")


class DownloadError(Exception):
    """Raised when every candidate URL has exhausted its retries."""
    pass


@dataclass
class DownloadResult:
    """Where a downloaded asset landed and its reported size."""
    path: Path
    size: int


def get_extension_from_url(url: str, content_type: str | None = None) -> str:
    """Pick a file extension for a download.

    A recognised content type wins over the URL's own suffix, since
    servers often serve one format behind another's extension.

    Args:
        url: The URL the content came from.
        content_type: Value of the Content-Type header, if any.

    Returns:
        Extension including the leading dot, '.bin' when unknown.
    """
    if content_type:
        mime = content_type.split(";")[0].strip().lower()
        ext = CONTENT_TYPE_EXTENSIONS.get(mime)
        if ext:
            return ext

    try:
        path = urlparse(url).path
    except ValueError:
        path = url.split("?")[0].split("#")[0]

    match = _URL_EXTENSION_PATTERN.search(path)
    if match:
        return f".{match.group(1).lower()}"

    return ".bin"


def get_candidate_urls(url: str, gateways: list[str]) -> list[str]:
    """Expand an /ipfs/<cid> URL into one URL per gateway; other URLs stand alone."""
    cid = extract_ipfs_cid(url)
    if cid is None:
        return [url]
    return [f"{gateway}{cid}" for gateway in gateways]


def _stream_to_file(response: requests.Response, final_path: Path, deadline: float, timeout: float) -> None:
    """Write the body to final_path, giving up once the attempt deadline passes.

    A watchdog closes the connection at the deadline so a read blocked on a
    trickling server returns. The partial file is removed on any failure.
    """
    expired = threading.Event()

    def expire():
        expired.set()
        response.close()

    def timed_out() -> bool:
        return expired.is_set() or time.monotonic() >= deadline

    watchdog = threading.Timer(max(deadline - time.monotonic(), 0.0), expire)
    watchdog.daemon = True
    watchdog.start()
    try:
        with open(final_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if timed_out():
                    break
                if chunk:
                    f.write(chunk)
        if timed_out():
            raise requests.Timeout(f"Download exceeded {timeout}s")
    except Exception as e:
        final_path.unlink(missing_ok=True)
        if timed_out() and not isinstance(e, requests.Timeout):
            raise requests.Timeout(f"Download exceeded {timeout}s") from e
        raise
    finally:
        watchdog.cancel()


def _save_response(response: requests.Response, source_url: str, dest_path: Path,
                   deadline: float, timeout: float) -> DownloadResult:
    """Stream a successful response to disk next to dest_path."""
    ext = get_extension_from_url(source_url, response.headers.get("Content-Type"))
    final_path = dest_path.with_suffix(ext)
    final_path.parent.mkdir(parents=True, exist_ok=True)

    _stream_to_file(response, final_path, deadline, timeout)

    # Size as reported by the server, not bytes written
    content_length = response.headers.get("Content-Length")
    size = int(content_length) if content_length and content_length.isdigit() else 0
    return DownloadResult(path=final_path, size=size)


def download_asset(url: str, dest_path: Path | str, config: DownloadConfig | None = None) -> DownloadResult:
    """Download a file, trying IPFS gateways and retrying failed attempts.

    Args:
        url: Asset URL. URLs with an /ipfs/<cid> segment are fetched through
            every configured gateway in order.
        dest_path: Destination path; its suffix is replaced by the resolved
            extension.
        config: Retry, timeout and gateway settings. `timeout` bounds each
            whole attempt, connect and body download together.

    Returns:
        DownloadResult with the final path and the Content-Length size (0 if absent).

    Raises:
        DownloadError: If every candidate failed every attempt.
    """
    if config is None:
        config = DownloadConfig()
    dest_path = Path(dest_path)

    last_error: Exception | None = None
    for candidate in get_candidate_urls(url, config.ipfs_gateways):
        for attempt in range(config.max_retries):
            # Hard limit for the whole attempt, body included
            deadline = time.monotonic() + config.timeout
            try:
                response = requests.get(candidate, timeout=(config.timeout, config.timeout), stream=True)
                try:
                    if not 200 <= response.status_code < 300:
                        raise requests.HTTPError(
                            f"HTTP {response.status_code}: {response.reason}", response=response
                        )
                    return _save_response(response, candidate, dest_path, deadline, config.timeout)
                finally:
                    response.close()
            except requests.RequestException as e:
                last_error = e
                logger.warning(
                    f"Download attempt {attempt + 1}/{config.max_retries} for {candidate} failed: {e}"
                )
                if attempt < config.max_retries - 1:
                    time.sleep(config.backoff_delay(attempt))

    raise DownloadError(f"Failed to download {url}: {last_error}") from last_error


def format_bytes(size: int) -> str:
    """Human-readable byte count."""
    if size <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{value:.1f} {units[i]}"
