# ABOUTME: Token metadata fetching with retry and IPFS gateway fallback.
# ABOUTME: Also normalizes media URLs and traits found in the metadata JSON.

import logging
import re
import time
from typing import Any

import requests

from ..config import DownloadConfig

logger = logging.getLogger(__name__)

_RAW_CID_PREFIX = re.compile(r"^(Qm[a-zA-Z0-9]{44}|bafy[a-zA-Z0-9]+)")


class MetadataError(Exception):
    """Raised when token metadata cannot be fetched or parsed."""
    pass


def _ipfs_path(uri: str) -> str | None:
    """The '<cid>[/path]' part of an IPFS-style URI, or None."""
    if uri.startswith("ipfs://"):
        path = uri[len("ipfs://"):]
        # ipfs://ipfs/<cid> appears in some older contracts
        return path[len("ipfs/"):] if path.startswith("ipfs/") else path
    if uri.startswith("ipfs/"):
        return uri[len("ipfs/"):]
    if _RAW_CID_PREFIX.match(uri):
        return uri
    return None


def ipfs_to_http(uri: str | None, gateways: list[str] | None = None) -> str | None:
    """Rewrite an IPFS-style URI to the first gateway; other URIs pass through."""
    if not uri:
        return uri
    gateways = gateways or DownloadConfig().ipfs_gateways
    path = _ipfs_path(uri)
    if path is None:
        return uri
    return f"{gateways[0]}{path}"


def _fetch_with_retry(url: str, config: DownloadConfig) -> requests.Response:
    last_error: Exception | None = None
    for attempt in range(config.max_retries):
        try:
            response = requests.get(url, timeout=config.timeout)
            if 200 <= response.status_code < 300:
                return response
            error = requests.HTTPError(f"HTTP {response.status_code}: {response.reason}", response=response)
            # Client errors other than rate limiting will not fix themselves
            if 400 <= response.status_code < 500 and response.status_code != 429:
                raise MetadataError(f"Failed to fetch {url}: {error}") from error
            last_error = error
        except requests.RequestException as e:
            last_error = e

        logger.warning(f"Metadata fetch attempt {attempt + 1}/{config.max_retries} for {url} failed: {last_error}")
        if attempt < config.max_retries - 1:
            time.sleep(config.backoff_delay(attempt))

    raise MetadataError(f"Failed to fetch {url}: {last_error}") from last_error


def fetch_metadata(token_uri: str, config: DownloadConfig | None = None) -> dict[str, Any]:
    """Fetch and parse the JSON metadata a token URI points at.

    IPFS-style URIs are tried against every configured gateway in order.

    Raises:
        MetadataError: If the URI is empty, every fetch failed, or the body
            is not a JSON object.
    """
    if not token_uri:
        raise MetadataError("Token URI is empty")
    if config is None:
        config = DownloadConfig()

    ipfs_path = _ipfs_path(token_uri)
    if ipfs_path is None:
        response = _fetch_with_retry(token_uri, config)
    else:
        response = None
        last_error: MetadataError | None = None
        for gateway in config.ipfs_gateways:
            try:
                response = _fetch_with_retry(f"{gateway}{ipfs_path}", config)
                break
            except MetadataError as e:
                last_error = e
        if response is None:
            raise MetadataError(f"Failed to fetch {token_uri} from all IPFS gateways: {last_error}") from last_error

    try:
        metadata = response.json()
    except ValueError as e:
        raise MetadataError(f"Invalid JSON in metadata: {response.text[:100]}...") from e
    if not isinstance(metadata, dict):
        raise MetadataError(f"Metadata at {token_uri} is not a JSON object")
    return metadata


def extract_media_urls(metadata: dict[str, Any], gateways: list[str] | None = None) -> tuple[str | None, str | None]:
    """(image, animation) URLs from metadata, with IPFS URIs made fetchable."""
    image = metadata.get("image") if isinstance(metadata.get("image"), str) else None
    animation = metadata.get("animation_url") if isinstance(metadata.get("animation_url"), str) else None
    return ipfs_to_http(image, gateways), ipfs_to_http(animation, gateways)


def normalize_traits(metadata: dict[str, Any] | None) -> list[dict] | None:
    """OpenSea-style attributes as [{trait_type, value, display_type?}] with string values."""
    if not metadata or not isinstance(metadata.get("attributes"), list):
        return None

    traits = []
    for attr in metadata["attributes"]:
        if not isinstance(attr, dict):
            continue
        trait_type = attr.get("trait_type")
        value = attr.get("value")
        if not trait_type or value is None:
            continue
        trait = {"trait_type": str(trait_type), "value": str(value)}
        if attr.get("display_type"):
            trait["display_type"] = str(attr["display_type"])
        traits.append(trait)
    return traits or None
