# ABOUTME: Storage classification for NFT token URIs and media URLs.
# ABOUTME: Separates content-addressed (IPFS, Arweave, data URI) references from at-risk HTTP hosts.

import re
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import urlparse

from .config import ARWEAVE_GATEWAY_HOSTS, IPFS_GATEWAY_HOSTS
from .discovery.types import DiscoveredNFT

StorageType = Literal["ipfs", "arweave", "data-uri", "centralized"]
StorageStatus = Literal["decentralized", "at-risk", "mixed"]

IPFS_CID_V0_PATTERN = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
IPFS_CID_V1_PATTERN = re.compile(r"^bafy[a-z2-7]{55,}$")
IPFS_PATH_PATTERN = re.compile(r"/ipfs/(Qm[a-zA-Z0-9]+|bafy[a-zA-Z0-9]+)")

STORAGE_TYPE_NAMES = {
    "ipfs": "IPFS",
    "arweave": "Arweave",
    "data-uri": "Embedded (data URI)",
    "centralized": "Centralized",
}


@dataclass(frozen=True)
class StorageAnalysis:
    """Classification of a single URL."""
    type: StorageType
    is_at_risk: bool
    original_url: str
    host: str | None = None

    def to_dict(self) -> dict:
        data = {
            "type": self.type,
            "isAtRisk": self.is_at_risk,
            "originalUrl": self.original_url,
        }
        if self.host is not None:
            data["host"] = self.host
        return data


@dataclass(frozen=True)
class NFTStorageReport:
    """Storage classification of every URL an NFT depends on."""
    token_uri: StorageAnalysis
    image: StorageAnalysis | None
    animation: StorageAnalysis | None
    is_fully_decentralized: bool
    at_risk_urls: list[str]

    def analyses(self) -> list[StorageAnalysis]:
        """Present analyses in evaluation order."""
        return [a for a in (self.token_uri, self.image, self.animation) if a is not None]

    def to_dict(self) -> dict:
        data = {"tokenUri": self.token_uri.to_dict()}
        if self.image is not None:
            data["image"] = self.image.to_dict()
        if self.animation is not None:
            data["animation"] = self.animation.to_dict()
        data["isFullyDecentralized"] = self.is_fully_decentralized
        data["atRiskUrls"] = list(self.at_risk_urls)
        return data


def is_ipfs_cid(value: str) -> bool:
    """Check if a string is a bare IPFS CID (v0 or base32 v1)."""
    return bool(IPFS_CID_V0_PATTERN.match(value) or IPFS_CID_V1_PATTERN.match(value))


def extract_ipfs_cid(url: str) -> str | None:
    """Return the CID from an /ipfs/<cid> path segment, if any."""
    match = IPFS_PATH_PATTERN.search(url)
    return match.group(1) if match else None


def _get_host(url: str) -> str | None:
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return None
    if not parsed.scheme or not host:
        return None
    return host.lower()


def _host_matches(host: str, patterns: list[str]) -> bool:
    """Exact or dotted-suffix match (sub.example.com matches example.com)."""
    host = host.lower()
    for pattern in patterns:
        pattern = pattern.lower()
        if host == pattern or host.endswith("." + pattern):
            return True
    return False


def classify_url(url: str | None) -> StorageAnalysis:
    """Classify a URL by storage type and risk.

    Never raises. Anything that cannot be recognised as content-addressed
    storage is treated as centralized and at risk.
    """
    original = url if isinstance(url, str) else ""
    trimmed = original.strip()

    if not trimmed:
        return StorageAnalysis("centralized", True, original)

    # Embedded content, nothing to fetch
    if trimmed.startswith("data:"):
        return StorageAnalysis("data-uri", False, original)

    if trimmed.startswith("ipfs://"):
        return StorageAnalysis("ipfs", False, original)

    if trimmed.startswith("ar://"):
        return StorageAnalysis("arweave", False, original)

    if extract_ipfs_cid(trimmed):
        return StorageAnalysis("ipfs", False, original)

    if is_ipfs_cid(trimmed):
        return StorageAnalysis("ipfs", False, original)

    host = _get_host(trimmed)
    if host is None:
        return StorageAnalysis("centralized", True, original)

    if _host_matches(host, IPFS_GATEWAY_HOSTS):
        return StorageAnalysis("ipfs", False, original, host)

    if _host_matches(host, ARWEAVE_GATEWAY_HOSTS):
        return StorageAnalysis("arweave", False, original, host)

    return StorageAnalysis("centralized", True, original, host)


def analyze_nft_storage(nft: DiscoveredNFT, metadata: dict[str, Any] | None = None) -> NFTStorageReport:
    """Classify the token URI and any media URLs referenced by the metadata.

    Args:
        nft: The discovered NFT.
        metadata: Parsed token metadata, if available.

    Returns:
        NFTStorageReport with at-risk URLs in token URI, image, animation order.
    """
    at_risk_urls: list[str] = []

    # A missing token URI classifies as at risk
    token_uri = classify_url(nft.token_uri or "")
    if token_uri.is_at_risk:
        at_risk_urls.append(token_uri.original_url)

    image = None
    animation = None
    if metadata:
        if metadata.get("image"):
            image = classify_url(metadata["image"])
            if image.is_at_risk:
                at_risk_urls.append(image.original_url)
        if metadata.get("animation_url"):
            animation = classify_url(metadata["animation_url"])
            if animation.is_at_risk:
                at_risk_urls.append(animation.original_url)

    present = [a for a in (token_uri, image, animation) if a is not None]
    return NFTStorageReport(
        token_uri=token_uri,
        image=image,
        animation=animation,
        is_fully_decentralized=all(not a.is_at_risk for a in present),
        at_risk_urls=at_risk_urls,
    )


def get_storage_status(report: NFTStorageReport) -> StorageStatus:
    """Collapse a storage report into the manifest's tri-state status."""
    if report.is_fully_decentralized:
        return "decentralized"

    analyses = report.analyses()
    has_safe = any(not a.is_at_risk for a in analyses)
    has_at_risk = any(a.is_at_risk for a in analyses)
    if has_safe and has_at_risk:
        return "mixed"
    return "at-risk"


def get_storage_type_name(storage_type: StorageType) -> str:
    return STORAGE_TYPE_NAMES.get(storage_type, storage_type)
