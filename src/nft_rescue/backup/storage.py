# ABOUTME: Directory and file management for per-NFT backup files.
# ABOUTME: Lays out nfts/<contract>/<token>/ and saves metadata and storage reports as JSON.

import json
import logging
from pathlib import Path
from typing import Any

from ..classifier import NFTStorageReport
from ..discovery.types import DiscoveredNFT
from ..paths import sanitize_path_segment

logger = logging.getLogger(__name__)


class BackupStorage:
    """Manages the backup output directory for one run."""

    def __init__(self, output_dir: Path):
        """Initialize storage.

        Args:
            output_dir: Backup output root (also holds manifests/).
        """
        self.output_dir = output_dir
        self.nfts_path = output_dir / "nfts"

    def create_directories(self) -> None:
        """Create the top-level backup directories."""
        self.nfts_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Using backup directory: {self.output_dir}")

    def get_nft_dir(self, nft: DiscoveredNFT) -> Path:
        """Directory for one NFT's files, created on demand."""
        nft_dir = (
            self.nfts_path
            / sanitize_path_segment(nft.contract_address)
            / sanitize_path_segment(nft.token_id)
        )
        nft_dir.mkdir(parents=True, exist_ok=True)
        return nft_dir

    def relative(self, path: Path) -> str:
        """Path relative to the output root, as stored in manifests."""
        return path.relative_to(self.output_dir).as_posix()

    def save_metadata(self, nft: DiscoveredNFT, metadata: dict[str, Any], from_cache: bool = False) -> Path:
        """Save token metadata as JSON.

        Args:
            nft: The NFT the metadata belongs to.
            metadata: Parsed metadata.
            from_cache: True when the metadata came from the discovery
                provider's cache instead of the token URI.

        Returns:
            Path to the saved file.
        """
        if from_cache:
            metadata = {**metadata, "_source": "provider-cache", "_originalUri": nft.token_uri}
        file_path = self.get_nft_dir(nft) / "metadata.json"
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2, ensure_ascii=False, default=str)
        return file_path

    def save_storage_report(self, nft: DiscoveredNFT, report: NFTStorageReport) -> Path:
        """Save the storage classification report as JSON."""
        file_path = self.get_nft_dir(nft) / "storage-report.json"
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
        return file_path

    def get_asset_path(self, nft: DiscoveredNFT, kind: str) -> Path:
        """Placeholder destination for a media download; the downloader fixes the suffix.

        Args:
            nft: The NFT.
            kind: 'image' or 'animation'.
        """
        return self.get_nft_dir(nft) / f"{kind}.tmp"
