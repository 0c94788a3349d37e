# ABOUTME: Backup package.
# ABOUTME: Exports downloading, metadata, per-NFT storage and versioned manifest functions.

from .storage import BackupStorage
from .downloader import DownloadError, DownloadResult, download_asset, format_bytes, get_extension_from_url
from .metadata import MetadataError, extract_media_urls, fetch_metadata, normalize_traits
from .manifest import BackupManifest, BackupSummary, ManifestEntry, create_manifest
from .manifest_store import ManifestError, get_manifest_path, write_manifest_index, write_manifest_with_history

__all__ = [
    "BackupStorage",
    "DownloadError",
    "DownloadResult",
    "download_asset",
    "format_bytes",
    "get_extension_from_url",
    "MetadataError",
    "extract_media_urls",
    "fetch_metadata",
    "normalize_traits",
    "BackupManifest",
    "BackupSummary",
    "ManifestEntry",
    "create_manifest",
    "ManifestError",
    "get_manifest_path",
    "write_manifest_index",
    "write_manifest_with_history",
]
