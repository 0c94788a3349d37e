# ABOUTME: Manifest data model for wallet backups.
# ABOUTME: Builds the per-(chain, wallet) record of what was backed up and its storage status.

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..classifier import StorageStatus
from ..discovery.types import make_asset_id


def utc_timestamp(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class BackupSummary:
    """Counts for one backup run."""
    total_nfts: int = 0
    fully_decentralized: int = 0
    at_risk: int = 0
    backed_up: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "totalNFTs": self.total_nfts,
            "fullyDecentralized": self.fully_decentralized,
            "atRisk": self.at_risk,
            "backedUp": self.backed_up,
            "failed": self.failed,
        }


# Optional entry fields and their JSON keys, in output order
_ENTRY_OPTIONAL_FIELDS = [
    ("name", "name"),
    ("collection_name", "collectionName"),
    ("traits", "traits"),
    ("metadata_file", "metadataFile"),
    ("image_file", "imageFile"),
    ("animation_file", "animationFile"),
    ("image_url", "imageUrl"),
    ("animation_url", "animationUrl"),
    ("storage_report_file", "storageReportFile"),
]


@dataclass
class ManifestEntry:
    """One NFT's line in the manifest."""
    contract_address: str
    token_id: str
    storage_status: StorageStatus
    name: str | None = None
    collection_name: str | None = None
    traits: list[dict] | None = None
    metadata_file: str | None = None
    image_file: str | None = None
    animation_file: str | None = None
    image_url: str | None = None
    animation_url: str | None = None
    storage_report_file: str | None = None
    error: str | None = None

    def asset_id(self, chain_id: int) -> str:
        return make_asset_id(chain_id, self.contract_address, self.token_id)

    def to_dict(self) -> dict:
        """JSON form; absent optional fields are omitted."""
        data: dict[str, Any] = {
            "contractAddress": self.contract_address,
            "tokenId": self.token_id,
        }
        for attr, key in _ENTRY_OPTIONAL_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data["storageStatus"] = self.storage_status
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ManifestEntry":
        kwargs = {attr: data.get(key) for attr, key in _ENTRY_OPTIONAL_FIELDS}
        return cls(
            contract_address=data["contractAddress"],
            token_id=str(data["tokenId"]),
            storage_status=data.get("storageStatus", "at-risk"),
            error=data.get("error"),
            **kwargs,
        )


@dataclass
class BackupManifest:
    """Canonical backup record for one wallet on one chain."""
    wallet_address: str
    chain_name: str
    chain_id: int
    backup_date: str = ""
    display_name: str | None = None
    summary: BackupSummary = field(default_factory=BackupSummary)
    nfts: list[ManifestEntry] = field(default_factory=list)

    def __post_init__(self):
        if not self.backup_date:
            self.backup_date = utc_timestamp()

    def to_dict(self) -> dict:
        """Convert manifest to dictionary for JSON serialization."""
        data: dict[str, Any] = {"walletAddress": self.wallet_address}
        if self.display_name is not None:
            data["displayName"] = self.display_name
        data.update({
            "chainName": self.chain_name,
            "chainId": self.chain_id,
            "backupDate": self.backup_date,
            "summary": self.summary.to_dict(),
            "nfts": [entry.to_dict() for entry in self.nfts],
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BackupManifest":
        summary = data.get("summary") or {}
        return cls(
            wallet_address=data["walletAddress"],
            chain_name=data["chainName"],
            chain_id=int(data["chainId"]),
            backup_date=data.get("backupDate", ""),
            display_name=data.get("displayName") or data.get("ensName"),
            summary=BackupSummary(
                total_nfts=summary.get("totalNFTs", 0),
                fully_decentralized=summary.get("fullyDecentralized", 0),
                at_risk=summary.get("atRisk", 0),
                backed_up=summary.get("backedUp", 0),
                failed=summary.get("failed", 0),
            ),
            nfts=[ManifestEntry.from_dict(entry) for entry in data.get("nfts", [])],
        )


def create_manifest(
    wallet_address: str,
    chain_name: str,
    chain_id: int,
    total_nfts: int,
    fully_decentralized: int,
    entries: list[ManifestEntry],
    display_name: str | None = None,
    backup_date: str | None = None,
) -> BackupManifest:
    """Create a backup manifest.

    Args:
        wallet_address: Wallet that was backed up.
        chain_name: Chain the wallet was read from.
        chain_id: Numeric chain id.
        total_nfts: Number of NFTs discovered (including ones not backed up).
        fully_decentralized: How many of those need no backup.
        entries: One entry per NFT that was selected for backup.
        display_name: Human-readable wallet name, if known.
        backup_date: Run timestamp; defaults to now.

    Returns:
        BackupManifest with computed summary counts.
    """
    failed = sum(1 for entry in entries if entry.error)
    summary = BackupSummary(
        total_nfts=total_nfts,
        fully_decentralized=fully_decentralized,
        at_risk=total_nfts - fully_decentralized,
        backed_up=len(entries) - failed,
        failed=failed,
    )

    return BackupManifest(
        wallet_address=wallet_address,
        chain_name=chain_name,
        chain_id=chain_id,
        backup_date=backup_date or utc_timestamp(),
        display_name=display_name,
        summary=summary,
        nfts=entries,
    )
