# ABOUTME: Data types shared by discovery providers and the backup pipeline.
# ABOUTME: DiscoveredNFT is the asset reference plus whatever the provider pre-fetched.

from dataclasses import dataclass
from typing import Any


class DiscoveryError(Exception):
    """Raised when a discovery source cannot be read or parsed."""
    pass


def make_asset_id(chain_id: int, contract_address: str, token_id: str) -> str:
    """Stable asset identifier: '{chainId}:{contractAddress}:{tokenId}'."""
    return f"{chain_id}:{contract_address}:{token_id}"


@dataclass
class DiscoveredNFT:
    """An NFT owned by a wallet, as reported by a discovery provider."""
    contract_address: str
    token_id: str
    token_uri: str | None = None
    name: str | None = None
    description: str | None = None
    contract_name: str | None = None
    # Provider-cached copies, used when the original URI is dead
    cached_metadata: dict[str, Any] | None = None
    cached_image_url: str | None = None
    cached_animation_url: str | None = None
    chain_id: int | None = None
    chain_name: str | None = None

    @property
    def asset_id(self) -> str:
        return make_asset_id(self.chain_id if self.chain_id is not None else 0, self.contract_address, self.token_id)

    @property
    def display_name(self) -> str:
        return self.name or f"Token #{self.token_id}"
