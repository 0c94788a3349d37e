# ABOUTME: NFT discovery package.
# ABOUTME: Exports the discovered-NFT type and the per-chain provider factory.

from .types import DiscoveredNFT, DiscoveryError, make_asset_id
from .providers import AlchemyExportProvider, DiscoveryProvider, TzktExportProvider, create_provider

__all__ = [
    "DiscoveredNFT",
    "DiscoveryError",
    "make_asset_id",
    "DiscoveryProvider",
    "AlchemyExportProvider",
    "TzktExportProvider",
    "create_provider",
]
