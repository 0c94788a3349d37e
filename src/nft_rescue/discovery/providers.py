# ABOUTME: Discovery providers that turn pre-fetched ownership exports into DiscoveredNFTs.
# ABOUTME: One provider per chain family, chosen by create_provider() from the chain type.

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from ..chains import ChainConfig
from .types import DiscoveredNFT, DiscoveryError

logger = logging.getLogger(__name__)


class DiscoveryProvider(Protocol):
    """Anything that can list the NFTs a wallet owns on one chain."""

    chain: ChainConfig

    def discover_nfts(self, wallet_address: str) -> list[DiscoveredNFT]:
        ...


def _load_json(path: Path) -> Any:
    if not path.exists():
        raise DiscoveryError(f"Discovery source not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise DiscoveryError(f"Invalid JSON in discovery source {path}: {e}") from e


class AlchemyExportProvider:
    """Reads an Alchemy getNFTsForOwner export for EVM chains.

    Accepts either the raw API response (``{"ownedNfts": [...]}``), a list of
    such pages, or a bare list of owned NFTs.
    """

    def __init__(self, chain: ChainConfig, source: Path):
        if chain.chain_type != "evm":
            raise DiscoveryError(
                f"AlchemyExportProvider requires an EVM chain, {chain.name} is {chain.chain_type}"
            )
        self.chain = chain
        self.source = source

    def _owned_nfts(self, raw: Any) -> list[dict]:
        if isinstance(raw, dict):
            return list(raw.get("ownedNfts", []))
        if isinstance(raw, list):
            items = []
            for item in raw:
                if isinstance(item, dict) and "ownedNfts" in item:
                    items.extend(item["ownedNfts"])
                else:
                    items.append(item)
            return items
        raise DiscoveryError(f"Unrecognised Alchemy export in {self.source}")

    def _to_discovered(self, nft: dict) -> DiscoveredNFT:
        contract = nft.get("contract") or {}
        raw_metadata = (nft.get("raw") or {}).get("metadata") or None
        image = nft.get("image") or {}

        cached_metadata = None
        if isinstance(raw_metadata, dict) and raw_metadata:
            cached_metadata = {
                key: raw_metadata.get(key)
                for key in ("name", "description", "image", "animation_url", "external_url", "attributes")
                if raw_metadata.get(key) is not None
            }
        else:
            raw_metadata = {}

        collection = (contract.get("openSeaMetadata") or {}).get("collectionName")

        return DiscoveredNFT(
            contract_address=str(contract["address"]).lower(),
            token_id=str(nft["tokenId"]),
            token_uri=nft.get("tokenUri"),
            name=nft.get("name") or raw_metadata.get("name"),
            description=nft.get("description") or raw_metadata.get("description"),
            contract_name=contract.get("name") or collection,
            cached_metadata=cached_metadata,
            cached_image_url=(
                image.get("cachedUrl") or image.get("pngUrl")
                or image.get("originalUrl") or raw_metadata.get("image")
            ),
            cached_animation_url=raw_metadata.get("animation_url"),
            chain_id=self.chain.chain_id,
            chain_name=self.chain.name,
        )

    def discover_nfts(self, wallet_address: str) -> list[DiscoveredNFT]:
        raw = _load_json(self.source)
        nfts = []
        for item in self._owned_nfts(raw):
            try:
                nfts.append(self._to_discovered(item))
            except (KeyError, TypeError, AttributeError) as e:
                raise DiscoveryError(f"Malformed NFT entry in {self.source}: {e}") from e
        logger.info(f"Discovered {len(nfts)} NFTs for {wallet_address} on {self.chain.display_name}")
        return nfts


def _tzip21_attributes(raw: Any) -> list[dict] | None:
    """Normalise TZIP-21 attributes (list of {name|trait_type, value} or a mapping)."""
    attributes = []
    if isinstance(raw, list):
        for attr in raw:
            if not isinstance(attr, dict):
                continue
            trait_type = attr.get("trait_type") or attr.get("name")
            value = attr.get("value")
            if not trait_type or value is None:
                continue
            attributes.append({"trait_type": trait_type, "value": value})
        return attributes
    if isinstance(raw, dict):
        for key, value in raw.items():
            if isinstance(value, dict) and "value" in value:
                value = value["value"]
            if value is None:
                continue
            attributes.append({"trait_type": str(key), "value": str(value)})
        return attributes or None
    return None


def _video_artifact(metadata: dict, image: str | None) -> str | None:
    """artifactUri counts as animation only when a format declares it as video."""
    artifact = metadata.get("artifactUri")
    if not artifact or artifact == image:
        return None
    for fmt in metadata.get("formats") or []:
        if isinstance(fmt, dict) and fmt.get("uri") == artifact and str(fmt.get("mimeType", "")).startswith("video/"):
            return artifact
    return None


class TzktExportProvider:
    """Reads a TzKT /tokens/balances export for Tezos."""

    def __init__(self, chain: ChainConfig, source: Path):
        if chain.chain_type != "tezos":
            raise DiscoveryError(
                f"TzktExportProvider requires a Tezos chain, {chain.name} is {chain.chain_type}"
            )
        self.chain = chain
        self.source = source

    def _to_discovered(self, balance: dict) -> DiscoveredNFT:
        token = balance["token"]
        contract = token["contract"]
        metadata = token.get("metadata") or {}

        image = metadata.get("displayUri") or metadata.get("image") or metadata.get("thumbnailUri")
        animation = _video_artifact(metadata, image)

        cached_metadata = None
        if metadata:
            cached_metadata = {
                "name": metadata.get("name"),
                "description": metadata.get("description"),
                "image": image or metadata.get("artifactUri"),
                "animation_url": animation,
                "attributes": _tzip21_attributes(metadata.get("attributes")),
            }
            cached_metadata = {k: v for k, v in cached_metadata.items() if v is not None}

        return DiscoveredNFT(
            contract_address=str(contract["address"]),
            token_id=str(token["tokenId"]),
            # TzKT does not expose the raw token URI
            token_uri=None,
            name=metadata.get("name"),
            description=metadata.get("description"),
            contract_name=contract.get("alias"),
            cached_metadata=cached_metadata,
            cached_image_url=image or metadata.get("artifactUri"),
            cached_animation_url=animation,
            chain_id=self.chain.chain_id,
            chain_name=self.chain.name,
        )

    def discover_nfts(self, wallet_address: str) -> list[DiscoveredNFT]:
        raw = _load_json(self.source)
        if not isinstance(raw, list):
            raise DiscoveryError(f"TzKT export in {self.source} must be a list of token balances")

        nfts = []
        for item in raw:
            try:
                nfts.append(self._to_discovered(item))
            except (KeyError, TypeError, AttributeError) as e:
                raise DiscoveryError(f"Malformed token balance in {self.source}: {e}") from e
        logger.info(f"Discovered {len(nfts)} NFTs for {wallet_address} on {self.chain.display_name}")
        return nfts


def create_provider(chain: ChainConfig, source: Path) -> DiscoveryProvider:
    """Pick the discovery provider for a chain's family."""
    if chain.chain_type == "evm":
        return AlchemyExportProvider(chain, source)
    if chain.chain_type == "tezos":
        return TzktExportProvider(chain, source)
    raise DiscoveryError(f"No discovery provider for chain type '{chain.chain_type}'")
