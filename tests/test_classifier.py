# ABOUTME: Tests for URL storage classification and NFT storage reports.
# ABOUTME: Covers IPFS/Arweave/data URI detection, at-risk hosts and status aggregation.

import pytest

from nft_rescue.classifier import (
    NFTStorageReport,
    StorageAnalysis,
    analyze_nft_storage,
    classify_url,
    get_storage_status,
    get_storage_type_name,
)
from nft_rescue.discovery import DiscoveredNFT

CID_V0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
CID_V1 = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


def make_nft(**kwargs) -> DiscoveredNFT:
    defaults = {"contract_address": "0x1234", "token_id": "1", "chain_id": 1, "chain_name": "ethereum"}
    defaults.update(kwargs)
    return DiscoveredNFT(**defaults)


class TestClassifyIpfs:
    """IPFS references are never at risk."""

    @pytest.mark.parametrize("url", [
        f"ipfs://{CID_V0}",
        f"ipfs://{CID_V1}/metadata.json",
        f"https://example.com/ipfs/{CID_V0}",
        f"https://my-pinning-service.xyz/ipfs/{CID_V1}/1.png",
        CID_V0,
        CID_V1,
        "https://ipfs.io/some/path",
        "https://gateway.pinata.cloud/whatever",
        "https://abc.ipfs.dweb.link/",
        "https://nftstorage.link/x",
    ])
    def test_ipfs_markers(self, url):
        """Should classify protocol, path, raw CID and gateway hosts as IPFS."""
        result = classify_url(url)
        assert result.type == "ipfs"
        assert result.is_at_risk is False

    def test_gateway_host_is_retained(self):
        """Should keep the host for gateway matches."""
        result = classify_url("https://cloudflare-ipfs.com/foo")
        assert result.host == "cloudflare-ipfs.com"

    def test_short_raw_cid_is_not_ipfs(self):
        """Should not treat a truncated CID as IPFS."""
        result = classify_url("QmTooShort")
        assert result.type == "centralized"
        assert result.is_at_risk is True


class TestClassifyArweave:
    """Arweave references are never at risk."""

    @pytest.mark.parametrize("url", [
        "ar://abc123",
        "https://arweave.net/abc123",
        "https://arweave.dev/abc",
        "https://ar-io.net/abc",
        "https://g8way.io/abc",
        "https://sub.arweave.net/abc",
    ])
    def test_arweave_markers(self, url):
        """Should classify ar:// and known gateways as Arweave."""
        result = classify_url(url)
        assert result.type == "arweave"
        assert result.is_at_risk is False


class TestClassifyDataUri:

    def test_data_uri(self):
        """Should classify embedded data as safe."""
        result = classify_url("data:image/svg+xml;base64,PHN2Zz48L3N2Zz4=")
        assert result.type == "data-uri"
        assert result.is_at_risk is False

    def test_data_uri_with_leading_whitespace(self):
        """Should trim before checking prefixes."""
        assert classify_url("   data:application/json,{}").type == "data-uri"


class TestClassifyCentralized:

    @pytest.mark.parametrize("url,host", [
        ("https://api.niftygateway.com/metadata/1", "api.niftygateway.com"),
        ("https://res.cloudinary.com/x/image.png", "res.cloudinary.com"),
        ("https://my-bucket.s3.amazonaws.com/1.png", "my-bucket.s3.amazonaws.com"),
        ("https://api.opensea.io/api/v1/metadata/1", "api.opensea.io"),
        ("HTTPS://EXAMPLE.COM/NFT.PNG", "example.com"),
    ])
    def test_http_hosts_are_at_risk(self, url, host):
        """Should mark ordinary HTTP hosts as centralized and keep the lowercased host."""
        result = classify_url(url)
        assert result.type == "centralized"
        assert result.is_at_risk is True
        assert result.host == host

    def test_lookalike_gateway_host_is_at_risk(self):
        """Should not match a host that merely ends with a gateway name."""
        result = classify_url("https://evilipfs.io/x.png")
        assert result.type == "centralized"

    def test_whitespace_is_trimmed(self):
        result = classify_url("  https://example.com/nft.png  ")
        assert result.type == "centralized"
        assert result.host == "example.com"

    def test_original_url_is_preserved(self):
        """Should report the input as given, not the trimmed form."""
        url = f"  ipfs://{CID_V0}  "
        assert classify_url(url).original_url == url


class TestClassifyTotality:
    """classify_url never raises."""

    @pytest.mark.parametrize("value", [
        "", "   ", None, "not-a-valid-url", "http://[::1", "://", "http://", 42, "ipfs:/", "\x00",
    ])
    def test_bad_input_is_centralized(self, value):
        result = classify_url(value)
        assert result.type == "centralized"
        assert result.is_at_risk is True

    def test_unparsable_has_no_host(self):
        assert classify_url("not-a-valid-url").host is None


class TestAnalyzeNftStorage:

    def test_fully_decentralized(self):
        """Should report no at-risk URLs when everything is content-addressed."""
        nft = make_nft(token_uri=f"ipfs://{CID_V0}")
        metadata = {"image": "ar://abc", "animation_url": f"ipfs://{CID_V1}"}

        report = analyze_nft_storage(nft, metadata)

        assert report.is_fully_decentralized is True
        assert report.at_risk_urls == []
        assert report.token_uri.type == "ipfs"
        assert report.image.type == "arweave"
        assert report.animation.type == "ipfs"

    def test_fully_centralized_lists_urls_in_order(self):
        """Should list at-risk originals as token URI, image, animation."""
        nft = make_nft(token_uri="https://api.example.com/1")
        metadata = {"image": " https://cdn.example.com/1.png", "animation_url": "https://cdn.example.com/1.mp4"}

        report = analyze_nft_storage(nft, metadata)

        assert report.is_fully_decentralized is False
        assert report.at_risk_urls == [
            "https://api.example.com/1",
            " https://cdn.example.com/1.png",
            "https://cdn.example.com/1.mp4",
        ]

    def test_mixed(self):
        nft = make_nft(token_uri=f"ipfs://{CID_V0}")
        report = analyze_nft_storage(nft, {"image": "https://cdn.example.com/image.png"})

        assert report.is_fully_decentralized is False
        assert report.at_risk_urls == ["https://cdn.example.com/image.png"]
        assert report.token_uri.is_at_risk is False

    def test_without_metadata(self):
        """Should only classify the token URI."""
        report = analyze_nft_storage(make_nft(token_uri=f"ipfs://{CID_V0}"))

        assert report.image is None
        assert report.animation is None
        assert report.is_fully_decentralized is True

    def test_missing_token_uri_is_at_risk(self):
        """Should treat an absent token URI as at risk and record it."""
        report = analyze_nft_storage(make_nft(token_uri=None), {"image": "ar://abc"})

        assert report.token_uri.is_at_risk is True
        assert report.is_fully_decentralized is False
        assert report.at_risk_urls == [""]

    def test_report_serialization(self):
        report = analyze_nft_storage(make_nft(token_uri="https://example.com/1"))
        data = report.to_dict()

        assert data["tokenUri"] == {
            "type": "centralized",
            "isAtRisk": True,
            "originalUrl": "https://example.com/1",
            "host": "example.com",
        }
        assert "image" not in data
        assert data["isFullyDecentralized"] is False
        assert data["atRiskUrls"] == ["https://example.com/1"]


def _analysis(at_risk: bool) -> StorageAnalysis:
    return StorageAnalysis("centralized" if at_risk else "ipfs", at_risk, "x")


class TestGetStorageStatus:

    def test_decentralized(self):
        report = NFTStorageReport(_analysis(False), _analysis(False), None, True, [])
        assert get_storage_status(report) == "decentralized"

    def test_at_risk(self):
        report = NFTStorageReport(_analysis(True), _analysis(True), None, False, ["a", "b"])
        assert get_storage_status(report) == "at-risk"

    def test_mixed(self):
        report = NFTStorageReport(_analysis(False), _analysis(True), None, False, ["b"])
        assert get_storage_status(report) == "mixed"

    def test_only_token_uri(self):
        report = NFTStorageReport(_analysis(True), None, None, False, ["a"])
        assert get_storage_status(report) == "at-risk"


def test_storage_type_names():
    assert get_storage_type_name("ipfs") == "IPFS"
    assert get_storage_type_name("arweave") == "Arweave"
    assert get_storage_type_name("data-uri") == "Embedded (data URI)"
    assert get_storage_type_name("centralized") == "Centralized"
