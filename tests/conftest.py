# ABOUTME: Shared pytest fixtures for nft-rescue tests.
# ABOUTME: Builds real requests.Response objects and manifest payloads without network access.

import io
from unittest.mock import patch

import pytest
import requests
from requests.structures import CaseInsensitiveDict


def make_response(status: int = 200, body: bytes = b"", headers: dict | None = None, url: str = "") -> requests.Response:
    """A requests.Response that streams `body` from memory."""
    response = requests.Response()
    response.status_code = status
    response.reason = "OK" if status < 400 else "Error"
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = io.BytesIO(body)
    response.url = url
    return response


def make_manifest(backup_date: str, nfts: list | None = None, chain_name: str = "zora",
                  wallet_address: str = "0xabc123", chain_id: int = 7777777, **extra) -> dict:
    return {
        "walletAddress": wallet_address,
        "chainName": chain_name,
        "chainId": chain_id,
        "backupDate": backup_date,
        "summary": {"totalNFTs": len(nfts or []), "fullyDecentralized": 0, "atRisk": len(nfts or []),
                    "backedUp": len(nfts or []), "failed": 0},
        "nfts": nfts or [],
        **extra,
    }


@pytest.fixture
def no_sleep():
    """Patch out backoff sleeps in network code."""
    with patch("time.sleep") as mock_sleep:
        yield mock_sleep
