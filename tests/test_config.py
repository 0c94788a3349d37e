# ABOUTME: Tests for YAML configuration loading and chain lookup.
# ABOUTME: Covers defaults, relative path resolution and validation errors.

import textwrap

import pytest

from nft_rescue.chains import get_chain_config, get_supported_chain_names
from nft_rescue.config import IPFS_GATEWAY_URLS, ConfigError, load_config


def write_config(tmp_path, body: str):
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(body))
    return path


class TestLoadConfig:

    def test_minimal_config_uses_defaults(self, tmp_path):
        path = write_config(tmp_path, """
            wallets:
              - address: "0xabc"
                chain: zora
                source: exports/zora.json
        """)

        config = load_config(path)

        assert config.output_dir == tmp_path / "nft-rescue-backup"
        assert config.schedule == "0 3 * * *"
        assert config.history_limit == 2
        assert config.backup_all is False
        assert config.download.max_retries == 3
        assert config.download.ipfs_gateways == IPFS_GATEWAY_URLS

        wallet = config.wallets[0]
        assert wallet.name == "0xabc"
        assert wallet.source == tmp_path / "exports" / "zora.json"
        assert wallet.chain_config.chain_id == 7777777

    def test_full_config(self, tmp_path):
        path = write_config(tmp_path, """
            output_dir: /srv/backups
            schedule: "30 4 * * 0"
            history_limit: 5
            backup_all: true
            rate_limit_per_second: 2.5
            download:
              max_retries: 5
              base_delay: 0.5
              max_delay: 4
              timeout: 10
              ipfs_gateways:
                - https://my-gateway.example/ipfs/
            wallets:
              - name: main
                address: tz1abc
                chain: Tezos
                source: /data/tezos.json
                display_name: Main wallet
        """)

        config = load_config(path)

        assert str(config.output_dir) == "/srv/backups"
        assert config.schedule == "30 4 * * 0"
        assert config.history_limit == 5
        assert config.backup_all is True
        assert config.rate_limit_per_second == 2.5
        assert config.download.max_retries == 5
        assert config.download.backoff_delay(5) == 4.0
        assert config.download.ipfs_gateways == ["https://my-gateway.example/ipfs/"]
        assert config.wallets[0].chain == "tezos"
        assert config.wallets[0].display_name == "Main wallet"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path, "wallets: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_missing_wallets(self, tmp_path):
        with pytest.raises(ConfigError, match="wallets"):
            load_config(write_config(tmp_path, "output_dir: out\n"))

    def test_wallet_missing_source(self, tmp_path):
        path = write_config(tmp_path, """
            wallets:
              - address: "0xabc"
                chain: base
        """)
        with pytest.raises(ConfigError, match="source"):
            load_config(path)

    def test_unknown_chain(self, tmp_path):
        path = write_config(tmp_path, """
            wallets:
              - address: "0xabc"
                chain: dogechain
                source: x.json
        """)
        with pytest.raises(ConfigError, match="Unsupported chain"):
            load_config(path)

    def test_invalid_history_limit(self, tmp_path):
        path = write_config(tmp_path, """
            history_limit: 0
            wallets:
              - address: "0xabc"
                chain: base
                source: x.json
        """)
        with pytest.raises(ConfigError, match="history_limit"):
            load_config(path)


class TestChains:

    def test_lookup_is_case_insensitive(self):
        assert get_chain_config("  Base ").chain_id == 8453

    def test_unknown_chain(self):
        with pytest.raises(ValueError):
            get_chain_config("solana")

    def test_supported_names(self):
        names = get_supported_chain_names()
        assert "ethereum" in names
        assert "tezos" in names
