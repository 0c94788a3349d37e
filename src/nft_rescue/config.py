# ABOUTME: Configuration loading and validation for nft-rescue.
# ABOUTME: Parses config.yaml into validated dataclasses and holds gateway constants.

from dataclasses import dataclass, field
from pathlib import Path
import yaml

from .chains import ChainConfig, get_chain_config

# Known IPFS gateway hostnames (content-addressed, safe)
IPFS_GATEWAY_HOSTS = [
    "ipfs.io",
    "cloudflare-ipfs.com",
    "gateway.pinata.cloud",
    "dweb.link",
    "w3s.link",
    "nftstorage.link",
    "ipfs.infura.io",
    "ipfs.fleek.co",
    "4everland.io",
    "cf-ipfs.com",
]

# Known Arweave gateway hostnames (content-addressed, safe)
ARWEAVE_GATEWAY_HOSTS = [
    "arweave.net",
    "arweave.dev",
    "ar-io.net",
    "g8way.io",
    "arweave.live",
]

# Gateway base URLs tried in order when fetching IPFS content
IPFS_GATEWAY_URLS = [
    "https://ipfs.io/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
    "https://dweb.link/ipfs/",
    "https://w3s.link/ipfs/",
    "https://nftstorage.link/ipfs/",
]

# Timeout for a single HTTP attempt (seconds)
REQUEST_TIMEOUT = 30

DEFAULT_HISTORY_LIMIT = 2


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class DownloadConfig:
    """Retry, timeout and gateway settings for network fetches."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    timeout: float = REQUEST_TIMEOUT
    ipfs_gateways: list[str] = field(default_factory=lambda: list(IPFS_GATEWAY_URLS))

    def __post_init__(self):
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigError("Retry delays must not be negative")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if not self.ipfs_gateways:
            raise ConfigError("At least one IPFS gateway must be configured")

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the retry that follows a failed zero-based attempt."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)


@dataclass
class WalletConfig:
    """A wallet on one chain to back up."""
    name: str
    address: str
    chain: str
    source: Path
    display_name: str | None = None

    @property
    def chain_config(self) -> ChainConfig:
        return get_chain_config(self.chain)


@dataclass
class Config:
    """Main configuration for nft-rescue."""
    output_dir: Path
    wallets: list[WalletConfig]
    schedule: str = "0 3 * * *"
    history_limit: int = DEFAULT_HISTORY_LIMIT
    backup_all: bool = False
    rate_limit_per_second: float = 10.0
    download: DownloadConfig = field(default_factory=DownloadConfig)

    def __post_init__(self):
        if self.history_limit < 1:
            raise ConfigError(f"history_limit must be at least 1, got {self.history_limit}")
        if self.rate_limit_per_second <= 0:
            raise ConfigError(f"rate_limit_per_second must be positive, got {self.rate_limit_per_second}")
        if not self.wallets:
            raise ConfigError("At least one wallet must be configured")


def _parse_wallet(raw: dict, index: int, base_dir: Path) -> WalletConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"Wallet {index} must be a mapping")
    for key in ("address", "chain", "source"):
        if key not in raw:
            raise ConfigError(f"Wallet '{raw.get('name', index)}' missing '{key}'")

    try:
        chain = get_chain_config(str(raw["chain"]))
    except ValueError as e:
        raise ConfigError(str(e)) from e

    source = Path(raw["source"])
    if not source.is_absolute():
        source = base_dir / source

    return WalletConfig(
        name=str(raw.get("name") or raw["address"]),
        address=str(raw["address"]),
        chain=chain.name,
        source=source,
        display_name=raw.get("display_name"),
    )


def load_config(path: Path) -> Config:
    """Load and validate configuration from a YAML file.

    Relative paths (output_dir, wallet sources) resolve against the
    directory containing the config file.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")

    if not isinstance(raw, dict):
        raise ConfigError("Config file must contain a YAML mapping")

    if "wallets" not in raw:
        raise ConfigError("Missing required config field: wallets")
    if not isinstance(raw["wallets"], list):
        raise ConfigError("'wallets' must be a list")

    base_dir = path.parent
    wallets = [_parse_wallet(w, i, base_dir) for i, w in enumerate(raw["wallets"])]

    output_dir = Path(raw.get("output_dir", "nft-rescue-backup"))
    if not output_dir.is_absolute():
        output_dir = base_dir / output_dir

    download_raw = raw.get("download") or {}
    if not isinstance(download_raw, dict):
        raise ConfigError("'download' must be a mapping")
    download = DownloadConfig(
        max_retries=int(download_raw.get("max_retries", 3)),
        base_delay=float(download_raw.get("base_delay", 1.0)),
        max_delay=float(download_raw.get("max_delay", 10.0)),
        timeout=float(download_raw.get("timeout", REQUEST_TIMEOUT)),
        ipfs_gateways=list(download_raw.get("ipfs_gateways", IPFS_GATEWAY_URLS)),
    )

    return Config(
        output_dir=output_dir,
        wallets=wallets,
        schedule=raw.get("schedule", "0 3 * * *"),
        history_limit=int(raw.get("history_limit", DEFAULT_HISTORY_LIMIT)),
        backup_all=bool(raw.get("backup_all", False)),
        rate_limit_per_second=float(raw.get("rate_limit_per_second", 10.0)),
        download=download,
    )
