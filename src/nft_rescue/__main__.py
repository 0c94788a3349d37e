# ABOUTME: CLI entry point for nft-rescue.
# ABOUTME: Provides 'run', 'analyze' and 'serve' commands and the per-wallet backup pipeline.

import argparse
import logging
import time
from logging.handlers import RotatingFileHandler
import sys
import threading
from pathlib import Path
from typing import Any

from .classifier import NFTStorageReport, analyze_nft_storage, get_storage_status, get_storage_type_name
from .concurrency import RateLimiter, host_key
from .config import load_config, ConfigError, Config, DownloadConfig, WalletConfig
from .discovery import DiscoveredNFT, create_provider
from .backup import (
    BackupStorage,
    DownloadError,
    ManifestEntry,
    MetadataError,
    create_manifest,
    download_asset,
    extract_media_urls,
    fetch_metadata,
    format_bytes,
    normalize_traits,
    write_manifest_with_history,
)
from .scheduler import run_scheduler

DEFAULT_CONFIG_PATH = Path("config.yaml")


def setup_logging(log_path: Path | None = None, verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        log_path: Optional path for log file. If provided, enables rotating file logging.
        verbose: Log at DEBUG instead of INFO.
    """
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(log_format, date_format))
    root_logger.addHandler(console_handler)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(log_format, date_format))
        root_logger.addHandler(file_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


class ProgressTracker:
    """Thread-safe progress tracker with periodic logging."""

    def __init__(self, total: int, label: str, logger: logging.Logger, interval: int = 10):
        self.total = total
        self.label = label
        self.logger = logger
        self.interval = interval
        self.count = 0
        self.lock = threading.Lock()
        self.last_logged = 0

    def increment(self) -> None:
        with self.lock:
            self.count += 1
            if self.count == self.total or (self.count - self.last_logged) >= self.interval:
                self.logger.info(f"{self.label}... {self.count}/{self.total}")
                self.last_logged = self.count


def resolve_metadata(nft: DiscoveredNFT, download: DownloadConfig) -> tuple[dict[str, Any] | None, bool]:
    """Fetch metadata from the token URI, falling back to the provider's cached copy.

    Returns:
        (metadata or None, True if it came from the cache)
    """
    logger = logging.getLogger(__name__)

    if nft.token_uri:
        try:
            return fetch_metadata(nft.token_uri, download), False
        except MetadataError as e:
            logger.debug(f"Token URI for {nft.asset_id} failed, trying cache: {e}")

    if nft.cached_metadata:
        return nft.cached_metadata, True
    return None, False


def _download_first(urls: list[str], dest: Path, download: DownloadConfig) -> Path:
    """Download from the first URL that works.

    Raises:
        DownloadError: The last failure, if every URL failed.
    """
    last_error: DownloadError | None = None
    for url in urls:
        try:
            return download_asset(url, dest, download).path
        except DownloadError as e:
            last_error = e
    raise last_error or DownloadError(f"No URL to download for {dest.name}")


def backup_nft(
    nft: DiscoveredNFT,
    storage: BackupStorage,
    metadata: dict[str, Any] | None,
    from_cache: bool,
    report: NFTStorageReport,
    download: DownloadConfig,
    backup_all: bool = False,
) -> ManifestEntry:
    """Save one NFT's metadata, storage report and at-risk media.

    Failures are recorded on the returned entry, never raised.
    """
    logger = logging.getLogger(__name__)
    entry = ManifestEntry(
        contract_address=nft.contract_address,
        token_id=nft.token_id,
        storage_status=get_storage_status(report),
        name=nft.name or (metadata or {}).get("name"),
        collection_name=nft.contract_name,
        traits=normalize_traits(metadata),
    )

    if metadata is None:
        entry.error = "No metadata available (token URI failed and no cache)"
        return entry

    try:
        entry.metadata_file = storage.relative(storage.save_metadata(nft, metadata, from_cache))
        entry.storage_report_file = storage.relative(storage.save_storage_report(nft, report))

        image_url, animation_url = extract_media_urls(metadata, download.ipfs_gateways)
        entry.image_url = image_url
        entry.animation_url = animation_url

        errors = []
        media = [
            ("image", image_url, nft.cached_image_url, report.image),
            ("animation", animation_url, nft.cached_animation_url, report.animation),
        ]
        for kind, url, cached_url, analysis in media:
            urls = [u for u in dict.fromkeys([url, cached_url]) if u]
            if not urls or not (backup_all or (analysis is not None and analysis.is_at_risk)):
                continue
            try:
                path = _download_first(urls, storage.get_asset_path(nft, kind), download)
            except DownloadError as e:
                logger.warning(f"Failed to download {kind} for {nft.asset_id}: {e}")
                errors.append(f"{kind}: {e}")
                continue
            setattr(entry, f"{kind}_file", storage.relative(path))

        if errors:
            entry.error = "; ".join(errors)
    except Exception as e:
        logger.warning(f"Failed to back up {nft.asset_id}: {e}")
        entry.error = str(e)

    return entry


def backup_wallet(wallet: WalletConfig, config: Config, backup_all: bool = False, dry_run: bool = False) -> dict:
    """Backup a single wallet and return statistics.

    Args:
        wallet: Wallet configuration.
        config: Application configuration.
        backup_all: Back up every NFT, not only at-risk ones.
        dry_run: Analyze only; write nothing.

    Returns:
        Dict with backup statistics.
    """
    logger = logging.getLogger(__name__)
    backup_start = time.monotonic()
    chain = wallet.chain_config

    provider = create_provider(chain, wallet.source)
    nfts = provider.discover_nfts(wallet.address)
    rate_limiter = RateLimiter(calls_per_second=config.rate_limit_per_second)

    storage = BackupStorage(config.output_dir)
    if not dry_run:
        storage.create_directories()

    entries: list[ManifestEntry] = []
    fully_decentralized = 0
    progress = ProgressTracker(len(nfts), "Backing up NFTs", logger)

    for nft in nfts:
        rate_limiter.acquire(host_key(nft.token_uri))
        metadata, from_cache = resolve_metadata(nft, config.download)
        report = analyze_nft_storage(nft, metadata)
        if report.is_fully_decentralized:
            fully_decentralized += 1

        if report.is_fully_decentralized and not backup_all:
            logger.debug(f"{nft.display_name} ({nft.asset_id}) is fully decentralized, skipping")
        elif dry_run:
            logger.info(f"Would back up {nft.display_name} ({nft.asset_id}) [{get_storage_status(report)}]")
        else:
            entry = backup_nft(nft, storage, metadata, from_cache, report, config.download, backup_all)
            entries.append(entry)
        progress.increment()

    stats = {
        "total": len(nfts),
        "fully_decentralized": fully_decentralized,
        "at_risk": len(nfts) - fully_decentralized,
        "backed_up": 0,
        "failed": 0,
        "manifest_path": None,
    }
    if dry_run:
        logger.info("Dry run - no files were written")
        return stats

    manifest = create_manifest(
        wallet_address=wallet.address,
        chain_name=chain.name,
        chain_id=chain.chain_id,
        total_nfts=len(nfts),
        fully_decentralized=fully_decentralized,
        entries=entries,
        display_name=wallet.display_name,
    )
    manifest_path = write_manifest_with_history(
        config.output_dir,
        chain.name,
        wallet.address,
        manifest,
        history_limit=config.history_limit,
    )

    total_size = sum(
        (config.output_dir / path).stat().st_size
        for entry in entries
        for path in (entry.image_file, entry.animation_file)
        if path
    )
    total_duration = time.monotonic() - backup_start
    logger.info(
        f"Backup complete: {manifest.summary.backed_up} backed up, "
        f"{manifest.summary.failed} failed, {fully_decentralized} already decentralized, "
        f"{format_bytes(total_size)} of media ({total_duration:.1f}s total)"
    )

    stats.update({
        "backed_up": manifest.summary.backed_up,
        "failed": manifest.summary.failed,
        "manifest_path": str(manifest_path),
    })
    return stats


def analyze_wallet(wallet: WalletConfig, config: Config, verbose: bool = False) -> dict:
    """Classify every NFT in a wallet without writing anything.

    Returns:
        Counts per storage status.
    """
    logger = logging.getLogger(__name__)
    chain = wallet.chain_config
    provider = create_provider(chain, wallet.source)
    nfts = provider.discover_nfts(wallet.address)
    rate_limiter = RateLimiter(calls_per_second=config.rate_limit_per_second)

    counts = {"decentralized": 0, "mixed": 0, "at-risk": 0}
    for nft in nfts:
        rate_limiter.acquire(host_key(nft.token_uri))
        metadata, _ = resolve_metadata(nft, config.download)
        report = analyze_nft_storage(nft, metadata)
        status = get_storage_status(report)
        counts[status] += 1

        if verbose and status != "decentralized":
            for label, analysis in (("Token URI", report.token_uri), ("Image", report.image), ("Animation", report.animation)):
                if analysis is not None and analysis.is_at_risk:
                    logger.info(
                        f"  {nft.display_name}: {label} on {get_storage_type_name(analysis.type)} "
                        f"({analysis.host or 'unknown host'})"
                    )

    logger.info(
        f"Storage analysis for {wallet.name} on {chain.display_name}: "
        f"{counts['decentralized']} safe, {counts['mixed']} mixed, {counts['at-risk']} at-risk "
        f"({len(nfts)} total)"
    )
    return counts


def _select_wallets(config: Config, wallet_name: str | None) -> list[WalletConfig]:
    logger = logging.getLogger(__name__)
    wallets = config.wallets
    if wallet_name:
        wallets = [w for w in wallets if w.name == wallet_name]
        if not wallets:
            logger.error(f"Wallet '{wallet_name}' not found in config")
            sys.exit(1)
    return wallets


def run_backup(
    config: Config,
    wallet_name: str | None = None,
    backup_all: bool | None = None,
    dry_run: bool = False,
) -> list[dict]:
    """Execute backup for configured wallets.

    Args:
        config: Application configuration.
        wallet_name: If provided, only backup this wallet.
        backup_all: Override config.backup_all.
        dry_run: Analyze only.

    Returns:
        Per-wallet statistics.
    """
    logger = logging.getLogger(__name__)
    if backup_all is None:
        backup_all = config.backup_all

    results = []
    for wallet in _select_wallets(config, wallet_name):
        logger.info(f"Starting backup for wallet: {wallet.name} ({wallet.address} on {wallet.chain})")
        try:
            stats = backup_wallet(wallet, config, backup_all=backup_all, dry_run=dry_run)
            stats["status"] = "completed_with_warnings" if stats["failed"] else "completed"
            if stats["manifest_path"]:
                logger.info(f"Manifest saved to: {stats['manifest_path']}")
        except Exception as e:
            logger.error(f"Backup for wallet '{wallet.name}' failed: {e}")
            stats = {"status": "failed", "error": str(e)}
        stats["wallet"] = wallet.name
        results.append(stats)
    return results


def _load_config_or_exit(path: Path) -> Config:
    logger = logging.getLogger(__name__)
    try:
        config = load_config(path)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    logger.info(f"Loaded config with {len(config.wallets)} wallet(s)")
    return config


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the scheduler and wait for cron triggers."""
    logger = logging.getLogger(__name__)
    config = _load_config_or_exit(args.config)
    try:
        run_scheduler(config, run_backup)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


def cmd_run(args: argparse.Namespace) -> None:
    """Run backup immediately."""
    config = _load_config_or_exit(args.config)
    results = run_backup(config, wallet_name=args.wallet, backup_all=args.all or None, dry_run=args.dry_run)
    if any(r["status"] == "failed" for r in results):
        sys.exit(1)


def cmd_analyze(args: argparse.Namespace) -> None:
    """Show the storage breakdown for configured wallets."""
    logger = logging.getLogger(__name__)
    config = _load_config_or_exit(args.config)
    for wallet in _select_wallets(config, args.wallet):
        try:
            analyze_wallet(wallet, config, verbose=args.verbose)
        except Exception as e:
            logger.error(f"Analysis for wallet '{wallet.name}' failed: {e}")


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser for the serve, run and analyze commands."""
    parser = argparse.ArgumentParser(
        prog="nft-rescue",
        description="Back up NFT assets stored on centralized/at-risk infrastructure",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Detailed output",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "serve",
        help="Run scheduler and wait for cron triggers",
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Run backup immediately",
    )
    run_parser.add_argument("--wallet", "-w", help="Only backup this wallet")
    run_parser.add_argument("--all", "-a", action="store_true", help="Backup all NFTs, not just at-risk")
    run_parser.add_argument("--dry-run", "-d", action="store_true", help="Show what would be backed up")

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Show storage breakdown without backing anything up",
    )
    analyze_parser.add_argument("--wallet", "-w", help="Only analyze this wallet")
    # SUPPRESS keeps a global -v from being reset by the subcommand default
    analyze_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=argparse.SUPPRESS,
        help="List each NFT that is not fully decentralized",
    )

    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    log_path = args.config.parent / "logs" / "backup.log"
    setup_logging(log_path, verbose=args.verbose)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "run":
        cmd_run(args)
    elif args.command == "analyze":
        cmd_analyze(args)


if __name__ == "__main__":
    main()
