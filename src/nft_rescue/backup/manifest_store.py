# ABOUTME: Versioned manifest storage: canonical file, history snapshots and per-run deltas.
# ABOUTME: Regenerates the cross-wallet manifest index and the offline gallery bundle on every write.

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Any

from ..config import DEFAULT_HISTORY_LIMIT
from ..discovery.types import make_asset_id
from ..paths import sanitize_path_segment
from ..retention import prune_history_snapshots
from .manifest import BackupManifest, utc_timestamp

logger = logging.getLogger(__name__)

MANIFEST_HISTORY_LIMIT = DEFAULT_HISTORY_LIMIT

MANIFESTS_DIR = "manifests"
HISTORY_DIR = "history"
RUNS_DIR = "runs"
INDEX_FILE = "index.json"
GALLERY_DATA_FILE = "gallery-data.js"
GALLERY_DATA_GLOBAL = "window.__NFT_RESCUE_GALLERY__"
INDEX_VERSION = 1

_CANONICAL_PATTERN = re.compile(r"^manifest\..+\.json$")


class ManifestError(ValueError):
    """Raised for invalid manifest paths or unreadable manifests."""
    pass


def sanitize_manifest_segment(value: str) -> str:
    """Chain name or wallet address as a manifest filename segment.

    Raises:
        PathSegmentError: If the value is empty or contains a path separator
            or traversal sequence.
    """
    return sanitize_path_segment(value)


def get_manifest_base_name(chain_name: str, wallet_address: str) -> str:
    safe_chain = sanitize_manifest_segment(chain_name)
    safe_wallet = sanitize_manifest_segment(wallet_address)
    return f"manifest.{safe_chain}.{safe_wallet}"


def get_manifest_path(output_dir: Path | str, chain_name: str, wallet_address: str) -> Path:
    """Canonical manifest location for a (chain, wallet) pair."""
    base_name = get_manifest_base_name(chain_name, wallet_address)
    return Path(output_dir) / MANIFESTS_DIR / f"{base_name}.json"


def format_timestamp_for_filename(timestamp: str | None = None) -> str:
    return (timestamp or utc_timestamp()).replace(":", "-")


def _unique_path(directory: Path, stem: str) -> Path:
    """First of stem.json, stem-1.json, stem-2.json, ... that does not exist."""
    candidate = directory / f"{stem}.json"
    attempt = 0
    while candidate.exists():
        attempt += 1
        candidate = directory / f"{stem}-{attempt}.json"
    return candidate


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_manifest(path: Path) -> dict:
    """Read and parse a manifest file.

    Raises:
        ManifestError: If the file is missing or is not a JSON object.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest not found: {path}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestError(f"Invalid JSON in manifest {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must contain a JSON object")
    return data


def _entry_fingerprint(entry: dict) -> str:
    return json.dumps(entry, sort_keys=True, ensure_ascii=False)


def _fingerprints(manifest: dict, chain_id: int) -> dict[str, str]:
    try:
        return {
            make_asset_id(chain_id, entry["contractAddress"], entry["tokenId"]): _entry_fingerprint(entry)
            for entry in manifest.get("nfts") or []
        }
    except (KeyError, TypeError) as e:
        raise ManifestError(f"Manifest entry without contractAddress/tokenId: {e}") from e


def build_delta(previous: dict | None, manifest: dict) -> dict:
    """Compare two manifests by asset id.

    Args:
        previous: The manifest being replaced, or None on the first run.
        manifest: The new manifest.

    Returns:
        Run record with sorted added/updated/removed asset ids.
    """
    chain_id = manifest["chainId"]
    previous_map = _fingerprints(previous, previous.get("chainId", chain_id)) if previous else {}
    next_map = _fingerprints(manifest, chain_id)

    added = []
    updated = []
    for asset_id, fingerprint in next_map.items():
        if asset_id not in previous_map:
            added.append(asset_id)
        elif previous_map[asset_id] != fingerprint:
            updated.append(asset_id)
    removed = [asset_id for asset_id in previous_map if asset_id not in next_map]

    added.sort()
    updated.sort()
    removed.sort()

    return {
        "runId": manifest["backupDate"],
        "walletAddress": manifest["walletAddress"],
        "chainName": manifest["chainName"],
        "chainId": chain_id,
        "added": added,
        "updated": updated,
        "removed": removed,
        "summary": {"added": len(added), "updated": len(updated), "removed": len(removed)},
    }


def write_manifest_with_history(
    output_dir: Path | str,
    chain_name: str,
    wallet_address: str,
    manifest: BackupManifest | dict,
    history_limit: int = MANIFEST_HISTORY_LIMIT,
) -> Path:
    """Replace the canonical manifest, keeping history and a delta log.

    Order: snapshot the existing file into history/ and prune, write the
    run delta into runs/, overwrite the canonical file, then regenerate the
    index and gallery bundle. The steps are not atomic as a group; a later
    write regenerates the derived files.

    Args:
        output_dir: Backup output root.
        chain_name: Chain the manifest belongs to.
        wallet_address: Wallet the manifest belongs to.
        manifest: The new manifest.
        history_limit: Snapshots to keep for this (chain, wallet).

    Returns:
        Path to the canonical manifest.

    Raises:
        PathSegmentError: On an invalid chain or wallet segment.
        ManifestError: If the new manifest is incomplete or the existing
            one cannot be read.
    """
    data = manifest.to_dict() if isinstance(manifest, BackupManifest) else manifest
    if (not _is_manifest_shape(data) or not isinstance(data.get("nfts"), list)
            or "chainId" not in data or "backupDate" not in data):
        raise ManifestError("Manifest must have walletAddress, chainName, chainId, backupDate and nfts")
    base_name = get_manifest_base_name(chain_name, wallet_address)

    output_dir = Path(output_dir)
    manifests_dir = output_dir / MANIFESTS_DIR
    history_dir = manifests_dir / HISTORY_DIR
    runs_dir = manifests_dir / RUNS_DIR
    for path in (manifests_dir, history_dir, runs_dir):
        path.mkdir(parents=True, exist_ok=True)

    manifest_path = manifests_dir / f"{base_name}.json"

    previous = None
    if manifest_path.exists():
        previous = load_manifest(manifest_path)
        snapshot_path = _unique_path(history_dir, f"{base_name}.{format_timestamp_for_filename()}")
        shutil.copyfile(manifest_path, snapshot_path)
        logger.debug(f"Saved manifest snapshot: {snapshot_path.name}")
        prune_history_snapshots(history_dir, base_name, history_limit)

    delta = build_delta(previous, data)
    safe_chain = sanitize_manifest_segment(chain_name)
    safe_wallet = sanitize_manifest_segment(wallet_address)
    run_path = _unique_path(runs_dir, f"run.{format_timestamp_for_filename()}.{safe_chain}.{safe_wallet}")
    _write_json(run_path, delta)
    logger.info(
        f"Manifest delta for {wallet_address} on {chain_name}: "
        f"{len(delta['added'])} added, {len(delta['updated'])} updated, {len(delta['removed'])} removed"
    )

    _write_json(manifest_path, data)
    logger.info(f"Wrote manifest: {manifest_path}")

    write_manifest_index(output_dir)
    return manifest_path


def _is_manifest_shape(data: Any) -> bool:
    return (
        isinstance(data, dict)
        and isinstance(data.get("walletAddress"), str)
        and isinstance(data.get("chainName"), str)
        and isinstance(data.get("nfts", []), list)
    )


def collect_manifests(output_dir: Path | str) -> dict[str, dict]:
    """Load every canonical manifest under manifests/, keyed by relative path.

    Malformed files are skipped with a warning.
    """
    manifests_dir = Path(output_dir) / MANIFESTS_DIR
    if not manifests_dir.exists():
        return {}

    manifests = {}
    for path in sorted(manifests_dir.iterdir()):
        if not path.is_file() or not _CANONICAL_PATTERN.match(path.name):
            continue
        try:
            data = load_manifest(path)
        except ManifestError as e:
            logger.warning(f"Skipping unreadable manifest: {e}")
            continue
        if not _is_manifest_shape(data):
            logger.warning(f"Skipping manifest with unexpected structure: {path}")
            continue
        manifests[f"{MANIFESTS_DIR}/{path.name}"] = data
    return manifests


def build_manifest_index(manifests: dict[str, dict], generated_at: str | None = None) -> dict:
    """Index entries sorted by chain, then wallet."""
    entries = []
    for path, data in manifests.items():
        entry = {
            "path": path,
            "chainName": data["chainName"],
            "chainId": data.get("chainId"),
            "walletAddress": data["walletAddress"],
        }
        wallet_name = data.get("displayName") or data.get("ensName")
        if wallet_name:
            entry["walletName"] = wallet_name
        entry["backupDate"] = data.get("backupDate")
        entries.append(entry)

    entries.sort(key=lambda e: (e["chainName"], e["walletAddress"]))
    return {
        "version": INDEX_VERSION,
        "generatedAt": generated_at or utc_timestamp(),
        "manifests": entries,
    }


def write_manifest_index(output_dir: Path | str) -> dict:
    """Rescan manifests and rewrite index.json and the gallery data bundle.

    Returns:
        The index that was written.
    """
    output_dir = Path(output_dir)
    manifests = collect_manifests(output_dir)
    generated_at = utc_timestamp()
    index = build_manifest_index(manifests, generated_at)

    manifests_dir = output_dir / MANIFESTS_DIR
    manifests_dir.mkdir(parents=True, exist_ok=True)
    _write_json(manifests_dir / INDEX_FILE, index)

    bundle = {
        "version": INDEX_VERSION,
        "generatedAt": generated_at,
        "index": index,
        "manifests": manifests,
    }
    with open(output_dir / GALLERY_DATA_FILE, "w", encoding="utf-8") as f:
        f.write(f"{GALLERY_DATA_GLOBAL} = ")
        json.dump(bundle, f, indent=2, ensure_ascii=False)
        f.write(";\n")

    logger.debug(f"Indexed {len(index['manifests'])} manifest(s)")
    return index


def read_gallery_data(output_dir: Path | str) -> dict:
    """Parse a gallery-data.js bundle back into a dict."""
    path = Path(output_dir) / GALLERY_DATA_FILE
    text = path.read_text(encoding="utf-8").strip()
    prefix = f"{GALLERY_DATA_GLOBAL} = "
    if not text.startswith(prefix):
        raise ManifestError(f"Unrecognised gallery data file: {path}")
    try:
        return json.loads(text[len(prefix):].rstrip(";"))
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON in gallery data {path}: {e}") from e
