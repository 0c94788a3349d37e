# ABOUTME: Manifest history retention management.
# ABOUTME: Deletes history snapshots beyond the configured limit, oldest first.

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

# Filename timestamp: ISO-8601 UTC with ':' replaced by '-', e.g. 2026-02-01T03-00-00.000Z
TIMESTAMP_PATTERN = r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(?:\.\d+)?Z"


def _snapshot_pattern(base_name: str) -> re.Pattern:
    return re.compile(rf"^{re.escape(base_name)}\.({TIMESTAMP_PATTERN})(?:-(\d+))?\.json$")


def get_history_snapshots(history_dir: Path, base_name: str) -> list[Path]:
    """Get snapshots of one manifest, sorted oldest to newest.

    Args:
        history_dir: The manifests/history directory.
        base_name: Manifest base name, e.g. 'manifest.zora.0xabc'.

    Returns:
        Snapshot paths ordered by timestamp, then collision counter.
    """
    if not history_dir.exists():
        return []

    pattern = _snapshot_pattern(base_name)
    snapshots = []
    for path in history_dir.iterdir():
        if not path.is_file():
            continue
        match = pattern.match(path.name)
        if match:
            counter = int(match.group(2)) if match.group(2) else 0
            snapshots.append((match.group(1), counter, path))

    return [path for _, _, path in sorted(snapshots)]


def prune_history_snapshots(history_dir: Path, base_name: str, keep: int) -> int:
    """Delete snapshots beyond the retention limit.

    Args:
        history_dir: The manifests/history directory.
        base_name: Manifest base name the snapshots belong to.
        keep: Number of snapshots to keep.

    Returns:
        Number of snapshots deleted.
    """
    snapshots = get_history_snapshots(history_dir, base_name)

    to_delete = len(snapshots) - keep
    if to_delete <= 0:
        logger.debug(f"No snapshots to prune for {base_name} ({len(snapshots)}/{keep})")
        return 0

    deleted = 0
    for snapshot in snapshots[:to_delete]:
        try:
            snapshot.unlink()
            logger.info(f"Deleted old manifest snapshot: {snapshot.name}")
            deleted += 1
        except OSError as e:
            logger.error(f"Failed to delete snapshot {snapshot}: {e}")

    return deleted
