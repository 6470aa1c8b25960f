"""
Per-upload directories under ``UPLOADS_DIR``.

A directory is the unit of ownership: it is created empty by exactly one
ingestion attempt, named by a fresh UUID, and always removed as a whole.
"""
import logging
import shutil
import time
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

ENTRY_POINT = "index.html"


def create_upload_dir(root: Path) -> tuple[uuid.UUID, Path]:
    """Create a new, empty directory for one upload attempt."""
    root.mkdir(parents=True, exist_ok=True)
    upload_id = uuid.uuid4()
    upload_dir = root / str(upload_id)
    # exist_ok=False: never share a directory with another attempt
    upload_dir.mkdir(exist_ok=False)
    return upload_id, upload_dir


def remove_upload_dir(upload_dir: Path) -> bool:
    """Remove a whole upload directory.

    Returns False when it was already gone. Any other failure propagates.
    """
    try:
        shutil.rmtree(upload_dir)
    except FileNotFoundError:
        return False
    return True


def discard_upload_dir(upload_dir: Path) -> None:
    """Cleanup-path removal: failures are logged, never raised."""
    try:
        remove_upload_dir(upload_dir)
    except OSError:
        logger.exception(f"Failed to remove upload directory {upload_dir}")


def owned_dir(storage_path: str, root: Path) -> Path:
    """Resolve the directory owning ``storage_path`` and check it sits directly under ``root``."""
    upload_dir = Path(storage_path).parent
    if upload_dir.resolve().parent != root.resolve():
        raise ValueError(f"Storage path {storage_path} is outside {root}")
    return upload_dir


def find_orphan_dirs(
    root: Path, live_dirs: set[Path], min_age_seconds: float, now: float | None = None
) -> list[Path]:
    """Directories under ``root`` that no record points to and are older than the grace period."""
    if not root.exists():
        return []
    now = time.time() if now is None else now
    live = {d.resolve() for d in live_dirs}
    orphans = []
    for child in root.iterdir():
        if not child.is_dir() or child.is_symlink():
            continue
        if child.resolve() in live:
            continue
        # 刚创建的目录可能属于正在进行的上传
        if now - child.stat().st_mtime < min_age_seconds:
            continue
        orphans.append(child)
    return sorted(orphans)
