"""
Whole-file helpers shared by the fuse patcher and the integrity stamper.

Each rewrite is at most two whole-file writes: the backup (only when none
exists yet) and the replacement content.
"""

import logging
import os
from pathlib import Path

from .errors import ImageIOError, InvalidArgumentError

logger = logging.getLogger(__name__)


def validate_target(path: str | os.PathLike | None) -> Path:
    """Check that a target path names an existing regular file.

    Raises:
        InvalidArgumentError: If the path is empty, missing or not a file
    """
    if path is None or str(path) == "":
        raise InvalidArgumentError("Target path is empty")
    target = Path(path)
    if not target.exists():
        raise InvalidArgumentError(f"Target not found: {target}")
    if not target.is_file():
        raise InvalidArgumentError(f"Target is not a regular file: {target}")
    return target


def read_file(path: Path) -> bytes:
    """Read a whole file, reporting failures as ImageIOError."""
    try:
        return path.read_bytes()
    except OSError as e:
        raise ImageIOError(f"Failed to read {path}: {e}") from e


def backup_path_for(path: Path, suffix: str) -> Path:
    """Backup location: the full target name with suffix appended."""
    return path.with_name(path.name + suffix)


def write_backup_once(path: Path, original: bytes, suffix: str) -> tuple[Path, bool]:
    """Save the original content next to the target unless a backup exists.

    An existing backup is never overwritten, so it keeps the oldest
    unmodified content across repeated runs.

    Returns:
        Tuple of (backup_path, created)

    Raises:
        ImageIOError: If the backup cannot be written
    """
    backup = backup_path_for(path, suffix)
    if backup.exists():
        logger.info("Backup %s already exists, leaving it untouched", backup)
        return backup, False
    try:
        backup.write_bytes(original)
    except OSError as e:
        raise ImageIOError(f"Failed to write backup {backup}: {e}") from e
    logger.info("Wrote backup %s (%d bytes)", backup, len(original))
    return backup, True


def write_preserving_mode(path: Path, data: bytes | bytearray) -> None:
    """Replace a file's content, keeping its permission bits.

    Raises:
        ImageIOError: If the file cannot be written
    """
    try:
        mode = path.stat().st_mode
        path.write_bytes(data)
        os.chmod(path, mode)
    except OSError as e:
        raise ImageIOError(f"Failed to write {path}: {e}") from e
    logger.debug("Wrote %d bytes to %s", len(data), path)
