"""
Disable Electron fuses in a PE executable.

The engine runs one pass per file:

    load -> parse -> scan -> plan -> (report | backup -> write)

Each selected fuse byte is rewritten from '1' to '0'. Nothing else in the
file changes, so the image keeps its size, headers and checksums (the PE
checksum is not maintained by Electron builds and is left alone).

Usage:
    result = apply_patch("app.exe")
    if not result.success:
        print(result.error_kind, result.error)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .coff.image import PeImage
from .errors import ErrorKind, FusePatchError, InvalidArgumentError
from .files import (
    backup_path_for,
    read_file,
    validate_target,
    write_backup_once,
    write_preserving_mode,
)
from .planner import PatchPlan, UNLIMITED, plan_patch
from .scanner import FUSE_OFF, Hit, scan_fuse_sites

logger = logging.getLogger(__name__)

FUSE_BACKUP_SUFFIX = ".fuses.bak"


@dataclass
class PatchResult:
    """Result of one apply_patch call."""

    success: bool
    count: int = 0  # Fuse bytes rewritten (or that would be, in dry run)
    dry_run: bool = False
    hits: tuple[Hit, ...] = field(default_factory=tuple)
    plan: PatchPlan | None = None
    backup_path: Path | None = None
    backup_created: bool = False
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def found_sites(self) -> bool:
        return bool(self.hits)


def build_patched_image(original: bytes, plan: PatchPlan) -> bytearray:
    """Copy of the image with every selected fuse byte set to '0'."""
    patched = bytearray(original)
    for offset in plan.selected_offsets:
        patched[offset] = FUSE_OFF
    return patched


def patch_fuses(
    path: str | os.PathLike,
    dry_run: bool = False,
    limit: int = UNLIMITED,
) -> PatchResult:
    """Disable enabled fuses in a PE file, raising on failure.

    Args:
        path: Executable to patch in place
        dry_run: Report what would change without touching the filesystem
        limit: Maximum number of fuses to disable; negative means all

    Returns:
        Successful PatchResult

    Raises:
        InvalidArgumentError: If the path is empty, missing or not a file
        ImageIOError: If reading, backing up or writing fails
        FormatError: If the file is not a valid PE image
    """
    if not isinstance(limit, int) or isinstance(limit, bool):
        raise InvalidArgumentError(f"Limit must be an integer, got {limit!r}")

    target = validate_target(path)
    original = read_file(target)
    image = PeImage(original, target)

    hits = tuple(scan_fuse_sites(image))
    plan = plan_patch(hits, limit)
    logger.debug(
        "%s: %d site(s), %d enabled, %d selected (limit %d)",
        target,
        len(hits),
        plan.eligible_count,
        plan.applied_count,
        limit,
    )

    result = PatchResult(
        success=True,
        count=plan.applied_count,
        dry_run=dry_run,
        hits=hits,
        plan=plan,
    )

    if dry_run:
        result.backup_path = backup_path_for(target, FUSE_BACKUP_SUFFIX)
        return result

    if plan.is_empty:
        logger.info("%s: nothing to patch", target)
        return result

    patched = build_patched_image(original, plan)
    result.backup_path, result.backup_created = write_backup_once(
        target, original, FUSE_BACKUP_SUFFIX
    )
    write_preserving_mode(target, patched)
    logger.info("%s: disabled %d fuse(s)", target, plan.applied_count)
    return result


def apply_patch(
    path: str | os.PathLike,
    dry_run: bool = False,
    limit: int = UNLIMITED,
) -> PatchResult:
    """Disable enabled fuses in a PE file.

    Same as patch_fuses(), but failures are returned as an unsuccessful
    PatchResult carrying an ErrorKind instead of being raised.
    """
    try:
        return patch_fuses(path, dry_run=dry_run, limit=limit)
    except FusePatchError as e:
        logger.debug("Patching %s failed: %s", path, e)
        return PatchResult(
            success=False, dry_run=dry_run, error_kind=e.kind, error=e.message
        )
    except Exception as e:
        logger.debug("Unexpected failure patching %s", path, exc_info=True)
        return PatchResult(
            success=False,
            dry_run=dry_run,
            error_kind=ErrorKind.UNEXPECTED,
            error=f"{type(e).__name__}: {e}",
        )
