"""
asar-fuse: Electron fuse and asar integrity patching for Windows executables.

This package rewrites Electron's compiled-in fuses directly in a PE image:
it finds the inline fuse checks by their byte signature, resolves each
RIP-relative operand through the section table and flips enabled fuses
from '1' to '0'. A companion tool re-stamps the asar integrity resource.

    from asar_fuse import apply_patch

    result = apply_patch("app.exe", dry_run=True)
    print(result.count, "fuse(s) would be disabled")

For PE structure access, use the coff subpackage directly:

    from asar_fuse.coff import PeImage
"""

from .errors import (
    ErrorKind,
    FusePatchError,
    InvalidArgumentError,
    ImageIOError,
    FormatError,
    ResourceError,
    ArchiveError,
    UnmappedAddress,
    UnmappedOffset,
    UnexpectedError,
)
from .scanner import Hit, scan_fuse_sites
from .planner import PatchPlan, UNLIMITED, plan_patch
from .patcher import (
    PatchResult,
    FUSE_BACKUP_SUFFIX,
    apply_patch,
    patch_fuses,
)

__all__ = [
    # Errors
    "ErrorKind",
    "FusePatchError",
    "InvalidArgumentError",
    "ImageIOError",
    "FormatError",
    "ResourceError",
    "ArchiveError",
    "UnmappedAddress",
    "UnmappedOffset",
    "UnexpectedError",
    # Engine
    "Hit",
    "scan_fuse_sites",
    "PatchPlan",
    "UNLIMITED",
    "plan_patch",
    "PatchResult",
    "FUSE_BACKUP_SUFFIX",
    "apply_patch",
    "patch_fuses",
]
