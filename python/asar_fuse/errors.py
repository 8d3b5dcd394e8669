"""
Error kinds and exceptions raised by the asar_fuse engine.

Every failure carries one ErrorKind so callers can decide presentation
without parsing messages. The engine boundary (asar_fuse.patcher.apply_patch)
turns these exceptions into a failed PatchResult; internal layers just raise.
"""

from enum import Enum
from typing import ClassVar


class ErrorKind(Enum):
    """Category of an engine failure."""

    ARGUMENT = "argument"
    IO = "io"
    FORMAT = "format"
    UNMAPPED_ADDRESS = "unmapped_address"
    UNEXPECTED = "unexpected"


class FusePatchError(Exception):
    """Base class for all asar_fuse failures."""

    kind: ClassVar[ErrorKind] = ErrorKind.UNEXPECTED

    @property
    def message(self) -> str:
        return str(self)


class InvalidArgumentError(FusePatchError, ValueError):
    """Raised for a missing, empty or nonexistent input path."""

    kind = ErrorKind.ARGUMENT


class ImageIOError(FusePatchError):
    """Raised when reading or writing the target or backup file fails."""

    kind = ErrorKind.IO


class FormatError(FusePatchError, ValueError):
    """Raised when a PE header chain (or other container) is malformed."""

    kind = ErrorKind.FORMAT


class ResourceError(FormatError):
    """Raised when the PE resource tree cannot be read or rewritten."""

    pass


class ArchiveError(FormatError):
    """Raised when an ASAR archive header is malformed."""

    pass


class UnmappedAddress(FusePatchError, LookupError):
    """Raised when no section's raw data covers an RVA."""

    kind = ErrorKind.UNMAPPED_ADDRESS

    def __init__(self, rva: int):
        super().__init__(f"RVA 0x{rva:x} not mapped to raw section data")
        self.rva = rva


class UnmappedOffset(FusePatchError, LookupError):
    """Raised when no section's raw data covers a file offset."""

    kind = ErrorKind.UNMAPPED_ADDRESS

    def __init__(self, offset: int):
        super().__init__(f"file offset 0x{offset:x} outside raw section data")
        self.offset = offset


class UnexpectedError(FusePatchError):
    """Catch-all for failures that fit no other kind."""

    kind = ErrorKind.UNEXPECTED
