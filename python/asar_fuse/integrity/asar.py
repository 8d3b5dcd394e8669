"""
ASAR archive header digests.

An ASAR archive starts with a little-endian u32 header size followed by the
header itself (a Chromium pickle wrapping the JSON file table). Electron's
asar integrity check hashes the header with SHA-256; depending on the build
the hashed bytes are the header alone or the size prefix plus the header.
"""

import hashlib
import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from ..errors import ArchiveError, ImageIOError

logger = logging.getLogger(__name__)

# Reasonable limit for the header to reject garbage input
MAX_ASAR_HEADER_SIZE = 32 * 1024 * 1024

HEADER_SIZE_PREFIX = struct.Struct("<I")

DIGEST_MODE_HEADER = "header"
DIGEST_MODE_BLOCK = "block"
DIGEST_MODES = (DIGEST_MODE_HEADER, DIGEST_MODE_BLOCK)


@dataclass(frozen=True)
class AsarHeader:
    """The size-prefixed header at the start of an ASAR archive."""

    header_size: int
    header: bytes

    @property
    def header_block(self) -> bytes:
        """Size prefix followed by the header bytes."""
        return HEADER_SIZE_PREFIX.pack(self.header_size) + self.header

    def header_digest(self) -> str:
        return hashlib.sha256(self.header).hexdigest()

    def block_digest(self) -> str:
        return hashlib.sha256(self.header_block).hexdigest()

    def digest(self, mode: str = DIGEST_MODE_BLOCK) -> str:
        """SHA-256 hex digest for the given mode ("header" or "block")."""
        if mode == DIGEST_MODE_HEADER:
            return self.header_digest()
        if mode == DIGEST_MODE_BLOCK:
            return self.block_digest()
        raise ValueError(f"Unknown digest mode {mode!r}, expected one of {DIGEST_MODES}")


def parse_asar_header(data: bytes) -> AsarHeader:
    """Parse the header from the leading bytes of an archive.

    Raises:
        ArchiveError: If the prefix is missing, unreasonable or the header short
    """
    if len(data) < HEADER_SIZE_PREFIX.size:
        raise ArchiveError("ASAR header size prefix missing")
    (header_size,) = HEADER_SIZE_PREFIX.unpack_from(data, 0)
    if header_size == 0 or header_size > MAX_ASAR_HEADER_SIZE:
        raise ArchiveError(f"Unreasonable ASAR header size {header_size}")

    start = HEADER_SIZE_PREFIX.size
    header = data[start : start + header_size]
    if len(header) < header_size:
        raise ArchiveError(
            f"ASAR header truncated: expected {header_size} bytes, got {len(header)}"
        )
    return AsarHeader(header_size=header_size, header=bytes(header))


def read_asar_header(path: Path) -> AsarHeader:
    """Read only the header of an archive on disk.

    Raises:
        ImageIOError: If the archive cannot be read
        ArchiveError: If the header is malformed
    """
    try:
        with open(path, "rb") as f:
            prefix = f.read(HEADER_SIZE_PREFIX.size)
            if len(prefix) == HEADER_SIZE_PREFIX.size:
                (header_size,) = HEADER_SIZE_PREFIX.unpack(prefix)
                if 0 < header_size <= MAX_ASAR_HEADER_SIZE:
                    prefix += f.read(header_size)
    except OSError as e:
        raise ImageIOError(f"Failed to read {path}: {e}") from e

    header = parse_asar_header(prefix)
    logger.debug("Read ASAR header from %s: %d bytes", path, header.header_size)
    return header
