"""
Read-only PE/COFF image model.

PeImage owns the bytes of one executable, parses the header chain once and
exposes the section table plus RVA <-> file offset translation. It never
mutates its buffer; callers that patch an image work on a bytearray copy.

Design principles:
- Parse once, never mutate
- Raw section data (PointerToRawData/SizeOfRawData) is authoritative, the
  declared VirtualSize is only reported
- Fail fast with FormatError on structural problems
- Bounds problems in section data are left to consumers so that a truncated
  file produces a local failure rather than an out-of-bounds read
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from ..errors import FormatError, ImageIOError, UnmappedAddress, UnmappedOffset
from .types import (
    DosHeader,
    CoffHeader,
    DataDirectory,
    SectionHeader,
    OPTIONAL_HEADER_BY_MAGIC,
    PE_SIGNATURE,
    COFF_HEADER_SIZE,
    DATA_DIRECTORY_SIZE,
    SECTION_HEADER_SIZE,
)

logger = logging.getLogger(__name__)

# Reasonable limit for PE structures to prevent DoS from malformed files
MAX_NUMBER_OF_SECTIONS = 256


@dataclass(frozen=True)
class FormatDescriptor:
    """Which header variant the image uses and where it prefers to load."""

    bitness: int  # 32 or 64
    image_base: int
    machine: int

    @property
    def is_64bit(self) -> bool:
        return self.bitness == 64


@dataclass(frozen=True)
class Section:
    """One section table entry, in table order."""

    index: int
    name: str
    virtual_address: int
    virtual_size: int  # Declared size in memory; a hint only
    raw_offset: int
    raw_size: int
    characteristics: int = 0

    @classmethod
    def from_header(cls, index: int, shdr: SectionHeader) -> "Section":
        return cls(
            index=index,
            name=shdr.name_str,
            virtual_address=shdr.VirtualAddress,
            virtual_size=shdr.VirtualSize,
            raw_offset=shdr.PointerToRawData,
            raw_size=shdr.SizeOfRawData,
            characteristics=shdr.Characteristics,
        )

    @property
    def raw_end(self) -> int:
        """File offset one past the section's declared raw data."""
        return self.raw_offset + self.raw_size

    def contains_rva(self, rva: int) -> bool:
        """Check if an RVA falls within this section's raw-backed range."""
        return self.virtual_address <= rva < self.virtual_address + self.raw_size

    def contains_file_offset(self, offset: int) -> bool:
        """Check if a file offset falls within this section's raw data."""
        return self.raw_offset <= offset < self.raw_end


class PeImage:
    """Parsed view of a PE32 or PE32+ image.

    Usage:
        image = PeImage.load(Path("app.exe"))

        for section in image.sections:
            ...
        offset = image.to_offset(0x1000)
        rva = image.to_virtual(offset)
    """

    def __init__(self, data: bytes, path: Path | None = None):
        """Parse the header chain of an in-memory image.

        Prefer using PeImage.load() for files on disk.

        Args:
            data: Complete image content
            path: Original file path (for error messages)

        Raises:
            FormatError: If the header chain is malformed or truncated
        """
        self._data = bytes(data)
        self._path = path

        self._dos_hdr = DosHeader.from_bytes(self._data)
        self._pe_offset = self._dos_hdr.e_lfanew

        # Signature, COFF header and the optional header magic must all fit
        chain_end = self._pe_offset + len(PE_SIGNATURE) + COFF_HEADER_SIZE + 2
        if chain_end > len(self._data):
            raise FormatError(
                f"Invalid PE header offset {self._pe_offset:#x}: "
                f"header chain ends at {chain_end:#x}, "
                f"file is {len(self._data):#x} bytes"
            )

        pe_sig = self._data[self._pe_offset : self._pe_offset + 4]
        if pe_sig != PE_SIGNATURE:
            raise FormatError(f"Invalid PE signature: {pe_sig!r}")

        coff_offset = self._pe_offset + 4
        self._coff_hdr = CoffHeader.from_bytes(self._data, coff_offset)

        self._opt_offset = coff_offset + COFF_HEADER_SIZE
        (magic,) = struct.unpack_from("<H", self._data, self._opt_offset)
        header_cls = OPTIONAL_HEADER_BY_MAGIC.get(magic)
        if header_cls is None:
            raise FormatError(f"Unknown optional header magic 0x{magic:04X}")
        self._opt_hdr = header_cls.from_bytes(self._data, self._opt_offset)

        self._format = FormatDescriptor(
            bitness=header_cls.BITNESS,
            image_base=self._opt_hdr.ImageBase,
            machine=self._coff_hdr.Machine,
        )

        section_offset = self._opt_offset + self._coff_hdr.SizeOfOptionalHeader
        self._sections = self._parse_sections(section_offset)

        logger.debug(
            "Parsed PE%s image%s: %d section(s), image base 0x%x",
            "32+" if self._format.is_64bit else "32",
            f" {path}" if path else "",
            len(self._sections),
            self._format.image_base,
        )

    @classmethod
    def load(cls, path: Path) -> "PeImage":
        """Read and parse a PE image from disk.

        Raises:
            ImageIOError: If the file cannot be read
            FormatError: If the header chain is malformed
        """
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageIOError(f"Failed to read {path}: {e}") from e
        return cls(data, path)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def data(self) -> bytes:
        """Raw image content (immutable)."""
        return self._data

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def format(self) -> FormatDescriptor:
        return self._format

    @property
    def sections(self) -> tuple[Section, ...]:
        """Sections in table order."""
        return self._sections

    @property
    def image_base(self) -> int:
        """Preferred load address."""
        return self._format.image_base

    # =========================================================================
    # Parsing (internal)
    # =========================================================================

    def _parse_sections(self, offset: int) -> tuple[Section, ...]:
        """Parse all section headers."""
        num_sections = self._coff_hdr.NumberOfSections
        if num_sections > MAX_NUMBER_OF_SECTIONS:
            raise FormatError(
                f"NumberOfSections ({num_sections}) exceeds maximum "
                f"({MAX_NUMBER_OF_SECTIONS})"
            )
        sections = []
        for i in range(num_sections):
            sect_offset = offset + i * SECTION_HEADER_SIZE
            shdr = SectionHeader.from_bytes(self._data, sect_offset)
            sections.append(Section.from_header(i, shdr))
        return tuple(sections)

    # =========================================================================
    # Query Operations
    # =========================================================================

    def section_bounds(self, section: Section) -> tuple[int, int]:
        """File range [start, end) of a section's raw data, clamped to the file."""
        start = min(section.raw_offset, len(self._data))
        end = min(section.raw_end, len(self._data))
        return start, end

    def get_data_directory(self, index: int) -> DataDirectory | None:
        """Get a data directory by index, or None if the image declares fewer."""
        if index < 0 or index >= self._opt_hdr.NumberOfRvaAndSizes:
            return None
        offset = self._opt_offset + self._opt_hdr.SIZE + index * DATA_DIRECTORY_SIZE
        return DataDirectory.from_bytes(self._data, offset)

    # =========================================================================
    # Address Conversion
    # =========================================================================

    def to_offset(self, rva: int) -> int:
        """Convert an RVA to a file offset.

        Only raw-backed bytes are addressable: the range test uses
        SizeOfRawData, not VirtualSize. Overlapping sections resolve to the
        first one in table order.

        Raises:
            UnmappedAddress: If no section's raw data covers the RVA
        """
        for section in self._sections:
            if section.contains_rva(rva):
                return section.raw_offset + (rva - section.virtual_address)
        raise UnmappedAddress(rva)

    def to_virtual(self, offset: int) -> int:
        """Convert a file offset to an RVA.

        Raises:
            UnmappedOffset: If no section's raw data covers the offset
        """
        for section in self._sections:
            if section.contains_file_offset(offset):
                return section.virtual_address + (offset - section.raw_offset)
        raise UnmappedOffset(offset)

    def rva_to_va(self, rva: int) -> int:
        """Convert RVA to virtual address (ImageBase + RVA)."""
        return self.image_base + rva

    def va_to_rva(self, va: int) -> int:
        """Convert virtual address to RVA (VA - ImageBase)."""
        return va - self.image_base

    def read_at_rva(self, rva: int, size: int) -> bytes:
        """Read raw bytes starting at an RVA.

        Raises:
            UnmappedAddress: If the RVA is not raw-backed
            FormatError: If the read would run past the end of the file
        """
        offset = self.to_offset(rva)
        if offset + size > len(self._data):
            raise FormatError(
                f"Read of {size} bytes at RVA 0x{rva:x} (offset 0x{offset:x}) "
                f"exceeds file size {len(self._data)}"
            )
        return self._data[offset : offset + size]
