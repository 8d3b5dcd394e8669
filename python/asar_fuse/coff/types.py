"""
PE/COFF records needed to locate fuse bytes and the integrity resource.

Only the header chain (DOS stub pointer, COFF header, PE32/PE32+ optional
header, data directories), the section table and the three resource
directory records are modelled. Every record is a dataclass whose fields
follow the declaration order of its little-endian STRUCT_FMT, so parsing and
serialisation come from the shared _Record helpers. A record that does not
fit in the buffer raises FormatError.

References:
- https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
"""

import struct
from dataclasses import astuple, dataclass
from typing import ClassVar, TypeVar

from ..errors import FormatError

# =============================================================================
# Constants
# =============================================================================

# Layout defaults used when synthesising images
FILE_ALIGNMENT_DEFAULT = 0x200
SECTION_ALIGNMENT_DEFAULT = 0x1000

DOS_MAGIC = 0x5A4D  # b"MZ"
PE_SIGNATURE = b"PE\x00\x00"

IMAGE_FILE_MACHINE_I386 = 0x14C
IMAGE_FILE_MACHINE_AMD64 = 0x8664

IMAGE_NT_OPTIONAL_HDR32_MAGIC = 0x10B
IMAGE_NT_OPTIONAL_HDR64_MAGIC = 0x20B

IMAGE_SCN_CNT_CODE = 0x00000020
IMAGE_SCN_CNT_INITIALIZED_DATA = 0x00000040
IMAGE_SCN_MEM_EXECUTE = 0x20000000
IMAGE_SCN_MEM_READ = 0x40000000

IMAGE_FILE_EXECUTABLE_IMAGE = 0x0002

IMAGE_DIRECTORY_ENTRY_RESOURCE = 2
IMAGE_NUMBEROF_DIRECTORY_ENTRIES = 16

# High bit of the two resource directory entry fields
IMAGE_RESOURCE_NAME_IS_STRING = 0x80000000
IMAGE_RESOURCE_DATA_IS_DIRECTORY = 0x80000000

DOS_HEADER_SIZE = 64
COFF_HEADER_SIZE = 20
OPTIONAL_HEADER32_SIZE = 96  # Without data directories
OPTIONAL_HEADER64_SIZE = 112  # Without data directories
DATA_DIRECTORY_SIZE = 8
SECTION_HEADER_SIZE = 40
RESOURCE_DIRECTORY_SIZE = 16
RESOURCE_DIRECTORY_ENTRY_SIZE = 8
RESOURCE_DATA_ENTRY_SIZE = 16


R = TypeVar("R", bound="_Record")


class _Record:
    """Fixed-size little-endian record backed by a dataclass."""

    STRUCT_FMT: ClassVar[str]
    SIZE: ClassVar[int]
    LABEL: ClassVar[str]

    @classmethod
    def from_bytes(cls: type[R], data: bytes | bytearray, offset: int = 0) -> R:
        if offset < 0 or len(data) < offset + cls.SIZE:
            raise FormatError(
                f"Data too short for {cls.LABEL}: {len(data)} < {offset + cls.SIZE}"
            )
        record = cls(*struct.unpack_from(cls.STRUCT_FMT, data, offset))
        record.validate()
        return record

    def validate(self) -> None:
        """Hook for records with a magic value."""

    def to_bytes(self) -> bytes:
        return struct.pack(self.STRUCT_FMT, *astuple(self))

    def write_to(self, data: bytearray, offset: int) -> None:
        """Overwrite the record in a mutable image buffer."""
        struct.pack_into(self.STRUCT_FMT, data, offset, *astuple(self))


# =============================================================================
# Header chain
# =============================================================================


@dataclass
class DosHeader(_Record):
    """IMAGE_DOS_HEADER reduced to the two fields a PE loader reads.

    The 58 bytes between the magic and e_lfanew are the real-mode header and
    are carried through untouched.
    """

    e_magic: int
    dos_fields: bytes
    e_lfanew: int  # File offset of the PE signature

    STRUCT_FMT: ClassVar[str] = "<H58sI"
    SIZE: ClassVar[int] = DOS_HEADER_SIZE
    LABEL: ClassVar[str] = "DOS header"

    def validate(self) -> None:
        if self.e_magic != DOS_MAGIC:
            raise FormatError(f"Not a DOS/PE file (bad magic: 0x{self.e_magic:04X})")

    @classmethod
    def minimal(cls, e_lfanew: int) -> "DosHeader":
        """Zeroed header whose only content is the magic and e_lfanew."""
        return cls(DOS_MAGIC, bytes(58), e_lfanew)


@dataclass
class CoffHeader(_Record):
    """IMAGE_FILE_HEADER, directly after the PE signature."""

    Machine: int
    NumberOfSections: int
    TimeDateStamp: int
    PointerToSymbolTable: int
    NumberOfSymbols: int
    SizeOfOptionalHeader: int  # Includes the data directories
    Characteristics: int

    STRUCT_FMT: ClassVar[str] = "<HHIIIHH"
    SIZE: ClassVar[int] = COFF_HEADER_SIZE
    LABEL: ClassVar[str] = "COFF header"


@dataclass
class DataDirectory(_Record):
    """IMAGE_DATA_DIRECTORY: an (RVA, size) pair."""

    VirtualAddress: int
    Size: int

    STRUCT_FMT: ClassVar[str] = "<II"
    SIZE: ClassVar[int] = DATA_DIRECTORY_SIZE
    LABEL: ClassVar[str] = "data directory"

    @property
    def is_present(self) -> bool:
        return self.VirtualAddress != 0 or self.Size != 0


class _OptionalHeader(_Record):
    MAGIC: ClassVar[int]
    BITNESS: ClassVar[int]
    LABEL: ClassVar[str] = "optional header"

    def validate(self) -> None:
        if self.Magic != self.MAGIC:
            name = "PE32+" if self.BITNESS == 64 else "PE32"
            raise FormatError(
                f"Not a {name} file (magic: 0x{self.Magic:04X}, "
                f"expected 0x{self.MAGIC:04X})"
            )


@dataclass
class OptionalHeader32(_OptionalHeader):
    """IMAGE_OPTIONAL_HEADER32 without its data directories.

    PE32 has BaseOfData and 4-byte ImageBase / stack / heap fields.
    """

    Magic: int
    MajorLinkerVersion: int
    MinorLinkerVersion: int
    SizeOfCode: int
    SizeOfInitializedData: int
    SizeOfUninitializedData: int
    AddressOfEntryPoint: int
    BaseOfCode: int
    BaseOfData: int
    ImageBase: int
    SectionAlignment: int
    FileAlignment: int
    MajorOperatingSystemVersion: int
    MinorOperatingSystemVersion: int
    MajorImageVersion: int
    MinorImageVersion: int
    MajorSubsystemVersion: int
    MinorSubsystemVersion: int
    Win32VersionValue: int
    SizeOfImage: int
    SizeOfHeaders: int
    CheckSum: int
    Subsystem: int
    DllCharacteristics: int
    SizeOfStackReserve: int
    SizeOfStackCommit: int
    SizeOfHeapReserve: int
    SizeOfHeapCommit: int
    LoaderFlags: int
    NumberOfRvaAndSizes: int

    STRUCT_FMT: ClassVar[str] = "<HBBIIIIIIIIIHHHHHH" "IIIIHHIIIIII"
    SIZE: ClassVar[int] = OPTIONAL_HEADER32_SIZE
    MAGIC: ClassVar[int] = IMAGE_NT_OPTIONAL_HDR32_MAGIC
    BITNESS: ClassVar[int] = 32


@dataclass
class OptionalHeader64(_OptionalHeader):
    """IMAGE_OPTIONAL_HEADER64 without its data directories.

    PE32+ drops BaseOfData and widens ImageBase and the stack / heap sizes
    to 8 bytes.
    """

    Magic: int
    MajorLinkerVersion: int
    MinorLinkerVersion: int
    SizeOfCode: int
    SizeOfInitializedData: int
    SizeOfUninitializedData: int
    AddressOfEntryPoint: int
    BaseOfCode: int
    ImageBase: int
    SectionAlignment: int
    FileAlignment: int
    MajorOperatingSystemVersion: int
    MinorOperatingSystemVersion: int
    MajorImageVersion: int
    MinorImageVersion: int
    MajorSubsystemVersion: int
    MinorSubsystemVersion: int
    Win32VersionValue: int
    SizeOfImage: int
    SizeOfHeaders: int
    CheckSum: int
    Subsystem: int
    DllCharacteristics: int
    SizeOfStackReserve: int
    SizeOfStackCommit: int
    SizeOfHeapReserve: int
    SizeOfHeapCommit: int
    LoaderFlags: int
    NumberOfRvaAndSizes: int

    STRUCT_FMT: ClassVar[str] = "<HBBIIIIIQIIHHHHHH" "IIIIHHQQQQII"
    SIZE: ClassVar[int] = OPTIONAL_HEADER64_SIZE
    MAGIC: ClassVar[int] = IMAGE_NT_OPTIONAL_HDR64_MAGIC
    BITNESS: ClassVar[int] = 64


OPTIONAL_HEADER_BY_MAGIC: dict[int, type[OptionalHeader32] | type[OptionalHeader64]] = {
    IMAGE_NT_OPTIONAL_HDR32_MAGIC: OptionalHeader32,
    IMAGE_NT_OPTIONAL_HDR64_MAGIC: OptionalHeader64,
}


@dataclass
class SectionHeader(_Record):
    """IMAGE_SECTION_HEADER, one per section table slot."""

    Name: bytes  # NUL-padded, unterminated when all 8 bytes are used
    VirtualSize: int
    VirtualAddress: int
    SizeOfRawData: int
    PointerToRawData: int
    PointerToRelocations: int
    PointerToLinenumbers: int
    NumberOfRelocations: int
    NumberOfLinenumbers: int
    Characteristics: int

    STRUCT_FMT: ClassVar[str] = "<8sIIIIIIHHI"
    SIZE: ClassVar[int] = SECTION_HEADER_SIZE
    LABEL: ClassVar[str] = "section header"

    @property
    def name_str(self) -> str:
        return self.Name.split(b"\x00", 1)[0].decode("ascii", errors="replace")


# =============================================================================
# Resource directory
# =============================================================================


@dataclass
class ResourceDirectory(_Record):
    """IMAGE_RESOURCE_DIRECTORY.

    Followed immediately by NumberOfNamedEntries + NumberOfIdEntries
    directory entries, named entries first.
    """

    Characteristics: int
    TimeDateStamp: int
    MajorVersion: int
    MinorVersion: int
    NumberOfNamedEntries: int
    NumberOfIdEntries: int

    STRUCT_FMT: ClassVar[str] = "<IIHHHH"
    SIZE: ClassVar[int] = RESOURCE_DIRECTORY_SIZE
    LABEL: ClassVar[str] = "resource directory"

    @property
    def entry_count(self) -> int:
        return self.NumberOfNamedEntries + self.NumberOfIdEntries


@dataclass
class ResourceDirectoryEntry(_Record):
    """IMAGE_RESOURCE_DIRECTORY_ENTRY.

    Both fields use their high bit as a flag; the remaining 31 bits are
    offsets relative to the start of the resource section.
    """

    Name: int  # String offset (high bit set) or integer ID
    OffsetToData: int  # Subdirectory (high bit set) or data entry offset

    STRUCT_FMT: ClassVar[str] = "<II"
    SIZE: ClassVar[int] = RESOURCE_DIRECTORY_ENTRY_SIZE
    LABEL: ClassVar[str] = "resource directory entry"

    @property
    def name_is_string(self) -> bool:
        return bool(self.Name & IMAGE_RESOURCE_NAME_IS_STRING)

    @property
    def name_offset(self) -> int:
        """Offset of the length-prefixed UTF-16 name string."""
        return self.Name & ~IMAGE_RESOURCE_NAME_IS_STRING

    @property
    def id(self) -> int:
        return self.Name & 0xFFFF

    @property
    def is_directory(self) -> bool:
        return bool(self.OffsetToData & IMAGE_RESOURCE_DATA_IS_DIRECTORY)

    @property
    def child_offset(self) -> int:
        """Offset of the subdirectory or data entry this entry points at."""
        return self.OffsetToData & ~IMAGE_RESOURCE_DATA_IS_DIRECTORY


@dataclass
class ResourceDataEntry(_Record):
    """IMAGE_RESOURCE_DATA_ENTRY.

    Unlike the directory offsets, OffsetToData here is an RVA.
    """

    OffsetToData: int
    Size: int
    CodePage: int
    Reserved: int

    STRUCT_FMT: ClassVar[str] = "<IIII"
    SIZE: ClassVar[int] = RESOURCE_DATA_ENTRY_SIZE
    LABEL: ClassVar[str] = "resource data entry"


# =============================================================================
# Helper Functions
# =============================================================================


def round_up_to_alignment(value: int, alignment: int) -> int:
    """Round value up to a power-of-two boundary (0 leaves it unchanged)."""
    if alignment == 0:
        return value
    return (value + alignment - 1) & ~(alignment - 1)


def section_name_to_bytes(name: str) -> bytes:
    """Encode a section name into its 8-byte NUL-padded slot."""
    if len(name) > 8:
        raise ValueError(f"Section name too long (max 8 chars): {name}")
    return name.encode("ascii").ljust(8, b"\x00")
