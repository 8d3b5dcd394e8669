"""
PE/COFF image access for asar_fuse.

This package provides the read-only view of a Windows executable that the
fuse scanner and the integrity stamper work on:
- types: PE/COFF struct definitions (PE32 and PE32+)
- image: PeImage, the section table and RVA <-> file offset translation
- resources: resource directory lookup and in-place payload replacement
"""

from .image import (
    PeImage,
    Section,
    FormatDescriptor,
    MAX_NUMBER_OF_SECTIONS,
)
from .resources import (
    ResourceEntry,
    ResourceKey,
    find_resource,
    list_languages,
    replace_resource_data,
)
from .types import (
    # Structs
    DosHeader,
    CoffHeader,
    OptionalHeader32,
    OptionalHeader64,
    SectionHeader,
    DataDirectory,
    ResourceDirectory,
    ResourceDirectoryEntry,
    ResourceDataEntry,
    # Constants
    FILE_ALIGNMENT_DEFAULT,
    SECTION_ALIGNMENT_DEFAULT,
    DOS_MAGIC,
    PE_SIGNATURE,
    # Machine types
    IMAGE_FILE_MACHINE_AMD64,
    IMAGE_FILE_MACHINE_I386,
    # Optional header magic
    IMAGE_NT_OPTIONAL_HDR32_MAGIC,
    IMAGE_NT_OPTIONAL_HDR64_MAGIC,
    # Section characteristics
    IMAGE_SCN_CNT_CODE,
    IMAGE_SCN_CNT_INITIALIZED_DATA,
    IMAGE_SCN_MEM_READ,
    IMAGE_SCN_MEM_EXECUTE,
    # File characteristics
    IMAGE_FILE_EXECUTABLE_IMAGE,
    # Data directory indices
    IMAGE_DIRECTORY_ENTRY_RESOURCE,
    IMAGE_NUMBEROF_DIRECTORY_ENTRIES,
    # Structure sizes
    DOS_HEADER_SIZE,
    COFF_HEADER_SIZE,
    OPTIONAL_HEADER32_SIZE,
    OPTIONAL_HEADER64_SIZE,
    SECTION_HEADER_SIZE,
    DATA_DIRECTORY_SIZE,
    # Helper functions
    round_up_to_alignment,
    section_name_to_bytes,
)

__all__ = [
    # Image model
    "PeImage",
    "Section",
    "FormatDescriptor",
    "MAX_NUMBER_OF_SECTIONS",
    # Resources
    "ResourceEntry",
    "ResourceKey",
    "find_resource",
    "list_languages",
    "replace_resource_data",
    # Structs
    "DosHeader",
    "CoffHeader",
    "OptionalHeader32",
    "OptionalHeader64",
    "SectionHeader",
    "DataDirectory",
    "ResourceDirectory",
    "ResourceDirectoryEntry",
    "ResourceDataEntry",
    # Constants
    "FILE_ALIGNMENT_DEFAULT",
    "SECTION_ALIGNMENT_DEFAULT",
    "DOS_MAGIC",
    "PE_SIGNATURE",
    # Machine types
    "IMAGE_FILE_MACHINE_AMD64",
    "IMAGE_FILE_MACHINE_I386",
    # Optional header magic
    "IMAGE_NT_OPTIONAL_HDR32_MAGIC",
    "IMAGE_NT_OPTIONAL_HDR64_MAGIC",
    # Section characteristics
    "IMAGE_SCN_CNT_CODE",
    "IMAGE_SCN_CNT_INITIALIZED_DATA",
    "IMAGE_SCN_MEM_READ",
    "IMAGE_SCN_MEM_EXECUTE",
    # File characteristics
    "IMAGE_FILE_EXECUTABLE_IMAGE",
    # Data directory indices
    "IMAGE_DIRECTORY_ENTRY_RESOURCE",
    "IMAGE_NUMBEROF_DIRECTORY_ENTRIES",
    # Structure sizes
    "DOS_HEADER_SIZE",
    "COFF_HEADER_SIZE",
    "OPTIONAL_HEADER32_SIZE",
    "OPTIONAL_HEADER64_SIZE",
    "SECTION_HEADER_SIZE",
    "DATA_DIRECTORY_SIZE",
    # Helper functions
    "round_up_to_alignment",
    "section_name_to_bytes",
]
