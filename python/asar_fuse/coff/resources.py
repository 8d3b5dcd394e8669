"""
PE resource directory access.

The resource tree has three fixed levels: type, name, language. Directory
and name-string offsets are relative to the start of the resource directory
(the RVA in data directory 2); data entries hold the RVA of the payload.

Only in-place replacement is supported: a payload can shrink or keep its
size, but growing it would require rebuilding .rsrc, which is what the
Windows UpdateResource API does and is out of scope here.

Named entries are matched case-insensitively, like FindResource does.
"""

import logging
import struct
from dataclasses import dataclass

from ..errors import FormatError, ResourceError, UnmappedAddress
from .image import PeImage
from .types import (
    ResourceDirectory,
    ResourceDirectoryEntry,
    ResourceDataEntry,
    IMAGE_DIRECTORY_ENTRY_RESOURCE,
    RESOURCE_DIRECTORY_ENTRY_SIZE,
)

logger = logging.getLogger(__name__)

ResourceKey = str | int


@dataclass(frozen=True)
class ResourceEntry:
    """A leaf of the resource tree together with its payload."""

    type_key: ResourceKey
    name_key: ResourceKey
    language: int
    data_rva: int
    size: int
    code_page: int
    entry_offset: int  # File offset of the IMAGE_RESOURCE_DATA_ENTRY
    data: bytes


def _root_offset(image: PeImage) -> int | None:
    """File offset of the root resource directory, or None if absent."""
    directory = image.get_data_directory(IMAGE_DIRECTORY_ENTRY_RESOURCE)
    if directory is None or not directory.is_present:
        return None
    try:
        return image.to_offset(directory.VirtualAddress)
    except UnmappedAddress as e:
        raise ResourceError(
            f"Resource directory at RVA 0x{directory.VirtualAddress:x} "
            "is not backed by section data"
        ) from e


def _read_entries(
    image: PeImage, root: int, relative_offset: int
) -> list[ResourceDirectoryEntry]:
    table_offset = root + relative_offset
    directory = ResourceDirectory.from_bytes(image.data, table_offset)
    first_entry = table_offset + ResourceDirectory.SIZE
    return [
        ResourceDirectoryEntry.from_bytes(
            image.data, first_entry + i * RESOURCE_DIRECTORY_ENTRY_SIZE
        )
        for i in range(directory.entry_count)
    ]


def _entry_key(image: PeImage, root: int, entry: ResourceDirectoryEntry) -> ResourceKey:
    """Decode an entry's name: a UTF-16 string or an integer ID."""
    if not entry.name_is_string:
        return entry.id

    string_offset = root + entry.name_offset
    if string_offset + 2 > len(image.data):
        raise ResourceError(f"Resource name at 0x{string_offset:x} outside file")
    (length,) = struct.unpack_from("<H", image.data, string_offset)
    start = string_offset + 2
    end = start + 2 * length
    if end > len(image.data):
        raise ResourceError(f"Resource name at 0x{string_offset:x} truncated")
    return image.data[start:end].decode("utf-16-le", errors="replace")


def _matches(wanted: ResourceKey, actual: ResourceKey) -> bool:
    if isinstance(wanted, str):
        return isinstance(actual, str) and wanted.upper() == actual.upper()
    return wanted == actual


def _find_child(
    image: PeImage, root: int, relative_offset: int, wanted: ResourceKey
) -> ResourceDirectoryEntry | None:
    for entry in _read_entries(image, root, relative_offset):
        if _matches(wanted, _entry_key(image, root, entry)):
            return entry
    return None


def _language_entries(
    image: PeImage, type_key: ResourceKey, name_key: ResourceKey
) -> tuple[int, list[ResourceDirectoryEntry]] | None:
    """Walk type and name levels; return the root offset and language entries."""
    root = _root_offset(image)
    if root is None:
        return None

    try:
        type_entry = _find_child(image, root, 0, type_key)
        if type_entry is None or not type_entry.is_directory:
            return None

        name_entry = _find_child(image, root, type_entry.child_offset, name_key)
        if name_entry is None or not name_entry.is_directory:
            return None

        return root, _read_entries(image, root, name_entry.child_offset)
    except ResourceError:
        raise
    except FormatError as e:
        raise ResourceError(f"Malformed resource directory: {e}") from e


def list_languages(
    image: PeImage, type_key: ResourceKey, name_key: ResourceKey
) -> list[int]:
    """Language IDs available for a resource, in directory order."""
    found = _language_entries(image, type_key, name_key)
    if found is None:
        return []
    _, entries = found
    return [entry.id for entry in entries if not entry.is_directory]


def find_resource(
    image: PeImage,
    type_key: ResourceKey,
    name_key: ResourceKey,
    language: int | None = None,
) -> ResourceEntry | None:
    """Locate a resource and read its payload.

    Args:
        image: Parsed PE image
        type_key: Resource type (string name or integer ID)
        name_key: Resource name (string name or integer ID)
        language: Language ID; None selects the first one present

    Returns:
        ResourceEntry, or None if the image has no such resource

    Raises:
        ResourceError: If the resource tree or the payload is malformed
    """
    found = _language_entries(image, type_key, name_key)
    if found is None:
        return None
    root, entries = found

    for entry in entries:
        if entry.is_directory:
            continue
        if language is not None and entry.id != language:
            continue

        entry_offset = root + entry.child_offset
        try:
            data_entry = ResourceDataEntry.from_bytes(image.data, entry_offset)
            payload = image.read_at_rva(data_entry.OffsetToData, data_entry.Size)
        except (FormatError, UnmappedAddress) as e:
            raise ResourceError(
                f"Cannot read resource {type_key!r}/{name_key!r} "
                f"(language {entry.id}): {e}"
            ) from e

        return ResourceEntry(
            type_key=type_key,
            name_key=name_key,
            language=entry.id,
            data_rva=data_entry.OffsetToData,
            size=data_entry.Size,
            code_page=data_entry.CodePage,
            entry_offset=entry_offset,
            data=payload,
        )

    return None


def replace_resource_data(
    image: PeImage, entry: ResourceEntry, payload: bytes
) -> bytearray:
    """Return a copy of the image with a resource payload replaced in place.

    The data entry's Size is updated to the new payload length and the
    unused tail of the old payload is zero-filled.

    Raises:
        ResourceError: If the payload does not fit in the existing slot
    """
    if len(payload) > entry.size:
        raise ResourceError(
            f"New payload for {entry.type_key!r}/{entry.name_key!r} is "
            f"{len(payload)} bytes but the existing slot holds {entry.size}; "
            "growing a resource is not supported"
        )

    data = bytearray(image.data)
    offset = image.to_offset(entry.data_rva)
    data[offset : offset + entry.size] = payload.ljust(entry.size, b"\x00")

    data_entry = ResourceDataEntry.from_bytes(image.data, entry.entry_offset)
    data_entry.Size = len(payload)
    data_entry.write_to(data, entry.entry_offset)

    logger.debug(
        "Replaced resource %r/%r (language %d): %d -> %d bytes at offset 0x%x",
        entry.type_key,
        entry.name_key,
        entry.language,
        entry.size,
        len(payload),
        offset,
    )
    return data
