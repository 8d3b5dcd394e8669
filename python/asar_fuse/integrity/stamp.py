"""
Read and rewrite the Electron asar integrity resource.

Electron stores the expected ASAR header hash in the PE resource
Integrity/ElectronAsar as a small JSON document:

    [{"file":"resources\\app.asar","alg":"SHA256","value":"<64 hex>"}]

Stamping replaces that payload in place. For an unchanged file field the
new JSON is as long as the compact document Electron writes, so it fits the
existing resource slot; a larger payload is rejected rather than rebuilding
the resource section.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from ..coff.image import PeImage
from ..coff.resources import find_resource, replace_resource_data
from ..errors import InvalidArgumentError, ResourceError
from ..files import (
    backup_path_for,
    read_file,
    validate_target,
    write_backup_once,
    write_preserving_mode,
)

logger = logging.getLogger(__name__)

INTEGRITY_RESOURCE_TYPE = "Integrity"
INTEGRITY_RESOURCE_NAME = "ElectronAsar"
INTEGRITY_ALGORITHM = "SHA256"

# en-US, the language Electron builds use for the resource
DEFAULT_LANGUAGE = 1033
DEFAULT_FILE_FIELD = "resources\\app.asar"
STAMP_BACKUP_SUFFIX = ".bak"

_HEX64 = re.compile(r"[0-9a-fA-F]{64}")


@dataclass(frozen=True)
class IntegrityInfo:
    """Current content of the integrity resource."""

    json: str
    language: int
    file_field: str = ""
    value_hex: str = ""


@dataclass
class StampResult:
    """Result of stamping the integrity resource."""

    json: str
    language: int
    dry_run: bool = False
    previous: IntegrityInfo | None = None
    backup_path: Path | None = None
    backup_created: bool = False


def normalize_hash(text: str) -> str:
    """Validate a SHA-256 hex digest and lowercase it.

    Raises:
        InvalidArgumentError: If the text is not exactly 64 hex characters
    """
    candidate = text.strip()
    if not _HEX64.fullmatch(candidate):
        raise InvalidArgumentError(
            f"Hash must be 64 hex characters, got {text!r}"
        )
    return candidate.lower()


def build_integrity_json(file_field: str, value_hex: str) -> str:
    """Serialize the integrity document in Electron's compact form."""
    document = [
        {"file": file_field, "alg": INTEGRITY_ALGORITHM, "value": value_hex}
    ]
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


def parse_integrity_json(text: str) -> tuple[str, str]:
    """Extract (file, value) from the first entry of an integrity document.

    Anything after the document (NUL padding left in the resource slot) is
    ignored. Missing or mistyped fields come back as empty strings.
    """
    try:
        document, _ = json.JSONDecoder().raw_decode(text.lstrip())
    except json.JSONDecodeError:
        logger.debug("Integrity payload is not valid JSON: %r", text[:64])
        return "", ""

    if not isinstance(document, list) or not document:
        return "", ""
    first = document[0]
    if not isinstance(first, dict):
        return "", ""

    file_field = first.get("file")
    value_hex = first.get("value")
    return (
        file_field if isinstance(file_field, str) else "",
        value_hex if isinstance(value_hex, str) else "",
    )


def _integrity_from_image(image: PeImage) -> IntegrityInfo | None:
    entry = find_resource(image, INTEGRITY_RESOURCE_TYPE, INTEGRITY_RESOURCE_NAME)
    if entry is None or entry.size == 0:
        return None
    text = entry.data.decode("utf-8", errors="replace")
    file_field, value_hex = parse_integrity_json(text)
    return IntegrityInfo(
        json=text,
        language=entry.language,
        file_field=file_field,
        value_hex=value_hex,
    )


def read_integrity(path: str | os.PathLike) -> IntegrityInfo | None:
    """Read the integrity resource of an executable.

    Returns:
        IntegrityInfo, or None if the executable has no such resource

    Raises:
        InvalidArgumentError: If the path is not an existing file
        ImageIOError: If the file cannot be read
        FormatError: If the file is not a valid PE image
    """
    target = validate_target(path)
    image = PeImage(read_file(target), target)
    return _integrity_from_image(image)


def stamp_integrity(
    path: str | os.PathLike,
    file_field: str,
    value_hex: str,
    dry_run: bool = False,
) -> StampResult:
    """Rewrite the integrity resource with a new hash.

    The existing resource language is kept. Outside dry run the original
    executable is backed up once to <path>.bak before it is rewritten.

    Args:
        path: Executable to stamp
        file_field: Archive path recorded in the "file" field
        value_hex: SHA-256 hex digest to record
        dry_run: Build and validate the new payload without writing anything

    Raises:
        InvalidArgumentError: If the path or hash is invalid
        ResourceError: If the resource is missing or the payload does not fit
        ImageIOError: If reading or writing fails
    """
    value_hex = normalize_hash(value_hex)
    target = validate_target(path)
    original = read_file(target)
    image = PeImage(original, target)

    entry = find_resource(image, INTEGRITY_RESOURCE_TYPE, INTEGRITY_RESOURCE_NAME)
    if entry is None:
        raise ResourceError(
            f"{target} has no {INTEGRITY_RESOURCE_TYPE}/{INTEGRITY_RESOURCE_NAME} "
            f"resource; creating one (language {DEFAULT_LANGUAGE}) is not supported"
        )

    previous = _integrity_from_image(image)
    document = build_integrity_json(file_field, value_hex)
    payload = document.encode("utf-8")
    patched = replace_resource_data(image, entry, payload)

    result = StampResult(
        json=document,
        language=entry.language,
        dry_run=dry_run,
        previous=previous,
        backup_path=backup_path_for(target, STAMP_BACKUP_SUFFIX),
    )
    if dry_run:
        return result

    result.backup_path, result.backup_created = write_backup_once(
        target, original, STAMP_BACKUP_SUFFIX
    )
    write_preserving_mode(target, patched)
    logger.info(
        "%s: stamped %s/%s (language %d) with %s",
        target,
        INTEGRITY_RESOURCE_TYPE,
        INTEGRITY_RESOURCE_NAME,
        entry.language,
        value_hex,
    )
    return result
