"""
Electron asar integrity support.

- asar: read an archive header and compute its SHA-256 digests
- stamp: read and rewrite the Integrity/ElectronAsar PE resource
"""

from .asar import (
    AsarHeader,
    parse_asar_header,
    read_asar_header,
    MAX_ASAR_HEADER_SIZE,
    DIGEST_MODES,
    DIGEST_MODE_HEADER,
    DIGEST_MODE_BLOCK,
)
from .stamp import (
    IntegrityInfo,
    StampResult,
    build_integrity_json,
    parse_integrity_json,
    normalize_hash,
    read_integrity,
    stamp_integrity,
    INTEGRITY_RESOURCE_TYPE,
    INTEGRITY_RESOURCE_NAME,
    DEFAULT_FILE_FIELD,
    DEFAULT_LANGUAGE,
    STAMP_BACKUP_SUFFIX,
)

__all__ = [
    "AsarHeader",
    "parse_asar_header",
    "read_asar_header",
    "MAX_ASAR_HEADER_SIZE",
    "DIGEST_MODES",
    "DIGEST_MODE_HEADER",
    "DIGEST_MODE_BLOCK",
    "IntegrityInfo",
    "StampResult",
    "build_integrity_json",
    "parse_integrity_json",
    "normalize_hash",
    "read_integrity",
    "stamp_integrity",
    "INTEGRITY_RESOURCE_TYPE",
    "INTEGRITY_RESOURCE_NAME",
    "DEFAULT_FILE_FIELD",
    "DEFAULT_LANGUAGE",
    "STAMP_BACKUP_SUFFIX",
]
