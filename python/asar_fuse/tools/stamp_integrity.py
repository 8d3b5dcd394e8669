#!/usr/bin/env python3
"""
Electron asar integrity stamping CLI tool.

Recomputes the SHA-256 of an app.asar header and writes it into the
Integrity/ElectronAsar resource of the executable, so a modified archive
passes Electron's integrity check. The original executable is saved once
as <exe>.bak.

Exit status: 0 success, 2 executable or archive not found, 1 error.

Usage:
    python -m asar_fuse.tools.stamp_integrity <exe> [--asar PATH] [--mode header|block]
"""

import argparse
import logging
import sys
from pathlib import Path

from asar_fuse.errors import FusePatchError, InvalidArgumentError
from asar_fuse.integrity import (
    DEFAULT_FILE_FIELD,
    DIGEST_MODE_BLOCK,
    DIGEST_MODE_HEADER,
    DIGEST_MODES,
    IntegrityInfo,
    normalize_hash,
    read_asar_header,
    read_integrity,
    stamp_integrity,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2

HEXDUMP_PREFIX_SIZE = 64


def default_asar_path(exe: Path) -> Path:
    """resources/app.asar next to the executable."""
    return exe.parent / "resources" / "app.asar"


def print_current(info: IntegrityInfo | None) -> None:
    if info is None:
        print("Current resource not found")
        return
    raw = info.json.encode("utf-8")
    print(f"Current resource size: {len(raw)} bytes (language {info.language})")
    print(f"  {raw[:HEXDUMP_PREFIX_SIZE].hex(' ')}")
    print(f"Current JSON: {info.json}")
    if info.file_field:
        print(f"  file  = {info.file_field}")
    if info.value_hex:
        print(f"  value = {info.value_hex}")


def choose_hash(args: argparse.Namespace, current: IntegrityInfo | None) -> str | None:
    """Pick the digest to stamp; None means the archive is missing.

    Raises:
        InvalidArgumentError: If a forced or reused hash is unusable
        ArchiveError: If the archive header is malformed
    """
    if args.auto_force_hash:
        if current is None or not current.value_hex:
            raise InvalidArgumentError(
                "--auto-force-hash given but the executable has no current hash"
            )
        value = normalize_hash(current.value_hex)
        print(f"Using --auto-force-hash from current resource: {value}")
        return value

    if args.force_hash is not None:
        value = normalize_hash(args.force_hash)
        print(f"Using --force-hash: {value}")
        return value

    if not args.asar.is_file():
        return None
    header = read_asar_header(args.asar)
    header_hex = header.digest(DIGEST_MODE_HEADER)
    block_hex = header.digest(DIGEST_MODE_BLOCK)
    print(f"header SHA-256 : {header_hex}")
    print(f"block  SHA-256 : {block_hex}")
    value = header_hex if args.mode == DIGEST_MODE_HEADER else block_hex
    print(f"-> chosen      : {value}")
    return value


def run(args: argparse.Namespace) -> int:
    if args.asar is None:
        args.asar = default_asar_path(args.exe)

    print(f"EXE : {args.exe}")
    print(f"ASAR: {args.asar}")
    print(f"file field -> {args.file_field}")

    if not args.exe.is_file():
        print("EXE not found", file=sys.stderr)
        return EXIT_NOT_FOUND

    if args.force_hash is not None and args.auto_force_hash:
        raise InvalidArgumentError(
            "Cannot use both --force-hash and --auto-force-hash"
        )

    current = read_integrity(args.exe)
    print_current(current)

    value = choose_hash(args, current)
    if value is None:
        print("ASAR not found", file=sys.stderr)
        return EXIT_NOT_FOUND

    result = stamp_integrity(args.exe, args.file_field, value, dry_run=args.dry_run)
    print(f"JSON to write ({len(result.json.encode('utf-8'))} bytes):")
    print(result.json)

    if result.dry_run:
        print("[dry run] Done.")
    else:
        state = "created" if result.backup_created else "exists"
        print(f"Backup {state}: {result.backup_path}")
        print("Done.")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Stamp the Electron asar integrity hash into an executable"
    )
    parser.add_argument("exe", type=Path, help="Path to the Electron executable")
    parser.add_argument(
        "--asar",
        type=Path,
        default=None,
        help="Path to app.asar (default: resources/app.asar next to the EXE)",
    )
    parser.add_argument(
        "--file-field",
        default=DEFAULT_FILE_FIELD,
        help="Archive path recorded in the resource (default: %(default)s)",
    )
    parser.add_argument(
        "--mode",
        choices=DIGEST_MODES,
        default=DIGEST_MODE_BLOCK,
        help="Hash the header alone or the size prefix plus header (default: %(default)s)",
    )
    parser.add_argument(
        "--force-hash",
        default=None,
        metavar="HEX",
        help="Stamp this 64-character hex digest instead of hashing the archive",
    )
    parser.add_argument(
        "--auto-force-hash",
        action="store_true",
        help="Re-stamp the hash already present in the executable",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the new resource without writing anything",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        return run(args)
    except FusePatchError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
