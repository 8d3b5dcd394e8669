#!/usr/bin/env python3
"""
Electron fuse disabling CLI tool.

Finds the inline fuse checks in a PE executable and flips enabled fuses
from '1' to '0'. The original file is saved once as <target>.fuses.bak.

Exit status: 0 patched (or nothing left to change), 2 no fuse checks found,
1 error.

Usage:
    python -m asar_fuse.tools.disable_fuses <target> [--dry-run] [--limit N]
"""

import argparse
import logging
import sys
from pathlib import Path

from asar_fuse.patcher import PatchResult, apply_patch
from asar_fuse.planner import UNLIMITED

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def print_report(target: Path, result: PatchResult) -> None:
    """Print the fuse sites found and what was done with them."""
    print(f"Target: {target}")
    print("-" * 60)
    selected = set(result.plan.selected_offsets) if result.plan else set()
    for hit in result.hits:
        action = ""
        if hit.target_offset in selected:
            action = " -> '0'" if not result.dry_run else " -> '0' (dry run)"
        print(
            f"  check @0x{hit.instruction_offset:08x}  "
            f"fuse RVA 0x{hit.target_rva:08x} @0x{hit.target_offset:08x}  "
            f"'{hit.current_char}'{action}"
        )
    print("-" * 60)

    if result.dry_run:
        print(f"[dry run] Would disable {result.count} fuse(s)")
    elif result.count:
        print(f"Disabled {result.count} fuse(s)")
        if result.backup_path is not None:
            state = "created" if result.backup_created else "exists"
            print(f"Backup {state}: {result.backup_path}")
    else:
        print("All fuses already disabled, nothing to do")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Disable Electron fuses by patching their inline checks"
    )
    parser.add_argument("target", type=Path, help="Path to the Electron executable")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing anything",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=UNLIMITED,
        help="Maximum number of fuses to disable (default: all)",
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

    result = apply_patch(args.target, dry_run=args.dry_run, limit=args.limit)
    if not result.success:
        print(f"Error ({result.error_kind.value}): {result.error}", file=sys.stderr)
        return EXIT_ERROR

    if not result.found_sites:
        print(f"No fuse checks found in {args.target}", file=sys.stderr)
        return EXIT_NOT_FOUND

    print_report(args.target, result)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
