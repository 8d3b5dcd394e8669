"""
Unit tests for the asar_fuse.patcher module.

Tests the apply_patch entry point end to end on synthetic images.
"""

import os
import stat

import pytest
from pathlib import Path

from asar_fuse import (
    ErrorKind,
    FormatError,
    InvalidArgumentError,
    FUSE_BACKUP_SUFFIX,
    apply_patch,
    patch_fuses,
)
from asar_fuse.patcher import build_patched_image
from asar_fuse.planner import plan_patch
from asar_fuse.scanner import scan_fuse_sites
from asar_fuse.coff import PeImage

from pe_test_utils import place_fuse_check, write_fuse_image


def _backup(path: Path) -> Path:
    return path.with_name(path.name + FUSE_BACKUP_SUFFIX)


def _states(path: Path, targets: list[int]) -> str:
    data = path.read_bytes()
    return "".join(chr(data[t]) for t in targets)


class TestApplyPatch:
    """Tests for patching files on disk."""

    def test_concrete_scenario(self, single_check_file: Path):
        original = single_check_file.read_bytes()

        result = apply_patch(single_check_file)

        assert result.success
        assert result.count == 1
        patched = single_check_file.read_bytes()
        assert patched[0x436] == ord("0")
        # Exactly one byte changed
        assert [i for i in range(len(original)) if original[i] != patched[i]] == [0x436]
        assert _backup(single_check_file).read_bytes() == original
        assert result.backup_created

    def test_shared_fuse_byte_counts_once(
        self, single_check_file: Path, single_section_sections
    ):
        """Test that two checks reading the same fuse byte change one byte."""
        data = bytearray(single_check_file.read_bytes())
        place_fuse_check(data, single_section_sections, 0x450, 0x436)
        single_check_file.write_bytes(data)

        result = apply_patch(single_check_file)

        assert len(result.hits) == 2
        assert result.count == 1
        patched = single_check_file.read_bytes()
        assert [i for i in range(len(data)) if data[i] != patched[i]] == [0x436]

    def test_disables_all_enabled_fuses(self, fuse_file):
        path, targets = fuse_file

        result = apply_patch(path)

        assert result.success
        assert result.count == 3
        assert len(result.hits) == 4
        assert _states(path, targets) == "0000"

    def test_limit(self, fuse_file):
        path, targets = fuse_file

        result = apply_patch(path, limit=2)

        assert result.count == 2
        assert result.plan.eligible_count == 3
        assert _states(path, targets) == "0001"

    def test_limit_zero_touches_nothing(self, fuse_file):
        path, _ = fuse_file
        original = path.read_bytes()

        result = apply_patch(path, limit=0)

        assert result.success
        assert result.count == 0
        assert path.read_bytes() == original
        assert not _backup(path).exists()

    def test_dry_run_writes_nothing(self, fuse_file):
        path, _ = fuse_file
        original = path.read_bytes()

        result = apply_patch(path, dry_run=True)

        assert result.success
        assert result.dry_run
        assert result.count == 3
        assert path.read_bytes() == original
        assert not _backup(path).exists()
        assert not result.backup_created

    def test_dry_run_reports_limited_count(self, fuse_file):
        path, _ = fuse_file

        result = apply_patch(path, dry_run=True, limit=1)

        assert result.count == 1
        assert result.plan.eligible_count == 3

    def test_dry_run_matches_real_run(self, fuse_file):
        path, _ = fuse_file

        dry = apply_patch(path, dry_run=True, limit=2)
        real = apply_patch(path, limit=2)

        assert dry.count == real.count
        assert dry.plan == real.plan

    def test_second_run_is_a_no_op(self, fuse_file):
        path, _ = fuse_file

        apply_patch(path)
        after_first = path.read_bytes()
        result = apply_patch(path)

        assert result.success
        assert result.count == 0
        assert result.found_sites
        assert path.read_bytes() == after_first

    def test_existing_backup_is_kept(self, fuse_file):
        path, targets = fuse_file
        original = path.read_bytes()

        apply_patch(path, limit=1)
        result = apply_patch(path)

        assert result.count == 2
        assert not result.backup_created
        # The backup still holds the unmodified original
        assert _backup(path).read_bytes() == original
        assert _states(path, targets) == "0000"

    def test_preserves_file_mode(self, fuse_file):
        path, _ = fuse_file
        os.chmod(path, 0o750)

        apply_patch(path)

        assert stat.S_IMODE(path.stat().st_mode) == 0o750

    def test_no_sites(self, tmp_path: Path):
        path, _ = write_fuse_image(tmp_path / "plain.exe", "")

        result = apply_patch(path)

        assert result.success
        assert result.count == 0
        assert not result.found_sites

    @pytest.mark.parametrize("bitness", [32, 64])
    def test_both_pe_variants(self, tmp_path: Path, bitness: int):
        path, targets = write_fuse_image(tmp_path / "app.exe", "1010", bitness)

        result = apply_patch(path)

        assert result.count == 2
        assert _states(path, targets) == "0000"


class TestApplyPatchErrors:
    """Tests for failures reported through PatchResult."""

    def test_empty_path(self):
        result = apply_patch("")

        assert not result.success
        assert result.error_kind is ErrorKind.ARGUMENT
        assert result.count == 0

    def test_missing_file(self, tmp_path: Path):
        result = apply_patch(tmp_path / "missing.exe")

        assert result.error_kind is ErrorKind.ARGUMENT
        assert "not found" in result.error

    def test_directory(self, tmp_path: Path):
        result = apply_patch(tmp_path)

        assert result.error_kind is ErrorKind.ARGUMENT

    def test_not_a_pe_file(self, tmp_path: Path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"just some text, definitely not an executable" * 4)

        result = apply_patch(path)

        assert result.error_kind is ErrorKind.FORMAT
        assert not _backup(path).exists()

    def test_bad_limit_type(self, fuse_file):
        path, _ = fuse_file

        result = apply_patch(path, limit="2")

        assert result.error_kind is ErrorKind.ARGUMENT

    def test_unexpected_error(self, fuse_file, monkeypatch):
        """Test that a non-engine exception becomes UNEXPECTED."""
        path, _ = fuse_file

        def boom(image):
            raise RuntimeError("boom")

        monkeypatch.setattr("asar_fuse.patcher.scan_fuse_sites", boom)
        result = apply_patch(path)

        assert not result.success
        assert result.error_kind is ErrorKind.UNEXPECTED
        assert "boom" in result.error


class TestPatchFuses:
    """Tests for the raising variant."""

    def test_raises_argument_error(self, tmp_path: Path):
        with pytest.raises(InvalidArgumentError):
            patch_fuses(tmp_path / "missing.exe")

    def test_raises_format_error(self, tmp_path: Path):
        path = tmp_path / "short.exe"
        path.write_bytes(b"MZ")

        with pytest.raises(FormatError):
            patch_fuses(path)
        assert path.read_bytes() == b"MZ"
        assert not _backup(path).exists()


class TestBuildPatchedImage:
    """Tests for the in-memory mutation."""

    def test_only_selected_bytes_change(self, fuse_file):
        path, targets = fuse_file
        original = path.read_bytes()
        plan = plan_patch(scan_fuse_sites(PeImage(original)), limit=2)

        patched = build_patched_image(original, plan)

        changed = [i for i in range(len(original)) if original[i] != patched[i]]
        assert changed == [targets[0], targets[1]]
        assert len(patched) == len(original)
