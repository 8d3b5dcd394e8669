"""Tests for the asar-fuse-disable and asar-integrity-stamp command line tools."""

import hashlib

import pytest
from pathlib import Path

from asar_fuse.integrity import read_integrity
from asar_fuse.tools import disable_fuses, stamp_integrity

from pe_test_utils import build_asar, build_pe, SectionSpec, write_integrity_image

ASAR_HEADER = b'{"files":{"main.js":{"size":4,"offset":"0"}}}'


class TestDisableFusesCli:
    """Tests for asar-fuse-disable."""

    def test_patch(self, fuse_file, capsys):
        path, targets = fuse_file

        code = disable_fuses.main([str(path)])

        assert code == disable_fuses.EXIT_OK
        out = capsys.readouterr().out
        assert "Disabled 3 fuse(s)" in out
        assert "Backup created" in out
        data = path.read_bytes()
        assert all(data[t] == ord("0") for t in targets)

    def test_dry_run_with_limit(self, fuse_file, capsys):
        path, _ = fuse_file
        original = path.read_bytes()

        code = disable_fuses.main([str(path), "--dry-run", "--limit", "1"])

        assert code == disable_fuses.EXIT_OK
        assert "[dry run] Would disable 1 fuse(s)" in capsys.readouterr().out
        assert path.read_bytes() == original

    def test_lists_each_site(self, fuse_file, capsys):
        path, _ = fuse_file

        disable_fuses.main([str(path), "--dry-run"])

        out = capsys.readouterr().out
        assert out.count("check @0x") == 4
        assert "fuse RVA 0x00002020" in out

    def test_nothing_left(self, fuse_file, capsys):
        path, _ = fuse_file
        disable_fuses.main([str(path)])
        capsys.readouterr()

        code = disable_fuses.main([str(path)])

        assert code == disable_fuses.EXIT_OK
        assert "nothing to do" in capsys.readouterr().out

    def test_no_sites(self, tmp_path: Path, capsys):
        path = tmp_path / "plain.exe"
        path.write_bytes(build_pe([SectionSpec(".text", 0x1000, 0x400, 0x200)]))

        code = disable_fuses.main([str(path)])

        assert code == disable_fuses.EXIT_NOT_FOUND
        assert "No fuse checks found" in capsys.readouterr().err

    def test_missing_target(self, tmp_path: Path, capsys):
        code = disable_fuses.main([str(tmp_path / "missing.exe")])

        assert code == disable_fuses.EXIT_ERROR
        assert "Error (argument)" in capsys.readouterr().err

    def test_invalid_pe(self, tmp_path: Path, capsys):
        path = tmp_path / "bad.exe"
        path.write_bytes(b"\x00" * 256)

        code = disable_fuses.main([str(path)])

        assert code == disable_fuses.EXIT_ERROR
        assert "Error (format)" in capsys.readouterr().err


class TestStampIntegrityCli:
    """Tests for asar-integrity-stamp."""

    @pytest.fixture
    def app_dir(self, tmp_path: Path) -> Path:
        """An app layout: app.exe next to resources/app.asar."""
        write_integrity_image(tmp_path / "app.exe")
        (tmp_path / "resources").mkdir()
        (tmp_path / "resources" / "app.asar").write_bytes(
            build_asar(ASAR_HEADER, b"1+1;")
        )
        return tmp_path

    def test_stamp_block_digest_by_default(self, app_dir: Path, capsys):
        exe = app_dir / "app.exe"

        code = stamp_integrity.main([str(exe)])

        assert code == stamp_integrity.EXIT_OK
        block = build_asar(ASAR_HEADER)
        expected = hashlib.sha256(block).hexdigest()
        assert read_integrity(exe).value_hex == expected
        out = capsys.readouterr().out
        assert f"-> chosen      : {expected}" in out
        assert "Done." in out
        assert exe.with_name("app.exe.bak").exists()

    def test_stamp_header_mode(self, app_dir: Path):
        exe = app_dir / "app.exe"

        code = stamp_integrity.main([str(exe), "--mode", "header"])

        assert code == stamp_integrity.EXIT_OK
        expected = hashlib.sha256(ASAR_HEADER).hexdigest()
        assert read_integrity(exe).value_hex == expected

    def test_explicit_asar_path(self, app_dir: Path, tmp_path: Path):
        exe = app_dir / "app.exe"
        other = tmp_path / "other.asar"
        other.write_bytes(build_asar(b'{"files":{}}'))

        code = stamp_integrity.main([str(exe), "--asar", str(other)])

        assert code == stamp_integrity.EXIT_OK
        expected = hashlib.sha256(build_asar(b'{"files":{}}')).hexdigest()
        assert read_integrity(exe).value_hex == expected

    def test_force_hash(self, app_dir: Path):
        exe = app_dir / "app.exe"
        forced = "CD" * 32

        code = stamp_integrity.main([str(exe), "--force-hash", forced])

        assert code == stamp_integrity.EXIT_OK
        assert read_integrity(exe).value_hex == forced.lower()

    def test_auto_force_hash(self, app_dir: Path, capsys):
        exe = app_dir / "app.exe"

        code = stamp_integrity.main([str(exe), "--auto-force-hash"])

        assert code == stamp_integrity.EXIT_OK
        assert read_integrity(exe).value_hex == "ab" * 32
        assert "Using --auto-force-hash" in capsys.readouterr().out

    def test_conflicting_hash_options(self, app_dir: Path, capsys):
        exe = app_dir / "app.exe"

        code = stamp_integrity.main(
            [str(exe), "--force-hash", "ab" * 32, "--auto-force-hash"]
        )

        assert code == stamp_integrity.EXIT_ERROR
        assert "Cannot use both" in capsys.readouterr().err

    def test_invalid_force_hash(self, app_dir: Path, capsys):
        code = stamp_integrity.main([str(app_dir / "app.exe"), "--force-hash", "xyz"])

        assert code == stamp_integrity.EXIT_ERROR
        assert "64 hex" in capsys.readouterr().err

    def test_dry_run(self, app_dir: Path, capsys):
        exe = app_dir / "app.exe"
        original = exe.read_bytes()

        code = stamp_integrity.main([str(exe), "--dry-run"])

        assert code == stamp_integrity.EXIT_OK
        assert exe.read_bytes() == original
        assert not exe.with_name("app.exe.bak").exists()
        assert "[dry run] Done." in capsys.readouterr().out

    def test_missing_exe(self, tmp_path: Path, capsys):
        code = stamp_integrity.main([str(tmp_path / "missing.exe")])

        assert code == stamp_integrity.EXIT_NOT_FOUND
        assert "EXE not found" in capsys.readouterr().err

    def test_missing_asar(self, tmp_path: Path, capsys):
        exe = write_integrity_image(tmp_path / "app.exe")
        original = exe.read_bytes()

        code = stamp_integrity.main([str(exe)])

        assert code == stamp_integrity.EXIT_NOT_FOUND
        assert "ASAR not found" in capsys.readouterr().err
        assert exe.read_bytes() == original

    def test_shows_current_resource(self, app_dir: Path, capsys):
        stamp_integrity.main([str(app_dir / "app.exe"), "--dry-run"])

        out = capsys.readouterr().out
        assert "Current resource size:" in out
        assert f"value = {'ab' * 32}" in out
