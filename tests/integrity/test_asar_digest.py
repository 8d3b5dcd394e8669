"""Unit tests for the asar_fuse.integrity.asar module."""

import hashlib
import struct

import pytest
from pathlib import Path

from asar_fuse.errors import ArchiveError, ErrorKind, ImageIOError
from asar_fuse.integrity.asar import (
    MAX_ASAR_HEADER_SIZE,
    AsarHeader,
    parse_asar_header,
    read_asar_header,
)

from pe_test_utils import build_asar

HEADER = b'{"files":{"index.js":{"size":12,"offset":"0"}}}'


class TestAsarHeader:
    """Tests for header digests."""

    def test_header_digest(self):
        header = AsarHeader(len(HEADER), HEADER)
        assert header.digest("header") == hashlib.sha256(HEADER).hexdigest()

    def test_block_digest(self):
        header = AsarHeader(len(HEADER), HEADER)
        block = struct.pack("<I", len(HEADER)) + HEADER

        assert header.header_block == block
        assert header.digest("block") == hashlib.sha256(block).hexdigest()
        assert header.digest() == header.block_digest()

    def test_digest_format(self):
        value = AsarHeader(len(HEADER), HEADER).digest("header")
        assert len(value) == 64
        assert value == value.lower()

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown digest mode"):
            AsarHeader(len(HEADER), HEADER).digest("full")


class TestParseAsarHeader:
    """Tests for reading the size-prefixed header."""

    def test_parse(self):
        header = parse_asar_header(build_asar(HEADER, b"console.log()"))

        assert header.header_size == len(HEADER)
        assert header.header == HEADER

    def test_missing_prefix(self):
        with pytest.raises(ArchiveError, match="prefix missing") as exc_info:
            parse_asar_header(b"\x10\x00")
        assert exc_info.value.kind is ErrorKind.FORMAT

    def test_zero_size(self):
        with pytest.raises(ArchiveError, match="Unreasonable"):
            parse_asar_header(struct.pack("<I", 0) + HEADER)

    def test_oversized(self):
        with pytest.raises(ArchiveError, match="Unreasonable"):
            parse_asar_header(struct.pack("<I", MAX_ASAR_HEADER_SIZE + 1))

    def test_truncated_header(self):
        with pytest.raises(ArchiveError, match="truncated"):
            parse_asar_header(struct.pack("<I", 100) + b"{}")


class TestReadAsarHeader:
    """Tests for reading archives from disk."""

    def test_read(self, tmp_path: Path):
        path = tmp_path / "app.asar"
        path.write_bytes(build_asar(HEADER, b"x" * 1000))

        header = read_asar_header(path)
        assert header.header == HEADER

    def test_read_truncated(self, tmp_path: Path):
        path = tmp_path / "app.asar"
        path.write_bytes(build_asar(HEADER)[:-5])

        with pytest.raises(ArchiveError, match="truncated"):
            read_asar_header(path)

    def test_read_missing(self, tmp_path: Path):
        with pytest.raises(ImageIOError):
            read_asar_header(tmp_path / "missing.asar")
