import pytest
import pathlib

from pe_test_utils import (
    SectionSpec,
    TEXT_FLAGS,
    build_pe,
    place_fuse_check,
    write_fuse_image,
    write_integrity_image,
)


@pytest.fixture
def single_section_sections() -> list[SectionSpec]:
    """One executable section: raw [0x400, 0x800) mapped at RVA 0x1000."""
    return [SectionSpec(".text", 0x1000, 0x400, 0x400, characteristics=TEXT_FLAGS)]


@pytest.fixture
def single_check_image(single_section_sections) -> bytearray:
    """
    Image with one fuse getter at 0x410 whose displacement (+0x20) points at
    offset 0x436, which holds '1'.

    RVA of the load is 0x1010, the next instruction is at 0x1016, so the
    fuse byte is at RVA 0x1036, file offset 0x436.
    """
    data = build_pe(single_section_sections)
    data[0x436] = ord("1")
    disp = place_fuse_check(data, single_section_sections, 0x410, 0x436)
    assert disp == 0x20
    return data


@pytest.fixture
def single_check_file(tmp_path: pathlib.Path, single_check_image) -> pathlib.Path:
    path = tmp_path / "app.exe"
    path.write_bytes(single_check_image)
    return path


@pytest.fixture
def fuse_file(tmp_path: pathlib.Path) -> tuple[pathlib.Path, list[int]]:
    """Image with four getters reading fuses '1', '1', '0', '1'."""
    return write_fuse_image(tmp_path / "electron.exe", "1101")


@pytest.fixture
def integrity_file(tmp_path: pathlib.Path) -> pathlib.Path:
    """Image with an Integrity/ElectronAsar resource (language 1033)."""
    return write_integrity_image(tmp_path / "app.exe")
