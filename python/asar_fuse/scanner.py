"""
Inline fuse check scanner.

Electron bakes each fuse into the executable as an ASCII '0' or '1' and
reads it through a tiny getter compiled to:

    8A 05 xx xx xx xx    mov al, byte ptr [rip + disp32]
    3C 31                cmp al, '1'
    0F 94 C0             sete al
    C3                   ret

The scanner finds that exact byte template in the raw data of every
section, resolves the RIP-relative displacement to the fuse byte and keeps
the match only if the byte really is '0' or '1'. Matching is exact on the
fixed bytes; nothing is disassembled.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Iterator

from .coff.image import PeImage
from .errors import UnmappedAddress

logger = logging.getLogger(__name__)

LOAD_OPCODE = b"\x8a\x05"  # mov al, byte ptr [rip + disp32]
CHECK_TAIL = b"\x3c\x31\x0f\x94\xc0\xc3"  # cmp al, '1'; sete al; ret
DISPLACEMENT_SIZE = 4
LOAD_INSTRUCTION_SIZE = len(LOAD_OPCODE) + DISPLACEMENT_SIZE
SIGNATURE_SIZE = LOAD_INSTRUCTION_SIZE + len(CHECK_TAIL)

FUSE_OFF = ord("0")
FUSE_ON = ord("1")

RVA_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class Hit:
    """A verified fuse check: where the load is and which byte it reads."""

    instruction_offset: int  # File offset of the mov instruction
    target_rva: int
    target_offset: int  # File offset of the fuse byte
    current_value: int  # FUSE_OFF or FUSE_ON

    @property
    def is_enabled(self) -> bool:
        return self.current_value == FUSE_ON

    @property
    def current_char(self) -> str:
        return chr(self.current_value)


def iter_signature_matches(
    data: bytes, start: int, end: int
) -> Iterator[tuple[int, int]]:
    """Yield (offset, displacement) for every template match in [start, end).

    Candidates may overlap; each position is tested independently.
    """
    pos = data.find(LOAD_OPCODE, start, end)
    while pos != -1 and pos + SIGNATURE_SIZE <= end:
        tail_at = pos + LOAD_INSTRUCTION_SIZE
        if data[tail_at : tail_at + len(CHECK_TAIL)] == CHECK_TAIL:
            (displacement,) = struct.unpack_from("<i", data, pos + len(LOAD_OPCODE))
            yield pos, displacement
        pos = data.find(LOAD_OPCODE, pos + 1, end)


def resolve_target_rva(image: PeImage, instruction_offset: int, displacement: int) -> int:
    """RVA read by a RIP-relative load at the given file offset.

    The displacement is measured from the end of the load instruction.
    """
    rva_of_load = image.to_virtual(instruction_offset)
    rva_next = rva_of_load + LOAD_INSTRUCTION_SIZE
    return (rva_next + displacement) & RVA_MASK


def scan_fuse_sites(image: PeImage) -> list[Hit]:
    """Find every inline fuse check in the image.

    Sections are visited in table order and bytes left to right, so the
    result is in a stable scan order. Matches whose target is not backed by
    raw section data, or does not hold '0'/'1', are dropped.

    Args:
        image: Parsed PE image

    Returns:
        Hits in scan order
    """
    data = image.data
    hits: list[Hit] = []
    seen: set[int] = set()

    for section in image.sections:
        start, end = image.section_bounds(section)
        if end - start < SIGNATURE_SIZE:
            continue

        for offset, displacement in iter_signature_matches(data, start, end):
            # Overlapping raw ranges would otherwise report the same site twice
            if offset in seen:
                continue
            seen.add(offset)

            target_rva = resolve_target_rva(image, offset, displacement)
            try:
                target_offset = image.to_offset(target_rva)
            except UnmappedAddress:
                logger.debug(
                    "Signature at 0x%x targets unmapped RVA 0x%x, skipping",
                    offset,
                    target_rva,
                )
                continue

            if target_offset >= len(data):
                logger.debug(
                    "Signature at 0x%x targets offset 0x%x past end of file",
                    offset,
                    target_offset,
                )
                continue

            value = data[target_offset]
            if value not in (FUSE_OFF, FUSE_ON):
                logger.debug(
                    "Signature at 0x%x targets byte 0x%02x, not a fuse literal",
                    offset,
                    value,
                )
                continue

            hits.append(
                Hit(
                    instruction_offset=offset,
                    target_rva=target_rva,
                    target_offset=target_offset,
                    current_value=value,
                )
            )

    logger.debug("Found %d fuse site(s)", len(hits))
    return hits
