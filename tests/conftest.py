"""Shared firmware builders for the test suite."""

import struct

import pytest

from teensy_flasher.formats.elf import (
    EM_ARM,
    ET_EXEC,
    PT_LOAD,
    SHF_ALLOC,
    SHT_PROGBITS,
)

SHT_STRTAB = 3
SHF_EXECINSTR = 0x4


def hex_line(record_type: int, offset: int, data: bytes = b"") -> str:
    """Encode one Intel HEX record with a valid checksum."""
    raw = bytes([len(data), (offset >> 8) & 0xFF, offset & 0xFF, record_type]) + bytes(data)
    checksum = (-sum(raw)) & 0xFF
    return ":" + (raw + bytes([checksum])).hex().upper()


def hex_file(*lines: str) -> bytes:
    return ("\n".join(lines) + "\n").encode("ascii")


def build_elf(
    sections,
    machine: int = EM_ARM,
    e_type: int = ET_EXEC,
    osabi: int = 0,
    phdrs=None,
) -> bytes:
    """
    Build a little-endian ELF32 file.

    Args:
        sections: List of (name, addr, data) or (name, addr, data, type, flags)
        machine: e_machine value
        e_type: e_type value
        osabi: EI_OSABI byte
        phdrs: List of (type, vaddr, paddr, memsz); defaults to one PT_LOAD
            identity-mapping every section
    """
    sections = [s if len(s) == 5 else (*s, SHT_PROGBITS, SHF_ALLOC | SHF_EXECINSTR) for s in sections]
    if phdrs is None:
        phdrs = [(PT_LOAD, 0, 0, 0x40000000)]

    # Layout: ehdr | phdrs | section contents | shstrtab | shdrs
    ehsize, phentsize, shentsize = 52, 32, 40
    phoff = ehsize
    offset = phoff + phentsize * len(phdrs)

    body = b""
    placed = []
    for name, addr, data, sh_type, flags in sections:
        placed.append((name, addr, offset + len(body), len(data), sh_type, flags))
        body += data

    shstrtab = b"\x00"
    name_offsets = []
    for name, *_ in placed:
        name_offsets.append(len(shstrtab))
        shstrtab += name.encode("ascii") + b"\x00"
    strtab_name = len(shstrtab)
    shstrtab += b".shstrtab\x00"
    strtab_offset = offset + len(body)
    shoff = strtab_offset + len(shstrtab)

    shdrs = [struct.pack("<IIIIIIIIII", *([0] * 10))]
    for (name, addr, sh_offset, size, sh_type, flags), name_offset in zip(placed, name_offsets):
        shdrs.append(struct.pack("<IIIIIIIIII", name_offset, sh_type, flags, addr, sh_offset, size, 0, 0, 4, 0))
    shdrs.append(struct.pack(
        "<IIIIIIIIII", strtab_name, SHT_STRTAB, 0, 0, strtab_offset, len(shstrtab), 0, 0, 1, 0
    ))

    ident = b"\x7fELF" + bytes([1, 1, 1, osabi]) + bytes(8)
    ehdr = struct.pack(
        "<16sHHIIIIIHHHHHH",
        ident, e_type, machine, 1, 0, phoff, shoff, 0,
        ehsize, phentsize, len(phdrs), shentsize, len(shdrs), len(shdrs) - 1,
    )
    phdr_bytes = b"".join(
        struct.pack("<IIIIIIII", p_type, 0, vaddr, paddr, memsz, memsz, 5, 4)
        for p_type, vaddr, paddr, memsz in phdrs
    )
    return ehdr + phdr_bytes + body + shstrtab + b"".join(shdrs)


@pytest.fixture
def write_firmware(tmp_path):
    """Write firmware bytes to a temp file and return its path."""
    def _write(data: bytes, name: str = "firmware.hex"):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write
