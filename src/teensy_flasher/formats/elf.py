"""
ELF32 decoding.

Reads little-endian ELF32 executables and assembles the loadable sections
(SHT_PROGBITS with SHF_ALLOC) at their physical load addresses.

Every structural problem is a rejection (``None``) rather than an error, so
the loader can fall back to Intel HEX.
"""

import logging
import struct
from dataclasses import dataclass
from typing import List, NamedTuple, Optional

from teensy_flasher.image import AddressTooHigh, FileHint, FirmwareImage, blank

logger = logging.getLogger(__name__)

ELF_MAGIC = b"\x7fELF"
ELFCLASS32 = 1
ELFDATA2LSB = 1
ELFOSABI_NONE = 0

ET_EXEC = 2

EM_ARM = 40
EM_AVR = 83
SUPPORTED_MACHINES = (EM_ARM, EM_AVR)

PT_LOAD = 1
PT_DYNAMIC = 2
PT_INTERP = 3

SHT_PROGBITS = 1
SHF_ALLOC = 0x2

_EHDR = struct.Struct("<16sHHIIIIIHHHHHH")
_PHDR = struct.Struct("<IIIIIIII")
_SHDR = struct.Struct("<IIIIIIIIII")


class ElfHeader(NamedTuple):
    ident: bytes
    type: int
    machine: int
    version: int
    entry: int
    phoff: int
    shoff: int
    flags: int
    ehsize: int
    phentsize: int
    phnum: int
    shentsize: int
    shnum: int
    shstrndx: int

    @property
    def osabi(self) -> int:
        return self.ident[7]


class ProgramHeader(NamedTuple):
    type: int
    offset: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    flags: int
    align: int

    def contains(self, addr: int, size: int) -> bool:
        """True if [addr, addr + size) lies inside this segment's memory image."""
        return self.vaddr <= addr and addr + size <= self.vaddr + self.memsz


class SectionHeader(NamedTuple):
    name_offset: int
    type: int
    flags: int
    addr: int
    offset: int
    size: int
    link: int
    info: int
    addralign: int
    entsize: int

    @property
    def is_loadable(self) -> bool:
        return self.type == SHT_PROGBITS and bool(self.flags & SHF_ALLOC)


def _read_table(data: bytes, fmt: struct.Struct, offset: int, count: int, entsize: int):
    if count and entsize < fmt.size:
        return None
    if offset + count * entsize > len(data):
        return None
    return [fmt.unpack_from(data, offset + i * entsize) for i in range(count)]


@dataclass
class Elf32File:
    """Parsed ELF32 container (headers plus raw file bytes)."""
    data: bytes
    header: ElfHeader
    program_headers: List[ProgramHeader]
    section_headers: List[SectionHeader]

    @classmethod
    def parse(cls, data: bytes) -> Optional["Elf32File"]:
        """
        Parse an ELF32 little-endian file.

        Returns:
            Elf32File, or None if the bytes are not a readable ELF32 LE file.
        """
        if len(data) < _EHDR.size or data[:4] != ELF_MAGIC:
            return None

        header = ElfHeader(*_EHDR.unpack_from(data, 0))
        if header.ident[4] != ELFCLASS32 or header.ident[5] != ELFDATA2LSB:
            return None

        phdrs = _read_table(data, _PHDR, header.phoff, header.phnum, header.phentsize)
        shdrs = _read_table(data, _SHDR, header.shoff, header.shnum, header.shentsize)
        if phdrs is None or shdrs is None:
            return None

        return cls(
            data=data,
            header=header,
            program_headers=[ProgramHeader(*p) for p in phdrs],
            section_headers=[SectionHeader(*s) for s in shdrs],
        )

    def section_name(self, section: SectionHeader) -> str:
        """Resolve a section name through the section header string table."""
        if self.header.shstrndx >= len(self.section_headers):
            return ""
        strtab = self.section_headers[self.header.shstrndx]
        start = strtab.offset + section.name_offset
        end = self.data.find(b"\x00", start, strtab.offset + strtab.size)
        if end < 0:
            return ""
        return self.data[start:end].decode("ascii", errors="replace")

    def section_data(self, section: SectionHeader) -> Optional[bytes]:
        """Return the file contents of a section, or None if truncated."""
        end = section.offset + section.size
        if end > len(self.data):
            return None
        return self.data[section.offset:end]

    def load_address(self, section: SectionHeader) -> int:
        """
        Translate a section's virtual address into its physical load address.

        Uses the first program header whose memory range contains the whole
        section; sections outside every segment keep their virtual address.
        """
        for phdr in self.program_headers:
            if phdr.contains(section.addr, section.size):
                return section.addr - phdr.vaddr + phdr.paddr
        return section.addr


def _rejection(elf: Elf32File) -> Optional[str]:
    header = elf.header
    if header.machine not in SUPPORTED_MACHINES:
        return f"unsupported machine {header.machine}"
    if header.osabi != ELFOSABI_NONE:
        return f"unsupported OS/ABI {header.osabi}"
    if header.type != ET_EXEC:
        return f"not an executable (e_type={header.type})"
    for phdr in elf.program_headers:
        if phdr.type in (PT_DYNAMIC, PT_INTERP):
            return "dynamically linked"
    return None


def decode_elf(data: bytes, code_size: int) -> Optional[FirmwareImage]:
    """
    Decode raw file bytes as an ELF32 executable.

    Args:
        data: File contents
        code_size: Flash capacity of the target

    Returns:
        FirmwareImage of exactly code_size bytes, or None if rejected.

    Raises:
        AddressTooHigh: If the loadable sections span code_size or more
    """
    elf = Elf32File.parse(data)
    if elf is None:
        logger.debug("Not an ELF32 little-endian file")
        return None

    reason = _rejection(elf)
    if reason:
        logger.debug(f"ELF rejected: {reason}")
        return None

    sections = []
    for section in elf.section_headers:
        if not section.is_loadable:
            continue
        # Empty sections supply no bytes and do not count toward the extent
        if section.size == 0:
            logger.debug(f"Skipping empty section {elf.section_name(section) or '?'}")
            continue
        contents = elf.section_data(section)
        if contents is None:
            logger.debug(f"ELF rejected: section {elf.section_name(section)} is truncated")
            return None
        load = elf.load_address(section)
        logger.debug(
            f"Section {elf.section_name(section) or '?'}: "
            f"vaddr 0x{section.addr:08X} load 0x{load:08X} size {section.size}"
        )
        sections.append((load, contents))

    if not sections:
        logger.debug("ELF rejected: no non-empty PROGBITS/ALLOC sections")
        return None

    base = min(load for load, _ in sections)
    end = max(load + len(contents) for load, contents in sections)
    if end - base >= code_size:
        raise AddressTooHigh(end, code_size)

    buf = blank(code_size)
    written = 0
    for load, contents in sections:
        start = load - base
        buf[start:start + len(contents)] = contents
        written += len(contents)

    return FirmwareImage(data=bytes(buf), written_len=written, format=FileHint.ELF)
