"""
HalfKay Bootloader Protocol Implementation

Frame construction for the Teensy bootloader ("HalfKay").

Each USB write carries one flash block prefixed by an address header:

    block_size <= 256 (AVR):   [ addr (2 bytes LE) | block ]
        code_size >= 64K:      [ addr >> 8 (2 bytes LE) | block ]
    block_size 512/1024 (ARM): [ addr (3 bytes LE) | 61 zero bytes | block ]

Rebooting into the application is a frame of the same length whose first
three bytes are 0xFF and the rest zero.

Protocol sequence:
1. Write block 0 (always, up to 5 s while the bootloader erases flash)
2. Write every block that is not entirely 0xFF (500 ms each)
3. Write the boot frame (500 ms)
"""

from typing import Iterator, Tuple

from teensy_flasher.image import ERASED_BYTE

# USB identifiers of the bootloader
TEENSY_VENDOR_ID = 0x16C0
TEENSY_PRODUCT_ID = 0x0478

BOOT_TRIGGER = b"\xFF\xFF\xFF"

# Timeouts (seconds)
FIRST_BLOCK_TIMEOUT = 5.0
BLOCK_TIMEOUT = 0.5
BOOT_TIMEOUT = 0.5

# Interval between connect attempts while waiting for the device
POLL_INTERVAL = 0.25

SMALL_HEADER_SIZE = 2
LARGE_HEADER_SIZE = 64
LARGE_BLOCK_SIZES = (512, 1024)


class ProgramError(Exception):
    """Errors raised while programming a device."""


class UnknownBlockSize(ProgramError):
    """Block size does not match any known bootloader framing."""

    def __init__(self, block_size: int):
        self.block_size = block_size
        super().__init__(f"Unknown block size {block_size}")


class BinaryRemainder(ProgramError):
    """Image length is not a whole number of blocks."""

    def __init__(self, length: int, block_size: int):
        self.length = length
        self.block_size = block_size
        super().__init__(
            f"Image length {length} is not a multiple of block size {block_size} "
            f"({length % block_size} bytes left over)"
        )


class BlockWriteError(ProgramError):
    """Writing a block failed; the device may be partially programmed."""

    def __init__(self, addr: int, reason: Exception):
        self.addr = addr
        self.reason = reason
        super().__init__(f"Write failed at 0x{addr:06X}: {reason}")


def header_size_for(block_size: int) -> int:
    """Return the address header size used with a block size."""
    if block_size in LARGE_BLOCK_SIZES:
        return LARGE_HEADER_SIZE
    return SMALL_HEADER_SIZE


def encode_header(addr: int, block_size: int, code_size: int) -> bytes:
    """
    Build the address header for a block.

    Args:
        addr: Flash address of the block
        block_size: Bootloader block size
        code_size: Flash capacity (selects the 16-bit address encoding)

    Returns:
        2- or 64-byte header

    Raises:
        UnknownBlockSize: If block_size has no known framing
    """
    if block_size <= 256:
        if code_size < 0x10000:
            return bytes([addr & 0xFF, (addr >> 8) & 0xFF])
        # Blocks are 256-aligned, so the low address byte is always zero
        return bytes([(addr >> 8) & 0xFF, (addr >> 16) & 0xFF])
    if block_size in LARGE_BLOCK_SIZES:
        header = bytearray(LARGE_HEADER_SIZE)
        header[0:3] = (addr & 0xFFFFFF).to_bytes(3, "little")
        return bytes(header)
    raise UnknownBlockSize(block_size)


def build_block_frame(addr: int, block: bytes, block_size: int, code_size: int) -> bytes:
    """Build the complete write frame (header + block) for one block."""
    return encode_header(addr, block_size, code_size) + bytes(block)


def build_boot_frame(block_size: int, header_size: int) -> bytes:
    """Build the reboot frame: 0xFF 0xFF 0xFF followed by zero padding."""
    frame = bytearray(block_size + header_size)
    frame[0:3] = BOOT_TRIGGER
    return bytes(frame)


def is_blank(block: bytes) -> bool:
    """True if every byte of a block is the erased value."""
    return block.count(ERASED_BYTE) == len(block)


def iter_blocks(image: bytes, block_size: int) -> Iterator[Tuple[int, bytes]]:
    """
    Yield (addr, block) for every block that must be written.

    Blank blocks are skipped, except block 0, which is always written.
    """
    for addr in range(0, len(image), block_size):
        block = image[addr:addr + block_size]
        if addr != 0 and is_blank(block):
            continue
        yield addr, block


def block_timeout(addr: int) -> float:
    """Write timeout for the block at addr."""
    return FIRST_BLOCK_TIMEOUT if addr == 0 else BLOCK_TIMEOUT
