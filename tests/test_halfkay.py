"""Tests for HalfKay frame construction."""

import pytest

from teensy_flasher.protocol.halfkay import (
    BLOCK_TIMEOUT,
    FIRST_BLOCK_TIMEOUT,
    UnknownBlockSize,
    block_timeout,
    build_block_frame,
    build_boot_frame,
    encode_header,
    header_size_for,
    is_blank,
    iter_blocks,
)


class TestHeaders:
    def test_small_flash_uses_plain_address(self):
        """Below 64K the 16-bit address is sent as-is, little endian."""
        assert encode_header(0x1280, 128, 32256) == b"\x80\x12"
        assert encode_header(0x0000, 128, 15872) == b"\x00\x00"

    def test_large_avr_flash_sends_address_shifted(self):
        """At 64K and above the address is sent divided by 256."""
        assert encode_header(0x10000, 256, 130048) == b"\x00\x01"
        assert encode_header(0x10100, 256, 130048) == b"\x01\x01"
        assert encode_header(0x1FB00, 256, 130048) == b"\xFB\x01"

    def test_arm_header_is_64_bytes(self):
        header = encode_header(0x012345, 1024, 262144)
        assert len(header) == 64
        assert header[:3] == b"\x45\x23\x01"
        assert header[3:] == bytes(61)

    def test_arm_header_512(self):
        header = encode_header(0x0600, 512, 63488)
        assert header[:3] == b"\x00\x06\x00"
        assert len(header) == 64

    @pytest.mark.parametrize("block_size", [300, 2048, 4096])
    def test_unknown_block_size(self, block_size):
        with pytest.raises(UnknownBlockSize) as exc_info:
            encode_header(0, block_size, 1048576)
        assert exc_info.value.block_size == block_size

    @pytest.mark.parametrize("block_size,expected", [
        (128, 2), (256, 2), (512, 64), (1024, 64),
    ])
    def test_header_size_for(self, block_size, expected):
        assert header_size_for(block_size) == expected


class TestFrames:
    def test_block_frame_is_header_plus_block(self):
        block = bytes(range(128))
        frame = build_block_frame(0x80, block, 128, 32256)
        assert frame == b"\x80\x00" + block

    def test_boot_frame_small(self):
        frame = build_boot_frame(128, 2)
        assert len(frame) == 130
        assert frame[:3] == b"\xFF\xFF\xFF"
        assert frame[3:] == bytes(127)

    def test_boot_frame_large(self):
        frame = build_boot_frame(1024, 64)
        assert len(frame) == 1088
        assert frame[:3] == b"\xFF\xFF\xFF"
        assert frame[3:] == bytes(1085)


class TestBlocks:
    def test_is_blank(self):
        assert is_blank(b"\xFF" * 16)
        assert not is_blank(b"\xFF" * 15 + b"\x00")

    def test_first_block_always_written(self):
        image = b"\xFF" * 512
        assert [addr for addr, _ in iter_blocks(image, 128)] == [0]

    def test_blank_blocks_skipped(self):
        image = bytearray(b"\xFF" * 1024)
        image[300] = 0x00
        image[1023] = 0x12
        blocks = list(iter_blocks(bytes(image), 256))
        assert [addr for addr, _ in blocks] == [0, 256, 768]
        assert all(len(block) == 256 for _, block in blocks)

    def test_timeouts(self):
        assert block_timeout(0) == FIRST_BLOCK_TIMEOUT == 5.0
        assert block_timeout(512) == BLOCK_TIMEOUT == 0.5
