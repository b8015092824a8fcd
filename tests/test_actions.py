"""Tests for the core flash/boot/inspect workflows."""

import pytest

from conftest import hex_file, hex_line
from teensy_flasher.core import (
    FlashOptions,
    MessageLevel,
    OperationResult,
    WarningCode,
    boot_device,
    code_for_exception,
    flash_firmware,
    inspect_firmware,
    parse_format_hint,
    parse_mcu,
    parse_timeout,
    result_to_warnings,
)
from teensy_flasher.formats.ihex import DATA, EOF
from teensy_flasher.image import FileHint
from teensy_flasher.protocol import (
    SimulatedDevice,
    SimulatedTransport,
    get_transport,
    list_backends,
)

FIRMWARE = hex_file(
    hex_line(DATA, 0x0000, b"\x00\x18\x00\x20\xC1\x00\x00\x00"),
    hex_line(DATA, 0x0400, b"\x70\x47\x70\x47"),
    hex_line(EOF, 0),
)


@pytest.fixture
def firmware(write_firmware):
    return write_firmware(FIRMWARE)


class TestParsing:
    def test_parse_mcu(self):
        assert parse_mcu("TEENSYLC").name == "mkl26z64"
        with pytest.raises(ValueError, match="Unknown MCU"):
            parse_mcu("teensylc")

    @pytest.mark.parametrize("value,expected", [
        ("auto", FileHint.ANY),
        ("ANY", FileHint.ANY),
        ("hex", FileHint.IHEX),
        ("ihex", FileHint.IHEX),
        (" ELF ", FileHint.ELF),
    ])
    def test_parse_format_hint(self, value, expected):
        assert parse_format_hint(value) == expected

    def test_parse_format_hint_invalid(self):
        with pytest.raises(ValueError):
            parse_format_hint("bin")

    def test_parse_timeout(self):
        assert parse_timeout(None) is None
        assert parse_timeout(0) is None
        assert parse_timeout(2) == 2.0
        with pytest.raises(ValueError):
            parse_timeout(-1)


class TestFlash:
    def test_flash_and_boot(self, firmware):
        device = SimulatedDevice()
        seen = []
        result = flash_firmware(
            firmware, "TEENSYLC",
            transport_factory=device.connect,
            progress_cb=lambda addr, total: seen.append((addr, total)),
        )

        assert result.ok, result.errors
        assert result.mcu == "mkl26z64"
        assert result.bytes_len == 12
        assert result.metadata["format"] == "IHEX"
        assert result.metadata["blocks_written"] == 2
        assert seen == [(0, 63488), (1024, 63488)]
        # two blocks then the boot frame
        assert len(device.frames) == 3
        assert device.frames[-1][:3] == b"\xFF\xFF\xFF"
        assert device.closes == 1

    def test_no_reboot(self, firmware):
        device = SimulatedDevice()
        result = flash_firmware(
            firmware, "TEENSYLC",
            options=FlashOptions(reboot=False),
            transport_factory=device.connect,
        )
        assert result.ok
        assert len(device.frames) == 2
        assert any("Reboot skipped" in w for w in result.warnings)

    def test_simulate_option(self, firmware):
        result = flash_firmware(firmware, "TEENSY31", options=FlashOptions(simulate=True))
        assert result.ok
        device = result.metadata["simulated_device"]
        # data lands in 1024-byte blocks 0 and 1, then the boot frame
        assert [len(frame) for frame in device.frames] == [1088, 1088, 1088]
        assert device.frames[1][:3] == b"\x00\x04\x00"
        codes = [item.code for item in result_to_warnings(result)]
        assert WarningCode.W_SIMULATED in codes

    def test_unknown_mcu(self, firmware):
        result = flash_firmware(firmware, "teensy99", transport_factory=SimulatedDevice().connect)
        assert not result.ok
        assert result.code == WarningCode.E_UNKNOWN_MCU

    def test_invalid_file_does_not_connect(self, write_firmware):
        device = SimulatedDevice()
        result = flash_firmware(write_firmware(b"\x00garbage"), "TEENSYLC", transport_factory=device.connect)
        assert not result.ok
        assert result.code == WarningCode.E_NOT_VALID_FILE
        assert device.connects == 0

    def test_missing_file(self, tmp_path):
        result = flash_firmware(tmp_path / "nope.hex", "TEENSYLC", transport_factory=SimulatedDevice().connect)
        assert result.code == WarningCode.E_FILE_IO

    def test_firmware_too_large(self, write_firmware):
        device = SimulatedDevice()
        path = write_firmware(hex_file(hex_line(DATA, 0x7DFF, b"\x01"), hex_line(EOF, 0)))
        result = flash_firmware(path, "TEENSY2", transport_factory=device.connect)
        assert result.code == WarningCode.E_ADDRESS_TOO_HIGH
        assert device.connects == 0

    def test_device_absent(self, firmware):
        result = flash_firmware(firmware, "TEENSYLC", transport_factory=SimulatedDevice(absent_polls=1).connect)
        assert not result.ok
        assert result.code == WarningCode.W_DEVICE_NOT_FOUND

    def test_wait_for_device(self, firmware):
        device = SimulatedDevice(absent_polls=2)
        prompts = []
        result = flash_firmware(
            firmware, "TEENSYLC",
            options=FlashOptions(wait=True, poll_interval=0.0),
            transport_factory=device.connect,
            on_waiting=lambda: prompts.append(True),
        )
        assert result.ok
        assert device.connects == 3
        assert prompts == [True]

    def test_write_timeout(self, firmware):
        device = SimulatedDevice(timeout_on_write=1)
        result = flash_firmware(firmware, "TEENSYLC", transport_factory=device.connect)
        assert not result.ok
        assert result.code == WarningCode.E_WRITE_TIMEOUT
        assert "0x000400" in result.errors[0]
        assert device.closes == 1

    def test_boot_write_failure(self, firmware):
        device = SimulatedDevice(fail_on_write=2)
        result = flash_firmware(firmware, "TEENSYLC", transport_factory=device.connect)
        assert not result.ok
        assert result.errors[0].startswith("Boot failed: ")
        assert result.metadata["blocks_written"] == 2

    def test_logs_are_captured(self, firmware):
        result = flash_firmware(firmware, "TEENSYLC", transport_factory=SimulatedDevice().connect)
        assert any("Programmed 2 blocks" in line for line in result.logs)


class TestBoot:
    def test_boot_only(self):
        device = SimulatedDevice()
        result = boot_device("TEENSY2", transport_factory=device.connect)
        assert result.ok
        assert device.frames == [b"\xFF\xFF\xFF" + bytes(127)]
        assert device.closes == 1

    def test_boot_connect_error(self):
        result = boot_device("TEENSY2", transport_factory=SimulatedDevice(connect_error="busy").connect)
        assert result.code == WarningCode.E_CONNECT

    def test_boot_unknown_mcu(self):
        assert boot_device("nope").code == WarningCode.E_UNKNOWN_MCU


class TestInspect:
    def test_inspect(self, firmware):
        result = inspect_firmware(firmware, "TEENSYLC")
        assert result.ok
        assert result.metadata["blocks_to_write"] == 2
        assert result.metadata["block_count"] == 124
        assert result.metadata["image_len"] == 63488
        assert len(result.hashes["sha256"]) == 64

    def test_inspect_with_wrong_hint(self, firmware):
        result = inspect_firmware(firmware, "TEENSYLC", FileHint.ELF)
        assert result.code == WarningCode.E_NOT_VALID_FILE


class TestMessages:
    def test_error_items_use_result_code(self):
        result = OperationResult.failure("flash", "boom", WarningCode.E_CONNECT)
        items = result_to_warnings(result)
        assert items[0].level == MessageLevel.ERROR
        assert items[0].code == WarningCode.E_CONNECT
        assert items[0].remediation

    def test_unmapped_exception(self):
        assert code_for_exception(RuntimeError("x")) == WarningCode.E_UNKNOWN

    def test_to_dict_is_serializable(self):
        result = OperationResult.success("inspect", mcu="mkl26z64")
        result.metadata["raw"] = b"\x00"
        data = result.to_dict()
        assert "raw" not in data["metadata"]
        assert data["code"] is None

    def test_summary_for_success(self):
        result = OperationResult.success("flash", mcu="mkl26z64", bytes_len=12288)
        result.hashes["sha256"] = "ab" * 32
        result.add_warning("Simulation mode - no device was written")
        assert result.to_summary().splitlines() == [
            "[SUCCESS] flash",
            "  MCU: mkl26z64",
            "  Bytes: 12,288",
            "  sha256: abababababababab...",
            "  Warnings:",
            "    - Simulation mode - no device was written",
        ]

    def test_summary_for_failure(self):
        result = OperationResult.failure("boot", "Device not found", WarningCode.E_CONNECT)
        assert result.to_summary().splitlines() == [
            "[FAILED] boot",
            "  Errors:",
            "    - Device not found",
        ]


class TestBackends:
    def test_list_backends(self):
        assert list_backends() == ["auto", "hid", "libusb", "simulated"]

    def test_simulated_backend(self):
        assert get_transport("simulated") is SimulatedTransport

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_transport("serial")
