"""Tests for the USB transport backends, with the USB libraries mocked out."""

from unittest.mock import MagicMock

import pytest

from teensy_flasher.protocol import (
    ConnectError,
    DeviceNotFound,
    SimulatedDevice,
    WriteError,
    WriteTimeout,
)

usb = pytest.importorskip("usb")
hid = pytest.importorskip("hid")

import usb.core  # noqa: E402
import usb.util  # noqa: E402

from teensy_flasher.protocol.hid_transport import HidTransport  # noqa: E402
from teensy_flasher.protocol.libusb_transport import LibUsbTransport  # noqa: E402


class TestLibUsbTransport:
    def test_write_uses_set_report(self):
        device = MagicMock()
        device.ctrl_transfer.return_value = 130
        frame = b"\x00" * 130

        LibUsbTransport(device).write(frame, 0.5)

        args, kwargs = device.ctrl_transfer.call_args
        assert args == (0x21, 9, 0x0200, 0, frame)
        assert 0 < kwargs["timeout"] <= 500

    def test_short_write_is_retried(self):
        device = MagicMock()
        device.ctrl_transfer.side_effect = [0, 64]
        LibUsbTransport(device).write(b"\x00" * 64, 1.0)
        assert device.ctrl_transfer.call_count == 2

    def test_usb_timeout_until_deadline(self):
        device = MagicMock()
        device.ctrl_transfer.side_effect = usb.core.USBTimeoutError("timeout")
        with pytest.raises(WriteTimeout):
            LibUsbTransport(device).write(b"\x00" * 64, 0.05)
        assert device.ctrl_transfer.call_count >= 1

    def test_usb_error_is_write_error(self):
        device = MagicMock()
        device.ctrl_transfer.side_effect = usb.core.USBError("pipe error")
        with pytest.raises(WriteError) as exc_info:
            LibUsbTransport(device).write(b"\x00" * 64, 0.5)
        assert not isinstance(exc_info.value, WriteTimeout)

    def test_close_once(self, monkeypatch):
        release = MagicMock()
        dispose = MagicMock()
        monkeypatch.setattr(usb.util, "release_interface", release)
        monkeypatch.setattr(usb.util, "dispose_resources", dispose)

        with LibUsbTransport(MagicMock()) as transport:
            pass
        transport.close()

        assert release.call_count == 1
        assert dispose.call_count == 1

    def test_connect_absent(self, monkeypatch):
        monkeypatch.setattr(usb.core, "find", MagicMock(return_value=None))
        with pytest.raises(DeviceNotFound):
            LibUsbTransport.connect(0x16C0, 0x0478)

    def test_connect_no_backend(self, monkeypatch):
        monkeypatch.setattr(usb.core, "find", MagicMock(side_effect=usb.core.NoBackendError("no backend")))
        with pytest.raises(ConnectError) as exc_info:
            LibUsbTransport.connect(0x16C0, 0x0478)
        assert not isinstance(exc_info.value, DeviceNotFound)


class TestHidTransport:
    def test_write_prepends_report_id(self):
        device = MagicMock()
        device.write.return_value = 131
        HidTransport(device).write(b"\xAA" * 130, 0.5)
        device.write.assert_called_once_with(b"\x00" + b"\xAA" * 130)

    def test_refused_writes_time_out(self):
        device = MagicMock()
        device.write.side_effect = OSError("device busy")
        with pytest.raises(WriteTimeout):
            HidTransport(device).write(b"\x00" * 64, 0.05)

    def test_connect_absent(self, monkeypatch):
        monkeypatch.setattr(hid, "enumerate", MagicMock(return_value=[]))
        with pytest.raises(DeviceNotFound):
            HidTransport.connect(0x16C0, 0x0478)

    def test_list_devices(self, monkeypatch):
        monkeypatch.setattr(hid, "enumerate", MagicMock(return_value=[
            {"path": b"/dev/hidraw3", "vendor_id": 0x16C0, "product_id": 0x0478},
        ]))
        assert HidTransport.list_devices(0x16C0, 0x0478) == [
            {"path": "/dev/hidraw3", "vendor_id": "16C0", "product_id": "0478"},
        ]

    def test_close_once(self):
        device = MagicMock()
        transport = HidTransport(device)
        transport.close()
        transport.close()
        device.close.assert_called_once()


class TestSimulatedTransport:
    def test_closed_transport_rejects_writes(self):
        device = SimulatedDevice()
        transport = device.connect(0x16C0, 0x0478)
        transport.close()
        with pytest.raises(WriteError):
            transport.write(b"\x00", 0.5)
        assert device.closes == 1
