"""
libusb transport (pyusb).

Sends bootloader frames as HID SET_REPORT control transfers. Used on Linux
and macOS.
"""

import logging
import time
from typing import Dict, List, Optional

try:
    import usb.core
    import usb.util
except ImportError:
    raise ImportError("pyusb required: pip install pyusb")

from .transport import ConnectError, DeviceNotFound, WriteError, WriteTimeout

logger = logging.getLogger(__name__)

# HID class SET_REPORT (output report 0) on interface 0
REQUEST_TYPE = 0x21
REQUEST_SET_REPORT = 0x09
REPORT_VALUE = 0x0200
INTERFACE = 0
RETRY_DELAY = 0.01


class LibUsbTransport:
    """
    Control-transfer transport for the Teensy bootloader.

    Example:
        transport = LibUsbTransport.connect(0x16C0, 0x0478)
        transport.write(frame, timeout=0.5)
        transport.close()
    """

    def __init__(self, device):
        self.device = device
        self._closed = False

    @classmethod
    def connect(cls, vendor_id: int, product_id: int) -> "LibUsbTransport":
        """
        Open and claim the first matching device.

        Raises:
            DeviceNotFound: If no matching device is attached
            ConnectError: If the device cannot be opened or claimed
        """
        try:
            device = usb.core.find(idVendor=vendor_id, idProduct=product_id)
        except (usb.core.USBError, usb.core.NoBackendError) as e:
            raise ConnectError(f"USB enumeration failed: {e}") from e

        if device is None:
            raise DeviceNotFound(vendor_id, product_id)

        try:
            try:
                if device.is_kernel_driver_active(INTERFACE):
                    device.detach_kernel_driver(INTERFACE)
                    logger.debug("Detached kernel driver from interface 0")
            except NotImplementedError:
                pass
            usb.util.claim_interface(device, INTERFACE)
        except usb.core.USBError as e:
            usb.util.dispose_resources(device)
            raise ConnectError(f"Cannot open device {vendor_id:04X}:{product_id:04X}: {e}") from e

        logger.debug(f"Opened {vendor_id:04X}:{product_id:04X} on bus {device.bus} address {device.address}")
        return cls(device)

    def write(self, data: bytes, timeout: float) -> None:
        """
        Send one frame, retrying short or timed-out transfers until the deadline.

        Raises:
            WriteTimeout: If the device never accepted the whole frame
            WriteError: On any other USB error
        """
        begin = time.monotonic()
        while True:
            left = timeout - (time.monotonic() - begin)
            if left <= 0:
                break
            try:
                written = self.device.ctrl_transfer(
                    REQUEST_TYPE,
                    REQUEST_SET_REPORT,
                    REPORT_VALUE,
                    INTERFACE,
                    data,
                    timeout=max(1, int(left * 1000)),
                )
            except usb.core.USBTimeoutError:
                written = 0
            except usb.core.USBError as e:
                raise WriteError(f"USB write failed: {e}") from e

            if written >= len(data):
                return
            time.sleep(RETRY_DELAY)
        raise WriteTimeout(timeout)

    def close(self) -> None:
        """Release the interface and device handle."""
        if self._closed:
            return
        self._closed = True
        try:
            usb.util.release_interface(self.device, INTERFACE)
        except usb.core.USBError as e:
            logger.debug(f"Release failed (device probably rebooted): {e}")
        usb.util.dispose_resources(self.device)

    def __enter__(self) -> "LibUsbTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def list_devices(vendor_id: int, product_id: int) -> List[Dict[str, Optional[str]]]:
        """Enumerate attached devices matching the IDs."""
        try:
            found = usb.core.find(find_all=True, idVendor=vendor_id, idProduct=product_id)
            devices = list(found)
        except (usb.core.USBError, usb.core.NoBackendError) as e:
            raise ConnectError(f"USB enumeration failed: {e}") from e

        return [
            {
                "path": f"bus {dev.bus} address {dev.address}",
                "vendor_id": f"{dev.idVendor:04X}",
                "product_id": f"{dev.idProduct:04X}",
            }
            for dev in devices
        ]
