"""
HID transport (hidapi).

Sends bootloader frames as HID output reports. Used on Windows, where the
bootloader is only reachable through the HID class driver.
"""

import logging
import time
from typing import Dict, List, Optional

try:
    import hid
except ImportError:
    raise ImportError("hidapi required: pip install hidapi")

from .transport import ConnectError, DeviceNotFound, WriteTimeout

logger = logging.getLogger(__name__)

REPORT_ID = 0x00
RETRY_DELAY = 0.01


class HidTransport:
    """Output-report transport for the Teensy bootloader."""

    def __init__(self, device, path: bytes = b""):
        self.device = device
        self.path = path
        self._closed = False

    @classmethod
    def connect(cls, vendor_id: int, product_id: int) -> "HidTransport":
        """
        Open the first matching HID device.

        Raises:
            DeviceNotFound: If no matching device is attached
            ConnectError: If the device cannot be opened
        """
        matches = hid.enumerate(vendor_id, product_id)
        if not matches:
            raise DeviceNotFound(vendor_id, product_id)

        path = matches[0]["path"]
        device = hid.device()
        try:
            device.open_path(path)
        except (OSError, ValueError) as e:
            raise ConnectError(f"Cannot open HID device {path!r}: {e}") from e

        logger.debug(f"Opened HID device {path!r}")
        return cls(device, path)

    def write(self, data: bytes, timeout: float) -> None:
        """
        Send one frame as an output report, retrying until the deadline.

        Errors from individual attempts are retried; the device often
        refuses writes while it is erasing flash.

        Raises:
            WriteTimeout: If no attempt succeeded before the deadline
        """
        report = bytes([REPORT_ID]) + bytes(data)
        begin = time.monotonic()
        while time.monotonic() - begin < timeout:
            try:
                written = self.device.write(report)
            except (OSError, ValueError) as e:
                logger.debug(f"HID write attempt failed: {e}")
                written = -1
            if written > 0:
                return
            time.sleep(RETRY_DELAY)
        raise WriteTimeout(timeout)

    def close(self) -> None:
        """Close the HID handle."""
        if self._closed:
            return
        self._closed = True
        self.device.close()

    def __enter__(self) -> "HidTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def list_devices(vendor_id: int, product_id: int) -> List[Dict[str, Optional[str]]]:
        """Enumerate attached devices matching the IDs."""
        return [
            {
                "path": d["path"].decode("utf-8", errors="replace")
                if isinstance(d["path"], bytes) else str(d["path"]),
                "vendor_id": f"{d['vendor_id']:04X}",
                "product_id": f"{d['product_id']:04X}",
            }
            for d in hid.enumerate(vendor_id, product_id)
        ]
