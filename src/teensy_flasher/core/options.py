"""
Run configuration for flashing workflows.

Built once by the CLI from its options and passed explicitly to the actions;
nothing here is global.
"""

from dataclasses import dataclass
from typing import Optional

from teensy_flasher.image import FileHint
from teensy_flasher.protocol import POLL_INTERVAL


@dataclass
class FlashOptions:
    """
    Options controlling a flash or boot run.

    Attributes:
        hint: Firmware formats to try when loading
        wait: Poll until the bootloader appears instead of failing at once
        wait_timeout: Give up waiting after this many seconds (None = forever)
        poll_interval: Delay between connect attempts while waiting
        reboot: Send the boot frame after programming
        transport: Backend name ("auto", "libusb", "hid", "simulated")
        simulate: Use a recording device instead of USB
    """
    hint: FileHint = FileHint.ANY
    wait: bool = False
    wait_timeout: Optional[float] = None
    poll_interval: float = POLL_INTERVAL
    reboot: bool = True
    transport: str = "auto"
    simulate: bool = False
