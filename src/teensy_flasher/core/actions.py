"""
Core workflow actions for teensy-flasher.

Each action resolves the target, runs the loader and protocol layers, and
reports the outcome as an OperationResult. Loader, transport and protocol
errors become failed results with a stable code; anything else propagates.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, Union

from teensy_flasher.image import FileHint, FirmwareLoadError
from teensy_flasher.loader import load_file
from teensy_flasher.models import McuDescriptor
from teensy_flasher.protocol import (
    DeviceSession,
    ProgramError,
    SimulatedDevice,
    TransportError,
    TransportFactory,
    get_transport,
    iter_blocks,
    wait_for_device,
)

from .messages import WarningCode, code_for_exception
from .options import FlashOptions
from .parsing import UnknownMcu, parse_mcu
from .results import OperationResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "teensy_flasher"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def _resolve_factory(
    options: FlashOptions,
    transport_factory: Optional[TransportFactory],
    result: OperationResult,
) -> TransportFactory:
    if transport_factory is not None:
        return transport_factory
    if options.simulate:
        device = SimulatedDevice()
        result.metadata["simulated_device"] = device
        result.add_warning("Simulation mode - no device was written")
        return device.connect
    return get_transport(options.transport).connect


def _open_session(
    mcu: McuDescriptor,
    options: FlashOptions,
    factory: TransportFactory,
    on_waiting: Optional[Callable[[], None]],
) -> DeviceSession:
    if options.wait:
        return wait_for_device(
            mcu,
            factory,
            timeout=options.wait_timeout,
            interval=options.poll_interval,
            on_waiting=on_waiting,
        )
    return DeviceSession.connect(mcu, factory)


def _fail(result: OperationResult, exc: Exception, prefix: str = "") -> OperationResult:
    result.add_error(f"{prefix}{exc}", code_for_exception(exc))
    return result


def inspect_firmware(
    path: Union[str, Path],
    mcu_name: str,
    hint: FileHint = FileHint.ANY,
) -> OperationResult:
    """
    Load a firmware file without touching any device.

    Returns:
        OperationResult with:
            - bytes_len: bytes supplied by the file
            - hashes["sha256"]: digest of the flat image
            - metadata["format"], ["image_len"], ["blocks_to_write"], ["block_count"]
    """
    with _capture_logs() as logs:
        try:
            mcu = parse_mcu(mcu_name)
        except UnknownMcu as e:
            return OperationResult.failure("inspect", str(e), WarningCode.E_UNKNOWN_MCU, logs=logs)

        result = OperationResult.success("inspect", mcu=mcu.name, logs=logs)
        try:
            image = load_file(path, hint, mcu)
        except FirmwareLoadError as e:
            return _fail(result, e)

        result.bytes_len = image.written_len
        result.hashes["sha256"] = image.sha256
        result.metadata.update({
            "format": image.format.name,
            "image_len": len(image),
            "block_size": mcu.block_size,
            "block_count": mcu.block_count,
            "blocks_to_write": sum(1 for _ in iter_blocks(image.data, mcu.block_size)),
            "usage": image.written_len / mcu.code_size,
        })
        return result


def flash_firmware(
    path: Union[str, Path],
    mcu_name: str,
    options: Optional[FlashOptions] = None,
    transport_factory: Optional[TransportFactory] = None,
    progress_cb: Optional[ProgressCallback] = None,
    on_waiting: Optional[Callable[[], None]] = None,
) -> OperationResult:
    """
    Complete workflow: resolve target -> load image -> connect -> program -> boot.

    Args:
        path: Firmware file (Intel HEX or ELF32)
        mcu_name: Target name or alias
        options: Run configuration (defaults to FlashOptions())
        transport_factory: Connect function; defaults to the backend named
            in options.transport (or a simulated device with options.simulate)
        progress_cb: Optional callback(addr, code_size), before each block write
        on_waiting: Called once when waiting for the device to appear

    Returns:
        OperationResult; metadata["blocks_written"] counts block writes
    """
    options = options or FlashOptions()

    with _capture_logs() as logs:
        try:
            mcu = parse_mcu(mcu_name)
        except UnknownMcu as e:
            return OperationResult.failure("flash", str(e), WarningCode.E_UNKNOWN_MCU, logs=logs)

        result = OperationResult.success("flash", mcu=mcu.name, logs=logs)

        try:
            image = load_file(path, options.hint, mcu)
        except FirmwareLoadError as e:
            return _fail(result, e)

        result.bytes_len = image.written_len
        result.hashes["sha256"] = image.sha256
        result.metadata["format"] = image.format.name

        factory = _resolve_factory(options, transport_factory, result)
        try:
            session = _open_session(mcu, options, factory, on_waiting)
        except TransportError as e:
            return _fail(result, e)

        with session:
            def on_block(addr: int) -> None:
                if progress_cb:
                    progress_cb(addr, mcu.code_size)

            try:
                result.metadata["blocks_written"] = session.program(image.data, on_block)
            except (ProgramError, TransportError) as e:
                return _fail(result, e)

            if not options.reboot:
                result.add_warning("Reboot skipped - board is still in the bootloader")
                return result

            try:
                session.boot()
            except TransportError as e:
                result.add_warning("The board may have started anyway; the boot write was not acknowledged")
                return _fail(result, e, prefix="Boot failed: ")

        return result


def boot_device(
    mcu_name: str,
    options: Optional[FlashOptions] = None,
    transport_factory: Optional[TransportFactory] = None,
    on_waiting: Optional[Callable[[], None]] = None,
) -> OperationResult:
    """Reboot an attached bootloader into its application (boot-only mode)."""
    options = options or FlashOptions()

    with _capture_logs() as logs:
        try:
            mcu = parse_mcu(mcu_name)
        except UnknownMcu as e:
            return OperationResult.failure("boot", str(e), WarningCode.E_UNKNOWN_MCU, logs=logs)

        result = OperationResult.success("boot", mcu=mcu.name, logs=logs)
        factory = _resolve_factory(options, transport_factory, result)
        try:
            with _open_session(mcu, options, factory, on_waiting) as session:
                session.boot()
        except TransportError as e:
            return _fail(result, e)
        return result
