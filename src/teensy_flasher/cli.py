"""
teensy-flasher CLI

Command-line interface for loading firmware onto Teensy boards.
"""

import json
import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from teensy_flasher import __version__
from teensy_flasher.core.actions import boot_device, flash_firmware, inspect_firmware
from teensy_flasher.core.messages import MessageLevel, WarningItem, result_to_warnings
from teensy_flasher.core.options import FlashOptions
from teensy_flasher.core.parsing import (
    parse_format_hint as _parse_format_hint_core,
    parse_mcu as _parse_mcu_core,
    parse_timeout as _parse_timeout_core,
)
from teensy_flasher.core.results import OperationResult
from teensy_flasher.image import FileHint
from teensy_flasher.models import aliases_for, list_mcus
from teensy_flasher.protocol import (
    TEENSY_PRODUCT_ID,
    TEENSY_VENDOR_ID,
    ConnectError,
    get_transport,
    list_backends,
)

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
)
logger = logging.getLogger("teensy_flasher")

# Setup Rich console
console = Console()

app = typer.Typer(help="Teensy firmware loader - program boards through the HalfKay bootloader")


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def print_structured_warning(warning: WarningItem, verbose: bool = False) -> None:
    """
    Print a structured message.

    Errors always carry their remediation hint; warnings only when verbose.
    """
    if warning.level == MessageLevel.ERROR:
        style, icon = "red", "❌"
    elif warning.level == MessageLevel.WARN:
        style, icon = "yellow", "⚠️ "
    else:
        style, icon = "blue", "ℹ️ "

    console.print(f"{icon} [{warning.code.value}] {warning.title}", style=style, markup=False)
    if warning.remediation and (verbose or warning.level == MessageLevel.ERROR):
        console.print(f"   → {warning.remediation}", style="cyan", markup=False)


def print_result(result: OperationResult, verbose: bool = False) -> None:
    """Print warnings and errors; verbose adds the summary and captured logs."""
    for warning in result_to_warnings(result):
        print_structured_warning(warning, verbose=verbose)
    if not verbose:
        return
    console.print()
    console.print(result.to_summary(), style="dim", markup=False, highlight=False)
    if result.logs:
        console.print()
        console.print("[bold]Log:[/bold]")
        for line in result.logs:
            console.print(f"  {line}", style="dim", markup=False)


def parse_mcu(value: str) -> str:
    """
    Validate a --mcu value against the registry.

    CLI wrapper around core.parsing.parse_mcu that converts ValueError to
    typer.BadParameter for proper CLI error handling.
    """
    try:
        return _parse_mcu_core(value).name
    except ValueError as e:
        raise typer.BadParameter(str(e))


def parse_format_hint(value: str) -> FileHint:
    """CLI wrapper around core.parsing.parse_format_hint."""
    try:
        return _parse_format_hint_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def parse_timeout(value: Optional[float]) -> Optional[float]:
    """CLI wrapper around core.parsing.parse_timeout."""
    try:
        return _parse_timeout_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def parse_transport(value: str) -> str:
    """Validate a --transport value."""
    if value not in list_backends():
        raise typer.BadParameter(
            f"Unknown transport '{value}'. Valid transports: {', '.join(list_backends())}"
        )
    return value


def set_verbose(verbose: bool) -> None:
    """Raise package logging to DEBUG for this run."""
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def waiting_prompt() -> None:
    print_warning("Waiting for Teensy device... (press the program button on the board)")


MCU_HELP = "Target MCU or board alias (see list-mcus)"


@app.command()
def flash(
    firmware: str = typer.Argument(..., help="Firmware file (Intel HEX or ELF)"),
    mcu: str = typer.Option(..., "--mcu", "-m", help=MCU_HELP, callback=parse_mcu),
    file_format: str = typer.Option("auto", "--format", "-f", help="File format: auto|ihex|elf"),
    wait: bool = typer.Option(False, "--wait", "-w", help="Wait for the device to appear"),
    wait_timeout: Optional[float] = typer.Option(
        None, "--wait-timeout", help="Stop waiting after SECONDS (default: forever)"
    ),
    no_reboot: bool = typer.Option(False, "--no-reboot", "-n", help="Do not reboot after programming"),
    transport: str = typer.Option("auto", "--transport", "-t", help="USB backend: auto|libusb|hid"),
    simulate: bool = typer.Option(False, "--simulate", help="Program a simulated device instead of USB"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """
    Program a firmware file and reboot the board.

    Steps:
    1. Load and decode the firmware for the target flash layout
    2. Open the bootloader (optionally waiting for it)
    3. Write every non-blank block
    4. Reboot into the new firmware (unless --no-reboot)
    """
    set_verbose(verbose)
    print_header("Flash Firmware")

    options = FlashOptions(
        hint=parse_format_hint(file_format),
        wait=wait,
        wait_timeout=parse_timeout(wait_timeout),
        reboot=not no_reboot,
        transport=parse_transport(transport),
        simulate=simulate,
    )

    console.print(f"Firmware: {firmware}")
    console.print(f"MCU: {mcu}")

    with Progress(
        TextColumn("[{task.description}]"),
        BarColumn(),
        TextColumn("[{task.percentage:.0f}%]"),
        console=console,
    ) as progress:
        task = progress.add_task("Programming...", total=None)

        def on_block(addr: int, total: int) -> None:
            progress.update(task, total=total, completed=addr)

        result = flash_firmware(
            firmware,
            mcu,
            options=options,
            progress_cb=on_block,
            on_waiting=waiting_prompt,
        )
        if result.ok:
            progress.update(task, completed=progress.tasks[0].total or 0)

    print_result(result, verbose=verbose)

    if not result.ok:
        print_error("Flash failed")
        sys.exit(1)

    table = Table(title="Flash Results")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("MCU", result.mcu)
    table.add_row("Format", result.metadata.get("format", "-"))
    table.add_row("Firmware Bytes", f"{result.bytes_len:,}")
    table.add_row("Blocks Written", str(result.metadata.get("blocks_written", 0)))
    table.add_row("SHA256", result.hashes.get("sha256", "-"))
    table.add_row("Rebooted", "No" if no_reboot else "Yes")
    console.print(table)

    print_success("Firmware flashed")


@app.command()
def boot(
    mcu: str = typer.Option(..., "--mcu", "-m", help=MCU_HELP, callback=parse_mcu),
    wait: bool = typer.Option(False, "--wait", "-w", help="Wait for the device to appear"),
    wait_timeout: Optional[float] = typer.Option(
        None, "--wait-timeout", help="Stop waiting after SECONDS (default: forever)"
    ),
    transport: str = typer.Option("auto", "--transport", "-t", help="USB backend: auto|libusb|hid"),
    simulate: bool = typer.Option(False, "--simulate", help="Use a simulated device instead of USB"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Reboot a board waiting in the bootloader, without programming."""
    set_verbose(verbose)
    print_header("Boot Device")

    options = FlashOptions(
        wait=wait,
        wait_timeout=parse_timeout(wait_timeout),
        transport=parse_transport(transport),
        simulate=simulate,
    )
    result = boot_device(mcu, options=options, on_waiting=waiting_prompt)
    print_result(result, verbose=verbose)

    if not result.ok:
        print_error("Boot failed")
        sys.exit(1)
    print_success("Boot command sent")


@app.command()
def inspect(
    firmware: str = typer.Argument(..., help="Firmware file (Intel HEX or ELF)"),
    mcu: str = typer.Option(..., "--mcu", "-m", help=MCU_HELP, callback=parse_mcu),
    file_format: str = typer.Option("auto", "--format", "-f", help="File format: auto|ihex|elf"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """Decode a firmware file and report what would be written."""
    result = inspect_firmware(firmware, mcu, parse_format_hint(file_format))

    if output_json:
        console.print(json.dumps(result.to_dict(), indent=2), markup=False, highlight=False, soft_wrap=True)
        if not result.ok:
            sys.exit(1)
        return

    print_header("Firmware Inspection")
    print_result(result)
    if not result.ok:
        sys.exit(1)

    meta = result.metadata
    table = Table(title="Image Properties")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("File", firmware)
    table.add_row("MCU", result.mcu)
    table.add_row("Format", meta["format"])
    table.add_row("Image Size", f"{meta['image_len']:,} bytes")
    table.add_row("Firmware Bytes", f"{result.bytes_len:,} ({meta['usage']:.1%} of flash)")
    table.add_row("Blocks To Write", f"{meta['blocks_to_write']} of {meta['block_count']} ({meta['block_size']} bytes each)")
    table.add_row("SHA256", result.hashes["sha256"])
    console.print(table)

    print_success("Inspection complete")


@app.command("list-mcus")
def list_mcus_cmd() -> None:
    """List supported MCUs, their aliases and flash layout."""
    print_header("Supported MCUs")

    table = Table(title="MCU Registry")
    table.add_column("MCU", style="cyan")
    table.add_column("Aliases", style="magenta")
    table.add_column("Flash", style="green")
    table.add_column("Block Size", style="yellow")

    for mcu in list_mcus():
        table.add_row(
            mcu.name,
            ", ".join(aliases_for(mcu.name)) or "-",
            f"{mcu.code_size:,} bytes",
            str(mcu.block_size),
        )

    console.print(table)


@app.command()
def devices(
    transport: str = typer.Option("auto", "--transport", "-t", help="USB backend: auto|libusb|hid"),
) -> None:
    """List Teensy boards currently waiting in the bootloader."""
    print_header("Bootloader Devices")

    try:
        backend = get_transport(parse_transport(transport))
        found = backend.list_devices(TEENSY_VENDOR_ID, TEENSY_PRODUCT_ID)
    except (ConnectError, ImportError) as e:
        print_error(f"Enumeration failed: {e}")
        sys.exit(1)

    if not found:
        print_warning("No bootloader devices found (press the program button on the board)")
        return

    table = Table(title="HalfKay Devices")
    table.add_column("Path", style="cyan")
    table.add_column("VID", style="green")
    table.add_column("PID", style="green")
    for dev in found:
        table.add_row(dev["path"], dev["vendor_id"], dev["product_id"])
    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"teensy-flasher {__version__}")


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        console.print(f"\n[red bold]Fatal error:[/red bold] {e}", highlight=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
