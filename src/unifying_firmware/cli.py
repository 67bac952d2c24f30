"""
Unifying Firmware Tool CLI

Command-line interface for inspecting and downgrading receiver firmware images.
"""

import sys
import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler

from unifying_firmware import __version__
from unifying_firmware.core.parsing import (
    parse_offset as _parse_offset_core,
    parse_input_format as _parse_input_format_core,
)
from unifying_firmware.core.safety import SafetyContext
from unifying_firmware.core.results import OperationResult
from unifying_firmware.core.actions import (
    inspect_firmware as core_inspect_firmware,
    compute_crc as core_compute_crc,
    extract_base_image as core_extract_base_image,
    extract_signature as core_extract_signature,
    downgrade_firmware as core_downgrade_firmware,
)
from unifying_firmware.core.messages import (
    WarningItem,
    MessageLevel,
    result_to_warnings,
)
from unifying_firmware.models import list_bootloaders, list_releases

logger = logging.getLogger("unifying_firmware")

console = Console()

app = typer.Typer(help="🔧 Unifying receiver firmware tool - inspect, verify and downgrade images")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug log output"),
) -> None:
    """Unifying receiver firmware tool."""
    _setup_logging(verbose)


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


_LEVEL_STYLES = {
    MessageLevel.ERROR: "red",
    MessageLevel.WARN: "yellow",
    MessageLevel.INFO: "blue",
}


def print_structured_warning(warning: WarningItem, verbose: bool = False) -> None:
    """Print a structured warning, with code and remediation when verbose."""
    console.print(
        warning.to_cli_string(verbose=verbose),
        style=_LEVEL_STYLES.get(warning.level, ""),
        markup=False,
        highlight=False,
    )


def print_warnings_from_result(result: OperationResult, verbose: bool = False) -> None:
    """Print all warnings from an OperationResult using structured format."""
    for warning in result_to_warnings(result):
        print_structured_warning(warning, verbose=verbose)


def parse_offset(value: Optional[str]) -> Optional[int]:
    """
    CLI wrapper around core.parsing.parse_offset that converts
    ValueError to typer.BadParameter for proper CLI error handling.
    """
    try:
        return _parse_offset_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def parse_input_format(value: str) -> str:
    try:
        return _parse_input_format_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _finish(result: OperationResult, output_json: bool, explain: bool = True) -> None:
    """Render a result and exit with 1 when it failed."""
    if output_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_warnings_from_result(result, verbose=explain)
        console.print(
            result.to_summary(),
            style="green" if result.ok else "red",
            markup=False,
            highlight=False,
        )
    if not result.ok:
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show the tool version."""
    console.print(f"unifying-fw {__version__}")


@app.command()
def info(
    path: str = typer.Argument(..., help="Firmware file (.hex or .bin)"),
    input_format: str = typer.Option("auto", "--format", "-f", help="Input format: auto, hex, bin"),
    signature: Optional[str] = typer.Option(None, "--signature", "-s", help="256-byte signature file to attach"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """Detect firmware family, layout and CRC."""
    fmt = parse_input_format(input_format)
    result = core_inspect_firmware(path, input_format=fmt, signature_path=signature)

    if not output_json and result.ok:
        fw = result.metadata["firmware"]
        print_header(f"Firmware: {path} ({result.metadata['input_format']})")
        table = Table(title=result.metadata.get("summary", ""))
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Target", fw["target"])
        table.add_row("Start", fw["start_offset"])
        table.add_row("End", fw["last_offset"])
        table.add_row("Size", fw["size"])
        table.add_row("CRC", fw["crc"])
        table.add_row("Bootloader", "yes" if fw["has_bootloader"] else "no")
        if fw["bootloader"]:
            table.add_row("Bootloader version", fw["bootloader"]["version"])
        if "image_for" in result.metadata:
            table.add_row("Image for", result.metadata["image_for"])
        table.add_row("Signature", "yes" if fw["has_signature"] else "no")
        table.add_row("SHA256", result.hashes["image_sha256"][:16] + "...")
        console.print(table)

    _finish(result, output_json)


@app.command()
def crc(
    path: str = typer.Argument(..., help="Binary file"),
    start: Optional[str] = typer.Option(None, "--start", help="Start offset (default 0)"),
    end: Optional[str] = typer.Option(None, "--end", help="End offset, exclusive (default file size)"),
    expect: Optional[str] = typer.Option(None, "--expect", help="Expected CRC value"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """Compute CRC-16/CCITT-FALSE over a byte range."""
    result = core_compute_crc(
        path,
        start=parse_offset(start),
        end=parse_offset(end),
        expected=parse_offset(expect),
    )
    if not output_json and result.crc is not None:
        console.print(f"CRC16 over {result.region}: [bold]0x{result.crc:04X}[/bold]")
    _finish(result, output_json)


@app.command("base-image")
def base_image(
    path: str = typer.Argument(..., help="Firmware file (.hex or .bin)"),
    out: str = typer.Option(..., "--out", "-o", help="Output .bin path"),
    input_format: str = typer.Option("auto", "--format", "-f", help="Input format: auto, hex, bin"),
    write: bool = typer.Option(False, "--write", help="Actually write the output file"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing output file"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """Extract the image without bootloader or padding."""
    ctx = SafetyContext(write_enabled=write, overwrite=overwrite)
    result = core_extract_base_image(path, out, ctx, input_format=parse_input_format(input_format))
    _finish(result, output_json)


@app.command("extract-signature")
def extract_signature(
    path: str = typer.Argument(..., help="Firmware .hex file with signature records"),
    out: str = typer.Option(..., "--out", "-o", help="Output signature path"),
    write: bool = typer.Option(False, "--write", help="Actually write the output file"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing output file"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """Save the 256-byte signature carried by a HEX file."""
    ctx = SafetyContext(write_enabled=write, overwrite=overwrite)
    result = core_extract_signature(path, out, ctx)
    _finish(result, output_json)


@app.command()
def downgrade(
    path: str = typer.Argument(..., help="TI firmware for BOT03.02 (.hex or .bin)"),
    out: str = typer.Option(..., "--out", "-o", help="Output .bin path"),
    input_format: str = typer.Option("auto", "--format", "-f", help="Input format: auto, hex, bin"),
    release: Optional[str] = typer.Option(None, "--release", "-r", help="Firmware release, e.g. RQR24.07"),
    write: bool = typer.Option(False, "--write", help="Actually write the output file"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing output file"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """Patch a BOT03.02 TI image so bootloader BOT03.01 accepts it."""
    ctx = SafetyContext(write_enabled=write, overwrite=overwrite)
    result = core_downgrade_firmware(
        path,
        out,
        ctx,
        input_format=parse_input_format(input_format),
        release=release,
    )
    if not output_json and result.ok:
        console.print(
            f"Patched image: {result.bytes_len:#x} bytes, CRC 0x{result.crc:04X}, "
            f"{result.metadata['patches_applied']} substitution(s)"
        )
    _finish(result, output_json)


@app.command("list-bootloaders")
def list_bootloaders_cmd(
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """List known TI bootloader generations."""
    gens = list_bootloaders()
    if output_json:
        typer.echo(json.dumps([g.to_dict() for g in gens], indent=2))
        return

    table = Table(title="TI Bootloader Generations")
    table.add_column("Name", style="cyan")
    table.add_column("Image", style="green")
    table.add_column("Size")
    table.add_column("Signed")
    table.add_column("Device data")
    for g in gens:
        d = g.to_dict()
        table.add_row(
            g.name,
            f"{d['image_start']}-{d['image_end']}",
            d["image_size"],
            "yes" if g.signed else "no",
            "/".join(d["device_data_pages"]),
        )
    console.print(table)


@app.command("list-releases")
def list_releases_cmd(
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """List firmware releases and their downgrade status."""
    releases = list_releases()
    if output_json:
        typer.echo(json.dumps([r.to_dict() for r in releases], indent=2))
        return

    table = Table(title="Known Firmware Releases")
    table.add_column("Release", style="cyan")
    table.add_column("Target")
    table.add_column("Receiver")
    table.add_column("Downgrade", style="green")
    for r in releases:
        table.add_row(r.name, r.target.label, r.receiver, r.downgrade.value)
    console.print(table)


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
