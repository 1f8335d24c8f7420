"""
msrx - Magnetic Stripe Reader/Writer Command-Line Interface
===========================================================

Reads and writes cards with an MSR605X-compatible USB reader.

Usage Examples
--------------
Read one card (swipe within 10 seconds):
    $ msrx read
    %B4111111111111111^DOE/JOHN^2512101?_;4111111111111111=2512101?_

Read as JSON:
    $ msrx --output-format json read

Write tracks 1 and 2 (track 3 left empty):
    $ msrx write "%ABC123?_;12345?"

Show firmware version and model:
    $ msrx fw
    $ msrx model

Settings
--------
Defaults come from the environment (MSRX_READ_TIMEOUT, MSRX_WRITE_TIMEOUT,
MSRX_COMMAND_TIMEOUT, MSRX_SEPARATOR, MSRX_DATA_FORMAT, MSRX_OUTPUT_FORMAT)
and can be overridden with the options below.

Exit Codes
----------
0 - Success
1 - Device, validation or other error
2 - Card not swiped before the timeout
"""

import logging
import sys
from typing import Optional

import click

from msrx_tool import __version__
from msrx_tool.cli.errors import ExitCode, handle_cli_exception
from msrx_tool.config import ToolSettings
from msrx_tool.errors import MsrxError
from msrx_tool.tracks.block import DataFormat
from msrx_tool.tracks.interchange import OutputFormat, format_tracks, tracks_from_text
from msrx_tool.usb.session import DeviceSession

logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Holds the effective settings and verbosity.
    """

    def __init__(self) -> None:
        self.settings: ToolSettings = ToolSettings()
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )

    @property
    def data_format(self) -> DataFormat:
        return DataFormat.from_name(self.settings.data_format)

    @property
    def output_format(self) -> OutputFormat:
        return OutputFormat.from_name(self.settings.output_format)

    def open_session(self) -> DeviceSession:
        return DeviceSession(command_timeout=self.settings.command_timeout)


pass_context = click.make_pass_decorator(Context, ensure=True)


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable debug output (packet dumps) on stderr",
)
@click.option(
    "--data-format",
    type=click.Choice([f.value for f in DataFormat], case_sensitive=False),
    default=None,
    help="Track data format (default: iso)",
)
@click.option(
    "--output-format",
    type=click.Choice([f.value for f in OutputFormat], case_sensitive=False),
    default=None,
    help="Output format for read (default: combined)",
)
@click.option(
    "--separator",
    type=str,
    default=None,
    help="Character separating tracks in combined text (default: _)",
)
@click.option(
    "--read-timeout",
    type=float,
    default=None,
    help="Seconds to wait for a swipe when reading (default: 10)",
)
@click.option(
    "--write-timeout",
    type=float,
    default=None,
    help="Seconds to wait for a swipe when writing (default: 10)",
)
@click.version_option(version=__version__, prog_name="msrx")
@pass_context
def main(
    ctx: Context,
    verbose: bool,
    data_format: Optional[str],
    output_format: Optional[str],
    separator: Optional[str],
    read_timeout: Optional[float],
    write_timeout: Optional[float],
) -> None:
    """
    Read and write magnetic stripe cards with an MSR605X-compatible reader.
    """
    ctx.verbose = verbose
    ctx.setup_logging()

    settings = ToolSettings.from_env()
    if data_format is not None:
        settings.data_format = data_format.lower()
    if output_format is not None:
        settings.output_format = output_format.lower()
    if separator is not None:
        if len(separator) != 1:
            raise click.BadParameter("must be a single character", param_hint="--separator")
        settings.separator = separator
    if read_timeout is not None:
        settings.read_timeout = read_timeout
    if write_timeout is not None:
        settings.write_timeout = write_timeout
    ctx.settings = settings


# =============================================================================
# Read Command
# =============================================================================

@main.command()
@pass_context
def read(ctx: Context) -> None:
    """
    Read one card and print its tracks.

    Swipe the card after the command starts.
    """
    settings = ctx.settings
    try:
        data_format = ctx.data_format
        output_format = ctx.output_format
        with ctx.open_session() as session:
            click.echo(f"Swipe card within {settings.read_timeout:g}s...", err=True)
            block = session.read_tracks(settings.read_timeout, data_format)
        click.echo(format_tracks(block, output_format, settings.separator))
    except MsrxError as e:
        handle_cli_exception(e, ctx.verbose)


# =============================================================================
# Write Command
# =============================================================================

@main.command()
@click.argument("tracks")
@pass_context
def write(ctx: Context, tracks: str) -> None:
    """
    Write TRACKS to the next card swiped.

    TRACKS is the combined track text, e.g. "%ABC123?_;12345?_;999?".
    Missing trailing tracks are left empty.
    """
    settings = ctx.settings
    try:
        data_format = ctx.data_format
        block = tracks_from_text(tracks, settings.separator, data_format)
        with ctx.open_session() as session:
            click.echo(f"Swipe card within {settings.write_timeout:g}s...", err=True)
            success = session.write_tracks(block, settings.write_timeout, data_format)
    except MsrxError as e:
        handle_cli_exception(e, ctx.verbose)

    if not success:
        click.echo("Error: write failed", err=True)
        sys.exit(ExitCode.ERROR)
    click.echo("Write successful")


# =============================================================================
# Device Information Commands
# =============================================================================

@main.command()
@pass_context
def fw(ctx: Context) -> None:
    """Print the reader's firmware version."""
    try:
        with ctx.open_session() as session:
            click.echo(session.get_firmware_version())
    except MsrxError as e:
        handle_cli_exception(e, ctx.verbose)


@main.command()
@pass_context
def model(ctx: Context) -> None:
    """Print the reader's model string."""
    try:
        with ctx.open_session() as session:
            click.echo(session.get_model())
    except MsrxError as e:
        handle_cli_exception(e, ctx.verbose)


if __name__ == "__main__":
    main()
