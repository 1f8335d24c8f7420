"""
CLI Error Handling
==================

Maps exceptions to messages on stderr and process exit codes.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from msrx_tool.errors import CardNotSwiped, DeviceTimeoutError, MsrxError


class ExitCode(IntEnum):
    """Exit codes of the msrx tool."""
    SUCCESS = 0
    ERROR = 1              # Device, validation, or any other failure
    CARD_NOT_SWIPED = 2    # Timed out waiting for a card


def exit_code_for(error: BaseException) -> ExitCode:
    if isinstance(error, (CardNotSwiped, DeviceTimeoutError)):
        return ExitCode.CARD_NOT_SWIPED
    return ExitCode.ERROR


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Print an error and exit with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print a traceback for unexpected errors

    Raises:
        SystemExit: Always
    """
    if isinstance(error, MsrxError):
        click.echo(f"Error: {error}", err=True)
    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
    sys.exit(exit_code_for(error))
