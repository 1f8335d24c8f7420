"""
MSRX Tool Command-Line Interface
================================

- **msrx**: Read, write and query an MSR605X-compatible card reader

The tool is a Click-based CLI application. Exit codes are defined in
msrx_tool.cli.errors.
"""

__all__ = ["msrx"]
