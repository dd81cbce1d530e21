"""CLI application setup using Typer.

Provides the command-line interface for botflow operations.
"""

from botflow.cli.main import app

__all__ = ["app"]
