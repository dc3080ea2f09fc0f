"""TAHMIN Interfaces - command line."""

from tahmin.interfaces.cli_app import cli, main as cli_main

__all__ = [
    "cli",
    "cli_main",
]
