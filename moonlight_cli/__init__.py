"""Command-line front end for the moonlight installer."""

from __future__ import annotations

from moonlight_cli.cli import main

__all__ = ["main"]
