"""Command-line interface for mailwire."""

from .cli import main

__all__ = ["main"]
