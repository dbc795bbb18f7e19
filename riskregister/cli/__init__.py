"""Command-line interface for riskregister."""

from .click_app import cli, main

__all__ = ["cli", "main"]
