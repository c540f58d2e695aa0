"""Command-line interface."""

from branchfeed.cli.main import cli


__all__ = ["cli"]
