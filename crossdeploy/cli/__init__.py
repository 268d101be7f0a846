"""Command-line interface for crossdeploy."""

from crossdeploy.cli.main import cli

__all__ = ["cli"]
