"""Command-line interface for compose-deploy."""

from .main import cli
from .output import StatusReporter

__all__ = ["cli", "StatusReporter"]
