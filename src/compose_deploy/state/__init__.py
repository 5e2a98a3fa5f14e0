"""State management module for recording deployments."""

from .manager import DeploymentStateStore
from .models import STATE_FILE_NAME, DeploymentRecord, format_timestamp, parse_timestamp

__all__ = [
    "DeploymentRecord",
    "DeploymentStateStore",
    "STATE_FILE_NAME",
    "format_timestamp",
    "parse_timestamp",
]
