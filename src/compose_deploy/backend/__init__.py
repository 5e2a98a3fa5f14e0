"""Compose backend interface and the docker compose CLI implementation."""

from compose_deploy.backend.base import (
    ComposeBackend,
    LoadRequest,
    BackendProject,
    BackendCreateOptions,
    BackendStartOptions,
    BackendDownOptions,
    BackendPullOptions,
    BackendBuildOptions,
    LiveServiceStatus,
)
from compose_deploy.backend.cli import ComposeCLIBackend, ComposeInvocation

__all__ = [
    'ComposeBackend',
    'LoadRequest',
    'BackendProject',
    'BackendCreateOptions',
    'BackendStartOptions',
    'BackendDownOptions',
    'BackendPullOptions',
    'BackendBuildOptions',
    'LiveServiceStatus',
    'ComposeCLIBackend',
    'ComposeInvocation',
]
