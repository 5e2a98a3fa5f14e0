"""Configuration management for compose-deploy."""

from .models import (
    IMAGE_TAG_VARIABLE,
    ProjectContext,
    HealthWaitPolicy,
    CreateOptions,
    StartOptions,
    UpOptions,
    DownOptions,
    PullOptions,
    BuildOptions,
    ReconcileProfile,
    EnvironmentProfile,
)
from .parser import Settings, ConfigValidationError, DEFAULT_SETTINGS_FILE

__all__ = [
    "IMAGE_TAG_VARIABLE",
    "ProjectContext",
    "HealthWaitPolicy",
    "CreateOptions",
    "StartOptions",
    "UpOptions",
    "DownOptions",
    "PullOptions",
    "BuildOptions",
    "ReconcileProfile",
    "EnvironmentProfile",
    "Settings",
    "ConfigValidationError",
    "DEFAULT_SETTINGS_FILE",
]
