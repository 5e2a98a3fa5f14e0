"""Utility modules for logging and error handling."""

from compose_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    BackendError,
    StateError,
    StateNotFoundError,
    StateLockError,
    HealthCheckTimeoutError,
    HealthCheckCancelledError,
    DependencyError,
    ValidationError,
    ErrorHandler,
    error_handler
)
from compose_deploy.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'BackendError',
    'StateError',
    'StateNotFoundError',
    'StateLockError',
    'HealthCheckTimeoutError',
    'HealthCheckCancelledError',
    'DependencyError',
    'ValidationError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
