"""Error handling framework for deployment operations."""

import subprocess
from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass

import pydantic

from compose_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during deployment."""
    CONFIGURATION = "configuration"
    BACKEND = "backend"
    STATE = "state"
    TIMEOUT = "timeout"
    DEPENDENCY = "dependency"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Operation cannot continue
    ERROR = "error"  # Operation failed
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    stack: Optional[str] = None
    service: Optional[str] = None
    operation: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class DeploymentError(Exception):
    """Base exception for deployment errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize deployment error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = []

        lines.append(f"❌ {self.severity.value.upper()}: {self.message}")

        if self.context.stack:
            lines.append(f"   Stack: {self.context.stack}")
        if self.context.service:
            lines.append(f"   Service: {self.context.service}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'stack': self.context.stack,
                'service': self.context.service,
                'operation': self.context.operation,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(DeploymentError):
    """Error in command-line flags, settings or path resolution."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class BackendError(DeploymentError):
    """Error reported by the compose backend."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.BACKEND,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StateError(DeploymentError):
    """Error related to deployment state persistence."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class StateNotFoundError(StateError):
    """No deployment state file exists for the project."""
    pass


class StateLockError(StateError):
    """The deployment state file could not be locked."""
    pass


class HealthCheckTimeoutError(DeploymentError):
    """A service did not become healthy before the deadline."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class HealthCheckCancelledError(DeploymentError):
    """The health wait was cancelled before a service became healthy."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class DependencyError(DeploymentError):
    """Error in the service dependency graph."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.DEPENDENCY,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ValidationError(DeploymentError):
    """Error during validation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ErrorHandler:
    """Handles and categorizes errors from the compose backend and other sources."""

    # Fragments of docker stderr output mapped to categories and suggestions
    BACKEND_ERROR_MAPPING = {
        'Cannot connect to the Docker daemon': {
            'category': ErrorCategory.BACKEND,
            'message': 'Docker daemon is not reachable',
            'suggestions': [
                'Start the Docker daemon (e.g. systemctl start docker)',
                'Check DOCKER_HOST and the active docker context',
                'Run: compose-deploy doctor'
            ]
        },
        'permission denied': {
            'category': ErrorCategory.BACKEND,
            'message': 'Permission denied talking to Docker',
            'suggestions': [
                'Add your user to the docker group',
                'Check permissions on the Docker socket'
            ]
        },
        'no configuration file provided': {
            'category': ErrorCategory.CONFIGURATION,
            'message': 'Compose file not found',
            'suggestions': [
                'Check the --compose-file and --project-dir flags',
                'Compose file paths are resolved relative to the project directory'
            ]
        },
        'manifest unknown': {
            'category': ErrorCategory.BACKEND,
            'message': 'Image tag not found in registry',
            'suggestions': [
                'Verify the --tag value was pushed to the registry',
                'Check IMAGE_TAG interpolation in the compose file'
            ]
        },
        'pull access denied': {
            'category': ErrorCategory.BACKEND,
            'message': 'Registry refused the image pull',
            'suggestions': [
                'Log in to the registry with: docker login',
                'Verify the image name is correct'
            ]
        },
    }

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        """Handle an exception and convert to DeploymentError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DeploymentError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, DeploymentError):
            return error

        if isinstance(error, FileNotFoundError):
            return BackendError(
                message=f"Executable not found: {error.filename or error}",
                context=context,
                cause=error,
                suggestions=[
                    'Install Docker Engine with the compose plugin',
                    'Make sure the docker binary is on PATH'
                ]
            )

        if isinstance(error, subprocess.CalledProcessError):
            return self._handle_process_error(error, context)

        if isinstance(error, pydantic.ValidationError):
            return ValidationError(
                message=f"Invalid options: {error.error_count()} validation error(s)",
                context=context,
                cause=error,
                suggestions=[f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in error.errors()]
            )

        return DeploymentError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Re-run with --log-level debug for more details']
        )

    def _handle_process_error(
        self,
        error: subprocess.CalledProcessError,
        context: ErrorContext
    ) -> DeploymentError:
        """Handle a failed docker compose invocation.

        Args:
            error: The CalledProcessError
            context: Error context

        Returns:
            Categorized DeploymentError
        """
        stderr = error.stderr or ''
        if isinstance(stderr, bytes):
            stderr = stderr.decode(errors='replace')
        stderr = stderr.strip()
        self.logger.debug(f"Command failed with status {error.returncode}: {error.cmd}")

        context.additional_info = {
            **(context.additional_info or {}),
            'returncode': error.returncode,
        }

        for fragment, error_info in self.BACKEND_ERROR_MAPPING.items():
            if fragment.lower() in stderr.lower():
                return DeploymentError(
                    message=f"{error_info['message']}: {stderr}",
                    category=error_info['category'],
                    severity=ErrorSeverity.ERROR,
                    context=context,
                    cause=error,
                    suggestions=error_info['suggestions']
                )

        return BackendError(
            message=f"docker compose exited with status {error.returncode}: {stderr or 'no output'}",
            context=context,
            cause=error,
            suggestions=['Re-run the same docker compose command manually to inspect the failure']
        )


# Global error handler instance
error_handler = ErrorHandler()
