"""Helpers shared by the dev, prod and doctor command groups."""

import sys
from functools import wraps
from pathlib import Path
from typing import Callable, List, Optional

import click
from rich.console import Console

from ..backend.base import ComposeBackend
from ..backend.cli import ComposeCLIBackend
from ..config.models import EnvironmentProfile, ProjectContext
from ..config.parser import DEFAULT_SETTINGS_FILE, ConfigValidationError, Settings
from ..orchestrator.orchestrator import DeploymentOrchestrator
from ..state.manager import DeploymentStateStore
from ..utils.errors import DeploymentError, error_handler
from ..utils.logging import get_logger

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


def split_compose_files(value: Optional[str]) -> List[str]:
    """Split a comma-separated --compose-file value."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def project_options(func: Callable) -> Callable:
    """Add the flags that identify a stack to a command."""
    options = [
        click.option('--project-name', help='Compose project name'),
        click.option(
            '--compose-file',
            help=(
                'Compose file path (comma-separated for multiple files); relative '
                'paths resolve against --project-dir, else the first file\'s directory'
            ),
        ),
        click.option('--env-file', help='Environment file path'),
        click.option(
            '--project-dir',
            help='Project directory (defaults to compose file directory)',
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def dry_run_option(func: Callable) -> Callable:
    return click.option(
        '--dry-run', is_flag=True, default=False, help='Perform a dry run without making changes'
    )(func)


def get_settings(ctx: click.Context) -> Settings:
    """Load settings once per invocation.

    An explicit --config must exist; otherwise compose-deploy.yaml in the
    current directory is used when present.
    """
    obj = ctx.ensure_object(dict)
    if 'settings' in obj:
        return obj['settings']

    config_path = obj.get('config_path')
    if config_path is None and Path(DEFAULT_SETTINGS_FILE).exists():
        config_path = DEFAULT_SETTINGS_FILE

    if config_path is not None and not Path(config_path).exists():
        err_console.print(f"[red]Error:[/red] Settings file not found: {config_path}")
        sys.exit(1)

    try:
        settings = Settings(config_path).load()
    except ConfigValidationError as e:
        err_console.print("[red]Settings validation failed:[/red]\n")
        err_console.print(str(e), markup=False, highlight=False)
        sys.exit(1)

    obj['settings'] = settings
    return settings


def get_environment(ctx: click.Context, name: str) -> EnvironmentProfile:
    return get_settings(ctx).get_environment(name)


def build_project_context(
    environment: EnvironmentProfile,
    project_name: Optional[str] = None,
    compose_file: Optional[str] = None,
    env_file: Optional[str] = None,
    project_dir: Optional[str] = None,
) -> ProjectContext:
    """Build a ProjectContext from flags, falling back to the environment profile."""
    compose_files = split_compose_files(compose_file) if compose_file is not None else list(
        environment.compose_files
    )
    return ProjectContext(
        name=project_name if project_name is not None else environment.project_name,
        compose_files=compose_files,
        env_file=env_file if env_file is not None else environment.env_file,
        project_dir=project_dir if project_dir is not None else environment.project_dir,
    )


def get_backend(ctx: click.Context) -> ComposeBackend:
    """Backend for this invocation; tests may place one in ctx.obj."""
    obj = ctx.ensure_object(dict)
    if obj.get('backend') is None:
        obj['backend'] = ComposeCLIBackend()
    return obj['backend']


def create_orchestrator(ctx: click.Context) -> DeploymentOrchestrator:
    """Create deployment orchestrator with all dependencies."""
    return DeploymentOrchestrator(
        backend=get_backend(ctx),
        state_store=DeploymentStateStore(),
    )


def exit_with_error(error: Exception) -> None:
    """Print a handled error and exit non-zero."""
    deployment_error = error_handler.handle_exception(error)
    logger.debug(f"Error details: {deployment_error.to_dict()}")
    err_console.print(deployment_error.to_user_message(), markup=False, highlight=False)
    sys.exit(1)


def handle_errors(func: Callable) -> Callable:
    """Render DeploymentErrors for the user instead of a traceback."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DeploymentError as e:
            exit_with_error(e)
        except (click.exceptions.Exit, click.Abort, click.ClickException):
            raise
        except Exception as e:
            logger.exception("Unexpected error")
            exit_with_error(e)

    return wrapper
