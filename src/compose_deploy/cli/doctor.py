"""Environment checks for the docker daemon and compose files."""

import sys
from pathlib import Path

import click

from ..utils.errors import DeploymentError, error_handler
from ..utils.logging import get_logger
from .common import build_project_context, console, create_orchestrator, get_backend, get_settings

logger = get_logger(__name__)


def _ok():
    console.print("[green]✅ OK[/green]")


def _warning():
    console.print("[yellow]⚠️  WARNING[/yellow]")


def _failed(message: str):
    console.print("[red]❌ FAILED[/red]")
    console.print(f"  Error: {message}", markup=False, highlight=False)


@click.command()
@click.pass_context
def doctor(ctx):
    """Check system health and configuration."""
    settings = get_settings(ctx)
    issues = 0

    console.print("🔍 Checking system health...")
    console.print()

    # Docker daemon connectivity
    console.print("Checking Docker daemon connectivity... ", end="")
    try:
        get_backend(ctx).ping()
        _ok()
    except Exception as e:
        _failed(error_handler.handle_exception(e).message)
        issues += 1

    # Compose files of every environment
    console.print("Checking compose files... ", end="")
    compose_files = []
    for environment in settings.environments.values():
        for path in environment.compose_files:
            if path not in compose_files:
                compose_files.append(path)
    missing = [path for path in compose_files if not Path(path).exists()]
    if missing:
        _warning()
        for path in missing:
            console.print(f"  Missing: {path}")
    else:
        _ok()

    # Compose syntax, using the development stack
    console.print("Validating compose file syntax... ", end="")
    dev_environment = settings.get_environment("dev")
    project = build_project_context(dev_environment)
    try:
        create_orchestrator(ctx).loader.load(project)
        _ok()
    except DeploymentError as e:
        _failed(e.message)
        issues += 1

    # Environment file
    console.print("Checking environment file... ", end="")
    env_file = dev_environment.env_file or ".env"
    if not Path(env_file).exists():
        _warning()
        console.print(f"  {env_file} file not found (may be optional)")
    else:
        _ok()

    console.print()
    if issues == 0:
        console.print("[green]✅ All checks passed![/green]")
    else:
        console.print(f"[red]❌ Found {issues} issue(s)[/red]")
        sys.exit(1)
