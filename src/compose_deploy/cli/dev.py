"""CLI commands for the development environment."""

import click

from ..config.models import BuildOptions, DownOptions
from ..utils.logging import get_logger
from .common import (
    build_project_context,
    console,
    create_orchestrator,
    dry_run_option,
    get_environment,
    handle_errors,
    project_options,
)
from .output import StatusReporter

logger = get_logger(__name__)

ENVIRONMENT = "dev"


def _context(ctx, project_name, compose_file, env_file, project_dir):
    environment = get_environment(ctx, ENVIRONMENT)
    return environment, build_project_context(
        environment, project_name, compose_file, env_file, project_dir
    )


@click.group()
def dev():
    """Manage the development environment."""
    pass


@dev.command()
@project_options
@dry_run_option
@click.pass_context
@handle_errors
def up(ctx, project_name, compose_file, env_file, project_dir, dry_run):
    """Create and start services."""
    environment, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    result = orchestrator.dev_up(project, dry_run=dry_run, profile=environment.reconcile)

    if result.plan is not None:
        StatusReporter(console).render_plan(result.plan)
    else:
        console.print(f"[green]✓ Started project '{result.project_name}'[/green]")


@dev.command()
@project_options
@click.option('--volumes', '-v', is_flag=True, default=False, help='Also remove named volumes')
@click.pass_context
@handle_errors
def down(ctx, project_name, compose_file, env_file, project_dir, volumes):
    """Stop and remove services."""
    environment, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    stack = orchestrator.down(
        project,
        DownOptions(remove_volumes=volumes, timeout=environment.down_timeout),
    )
    console.print(f"[green]✓ Stopped project '{stack.name}'[/green]")


@dev.command()
@project_options
@click.option('--no-cache', is_flag=True, default=False, help='Do not use cache when building')
@click.option('--pull', is_flag=True, default=False, help='Always pull newer base images')
@click.argument('services', nargs=-1)
@click.pass_context
@handle_errors
def build(ctx, project_name, compose_file, env_file, project_dir, no_cache, pull, services):
    """Build service images (all services if none are given)."""
    _, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    stack = orchestrator.build(
        project,
        BuildOptions(pull=pull, no_cache=no_cache, services=list(services), deps=True),
    )
    console.print(f"[green]✓ Built images for project '{stack.name}'[/green]")


@dev.command()
@project_options
@click.pass_context
@handle_errors
def status(ctx, project_name, compose_file, env_file, project_dir):
    """Show container status."""
    _, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    stack_status = orchestrator.status(project)
    StatusReporter(console).render(stack_status.services)


@dev.command()
@project_options
@click.option('--follow/--no-follow', default=True, help='Follow log output')
@click.argument('services', nargs=-1)
@click.pass_context
@handle_errors
def logs(ctx, project_name, compose_file, env_file, project_dir, follow, services):
    """Show container logs."""
    _, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    orchestrator.logs(project, list(services), follow, click.get_text_stream('stdout'))


@dev.command()
@project_options
@click.pass_context
@handle_errors
def health(ctx, project_name, compose_file, env_file, project_dir):
    """Wait for services to become healthy."""
    environment, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    orchestrator.health(project, environment.health)
    console.print("[green]✓ All services are healthy[/green]")
