"""CLI commands for the production environment."""

import click
from rich.panel import Panel

from ..state.models import format_timestamp
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

ENVIRONMENT = "prod"


def _context(ctx, project_name, compose_file, env_file, project_dir):
    environment = get_environment(ctx, ENVIRONMENT)
    return environment, build_project_context(
        environment, project_name, compose_file, env_file, project_dir
    )


@click.group()
def prod():
    """Manage the production environment."""
    pass


@prod.command()
@project_options
@dry_run_option
@click.option('--tag', help='Image tag for deployment')
@click.option('--pull/--no-pull', default=True, help='Pull images before starting')
@click.pass_context
@handle_errors
def deploy(ctx, project_name, compose_file, env_file, project_dir, dry_run, tag, pull):
    """Deploy the stack at an image tag."""
    environment, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    result = orchestrator.deploy(
        project, tag, pull=pull, dry_run=dry_run, profile=environment.reconcile
    )

    if result.plan is not None:
        StatusReporter(console).render_plan(result.plan)
        return

    if result.state_warning:
        console.print(f"[yellow]⚠ {result.state_warning}[/yellow]")

    console.print(Panel.fit(
        f"[green]✓ Deployment successful[/green]\n\n"
        f"Project: {result.project_name}\n"
        f"Tag: {result.tag}\n"
        f"Images pulled: {'yes' if result.pulled else 'no'}\n"
        f"State saved: {'yes' if result.saved else 'no'}",
        title="Deployment Complete",
        border_style="green"
    ))


@prod.command()
@project_options
@dry_run_option
@click.pass_context
@handle_errors
def rollback(ctx, project_name, compose_file, env_file, project_dir, dry_run):
    """Redeploy the tag of the last recorded deployment."""
    _, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    console.print(f"Rolling back project '{project.name}'...")
    result = orchestrator.rollback(project, dry_run=dry_run)

    for name in result.missing_services:
        console.print(f"[yellow]⚠ Service '{name}' is no longer defined[/yellow]")

    if result.plan is not None:
        StatusReporter(console).render_plan(result.plan)
        return

    if result.state_warning:
        console.print(f"[yellow]⚠ {result.state_warning}[/yellow]")

    console.print(Panel.fit(
        f"[green]✓ Rollback successful[/green]\n\n"
        f"Project: {result.project_name}\n"
        f"Tag: {result.tag}\n"
        f"Originally deployed: {format_timestamp(result.deployed_at)}",
        title="Rollback Complete",
        border_style="green"
    ))


@prod.command()
@project_options
@click.pass_context
@handle_errors
def status(ctx, project_name, compose_file, env_file, project_dir):
    """Show container status and the current deployment."""
    _, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    stack_status = orchestrator.status(project, include_record=True)
    StatusReporter(console).render(
        stack_status.services, record=stack_status.record, show_health=True
    )


@prod.command()
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


@prod.command()
@project_options
@click.pass_context
@handle_errors
def health(ctx, project_name, compose_file, env_file, project_dir):
    """Wait for services to become healthy."""
    environment, project = _context(ctx, project_name, compose_file, env_file, project_dir)
    orchestrator = create_orchestrator(ctx)

    orchestrator.health(project, environment.health)
    console.print("[green]✓ All services are healthy[/green]")
