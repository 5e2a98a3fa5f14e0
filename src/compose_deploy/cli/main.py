"""Main CLI entry point."""

import os
import platform

import click

from .. import __version__
from ..utils.logging import setup_logging, get_logger
from .common import console
from .dev import dev
from .doctor import doctor
from .prod import prod

APP_NAME = "compose-deploy"

logger = get_logger(__name__)


@click.group()
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--log-dir', type=click.Path(file_okay=False), help='Also write JSON-lines logs to this directory')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='Settings file (defaults to compose-deploy.yaml when present)')
@click.pass_context
def cli(ctx, log_level, log_dir, config_path):
    """Compose deployment orchestration."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['log_level'] = log_level

    # Setup logging
    setup_logging(log_level, log_dir)


cli.add_command(dev)
cli.add_command(prod)
cli.add_command(doctor)


@cli.command()
def version():
    """Show version information."""
    console.print(f"{APP_NAME} version {__version__}", highlight=False)

    # Build metadata, set by the packaging pipeline
    commit = os.environ.get('COMPOSE_DEPLOY_BUILD_COMMIT')
    build_date = os.environ.get('COMPOSE_DEPLOY_BUILD_DATE')
    if commit or build_date:
        console.print(f"Build commit: {commit or 'unknown'}", highlight=False)
        console.print(f"Build date: {build_date or 'unknown'}", highlight=False)
        console.print(f"Python version: {platform.python_version()}", highlight=False)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
