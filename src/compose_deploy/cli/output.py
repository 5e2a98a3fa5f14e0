"""Rendering of live status, deployment records and dry-run plans."""

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..backend.base import LiveServiceStatus
from ..orchestrator.reconciler import ReconcilePlan
from ..state.models import DeploymentRecord, format_timestamp
from ..utils.logging import get_logger

logger = get_logger(__name__)


class StatusReporter:
    """Prints container status tables to a rich console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def render(
        self,
        statuses: List[LiveServiceStatus],
        record: Optional[DeploymentRecord] = None,
        show_health: bool = False,
    ) -> None:
        """Print one row per container.

        Args:
            statuses: Live container states
            record: Current deployment, printed above the table when given
            show_health: Add the HEALTH column
        """
        if record is not None:
            self.console.print(
                f"Current deployment: tag={record.last_tag}, "
                f"deployed={format_timestamp(record.deployed_at)}",
                highlight=False,
            )
            self.console.print()

        if not statuses:
            self.console.print("No containers running")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("NAME", style="bold")
        table.add_column("STATE")
        table.add_column("STATUS")
        table.add_column("PORTS")
        if show_health:
            table.add_column("HEALTH")

        for status in statuses:
            row = [
                escape(status.name),
                self._state_text(status.state),
                escape(status.status),
                ", ".join(status.ports),
            ]
            if show_health:
                row.append(self._health_text(status.health))
            table.add_row(*row)

        self.console.print(table)

    def render_plan(self, plan: ReconcilePlan) -> None:
        """Print a dry-run plan."""
        if plan.ordering_warning:
            self.console.print(f"[yellow]⚠ {plan.ordering_warning}[/yellow]")

        table = Table(title=f"Dry run: {plan.stack}", show_header=True, header_style="bold cyan")
        table.add_column("SERVICE", style="bold")
        table.add_column("SOURCE")
        table.add_column("PORTS")
        table.add_column("DEPENDS ON")

        for service in plan.services:
            source = service.image or (f"build: {service.build}" if service.build else "")
            table.add_row(
                service.name,
                source,
                ", ".join(service.ports),
                ", ".join(service.depends_on),
            )

        self.console.print(table)
        self.console.print("[dim]No changes were made[/dim]")

    @staticmethod
    def _state_text(state: str) -> str:
        if state == "running":
            return f"[green]{state}[/green]"
        if state in ("exited", "dead"):
            return f"[red]{state}[/red]"
        return escape(state)

    @staticmethod
    def _health_text(health: str) -> str:
        if health == "healthy":
            return f"[green]{health}[/green]"
        if health == "unhealthy":
            return f"[red]{health}[/red]"
        return escape(health) if health else "[dim]-[/dim]"
