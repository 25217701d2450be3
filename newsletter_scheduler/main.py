#!/usr/bin/env python3
"""Main entry point for the newsletter scheduler."""

import argparse
import asyncio
import sys

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from newsletter_scheduler.infrastructure.config import ApplicationConfig
from newsletter_scheduler.infrastructure.error_handling import SchedulerError
from newsletter_scheduler.infrastructure.logging import get_logger, setup_logging
from newsletter_scheduler.models.schedule import DeliveryStatus, DispatchOutcome
from newsletter_scheduler.services.engine import ScheduleEngine
from newsletter_scheduler.services.frequency import utcnow

console = Console()
logger = get_logger(__name__)

OUTCOME_STYLES = {
    DispatchOutcome.SENT: "green",
    DispatchOutcome.FAILED: "red",
    DispatchOutcome.CONTINUITY_BROKEN: "bold red",
    DispatchOutcome.TIMED_OUT: "yellow",
}


class SchedulerCLI:
    """Command-line interface for the schedule engine."""

    def __init__(self, config: ApplicationConfig, dry_run: bool = False):
        self.config = config
        self.dry_run = dry_run
        self.engine = ScheduleEngine.from_config(config, dry_run=dry_run)

    async def __aenter__(self) -> "SchedulerCLI":
        await self.engine.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.engine.close()
        return False

    async def init_db(self) -> bool:
        console.print(f"[green]✓[/green] Database ready at {self.config.database_url}")
        return True

    async def materialize(self) -> bool:
        with console.status("[bold blue]Materializing schedules..."):
            report = await self.engine.materializer.materialize_all(utcnow())

        table = Table(title="Materialization")
        table.add_column("Result", style="cyan")
        table.add_column("Count", style="white", justify="right")
        table.add_row("Created", str(report.created))
        table.add_row("Already scheduled", str(report.existing))
        table.add_row("Anchor in the past", str(report.skipped_past))
        table.add_row("Misconfigured", str(report.skipped_invalid))
        console.print(table)
        return True

    async def populate(self, delivery_id: str = None) -> bool:
        if delivery_id:
            outcome = await self.engine.populator.populate_delivery(delivery_id)
            console.print(f"{delivery_id}: [bold]{outcome.value}[/bold]")
            return True

        with console.status("[bold blue]Populating content..."):
            outcomes = await self.engine.populator.populate_pending()

        if not outcomes:
            console.print("[yellow]No pending deliveries without content[/yellow]")
            return True

        table = Table(title=f"Content population ({len(outcomes)})")
        table.add_column("Delivery", style="cyan", width=40)
        table.add_column("Outcome", style="white")
        for delivery_id, outcome in outcomes.items():
            table.add_row(delivery_id, outcome.value)
        console.print(table)
        return True

    async def dispatch(self, delivery_id: str) -> bool:
        with console.status("[bold green]Sending newsletter..."):
            result = await self.engine.dispatcher.dispatch(delivery_id, utcnow())

        style = OUTCOME_STYLES.get(result.outcome, "yellow")
        console.print(f"[{style}]{result.outcome.value}[/{style}] {delivery_id}")
        if result.next_delivery_id:
            console.print(f"Next delivery: {result.next_delivery_id}")
        if result.error_detail:
            console.print(f"[red]{result.error_detail}[/red]")
        if self.dry_run:
            console.print("[dim]Note: This was a dry run - no actual email was sent[/dim]")
        return result.outcome in (DispatchOutcome.SENT, DispatchOutcome.NOT_DUE)

    async def process_queue(self) -> bool:
        with console.status("[bold green]Processing due deliveries..."):
            results = await self.engine.dispatcher.dispatch_due(utcnow())

        if not results:
            console.print("[yellow]No deliveries due[/yellow]")
            return True

        table = Table(title=f"Dispatched ({len(results)})")
        table.add_column("Delivery", style="cyan", width=40)
        table.add_column("Outcome")
        table.add_column("Next delivery", style="white", width=40)
        for result in results:
            style = OUTCOME_STYLES.get(result.outcome, "yellow")
            table.add_row(
                result.delivery_id,
                f"[{style}]{result.outcome.value}[/{style}]",
                result.next_delivery_id or "",
            )
        console.print(table)
        return all(r.outcome != DispatchOutcome.CONTINUITY_BROKEN for r in results)

    async def process_collections(self) -> bool:
        if self.engine.collector is None:
            console.print("[yellow]No collector configured (NEWSLETTER_COLLECTOR_URL)[/yellow]")
            return False

        with console.status("[bold blue]Collecting content..."):
            report = await self.engine.planner.process_due(
                utcnow(), self.engine.collector, timeout=self.config.collector_timeout
            )
        console.print(
            f"[green]{report.completed}[/green] completed, "
            f"[red]{report.failed}[/red] failed, "
            f"{report.items_collected} items collected"
        )
        return report.failed == 0

    async def respawn(self, delivery_id: str) -> bool:
        next_id, created = await self.engine.dispatcher.respawn_next(delivery_id)
        if created:
            console.print(f"[green]✓[/green] Created next delivery {next_id}")
        else:
            console.print(f"Next delivery already scheduled: {next_id}")
        return True

    async def list_deliveries(self, owner_id: str, status: str = None) -> bool:
        deliveries = await self.engine.database.list_deliveries(
            owner_id, DeliveryStatus(status) if status else None
        )
        if not deliveries:
            console.print(f"[yellow]No deliveries for {owner_id}[/yellow]")
            return True

        table = Table(title=f"Deliveries for {owner_id} ({len(deliveries)})")
        table.add_column("ID", style="cyan", width=40)
        table.add_column("Section", style="white")
        table.add_column("Status")
        table.add_column("Send date (UTC)", style="yellow")
        table.add_column("Next date (UTC)", style="yellow")
        table.add_column("Content", style="green")
        for delivery in deliveries:
            table.add_row(
                delivery.id,
                delivery.schedule_section_id,
                delivery.status.value,
                delivery.send_date.strftime('%Y-%m-%d %H:%M'),
                delivery.next_date.strftime('%Y-%m-%d %H:%M'),
                "yes" if delivery.has_content else "no",
            )
        console.print(table)
        return True


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Newsletter Scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  newsletter-scheduler init-db
  newsletter-scheduler materialize
  newsletter-scheduler populate
  newsletter-scheduler --dry-run process-queue
  newsletter-scheduler deliveries <owner-id> --status pending
  newsletter-scheduler serve
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("materialize", help="Create pending deliveries for upcoming sections")

    populate_parser = subparsers.add_parser("populate", help="Render content onto pending deliveries")
    populate_parser.add_argument("--delivery", help="Populate only this delivery")

    dispatch_parser = subparsers.add_parser("dispatch", help="Send one delivery")
    dispatch_parser.add_argument("delivery_id", help="Delivery to send")

    subparsers.add_parser("process-queue", help="Send every due delivery")
    subparsers.add_parser("process-collections", help="Run due content collection jobs")

    respawn_parser = subparsers.add_parser(
        "respawn",
        help="Recreate the next delivery of a sent delivery if it is missing"
    )
    respawn_parser.add_argument("delivery_id", help="Sent delivery")

    deliveries_parser = subparsers.add_parser("deliveries", help="List an owner's deliveries")
    deliveries_parser.add_argument("owner_id", help="Owner ID")
    deliveries_parser.add_argument(
        "--status",
        choices=[status.value for status in DeliveryStatus],
        help="Only show deliveries with this status"
    )

    subparsers.add_parser("serve", help="Run the HTTP trigger API")

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Record emails instead of sending them"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser


async def run_command(args: argparse.Namespace, config: ApplicationConfig) -> bool:
    async with SchedulerCLI(config, dry_run=args.dry_run) as cli:
        if args.command == "init-db":
            return await cli.init_db()
        if args.command == "materialize":
            return await cli.materialize()
        if args.command == "populate":
            return await cli.populate(args.delivery)
        if args.command == "dispatch":
            return await cli.dispatch(args.delivery_id)
        if args.command == "process-queue":
            return await cli.process_queue()
        if args.command == "process-collections":
            return await cli.process_collections()
        if args.command == "respawn":
            return await cli.respawn(args.delivery_id)
        if args.command == "deliveries":
            return await cli.list_deliveries(args.owner_id, args.status)
    return False


def serve(config: ApplicationConfig, dry_run: bool) -> None:
    import uvicorn

    from newsletter_scheduler.api import create_app

    if not config.api_shared_secret:
        console.print(Panel.fit(
            "[yellow]NEWSLETTER_API_SHARED_SECRET is not set.\n"
            "Every trigger request will be rejected.[/yellow]",
            title="Configuration",
            border_style="yellow"
        ))
    uvicorn.run(create_app(config, dry_run=dry_run), host=config.api_host, port=config.api_port)


def main():
    """Main application entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = ApplicationConfig()
    except ValidationError as e:
        problems = "\n".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        console.print(Panel.fit(
            f"[red]{escape(problems)}[/red]",
            title="Invalid configuration",
            border_style="red"
        ))
        sys.exit(1)

    setup_logging(
        level="DEBUG" if args.verbose else config.log_level,
        format_type=config.log_format,
        log_file=config.log_to_file,
    )

    if args.command == "serve":
        serve(config, args.dry_run)
        return

    try:
        success = asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except SchedulerError as e:
        logger.error("Command failed", command=args.command, error=e.message, error_code=e.error_code)
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        sys.exit(1)
    except Exception as e:
        logger.error("Application error", command=args.command, error=str(e), exc_info=True)
        console.print(f"[bold red]Unexpected error:[/bold red] {e}")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
