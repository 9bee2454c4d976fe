#!/usr/bin/env python3
"""Command-line interface for Azure SKU Migrator"""

import signal
import sys
import threading
import typer
from pathlib import Path
from typing import List, Optional, Tuple
from rich.console import Console
from rich.panel import Panel

from .. import __version__
from ..backup.recorder import FileBackupRecorder
from ..core.classifier import ResourceClassifier
from ..core.errors import ConfigurationError, CyclicDependency, MalformedIdentifier
from ..core.identifier import parse_resource_id
from ..core.interfaces import IConfirmationPrompt, IProviderClient
from ..core.models import BatchReport, MigrationConfiguration
from ..core.orchestrator import MigrationOrchestrator
from ..reporting.exporter import (
    build_plan_table,
    build_rejections_table,
    build_results_table,
    export_report,
)
from ..reporting.html_report import HtmlReportGenerator
from ..strategies.registry import create_default_registry
from ..utils.batch_input import BatchLine, load_batch_file
from ..utils.config import ConfigurationLoader, create_sample_config
from ..utils.logger import default_log_file, setup_logger

app = typer.Typer(
    name="azure-sku-migrator",
    help="🔁 Azure deprecated-SKU migration orchestrator",
    add_completion=False
)

console = Console()


class TyperConfirmation(IConfirmationPrompt):
    """Ask the operator on the terminal"""

    def confirm(self, message: str) -> bool:
        return typer.confirm(message, default=False)


def build_provider_client(config: MigrationConfiguration) -> IProviderClient:
    """Create the Azure-backed provider client"""
    from ..provider.azure_client import AzureProviderClient

    return AzureProviderClient(operation_timeout_seconds=config.operation_timeout_seconds)


def read_input(identifier: Optional[str], batch_file: Optional[Path]) -> List[BatchLine]:
    """Turn the positional identifier or the batch file into batch lines"""

    if bool(identifier) == bool(batch_file):
        console.print("❌ Provide exactly one of IDENTIFIER or --batch-file.", style="red")
        raise typer.Exit(1)

    if batch_file:
        return load_batch_file(batch_file)

    try:
        parse_resource_id(identifier)
    except MalformedIdentifier as e:
        console.print(f"❌ {e}", style="red")
        raise typer.Exit(1)
    return [BatchLine(line_number=1, text=identifier.strip())]


def load_config(config_file: Optional[Path], **overrides) -> MigrationConfiguration:
    try:
        return ConfigurationLoader().load_configuration(
            str(config_file) if config_file else None, **overrides
        )
    except ConfigurationError as e:
        console.print(f"❌ Invalid configuration: {e}", style="red")
        raise typer.Exit(1)


def build_orchestrator(
    config: MigrationConfiguration,
    stop_event: Optional[threading.Event] = None
) -> MigrationOrchestrator:
    client = build_provider_client(config)
    return MigrationOrchestrator(
        classifier=ResourceClassifier(client, skip_dependency_check=config.skip_dependency_check),
        registry=create_default_registry(client),
        backup_recorder=FileBackupRecorder(config.backup_directory),
        config=config,
        logger=setup_logger("MigrationOrchestrator"),
        confirmation=TyperConfirmation(),
        stop_event=stop_event,
    )


@app.command()
def migrate(
    identifier: Optional[str] = typer.Argument(
        None, help="Full Azure resource ID to migrate"
    ),
    batch_file: Optional[Path] = typer.Option(
        None, "--batch-file", "-b", exists=True, dir_okay=False,
        help="File with one resource ID per line (# comments allowed)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run",
        help="Classify, plan and validate without changing anything"
    ),
    force: bool = typer.Option(
        False, "--force",
        help="Skip the confirmation prompt"
    ),
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error",
        help="Keep going after a resource fails"
    ),
    skip_dependency_check: bool = typer.Option(
        False, "--skip-dependency-check",
        help="Do not look up load balancers referencing public IPs"
    ),
    backup_dir: Optional[str] = typer.Option(
        None, "--backup-dir",
        help="Directory for pre-migration snapshots"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="YAML configuration file"
    ),
    output_format: Optional[str] = typer.Option(
        None, "--format", "-f",
        help="Report format: json, csv, table"
    ),
    output_file: Optional[str] = typer.Option(
        None, "--output", "-o",
        help="Report output path"
    ),
    html_report: Optional[str] = typer.Option(
        None, "--html-report",
        help="Also write an HTML summary to this path"
    ),
    delay: Optional[float] = typer.Option(
        None, "--delay",
        help="Seconds to wait between resource migrations"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable verbose logging"
    )
):
    """🔁 Migrate resources off deprecated SKUs.

    Exits 0 when no resource failed and 1 otherwise, including usage and configuration errors.
    """

    batch = read_input(identifier, batch_file)
    config = load_config(
        config_file,
        dry_run=dry_run or None,
        force=force or None,
        continue_on_error=continue_on_error or None,
        skip_dependency_check=skip_dependency_check or None,
        backup_directory=backup_dir,
        report_format=output_format.lower() if output_format else None,
        report_path=output_file,
        html_report_path=html_report,
        pacing_delay_seconds=delay,
        log_level="DEBUG" if verbose else None,
    )
    setup_logger(
        "cli",
        config.log_level,
        log_file=default_log_file() if config.log_to_file else None
    )

    stop_event = threading.Event()

    def _request_stop(signum, frame):
        if stop_event.is_set():
            raise KeyboardInterrupt
        stop_event.set()
        console.print(
            "\n⏸️  Stop requested: finishing the current resource. Press Ctrl+C again to abort.",
            style="yellow"
        )

    previous_handler = signal.signal(signal.SIGINT, _request_stop)
    try:
        mode = "dry run" if config.dry_run else "migration"
        console.print(f"\n🚀 Starting {mode} of {len(batch)} resource line(s)...\n")
        report = build_orchestrator(config, stop_event).migrate(batch)
    except CyclicDependency as e:
        console.print(f"\n❌ Cannot order the batch: {e}", style="red")
        raise typer.Exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    display_migration_summary(report)
    write_reports(report, config)

    if report.failed:
        console.print(f"\n⚠️  {report.failed} resource(s) failed. Check the report and logs.", style="yellow")
    else:
        console.print("\n✅ Completed without failures.", style="green")
    raise typer.Exit(report.exit_code)


@app.command()
def plan(
    identifier: Optional[str] = typer.Argument(
        None, help="Full Azure resource ID"
    ),
    batch_file: Optional[Path] = typer.Option(
        None, "--batch-file", "-b", exists=True, dir_okay=False,
        help="File with one resource ID per line"
    ),
    skip_dependency_check: bool = typer.Option(
        False, "--skip-dependency-check",
        help="Do not look up load balancers referencing public IPs"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable verbose logging"
    )
):
    """🗺️  Show the migration order without changing anything"""

    batch = read_input(identifier, batch_file)
    config = load_config(
        config_file,
        dry_run=True,
        skip_dependency_check=skip_dependency_check or None,
        log_level="DEBUG" if verbose else None,
    )
    setup_logger("cli", config.log_level)

    try:
        migration_plan, rejections = build_orchestrator(config).prepare(batch)
    except CyclicDependency as e:
        console.print(f"❌ Cannot order the batch: {e}", style="red")
        raise typer.Exit(1)

    console.print(build_plan_table(migration_plan))
    if migration_plan.edges:
        console.print("\n🔗 Ordering constraints:")
        for before, after in migration_plan.edges:
            console.print(f"  • {before.resource_name} → {after.resource_name}")
    if rejections:
        console.print(build_rejections_table(rejections))

    console.print(
        f"\n📊 {len(migration_plan)} resource(s), {migration_plan.migration_count} to migrate, "
        f"{len(rejections)} rejected line(s)"
    )


@app.command()
def list_subscriptions():
    """📋 List accessible Azure subscriptions"""

    try:
        from ..auth.manager import AuthenticationManager
        from rich.table import Table

        console.print("🔍 Discovering accessible Azure subscriptions...\n")

        auth_manager = AuthenticationManager()
        subscription_ids = auth_manager.get_accessible_subscriptions()

        if subscription_ids:
            table = Table(title="Accessible Azure Subscriptions")
            table.add_column("Subscription ID", style="cyan")
            table.add_column("Name", style="green")

            for sub_id in subscription_ids:
                table.add_row(sub_id, auth_manager.get_subscription_name(sub_id))

            console.print(table)
            console.print(f"\n📊 Total: {len(subscription_ids)} accessible subscriptions")
        else:
            console.print("❌ No accessible subscriptions found.", style="red")

    except Exception as e:
        console.print(f"❌ Failed to list subscriptions: {e}", style="red")
        raise typer.Exit(1)


@app.command()
def init_config(
    path: str = typer.Argument(
        "azure_sku_migrator.yml", help="Where to write the sample configuration"
    )
):
    """📝 Write a sample configuration file"""

    if Path(path).exists():
        console.print(f"❌ {path} already exists.", style="red")
        raise typer.Exit(1)

    output_path = create_sample_config(path)
    console.print(f"📁 Sample configuration created: {output_path}", style="green")


@app.command()
def version():
    """📝 Show version information"""

    version_info = {
        "Azure SKU Migrator": __version__,
        "Python": sys.version.split()[0],
        "Platform": sys.platform
    }

    panel_content = "\n".join([f"{k}: {v}" for k, v in version_info.items()])
    console.print(Panel(panel_content, title="Version Information", expand=False))


def _summary_lines(report: BatchReport) -> List[Tuple[str, object]]:
    return [
        ("🆔 Run ID", report.run_id),
        ("📊 Resources", len(report.results)),
        ("✅ Succeeded", report.succeeded),
        ("⏭️  Skipped", report.skipped),
        ("❌ Failed", report.failed),
        ("⏸️  Not attempted", report.not_attempted),
        ("🚫 Rejected lines", len(report.rejections)),
    ]


def display_migration_summary(report: BatchReport):
    """Display run summary"""

    summary_content = "\n".join(f"{label}: {value}" for label, value in _summary_lines(report))
    if report.halted_by:
        summary_content += f"\n⚠️  Halted: {report.halted_by}"
    if report.backup_references:
        summary_content += f"\n💾 Backups written: {len(report.backup_references)}"

    title = "📋 Dry Run Summary" if report.dry_run else "📋 Migration Summary"
    console.print(Panel(summary_content, title=title, expand=False))
    console.print(build_results_table(report))

    if report.rejections:
        console.print(build_rejections_table(report.rejections))

    manual = [r for r in report.results if r.needs_manual_verification]
    if manual:
        console.print("\n🔎 Manual verification required:", style="yellow")
        for result in manual:
            console.print(f"  • {result.identifier.resource_id}", style="yellow")


def write_reports(report: BatchReport, config: MigrationConfiguration):
    """Export the report in the configured format and the optional HTML summary"""

    if config.report_format != "table":
        try:
            output_path = export_report(report, config.report_format, config.report_path)
            console.print(f"📁 Report exported to: {output_path}", style="green")
        except OSError as e:
            console.print(f"❌ Failed to export report: {e}", style="red")

    if config.html_report_path:
        try:
            output_path = HtmlReportGenerator().generate(report, config.html_report_path)
            console.print(f"🌐 HTML report: file://{output_path}", style="blue")
        except OSError as e:
            console.print(f"❌ Failed to generate HTML report: {e}", style="red")


def main():
    """Main entry point"""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n❌ Interrupted by user.", style="red")
        sys.exit(1)


if __name__ == "__main__":
    main()
