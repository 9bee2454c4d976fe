"""Export batch reports as JSON, CSV or terminal tables"""

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from ..core.models import BatchReport, InputRejection, MigrationPlan, MigrationResult, ResourceState
from ..utils.logger import setup_logger

logger = setup_logger("ReportExporter")

CSV_COLUMNS = [
    'Resource ID', 'Resource Name', 'Migration Type', 'State', 'Detail',
    'Error Kind', 'Error Message', 'Needs Manual Verification', 'Backup Location', 'Warnings'
]

STATE_STYLES = {
    ResourceState.SUCCEEDED: 'green',
    ResourceState.SKIPPED: 'blue',
    ResourceState.FAILED: 'red',
    ResourceState.PENDING: 'yellow',
}


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def result_to_dict(result: MigrationResult) -> Dict[str, Any]:
    backup = result.backup_reference
    return {
        'resource_id': result.identifier.resource_id,
        'resource_name': result.identifier.resource_name,
        'resource_type': result.identifier.full_type,
        'migration_type': result.migration_type.value,
        'state': result.state.value,
        'detail': result.detail,
        'error_kind': result.error_kind,
        'error_message': result.error_message,
        'needs_manual_verification': result.needs_manual_verification,
        'backup': {
            'snapshot_id': backup.snapshot_id,
            'location': backup.location,
            'created_at': _timestamp(backup.created_at),
        } if backup else None,
        'warnings': list(result.warnings),
        'started_at': _timestamp(result.started_at),
        'finished_at': _timestamp(result.finished_at),
    }


def report_to_dict(report: BatchReport) -> Dict[str, Any]:
    """Serializable view of a batch report"""
    return {
        'run_id': report.run_id,
        'dry_run': report.dry_run,
        'started_at': _timestamp(report.started_at),
        'finished_at': _timestamp(report.finished_at),
        'summary': {
            'total': len(report.results),
            'succeeded': report.succeeded,
            'skipped': report.skipped,
            'failed': report.failed,
            'not_attempted': report.not_attempted,
            'rejected': len(report.rejections),
            'exit_code': report.exit_code,
        },
        'halted_by': report.halted_by,
        'results': [result_to_dict(r) for r in report.results],
        'rejections': [
            {
                'line_number': r.line_number,
                'raw': r.raw,
                'error_kind': r.error_kind,
                'message': r.message,
            }
            for r in report.rejections
        ],
        'edges': [
            {'before': before.resource_id, 'after': after.resource_id}
            for before, after in report.edges
        ],
    }


def export_to_json(report: BatchReport, output_file: str) -> None:
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(report_to_dict(report), f, indent=2)


def export_to_csv(report: BatchReport, output_file: str) -> None:
    with open(output_file, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for result in report.results:
            writer.writerow([
                result.identifier.resource_id,
                result.identifier.resource_name,
                result.migration_type.value,
                result.state.value,
                result.detail or '',
                result.error_kind or '',
                result.error_message or '',
                'yes' if result.needs_manual_verification else 'no',
                result.backup_reference.location if result.backup_reference else '',
                '; '.join(result.warnings),
            ])


def export_report(report: BatchReport, output_format: str, output_file: Optional[str] = None) -> Optional[str]:
    """Write ``report`` in ``output_format`` and return the file path.

    The ``table`` format prints to the terminal and returns None.
    """

    output_format = output_format.lower()
    if output_format == 'table':
        Console().print(build_results_table(report))
        return None

    if output_format not in ('json', 'csv'):
        raise ValueError(f"Unsupported output format: {output_format}")

    if not output_file:
        output_file = f"sku_migration_{report.run_id[:8]}.{output_format}"
    Path(output_file).parent.mkdir(parents=True, exist_ok=True)

    if output_format == 'json':
        export_to_json(report, output_file)
    else:
        export_to_csv(report, output_file)

    logger.info(f"Report exported to {output_file}")
    return output_file


def build_results_table(report: BatchReport) -> Table:
    title = "Dry Run Results" if report.dry_run else "Migration Results"
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Resource Name", style="cyan")
    table.add_column("Migration", style="magenta")
    table.add_column("State")
    table.add_column("Detail")

    for position, result in enumerate(report.results, start=1):
        style = STATE_STYLES.get(result.state, 'white')
        detail = result.error_message or result.detail or ''
        if result.needs_manual_verification:
            detail += " (manual verification required)"
        table.add_row(
            str(position),
            result.identifier.resource_name,
            result.migration_type.value,
            f"[{style}]{result.state.value}[/{style}]",
            detail,
        )
    return table


def build_rejections_table(rejections: List[InputRejection]) -> Table:
    table = Table(title="Rejected Input Lines")
    table.add_column("Line", justify="right")
    table.add_column("Error", style="red")
    table.add_column("Input", style="dim")
    for rejection in rejections:
        table.add_row(str(rejection.line_number), rejection.message, rejection.raw)
    return table


def build_plan_table(plan: MigrationPlan) -> Table:
    table = Table(title="Migration Plan")
    table.add_column("#", justify="right")
    table.add_column("Resource Name", style="cyan")
    table.add_column("Type", style="blue")
    table.add_column("Migration", style="magenta")
    table.add_column("Tier", justify="right")
    table.add_column("After")
    table.add_column("Reason")

    for position, entry in enumerate(plan, start=1):
        upstream: List[str] = [d.resource_name for d in entry.depends_on]
        upstream += [f"{d.resource_name} (external)" for d in entry.external_dependencies]
        migration = entry.assessment.migration_type.value if entry.needs_migration else "-"
        table.add_row(
            str(position),
            entry.identifier.resource_name,
            entry.identifier.resource_type,
            migration,
            str(entry.assessment.priority_tier),
            ", ".join(upstream),
            entry.assessment.reason,
        )
    return table
