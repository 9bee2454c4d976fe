"""Static HTML summary of a migration run"""

from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Template

from ..core.interfaces import IReportGenerator
from ..core.models import BatchReport
from ..utils.logger import setup_logger
from .exporter import report_to_dict


class HtmlReportGenerator(IReportGenerator):
    """Render a batch report as a self-contained HTML page"""

    def __init__(self):
        self.logger = setup_logger(self.__class__.__name__)

    def generate(
        self,
        report: BatchReport,
        output_path: str,
        config: Optional[Dict[str, Any]] = None
    ) -> str:
        """Generate the HTML report and return its absolute path"""

        config = config or {}

        try:
            data = report_to_dict(report)
            template = Template(self._get_report_template(), autoescape=True)

            rendered_html = template.render(
                report=data,
                by_type=self._get_counts_by_type(data['results']),
                timestamp=datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
                title=config.get('title', 'Azure SKU Migration Report'),
            )

            output_file = Path(output_path)
            output_file.parent.mkdir(parents=True, exist_ok=True)

            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(rendered_html)

            self.logger.info(f"HTML report generated: {output_path}")
            return str(output_file.absolute())

        except Exception as e:
            self.logger.error(f"Failed to generate HTML report: {e}")
            raise

    def _get_counts_by_type(self, results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Per migration type, how many entries ended in each state"""
        by_type = defaultdict(lambda: defaultdict(int))

        for result in results:
            by_type[result['migration_type']][result['state']] += 1

        return [
            {
                'migration_type': migration_type,
                'total': sum(states.values()),
                'states': dict(states),
            }
            for migration_type, states in sorted(by_type.items())
        ]

    def _get_report_template(self) -> str:
        """Get the HTML template for the report"""

        return '''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
            background: #f4f6fa; color: #333;
        }
        .header {
            background: white; padding: 2rem; box-shadow: 0 4px 16px rgba(0, 0, 0, 0.08); margin-bottom: 2rem;
        }
        .header h1 { color: #2c3e50; font-size: 2rem; margin-bottom: 0.5rem; }
        .header .meta { color: #666; font-size: 0.9rem; }
        .header-stats {
            display: grid; grid-template-columns: repeat(auto-fit, minmax(160px, 1fr));
            gap: 1rem; margin-top: 1.5rem;
        }
        .header-stat {
            text-align: center; padding: 1rem; background: #f8f9fa;
            border-radius: 8px; border-left: 4px solid #4a90e2;
        }
        .header-stat-value { font-size: 1.8rem; font-weight: bold; color: #2c3e50; }
        .header-stat-label {
            color: #666; font-size: 0.8rem; text-transform: uppercase; letter-spacing: 1px;
        }
        .main-container { max-width: 1400px; margin: 0 auto; padding: 0 2rem 2rem 2rem; }
        .section {
            background: white; border-radius: 12px; box-shadow: 0 4px 16px rgba(0, 0, 0, 0.08);
            overflow: hidden; margin-bottom: 2rem;
        }
        .section-header {
            padding: 1rem 1.5rem; background: linear-gradient(45deg, #4a90e2, #7b68ee);
            color: white; font-size: 1.2rem; font-weight: 600;
        }
        table { width: 100%; border-collapse: collapse; }
        th {
            background: #f8f9fa; padding: 0.75rem 1rem; text-align: left; font-weight: 600;
            color: #495057; border-bottom: 2px solid #dee2e6;
        }
        td { padding: 0.75rem 1rem; border-bottom: 1px solid #e9ecef; vertical-align: top; }
        .mono { font-family: Consolas, monospace; font-size: 0.8rem; color: #666; word-break: break-all; }
        .state-badge {
            padding: 0.2rem 0.7rem; border-radius: 12px; font-size: 0.75rem;
            font-weight: 600; text-transform: uppercase; letter-spacing: 1px;
        }
        .state-Succeeded { background: #28a745; color: white; }
        .state-Skipped { background: #17a2b8; color: white; }
        .state-Failed { background: #dc3545; color: white; }
        .state-Pending { background: #ffc107; color: #333; }
        .halted { padding: 1rem 1.5rem; background: #fff3cd; color: #856404; }
        .warning { color: #856404; font-size: 0.85rem; }
        .manual { color: #dc3545; font-weight: 600; font-size: 0.85rem; }
    </style>
</head>
<body>
    <div class="header">
        <h1>{{ title }}{% if report.dry_run %} (dry run){% endif %}</h1>
        <div class="meta">Run {{ report.run_id }} &middot; started {{ report.started_at }} &middot; generated {{ timestamp }}</div>
        <div class="header-stats">
            <div class="header-stat">
                <div class="header-stat-value">{{ report.summary.total }}</div>
                <div class="header-stat-label">Resources</div>
            </div>
            <div class="header-stat">
                <div class="header-stat-value">{{ report.summary.succeeded }}</div>
                <div class="header-stat-label">Succeeded</div>
            </div>
            <div class="header-stat">
                <div class="header-stat-value">{{ report.summary.skipped }}</div>
                <div class="header-stat-label">Skipped</div>
            </div>
            <div class="header-stat">
                <div class="header-stat-value">{{ report.summary.failed }}</div>
                <div class="header-stat-label">Failed</div>
            </div>
            <div class="header-stat">
                <div class="header-stat-value">{{ report.summary.not_attempted }}</div>
                <div class="header-stat-label">Not Attempted</div>
            </div>
            <div class="header-stat">
                <div class="header-stat-value">{{ report.summary.rejected }}</div>
                <div class="header-stat-label">Rejected Lines</div>
            </div>
        </div>
    </div>

    <div class="main-container">
        {% if report.halted_by %}
        <div class="section"><div class="halted">Batch halted: {{ report.halted_by }}</div></div>
        {% endif %}

        <div class="section">
            <div class="section-header">By Migration Type</div>
            <table>
                <thead><tr><th>Migration</th><th>Total</th><th>Outcome</th></tr></thead>
                <tbody>
                {% for row in by_type %}
                    <tr>
                        <td>{{ row.migration_type }}</td>
                        <td>{{ row.total }}</td>
                        <td>{% for state, count in row.states.items() %}<span class="state-badge state-{{ state }}">{{ state }} {{ count }}</span> {% endfor %}</td>
                    </tr>
                {% endfor %}
                </tbody>
            </table>
        </div>

        <div class="section">
            <div class="section-header">Resources (in execution order)</div>
            <table>
                <thead>
                    <tr><th>#</th><th>Resource</th><th>Migration</th><th>State</th><th>Detail</th><th>Backup</th></tr>
                </thead>
                <tbody>
                {% for result in report.results %}
                    <tr>
                        <td>{{ loop.index }}</td>
                        <td>{{ result.resource_name }}<div class="mono">{{ result.resource_id }}</div></td>
                        <td>{{ result.migration_type }}</td>
                        <td><span class="state-badge state-{{ result.state }}">{{ result.state }}</span></td>
                        <td>
                            {{ result.error_message or result.detail or "" }}
                            {% if result.needs_manual_verification %}<div class="manual">Manual verification required</div>{% endif %}
                            {% for warning in result.warnings %}<div class="warning">{{ warning }}</div>{% endfor %}
                        </td>
                        <td class="mono">{{ result.backup.location if result.backup else "" }}</td>
                    </tr>
                {% endfor %}
                </tbody>
            </table>
        </div>

        {% if report.edges %}
        <div class="section">
            <div class="section-header">Ordering Constraints</div>
            <table>
                <thead><tr><th>Before</th><th>After</th></tr></thead>
                <tbody>
                {% for edge in report.edges %}
                    <tr><td class="mono">{{ edge.before }}</td><td class="mono">{{ edge.after }}</td></tr>
                {% endfor %}
                </tbody>
            </table>
        </div>
        {% endif %}

        {% if report.rejections %}
        <div class="section">
            <div class="section-header">Rejected Input Lines</div>
            <table>
                <thead><tr><th>Line</th><th>Error</th><th>Input</th></tr></thead>
                <tbody>
                {% for rejection in report.rejections %}
                    <tr><td>{{ rejection.line_number }}</td><td>{{ rejection.error_kind }}: {{ rejection.message }}</td><td class="mono">{{ rejection.raw }}</td></tr>
                {% endfor %}
                </tbody>
            </table>
        </div>
        {% endif %}
    </div>
</body>
</html>'''
