"""
Battery Health Report Generation
Exports parse results as JSON and as a standalone HTML summary
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from jinja2 import Template

from ..core.models import ParseResult


HTML_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <title>Battery Health Report - {{ summary.id }}</title>
    <style>
        body { font-family: Helvetica, sans-serif; margin: 32px; color: #222; background: #f4f6f8; }
        .header { background: #1f3b57; color: #fff; padding: 24px; border-radius: 6px; }
        .section { background: #fff; padding: 20px; margin: 16px 0; border: 1px solid #dde3e8; border-radius: 6px; }
        .metrics-grid { display: grid; grid-template-columns: repeat(3, 1fr); gap: 12px; }
        .metric-box { border: 1px solid #e5e9ed; padding: 14px; text-align: center; }
        .metric-value { font-size: 1.6em; font-weight: 600; }
        .metric-label { font-size: 0.9em; color: #66707a; }
        .plot-container img { display: block; margin: 0 auto; max-width: 100%; }
        .healthy { color: #2e7d32; }
        .degrading, .warning, .warning-list li { color: #ef6c00; }
        .critical { color: #c62828; }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 8px 10px; text-align: left; border-bottom: 1px solid #e5e9ed; }
        th { background: #eef1f4; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Battery Health Report</h1>
        <h2>{{ summary.id }} ({{ metadata.filename }})</h2>
        <p>Generated on: {{ generation_time }}</p>
    </div>

    <div class="section">
        <h2>Health Summary</h2>
        <div class="metrics-grid">
            <div class="metric-box">
                <div class="metric-value {{ summary.status.lower() }}">{{ "%.1f"|format(summary.soh) }}%</div>
                <div class="metric-label">State of Health</div>
            </div>
            <div class="metric-box">
                <div class="metric-value">{{ summary.rul }}</div>
                <div class="metric-label">Remaining Useful Life (cycles)</div>
            </div>
            <div class="metric-box">
                <div class="metric-value">{{ summary.grade }}</div>
                <div class="metric-label">Grade</div>
            </div>
            <div class="metric-box">
                <div class="metric-value {{ summary.status.lower() }}">{{ summary.status }}</div>
                <div class="metric-label">Status</div>
            </div>
            <div class="metric-box">
                <div class="metric-value">{{ summary.chemistry }}</div>
                <div class="metric-label">Chemistry</div>
            </div>
            <div class="metric-box">
                <div class="metric-value">{{ summary.cycles }}</div>
                <div class="metric-label">Cycles</div>
            </div>
        </div>
    </div>

    {% if soh_plot %}
    <div class="section">
        <h2>State of Health Trend</h2>
        <div class="plot-container">
            <img src="{{ soh_plot }}" alt="SoH Trend">
        </div>
    </div>
    {% endif %}

    <div class="section">
        <h2>Test Information</h2>
        <table>
            <tr><th>Parameter</th><th>Value</th></tr>
            <tr><td>Equipment</td><td>{{ metadata.equipment }}</td></tr>
            <tr><td>Cell ID</td><td>{{ metadata.cellId or '-' }}</td></tr>
            <tr><td>Format</td><td>{{ metadata.format or '-' }}</td></tr>
            <tr><td>File Size</td><td>{{ metadata.fileSizeMB }}</td></tr>
            <tr><td>Data Points</td><td>{{ "{:,}".format(metadata.dataPoints) }}</td></tr>
            <tr><td>Parsing Method</td><td>{{ metadata.parsingMethod }}</td></tr>
        </table>
    </div>

    <div class="section">
        <h2>Computed Metrics</h2>
        <table>
            <tr><th>Metric</th><th>Value</th></tr>
            <tr><td>Max Discharge Capacity</td><td>{{ metrics.maxDischargeCapacity }} mAh</td></tr>
            <tr><td>Capacity Fade Rate</td><td>{{ metrics.capacityFadeRate }} %/cycle</td></tr>
            <tr><td>Average Coulombic Efficiency</td><td>{{ metrics.averageCoulombicEfficiency }} %</td></tr>
            <tr><td>Average Max Voltage</td><td>{{ metrics.averageMaxVoltage }} V</td></tr>
            <tr><td>Voltage Stability (CV)</td><td>{{ metrics.voltageStability }} %</td></tr>
            <tr><td>Energy Throughput</td><td>{{ metrics.energyThroughput }} Wh</td></tr>
            <tr><td>Cycle at 80% SoH</td><td>{{ metrics.cycleAt80PercentSoH if metrics.cycleAt80PercentSoH is not none else '-' }}</td></tr>
        </table>
    </div>

    <div class="section">
        <h2>Diagnostic Issues</h2>
        {% if issues %}
        <table>
            <tr><th>Severity</th><th>Category</th><th>Issue</th><th>Recommendation</th></tr>
            {% for issue in issues %}
            <tr>
                <td class="{{ issue.severity.lower() }}">{{ issue.severity }}</td>
                <td>{{ issue.category }}</td>
                <td><strong>{{ issue.title }}</strong><br>{{ issue.description }}</td>
                <td>{{ issue.recommendation }}</td>
            </tr>
            {% endfor %}
        </table>
        {% else %}
        <p>No issues detected.</p>
        {% endif %}
    </div>

    {% if warnings or errors %}
    <div class="section">
        <h2>Parsing Notes</h2>
        <ul class="warning-list">
            {% for message in errors %}<li>{{ message }}</li>{% endfor %}
            {% for message in warnings %}<li>{{ message }}</li>{% endfor %}
        </ul>
    </div>
    {% endif %}

</body>
</html>
"""


def convert_numpy(obj):
    """Native Python value for numpy scalars/arrays"""
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


def deep_convert(obj):
    """Recursively convert numpy types for JSON serialization"""
    if isinstance(obj, dict):
        return {key: deep_convert(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [deep_convert(item) for item in obj]
    else:
        return convert_numpy(obj)


class BatteryReportGenerator:
    """
    Battery health report generator
    Supports HTML and JSON export formats
    """

    def __init__(self, output_dir: str = "reports"):
        """
        Initialize report generator

        Args:
            output_dir: Directory to save generated reports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(self.__class__.__name__)

    def generate_report(self, result: ParseResult, report_format: str = "html") -> List[str]:
        """
        Write the report(s) for one parse result

        Args:
            result: Parse result
            report_format: 'html', 'json' or 'both'

        Returns:
            Paths of the written files
        """
        report_format = report_format.lower()
        if report_format not in ('html', 'json', 'both'):
            raise ValueError(f"Unsupported report format: {report_format}")

        report_name = f"battery_report_{result.battery_id}"
        report_data = deep_convert(result.to_dict())

        paths = []
        if report_format in ('json', 'both'):
            paths.append(self._generate_json_report(report_data, report_name))
        if report_format in ('html', 'both'):
            soh_plot = self._generate_soh_plot(result, report_name)
            paths.append(self._generate_html_report(report_data, report_name, soh_plot))
        return paths

    def _generate_soh_plot(self, result: ParseResult, report_name: str) -> Optional[str]:
        """SoH trend PNG next to the HTML report; None when there is nothing to plot"""
        history = result.summary.soh_history
        if not history:
            return None

        plots_dir = self.output_dir / "plots"
        plots_dir.mkdir(exist_ok=True)
        plot_path = plots_dir / f"{report_name}_soh.png"

        fig, ax = plt.subplots(figsize=(10, 5))
        try:
            ax.plot([p.cycle for p in history], [p.soh for p in history],
                    'o-', color='#667eea', markersize=3, label='SoH')
            ax.axhline(y=80, color='#c0392b', linestyle='--', linewidth=1, label='End of life (80%)')
            ax.set_xlabel('Cycle')
            ax.set_ylabel('State of Health (%)')
            ax.set_title(f'SoH Trend - {result.battery_id}')
            ax.set_ylim(bottom=min(70, min(p.soh for p in history) - 5), top=105)
            ax.grid(True, alpha=0.3)
            ax.legend()
            fig.savefig(plot_path, dpi=150, bbox_inches='tight')
        except (ValueError, OSError) as e:
            self.logger.warning(f"Error generating SoH plot: {e}")
            return None
        finally:
            plt.close(fig)

        return str(plot_path.relative_to(self.output_dir))

    def _generate_html_report(self, report_data: Dict[str, Any], report_name: str,
                              soh_plot: Optional[str]) -> str:
        """Generate HTML report"""
        template = Template(HTML_TEMPLATE)
        html_content = template.render(
            summary=report_data['summary'],
            metrics=report_data['computedMetrics'],
            metadata=report_data['metadata'],
            issues=report_data['issues'],
            warnings=report_data['warnings'],
            errors=report_data['errors'],
            soh_plot=soh_plot,
            generation_time=datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        )

        html_path = self.output_dir / f"{report_name}.html"
        with open(html_path, 'w', encoding='utf-8') as f:
            f.write(html_content)

        self.logger.info(f"HTML report saved to {html_path}")
        return str(html_path)

    def _generate_json_report(self, report_data: Dict[str, Any], report_name: str) -> str:
        """Generate JSON report"""
        json_path = self.output_dir / f"{report_name}.json"

        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(report_data, f, indent=2, ensure_ascii=False)

        self.logger.info(f"JSON report saved to {json_path}")
        return str(json_path)
