#!/usr/bin/env python3
"""
Battery Health Analysis Script
Parses a battery cycler export of any supported layout and reports its health

Usage:
    python battery_health_analysis.py FILE [options]

Options:
    --output-dir DIR         : Output directory for reports and plots
    --report-format FORMAT   : Report format (none, json, html, both)
    --config CONFIG.json     : Threshold overrides (Config fields)
    --verbose                : Enable verbose output

Examples:
    # Print the health summary only
    python battery_health_analysis.py arbin_cell_01.csv

    # Write JSON and HTML reports
    python battery_health_analysis.py maccor_export.txt --report-format both --output-dir results
"""

import argparse
import os
import sys
from dataclasses import replace
from typing import List, Optional

# Allow running from a source checkout
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from BatteryHealthEngine.config import Config, setup_logging
from BatteryHealthEngine.core.models import ParseResult
from BatteryHealthEngine.pipeline import UniversalBatteryParser
from BatteryHealthEngine.reports.report_generator import BatteryReportGenerator


def print_summary(result: ParseResult):
    """Console summary of one parse result"""
    summary = result.summary
    metadata = result.metadata

    print(f"\n[DATA] {metadata['filename']}")
    print(f"   Equipment: {metadata['equipment']}")
    print(f"   Format: {metadata['format'] or 'synthetic'}")
    print(f"   Data points: {metadata['dataPoints']:,}")
    print(f"   Cycles: {summary.total_cycles}")

    print(f"\n[HEALTH] {summary.battery_id}")
    print(f"   SoH: {summary.soh:.1f}%  Grade: {summary.grade.value}  Status: {summary.status.value}")
    print(f"   RUL: {summary.rul} cycles")
    print(f"   Chemistry: {summary.chemistry.value}")

    if result.issues:
        print(f"\n[ISSUES] {len(result.issues)} issue(s)")
        for issue in result.issues:
            print(f"   [{issue.severity.value}] {issue.title} ({issue.category.value})")

    for message in result.errors:
        print(f"[ERROR] {message}")
    for message in result.warnings:
        print(f"[WARN] {message}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Battery Cycler File Health Analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split('Usage:')[1] if 'Usage:' in __doc__ else ""
    )

    parser.add_argument('file', type=str,
                        help='Battery test export to analyze')
    parser.add_argument('--output-dir', type=str, default='analysis_results',
                        help='Output directory for reports and plots')
    parser.add_argument('--report-format', type=str, choices=['none', 'html', 'json', 'both'],
                        default='none', help='Report format')
    parser.add_argument('--config', type=str,
                        help='JSON file with configuration overrides')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose output')

    args = parser.parse_args(argv)

    config = Config.from_json(args.config) if args.config else Config()
    if args.verbose:
        config = replace(config, LOG_LEVEL='DEBUG')
    logger = setup_logging(config)

    try:
        result = UniversalBatteryParser(config).parse_file(args.file)
        print_summary(result)

        if args.report_format != 'none':
            generator = BatteryReportGenerator(output_dir=args.output_dir)
            for path in generator.generate_report(result, args.report_format):
                print(f"   [OK] Report: {path}")

    except Exception as e:
        logger.error(f"Fatal error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
