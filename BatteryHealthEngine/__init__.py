"""
BatteryHealthEngine - Universal Battery Cycler File Parsing and Health Analytics

Ingests cycler exports of unknown schema, normalizes them to per-cycle records
and derives State-of-Health, Remaining-Useful-Life, chemistry, grade and
diagnostic issues.
"""

__version__ = "1.0.0"
__author__ = "Battery Analysis Team"

from .config import Config, setup_logging
from .core.exceptions import (
    BatteryDataError, InvalidFileHandleError, UnsupportedFormatError, EmptyDatasetError
)
from .core.data_loader import UniversalBatteryLoader
from .analyzers.cycle_analyzer import CycleAnalyzer
from .analyzers.health_analyzer import HealthAnalyzer
from .analyzers.issue_analyzer import IssueAnalyzer
from .pipeline import UniversalBatteryParser, parse_battery_file
