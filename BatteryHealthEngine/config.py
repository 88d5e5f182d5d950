"""
Engine Configuration and Logging Setup
Tunable defaults shared by every pipeline stage
"""

import sys
import json
import logging
from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class Config:
    """Heuristic thresholds and defaults for the parsing pipeline"""
    # Ingestion
    HEADER_SCAN_LINES: int = 10
    LARGE_FILE_BYTES: int = 50 * 1024 * 1024

    # Column mapping
    CONTENT_SAMPLE_SIZE: int = 10
    MAPPING_ACCEPT_THRESHOLD: float = 25.0

    # Cycle aggregation
    REST_CURRENT_THRESHOLD_A: float = 0.001
    FALLBACK_ROWS_PER_CYCLE: int = 100

    # Health metrics
    RUL_WINDOW: int = 20
    RUL_MIN_POINTS: int = 3
    RUL_DEFAULT: int = 500
    RUL_CEILING: int = 1000
    EOL_SOH: float = 80.0

    # Logging
    LOG_LEVEL: str = 'INFO'
    LOG_FILE: Optional[str] = None

    @classmethod
    def from_json(cls, file_path: str) -> 'Config':
        """Load configuration from a JSON file"""
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, file_path: str):
        """Save configuration to a JSON file"""
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2)


def setup_logging(config: Config) -> logging.Logger:
    """Configure root logging for command-line use"""
    # Quiet third-party loggers pulled in by report generation
    logging.getLogger('matplotlib').setLevel(logging.WARNING)
    logging.getLogger('matplotlib.font_manager').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)

    stream_handler = logging.StreamHandler(sys.stdout)
    handlers = [stream_handler]
    if config.LOG_FILE:
        handlers.append(logging.FileHandler(config.LOG_FILE, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )

    return logging.getLogger('BatteryHealthEngine')
