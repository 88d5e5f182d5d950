"""
Equipment and Metadata Detection
Infers the originating cycler from the file name or header vocabulary
"""

import os
import re
import logging
from typing import Any, Dict, Iterable, Optional

from .column_mapper import normalize_header
from .models import FieldMapping, IngestedTable


# Checked in order; first match wins.
# Entries starting with '.' are file extensions, the rest match file-name tokens by prefix.
EQUIPMENT_PATTERNS = (
    ('Maccor', ('maccor', '.md', '.001')),
    ('Arbin', ('arbin', 'bt_lab', 'btlab', '.res')),
    ('Neware', ('neware', 'bts', '.nda', '.ndax', '.ndx')),
    ('BioLogic', ('biologic', 'ec_lab', 'eclab', 'vmp', 'bcs', '.mpt', '.mpr')),
    ('Basytec', ('basytec', 'xcts')),
    ('Digatron', ('digatron', 'diga')),
    ('Bitrode', ('bitrode', 'ftn')),
    ('Land', ('land', 'lanhe', 'ct2001')),
    ('PEC', ('pec', 'sbt')),
    ('Custom', ('custom', 'logger', 'data_logger')),
)

# Normalized header names characteristic of a vendor's export
HEADER_SIGNATURES = (
    ('Maccor', ('procedure', 'md', 'rec#')),
    ('Arbin', ('data_point', 'step_index', 'cycle_index', 'test_time_s')),
    ('Neware', ('neware', 'bts', 'totlcycle', 'record_id')),
    ('BioLogic', ('ewe_v', 'ewe', 'ox_red', 'control_v_ma')),
)

CELL_ID_PATTERN = re.compile(r'(?:battery|cell|bat)[-_ ]?([A-Za-z0-9]+)', re.IGNORECASE)


class EquipmentDetector:
    """
    Identifies test equipment and assembles descriptive metadata for a parse
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def detect(self, filename: str, headers: Iterable = ()) -> str:
        """
        Detect the cycler vendor

        Args:
            filename: Original file name
            headers: Source column headers, used when the name is inconclusive

        Returns:
            Equipment name or 'Unknown'
        """
        name = os.path.basename(filename or '').lower()
        stem, extension = os.path.splitext(name)
        words = re.sub(r'[^a-z0-9]+', '_', stem).strip('_')

        for equipment, patterns in EQUIPMENT_PATTERNS:
            for pattern in patterns:
                if pattern.startswith('.'):
                    if extension == pattern:
                        return equipment
                elif re.search(r'(?:^|_)' + re.escape(pattern), words):
                    return equipment

        normalized = {normalize_header(h) for h in headers}
        for equipment, signature in HEADER_SIGNATURES:
            if normalized.intersection(signature):
                self.logger.debug(f"Equipment {equipment} inferred from headers")
                return equipment

        return 'Unknown'

    @staticmethod
    def extract_cell_id(filename: str) -> Optional[str]:
        """Cell identifier following a cell/bat/battery prefix in the file name"""
        stem = os.path.splitext(os.path.basename(filename or ''))[0]
        match = CELL_ID_PATTERN.search(stem)
        return match.group(1) if match else None

    def build_metadata(self, filename: str, table: Optional[IngestedTable],
                       mapping: Optional[FieldMapping], total_cycles: int,
                       data_points: int, size_bytes: int, used_synthetic_data: bool) -> Dict[str, Any]:
        """Metadata block of the parse result"""
        headers = list(table.frame.columns) if table is not None else []
        delimiter = table.delimiter if table is not None else None

        if used_synthetic_data:
            parsing_method = 'synthetic'
        elif mapping is not None and mapping.positional:
            parsing_method = 'positional'
        else:
            parsing_method = 'pattern'

        return {
            'equipment': self.detect(filename, headers) if not used_synthetic_data else 'Unknown',
            'filename': filename,
            'cellId': self.extract_cell_id(filename),
            'totalCycles': total_cycles,
            'fileSize': size_bytes,
            'fileSizeMB': f"{size_bytes / (1024 * 1024):.2f} MB",
            'dataPoints': data_points,
            'format': table.format_name if table is not None else None,
            'delimiter': {'\t': 'tab', ' ': 'space'}.get(delimiter, delimiter),
            'headerRow': table.header_row if table is not None else None,
            'fieldMapping': mapping.to_dict() if mapping is not None else {},
            'parsingMethod': parsing_method
        }
