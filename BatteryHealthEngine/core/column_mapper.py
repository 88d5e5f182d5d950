"""
Column/Field Mapping
Maps unknown source headers to canonical fields by name pattern and content
"""

import re
import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import Config
from .models import FieldMapping


def normalize_header(name) -> str:
    """Lower-case a header and collapse separators/brackets to underscores"""
    text = str(name).strip().lower()
    text = re.sub(r'[\s\-\.\(\)\[\]\{\}<>/\\]+', '_', text)
    return text.strip('_')


# Canonical field -> ordered name patterns (already normalized).
# Earlier patterns carry more weight.
FIELD_PATTERNS: Dict[str, tuple] = {
    'cycle': (
        'cycle', 'cycle_number', 'cycle_index', 'cycle_no', 'cyc_no', 'cycle_num',
        'cycle#', 'cycle_id', 'cycle_count', 'cycle_c', 'totlcycle', 'loop',
        'loop_counter', 'cyc', 'c', 'n'
    ),
    'step_type': (
        'step_type', 'step', 'mode', 'regime', 'protocol', 'operation', 'state',
        'status', 'procedure', 'phase', 'stage', 'control_mode', 'test_mode',
        'step_name', 'md', 'step_index', 'step_id', 'control', 'range'
    ),
    'voltage': (
        'voltage', 'volt', 'v', 'voltage_v', 'voltage_mv', 'cell_voltage',
        'terminal_voltage', 'ewe', 'ewe_v', 'potential', 'working_voltage',
        'measured_voltage', 'actual_voltage', 'u', 'vbat', 'vcell', 'volt_v', 'v_v',
        'cell_volt', 'battery_voltage', 'vf', 'vm', 'voltage_measured',
        'voltage_applied', 'ecell', 'ecell_v', 'e'
    ),
    'current': (
        'current', 'curr', 'i', 'current_a', 'current_ma', 'amp', 'amperage',
        'applied_current', 'working_current', 'measured_current', 'actual_current',
        'ibat', 'icell', 'curr_a', 'i_a', 'i_ma', 'cell_current', 'battery_current',
        'test_current', 'if', 'im', 'current_measured', 'current_applied',
        'control_current'
    ),
    'discharge_capacity': (
        'discharge_capacity', 'discharge_capacity_ah', 'discharge_capacity_mah',
        'dchg_cap', 'discharge_cap', 'cap_dchg', 'cap_discharge', 'discharge_ah',
        'disch_cap', 'dchg_capacity', 'qd', 'q_discharge', 'q_discharge_mah'
    ),
    'charge_capacity': (
        'charge_capacity', 'charge_capacity_ah', 'charge_capacity_mah', 'chg_cap',
        'charge_cap', 'cap_chg', 'cap_charge', 'charge_ah', 'chrg_cap',
        'chg_capacity', 'qc', 'q_charge', 'q_charge_mah'
    ),
    'capacity': (
        'capacity', 'cap', 'ah', 'mah', 'capacity_ah', 'capacity_mah', 'amp_hr',
        'amp_hour', 'a_h', 'q', 'q_mah', 'accumulated_capacity',
        'cumulative_capacity', 'specific_capacity', 'capacity_mah_g',
        'q_charge_discharge', 'q_charge_discharge_mah'
    ),
    'energy': (
        'energy', 'wh', 'energy_wh', 'mwh', 'energy_mwh', 'watt_hour', 'watt_hr',
        'discharge_energy', 'charge_energy', 'accumulated_energy',
        'cumulative_energy', 'specific_energy', 'energy_discharge', 'energy_charge',
        'dchg_energy', 'chg_energy'
    ),
    'temperature': (
        'temperature', 'temp', 'celsius', 'temp_c', 'temperature_c', 'cell_temp',
        'ambient_temp', 'battery_temp', 'chamber_temp', 'thermocouple', 't',
        'cell_temperature', 'battery_temperature', 'aux_temp', 'aux_temperature',
        'temp1_deg', 'temp_deg', 'tc'
    ),
    'time': (
        'time', 'test_time', 'total_time', 'elapsed_time', 'time_s', 'test_time_s',
        'total_time_s', 'time_sec', 'time_seconds', 'passtime_sec', 'timestamp',
        'relative_time', 'elapsed', 'runtime', 'test_duration', 'duration',
        'time_h', 'time_min', 'abs_time', 'step_time', 'step_time_s', 'cycle_time',
        'date_time', 'datetime'
    ),
}

# Mapping order; split capacities before the generic column, discharge first
# because "charge_capacity" is a substring of "discharge_capacity".
CANONICAL_FIELDS = tuple(FIELD_PATTERNS.keys())

CORE_FIELDS = ('cycle', 'voltage', 'current')
POSITIONAL_FIELDS = ('cycle', 'voltage', 'current', 'capacity')

EXACT_SCORE = 100.0
TOKEN_SCORE = 70.0
SUBSTRING_SCORE = 40.0
CONTENT_SCORE = 20.0

# Step patterns shared with the cycle analyzer, checked in this order
STEP_PATTERNS = (
    ('discharge', ('discharge', 'dchg', 'disch', 'dischg', 'discharging', 'dc', 'd')),
    ('charge', ('charge', 'chg', 'chrg', 'charging', 'cccv', 'cc', 'cv', 'ch', 'c')),
    ('rest', ('rest', 'pause', 'relax', 'open_circuit', 'idle', 'wait', 'ocv', 'oc', 'r')),
    ('pulse', ('pulse', 'puls', 'p')),
    ('impedance', ('impedance', 'imp', 'eis', 'peis', 'geis', 'z')),
)


def match_step_text(value) -> Optional[str]:
    """Return the step name matched by free text, or None"""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    tokens = set(t for t in re.split(r'[^a-z0-9]+', text) if t)
    for step_name, patterns in STEP_PATTERNS:
        for pattern in patterns:
            if len(pattern) <= 2:
                if pattern in tokens:
                    return step_name
            elif pattern in text:
                return step_name
    return None


def _pattern_score(header: str, pattern: str) -> float:
    if header == pattern:
        return EXACT_SCORE
    if len(pattern) < 3:
        return 0.0
    if header.startswith(pattern) or ('_' + pattern) in header:
        return TOKEN_SCORE
    if len(pattern) >= 4 and pattern in header:
        return SUBSTRING_SCORE
    return 0.0


def _exact_elsewhere(header: str, field_name: str) -> bool:
    """True if the header is literally another field's pattern"""
    if header in FIELD_PATTERNS[field_name]:
        return False
    return any(header in patterns for name, patterns in FIELD_PATTERNS.items()
               if name != field_name)


def header_score(header, field_name: str) -> float:
    """Weighted name-match score of a header against one canonical field"""
    normalized = normalize_header(header)
    if not normalized or _exact_elsewhere(normalized, field_name):
        return 0.0

    best = 0.0
    for index, pattern in enumerate(FIELD_PATTERNS[field_name]):
        weight = max(0.5, 1.0 - 0.02 * index)
        best = max(best, _pattern_score(normalized, pattern) * weight)
    return best


def is_field_name(token) -> bool:
    """Whether a header-row token names any canonical field"""
    text = str(token).strip()
    if not text:
        return False
    try:
        float(text)
        return False
    except ValueError:
        pass
    return any(header_score(text, name) > 0 for name in CANONICAL_FIELDS)


class ColumnMapper:
    """
    Assigns each canonical field to at most one source column
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.logger = logging.getLogger(self.__class__.__name__)

    def map_columns(self, frame: pd.DataFrame, warnings: List[str]) -> FieldMapping:
        """
        Build the field mapping for a raw table

        Args:
            frame: Raw records, one column per source header
            warnings: Shared warnings list, appended in detection order

        Returns:
            Immutable FieldMapping
        """
        headers = list(frame.columns)
        mapping: Dict[str, str] = {}

        for field_name in CANONICAL_FIELDS:
            best_header = None
            best_score = self.config.MAPPING_ACCEPT_THRESHOLD

            for header in headers:
                if header in mapping.values():
                    continue
                name_score = header_score(header, field_name)
                if name_score <= 0:
                    continue
                sample = self._sample_values(frame[header])
                score = name_score + self.content_score(sample, field_name)
                if score > best_score:
                    best_header, best_score = header, score

            if best_header is not None:
                mapping[field_name] = best_header
                self.logger.debug(f"Mapped {field_name} -> {best_header!r} (score {best_score:.1f})")

        if not any(name in mapping for name in CORE_FIELDS):
            return self._positional_mapping(headers, mapping, warnings)

        return FieldMapping(mapping)

    def _positional_mapping(self, headers: Sequence, mapping: Dict[str, str],
                            warnings: List[str]) -> FieldMapping:
        positional = {name: headers[i] for i, name in enumerate(POSITIONAL_FIELDS)
                      if i < len(headers)}
        kept = {name: col for name, col in mapping.items()
                if name not in positional and col not in positional.values()}
        kept.update(positional)

        message = (f"No cycle/voltage/current columns recognised; using positional mapping "
                   f"({', '.join(f'{n}=column {i}' for i, n in enumerate(positional))})")
        warnings.append(message)
        self.logger.warning(message)
        return FieldMapping(kept, positional=True)

    def _sample_values(self, column: pd.Series) -> List:
        values = []
        for value in column:
            if value is None or (isinstance(value, float) and np.isnan(value)):
                continue
            if isinstance(value, str) and not value.strip():
                continue
            values.append(value)
            if len(values) >= self.config.CONTENT_SAMPLE_SIZE:
                break
        return values

    def content_score(self, values: List, field_name: str) -> float:
        """+CONTENT_SCORE when sampled values are plausible for the field, else -CONTENT_SCORE"""
        if not values:
            return 0.0
        return CONTENT_SCORE if self._is_plausible(values, field_name) else -CONTENT_SCORE

    def _is_plausible(self, values: List, field_name: str) -> bool:
        if field_name == 'step_type':
            matched = sum(1 for v in values if match_step_text(v) is not None)
            return matched * 2 >= len(values)

        numeric = pd.to_numeric(pd.Series(values, dtype=object), errors='coerce').dropna()
        if numeric.empty:
            # Absolute timestamps are still a plausible time column
            if field_name == 'time':
                parsed = pd.to_datetime(pd.Series(values, dtype=object), errors='coerce')
                return parsed.notna().all()
            return False

        data = numeric.to_numpy(dtype=float)
        mean = data.mean()

        if field_name == 'cycle':
            return bool(np.all(data >= 0) and np.all(data == np.round(data))
                        and np.all(np.diff(data) >= 0))
        if field_name == 'voltage':
            return 0 <= mean <= 5
        if field_name == 'current':
            return abs(mean) < 100
        if field_name in ('capacity', 'charge_capacity', 'discharge_capacity'):
            return mean > 10
        if field_name == 'temperature':
            return -40 <= mean <= 150
        if field_name == 'time':
            return bool(np.all(data >= 0))
        if field_name == 'energy':
            return mean >= 0
        return True
