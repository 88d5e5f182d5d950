"""
Unit Normalizer
Infers source units from value magnitudes and rescales to V, A, mAh, Wh, degC and seconds
"""

import re
import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from ..config import Config
from .models import FieldMapping, UnitReport
from .exceptions import EmptyDatasetError


NUMERIC_FIELDS = ('cycle', 'voltage', 'current', 'capacity', 'charge_capacity',
                  'discharge_capacity', 'energy', 'temperature')
REQUIRED_FIELDS = ('cycle', 'voltage', 'current')
CAPACITY_FIELDS = ('capacity', 'charge_capacity', 'discharge_capacity')

DURATION_PATTERN = re.compile(r'^\s*(\d+\s+days?\s+)?\d+:\d{2}:\d{2}(\.\d+)?\s*$')


class UnitNormalizer:
    """
    Converts mapped raw columns into canonical units and drops unusable rows
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.logger = logging.getLogger(self.__class__.__name__)

    def normalize(self, frame: pd.DataFrame, mapping: FieldMapping,
                  warnings: List[str]) -> Tuple[pd.DataFrame, UnitReport]:
        """
        Build the normalized sample table

        Args:
            frame: Raw records
            mapping: Canonical field -> source column
            warnings: Shared warnings list

        Returns:
            (normalized DataFrame with canonical column names, detected units)

        Raises:
            EmptyDatasetError: no row has usable cycle/voltage/current values
        """
        data = pd.DataFrame(index=frame.index)

        for field_name in NUMERIC_FIELDS:
            if field_name in mapping:
                values = pd.to_numeric(frame[mapping.get(field_name)], errors='coerce')
                # inf counts as a missing value
                data[field_name] = values.replace([np.inf, -np.inf], np.nan)

        if 'step_type' in mapping:
            data['step_type'] = frame[mapping.get('step_type')].astype(object)
        if 'time' in mapping:
            data['time'] = frame[mapping.get('time')]

        data = self._drop_invalid_rows(data, warnings)

        units = UnitReport()
        if 'cycle' in data:
            data['cycle'] = np.floor(data['cycle']).astype('int64')

        for field_name in CAPACITY_FIELDS:
            if field_name in data:
                data[field_name], unit = self.normalize_capacity(data[field_name])
                if field_name == 'capacity' or 'capacity' not in data:
                    units.capacity = unit

        if 'capacity' not in data:
            data['capacity'] = 0.0
        data['capacity'] = data['capacity'].fillna(0.0)

        if 'voltage' in data:
            data['voltage'], units.voltage = self.normalize_voltage(data['voltage'])
        if 'current' in data:
            data['current'], units.current = self.normalize_current(data['current'])
        if 'energy' in data:
            data['energy'], units.energy = self.normalize_energy(data['energy'])
        if 'temperature' in data:
            data['temperature'], units.temperature = self.normalize_temperature(data['temperature'])
        if 'time' in data:
            data['time'], units.time = self.normalize_time(data['time'])

        self.logger.debug(f"Normalized {len(data)} rows, units {units.to_dict()}")
        return data.reset_index(drop=True), units

    def _drop_invalid_rows(self, data: pd.DataFrame, warnings: List[str]) -> pd.DataFrame:
        total = len(data)
        required = [name for name in REQUIRED_FIELDS if name in data]

        if required:
            valid = data[required].notna().all(axis=1)
            data = data[valid].copy()

        dropped = total - len(data)
        if dropped:
            percent = dropped / total * 100 if total else 0.0
            message = (f"Dropped {dropped} of {total} rows ({percent:.1f}%) with missing "
                       f"or non-numeric {'/'.join(required)} values")
            warnings.append(message)
            self.logger.warning(message)

        if data.empty:
            raise EmptyDatasetError("No rows with usable cycle/voltage/current values")
        return data

    @staticmethod
    def normalize_capacity(series: pd.Series) -> Tuple[pd.Series, str]:
        """Ah when the mean positive magnitude is <= 100, otherwise already mAh"""
        magnitude = series.abs()
        positive = magnitude[magnitude > 0]
        if positive.empty or positive.mean() > 100:
            return series, 'mAh'
        return series * 1000, 'Ah'

    @staticmethod
    def normalize_voltage(series: pd.Series) -> Tuple[pd.Series, str]:
        positive = series[series > 0]
        if not positive.empty and positive.max() > 100:
            return series / 1000, 'mV'
        return series, 'V'

    @staticmethod
    def normalize_current(series: pd.Series) -> Tuple[pd.Series, str]:
        non_zero = series[series != 0].abs()
        if not non_zero.empty and non_zero.mean() > 10:
            return series / 1000, 'mA'
        return series, 'A'

    @staticmethod
    def normalize_energy(series: pd.Series) -> Tuple[pd.Series, str]:
        magnitude = series.abs().dropna()
        if not magnitude.empty and magnitude.mean() > 100:
            return series / 1000, 'mWh'
        return series, 'Wh'

    @staticmethod
    def normalize_temperature(series: pd.Series) -> Tuple[pd.Series, str]:
        valid = series.dropna()
        if not valid.empty and valid.mean() > 200:
            return series - 273.15, 'K'
        return series, 'C'

    @staticmethod
    def normalize_time(column: pd.Series) -> Tuple[pd.Series, str]:
        """
        Elapsed time in seconds

        Numeric columns are classified by magnitude (s / min / h). Text columns
        are read as HH:MM:SS durations or as absolute timestamps, the latter
        becoming seconds since the first timestamp.
        """
        present = column.dropna()
        numeric = pd.to_numeric(column, errors='coerce').replace([np.inf, -np.inf], np.nan)

        if present.empty or numeric.notna().sum() * 2 >= len(present):
            positive = numeric[numeric > 0]
            if positive.empty or positive.max() > 10000:
                return numeric, 's'
            if positive.mean() > 100:
                return numeric * 60, 'min'
            return numeric * 3600, 'h'

        text = present.astype(str)
        if text.str.match(DURATION_PATTERN).all():
            durations = pd.to_timedelta(column.astype(object), errors='coerce')
            return durations.dt.total_seconds(), 's'

        stamps = pd.to_datetime(column.astype(object), errors='coerce', format='mixed')
        if stamps.notna().any():
            elapsed = (stamps - stamps.dropna().iloc[0]).dt.total_seconds()
            return elapsed, 'datetime'

        return numeric, 's'
