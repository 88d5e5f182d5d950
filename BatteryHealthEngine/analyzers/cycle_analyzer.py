"""
Cycle Aggregation
Classifies samples into charge/discharge/rest steps and reduces them to per-cycle records
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd
from scipy.integrate import trapezoid

from ..config import Config
from ..core.models import CycleRecord, StepType
from ..core.column_mapper import match_step_text


class CycleAnalyzer:
    """
    Groups normalized samples by cycle and computes capacity, voltage and efficiency metrics
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize cycle analyzer

        Args:
            config: Thresholds for rest detection and the cycle fallback
        """
        self.config = config or Config()
        self.logger = logging.getLogger(self.__class__.__name__)

    def classify_steps(self, df: pd.DataFrame) -> pd.Series:
        """
        Tag every sample with a StepType value

        Explicit step/mode text wins; otherwise the sign of the current decides.

        Args:
            df: Normalized samples

        Returns:
            Series of StepType values aligned with df
        """
        threshold = self.config.REST_CURRENT_THRESHOLD_A

        if 'current' in df.columns:
            current = df['current'].to_numpy(dtype=float)
            by_current = np.where(current > threshold, StepType.CHARGE.value,
                                  np.where(current < -threshold, StepType.DISCHARGE.value,
                                           StepType.REST.value))
            by_current = pd.Series(by_current, index=df.index)
        else:
            by_current = pd.Series(StepType.UNKNOWN.value, index=df.index)

        if 'step_type' not in df.columns:
            return by_current

        by_text = df['step_type'].map(match_step_text)
        return by_text.where(by_text.notna(), by_current)

    def assign_cycles(self, df: pd.DataFrame) -> pd.Series:
        """Mapped cycle numbers, or floor(row / rows-per-cycle) + 1 when the file has none"""
        if 'cycle' in df.columns:
            return df['cycle']
        self.logger.debug("No cycle column, grouping rows into fixed-size cycles")
        rows = np.arange(len(df))
        return pd.Series(rows // self.config.FALLBACK_ROWS_PER_CYCLE + 1, index=df.index)

    def analyze_all_cycles(self, df: pd.DataFrame) -> List[CycleRecord]:
        """
        Analyze all cycles in the dataset

        Args:
            df: Normalized samples

        Returns:
            CycleRecords sorted ascending by cycle number
        """
        data = df.copy()
        data['cycle'] = self.assign_cycles(data)
        data['step'] = self.classify_steps(data)

        records = [self.calculate_cycle_metrics(cycle_data, int(cycle_num))
                   for cycle_num, cycle_data in data.groupby('cycle', sort=True)]

        records = self.interpolate_missing(records)
        self.logger.debug(f"Aggregated {len(data)} samples into {len(records)} cycles")
        return records

    def calculate_cycle_metrics(self, cycle_data: pd.DataFrame, cycle_num: int) -> CycleRecord:
        """
        Calculate metrics for a single cycle

        Args:
            cycle_data: Samples of one cycle, with a 'step' column
            cycle_num: Cycle number

        Returns:
            CycleRecord
        """
        charge_data = cycle_data[cycle_data['step'] == StepType.CHARGE.value]
        discharge_data = cycle_data[cycle_data['step'] == StepType.DISCHARGE.value]

        discharge_capacity = self._step_capacity(cycle_data, discharge_data, 'discharge_capacity')
        charge_capacity = self._step_capacity(cycle_data, charge_data, 'charge_capacity')

        coulombic_efficiency = (discharge_capacity / charge_capacity * 100) if charge_capacity > 0 else 0.0

        # Voltage statistics ignore zero/negative readings
        voltage = cycle_data['voltage'] if 'voltage' in cycle_data.columns else pd.Series(dtype=float)
        valid_voltage = voltage[voltage > 0]
        if valid_voltage.empty:
            max_voltage = min_voltage = avg_voltage = 0.0
        else:
            max_voltage = float(valid_voltage.max())
            min_voltage = float(valid_voltage.min())
            discharge_voltage = valid_voltage[discharge_data.index.intersection(valid_voltage.index)]
            avg_source = discharge_voltage if not discharge_voltage.empty else valid_voltage
            avg_voltage = float(avg_source.mean())

        timestamp = None
        duration = None
        if 'time' in cycle_data.columns:
            times = cycle_data['time'].dropna()
            if not times.empty:
                timestamp = float(times.iloc[0])
                duration = float(times.max() - times.min())

        max_temp = avg_temp = None
        if 'temperature' in cycle_data.columns:
            temps = cycle_data['temperature'].dropna()
            if not temps.empty:
                max_temp = float(temps.max())
                avg_temp = float(temps.mean())

        return CycleRecord(
            cycle=cycle_num,
            discharge_capacity=discharge_capacity,
            charge_capacity=charge_capacity,
            max_voltage=max_voltage,
            min_voltage=min_voltage,
            avg_voltage=avg_voltage,
            coulombic_efficiency=float(coulombic_efficiency),
            timestamp=timestamp,
            is_missing=(discharge_capacity == 0 and charge_capacity == 0),
            discharge_energy=self._discharge_energy(discharge_data),
            max_temperature=max_temp,
            avg_temperature=avg_temp,
            duration_s=duration,
            data_points=len(cycle_data)
        )

    def interpolate_missing(self, records: List[CycleRecord]) -> List[CycleRecord]:
        """
        Fill missing cycles that sit between two measured cycles

        Capacities and efficiency are interpolated linearly by cycle number;
        the record stays flagged is_missing and gains is_interpolated.
        """
        measured = [i for i, r in enumerate(records) if not r.is_missing]

        for index, record in enumerate(records):
            if not record.is_missing:
                continue
            before = [i for i in measured if i < index]
            after = [i for i in measured if i > index]
            if not before or not after:
                continue

            prev_rec, next_rec = records[before[-1]], records[after[0]]
            fraction = (record.cycle - prev_rec.cycle) / (next_rec.cycle - prev_rec.cycle)

            record.discharge_capacity = self._lerp(prev_rec.discharge_capacity,
                                                   next_rec.discharge_capacity, fraction)
            record.charge_capacity = self._lerp(prev_rec.charge_capacity,
                                                next_rec.charge_capacity, fraction)
            record.coulombic_efficiency = self._lerp(prev_rec.coulombic_efficiency,
                                                     next_rec.coulombic_efficiency, fraction)
            record.is_interpolated = True
            self.logger.debug(f"Interpolated missing cycle {record.cycle}")

        return records

    @staticmethod
    def _lerp(start: float, end: float, fraction: float) -> float:
        return float(start + (end - start) * fraction)

    @staticmethod
    def _step_capacity(cycle_data: pd.DataFrame, step_data: pd.DataFrame, split_column: str) -> float:
        """
        Step capacity in mAh

        A dedicated charge/discharge capacity column is read over the whole
        cycle; the shared capacity column over the step's own samples only.
        Cumulative counters may rise or fall within a step, so the largest
        magnitude is taken.
        """
        if split_column in cycle_data.columns:
            values = cycle_data[split_column].abs().dropna()
        else:
            values = step_data['capacity'].abs().dropna() if 'capacity' in step_data.columns else pd.Series(dtype=float)
        return float(values.max()) if not values.empty else 0.0

    @staticmethod
    def _discharge_energy(discharge_data: pd.DataFrame) -> float:
        """Discharge energy in Wh, from an energy counter or by integrating V*I over time"""
        if discharge_data.empty:
            return 0.0

        if 'energy' in discharge_data.columns:
            energy = discharge_data['energy'].abs().dropna()
            if not energy.empty:
                return float(energy.max())

        if {'voltage', 'current', 'time'}.issubset(discharge_data.columns):
            samples = discharge_data[['voltage', 'current', 'time']].dropna()
            if len(samples) > 1:
                power_w = samples['voltage'].to_numpy() * np.abs(samples['current'].to_numpy())
                time_hours = samples['time'].to_numpy() / 3600.0
                return float(abs(trapezoid(power_w, time_hours)))

        return 0.0
