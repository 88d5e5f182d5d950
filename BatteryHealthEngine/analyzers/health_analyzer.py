"""
Battery Health Analysis Module
State-of-Health trend, chemistry identification, grading and Remaining-Useful-Life projection
"""

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from ..config import Config
from ..core.models import (
    BatteryHealthSummary, Chemistry, CycleRecord, Grade, HealthStatus, SoHPoint, UnitReport
)


# (chemistry, min V, max V, nominal V); order breaks score ties
CHEMISTRY_PROFILES: Tuple[Tuple[Chemistry, float, float, float], ...] = (
    (Chemistry.LFP, 2.0, 3.65, 3.2),
    (Chemistry.LTO, 1.5, 2.8, 2.3),
    (Chemistry.NMC, 2.5, 4.2, 3.65),
    (Chemistry.NCA, 2.7, 4.2, 3.6),
    (Chemistry.LCO, 3.0, 4.35, 3.8),
    (Chemistry.LMO, 3.0, 4.2, 3.8),
)

CHEMISTRY_ACCEPT_SCORE = 60.0

GRADE_BOUNDS = ((95.0, Grade.A), (85.0, Grade.B), (75.0, Grade.C))
STATUS_BOUNDS = ((90.0, HealthStatus.HEALTHY), (80.0, HealthStatus.DEGRADING))


def classify_grade(soh: float) -> Grade:
    """A >= 95, B >= 85, C >= 75, otherwise D"""
    for bound, grade in GRADE_BOUNDS:
        if soh >= bound:
            return grade
    return Grade.D


def classify_status(soh: float) -> HealthStatus:
    """Healthy >= 90, Degrading >= 80, otherwise Critical"""
    for bound, status in STATUS_BOUNDS:
        if soh >= bound:
            return status
    return HealthStatus.CRITICAL


def chemistry_profile(chemistry: Chemistry) -> Optional[Tuple[float, float, float]]:
    """(min, max, nominal) voltage window of a chemistry, None for Unknown"""
    for name, v_min, v_max, v_nominal in CHEMISTRY_PROFILES:
        if name == chemistry:
            return v_min, v_max, v_nominal
    return None


class HealthAnalyzer:
    """
    Derives SoH, RUL, chemistry and summary metrics from per-cycle records
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize health analyzer

        Args:
            config: RUL window, defaults and end-of-life threshold
        """
        self.config = config or Config()
        self.logger = logging.getLogger(self.__class__.__name__)

    def analyze(self, battery_id: str, cycles: List[CycleRecord], samples: pd.DataFrame,
                units: UnitReport, warnings: List[str]) -> Tuple[BatteryHealthSummary, Dict]:
        """
        Compute the health summary and the computed-metrics block

        Args:
            battery_id: Identifier used in the summary
            cycles: Aggregated cycle records, ascending
            samples: Normalized samples (voltage envelope, temperature)
            units: Detected source units
            warnings: Shared warnings list

        Returns:
            (BatteryHealthSummary, computed metrics dict)
        """
        history = self.calculate_soh_history(cycles)

        if history:
            soh = round(history[-1].soh, 1)
        else:
            soh = 100.0
            message = "No discharge capacity found; SoH defaulted to 100%"
            warnings.append(message)
            self.logger.warning(message)

        rul, slope = self.predict_remaining_useful_life(history)
        degradation_rate = round(max(0.0, -slope), 4) if slope is not None else 0.0
        chemistry = self.detect_chemistry(samples)

        summary = BatteryHealthSummary(
            battery_id=battery_id,
            soh=soh,
            soh_history=history,
            rul=rul,
            grade=classify_grade(soh),
            status=classify_status(soh),
            chemistry=chemistry,
            total_cycles=max((c.cycle for c in cycles), default=0),
            degradation_rate=degradation_rate
        )

        metrics = self.compute_metrics(cycles, history, samples, units, degradation_rate)
        self.logger.debug(f"SoH {soh}%, RUL {rul}, chemistry {chemistry.value}")
        return summary, metrics

    def calculate_soh_history(self, cycles: List[CycleRecord]) -> List[SoHPoint]:
        """
        SoH per cycle relative to the running maximum discharge capacity

        Cycles without discharge capacity contribute no point.
        """
        history = []
        running_max = 0.0
        for record in cycles:
            capacity = record.discharge_capacity
            if capacity <= 0:
                continue
            running_max = max(running_max, capacity)
            soh = float(np.clip(capacity * 100 / running_max, 0.0, 100.0))
            history.append(SoHPoint(cycle=record.cycle, soh=round(soh, 2)))
        return history

    def predict_remaining_useful_life(self, history: List[SoHPoint]) -> Tuple[int, Optional[float]]:
        """
        Project cycles until SoH crosses the end-of-life threshold

        Linear least-squares over the most recent RUL_WINDOW points.

        Returns:
            (RUL in cycles, fitted slope in %/cycle or None when no fit was made)
        """
        if len(history) < self.config.RUL_MIN_POINTS:
            return self.config.RUL_DEFAULT, None

        recent = history[-self.config.RUL_WINDOW:]
        x = np.array([p.cycle for p in recent], dtype=float)
        y = np.array([p.soh for p in recent], dtype=float)

        fit = stats.linregress(x, y)
        slope = float(fit.slope)
        if not np.isfinite(slope) or slope >= 0:
            return self.config.RUL_CEILING, slope if np.isfinite(slope) else None

        eol_cycle = (self.config.EOL_SOH - fit.intercept) / slope
        remaining = int(round(eol_cycle - x[-1]))
        return max(0, remaining), slope

    def detect_chemistry(self, samples: pd.DataFrame) -> Chemistry:
        """
        Match the observed voltage envelope against reference chemistries

        Max within 0.1 V of the profile max scores 40, min between
        (profile min - 0.1) and nominal scores 30, and the mean voltage scores
        up to 30 by its distance from nominal.
        """
        if 'voltage' not in samples.columns:
            return Chemistry.UNKNOWN
        voltage = samples['voltage'].dropna()
        voltage = voltage[voltage > 0]
        if voltage.empty:
            return Chemistry.UNKNOWN

        v_max, v_min, v_avg = float(voltage.max()), float(voltage.min()), float(voltage.mean())

        best, best_score = Chemistry.UNKNOWN, 0.0
        for chemistry, p_min, p_max, p_nominal in CHEMISTRY_PROFILES:
            score = 0.0
            if abs(v_max - p_max) <= 0.1:
                score += 40
            if p_min - 0.1 <= v_min <= p_nominal:
                score += 30
            score += self._nominal_score(abs(v_avg - p_nominal))

            if score >= CHEMISTRY_ACCEPT_SCORE and score > best_score:
                best, best_score = chemistry, score

        return best

    @staticmethod
    def _nominal_score(distance: float) -> float:
        if distance <= 0.15:
            return 30.0
        if distance >= 0.5:
            return 0.0
        return 30.0 * (0.5 - distance) / 0.35

    def compute_metrics(self, cycles: List[CycleRecord], history: List[SoHPoint],
                        samples: pd.DataFrame, units: UnitReport,
                        degradation_rate: float) -> Dict:
        """Summary statistics reported alongside the health summary"""
        measured = [c for c in cycles if c.discharge_capacity > 0]
        capacities = [c.discharge_capacity for c in measured]

        fade_rate = 0.0
        if len(measured) >= 2 and measured[-1].cycle != measured[0].cycle and capacities[0] > 0:
            fade_rate = ((capacities[0] - capacities[-1]) / capacities[0] * 100
                         / (measured[-1].cycle - measured[0].cycle))

        max_voltages = np.array([c.max_voltage for c in cycles if c.max_voltage > 0])
        average_max_voltage = float(max_voltages.mean()) if max_voltages.size else 0.0
        voltage_stability = (float(max_voltages.std() / max_voltages.mean() * 100)
                             if max_voltages.size and max_voltages.mean() > 0 else 0.0)

        efficiencies = [c.coulombic_efficiency for c in cycles
                        if c.charge_capacity > 0 and not c.is_interpolated]

        below_eol = next((p.cycle for p in history if p.soh < self.config.EOL_SOH), None)

        voltage = samples['voltage'].dropna() if 'voltage' in samples.columns else pd.Series(dtype=float)
        voltage = voltage[voltage > 0]
        temperature_profile = None
        if 'temperature' in samples.columns and samples['temperature'].notna().any():
            temps = samples['temperature'].dropna()
            temperature_profile = {
                'mean': round(float(temps.mean()), 2),
                'min': round(float(temps.min()), 2),
                'max': round(float(temps.max()), 2)
            }

        return {
            'maxDischargeCapacity': round(max(capacities), 2) if capacities else 0.0,
            'totalCycles': max((c.cycle for c in cycles), default=0),
            'cycleAt80PercentSoH': below_eol,
            'averageMaxVoltage': round(average_max_voltage, 4),
            'capacityFadeRate': round(fade_rate, 4),
            'voltageStability': round(voltage_stability, 4),
            'averageCoulombicEfficiency': round(float(np.mean(efficiencies)), 2) if efficiencies else 0.0,
            'firstCycleEfficiency': round(efficiencies[0], 2) if efficiencies else 0.0,
            'maxVoltage': round(float(voltage.max()), 4) if not voltage.empty else 0.0,
            'minVoltage': round(float(voltage.min()), 4) if not voltage.empty else 0.0,
            'voltageStdDev': round(float(voltage.std(ddof=0)), 4) if not voltage.empty else 0.0,
            'temperatureProfile': temperature_profile,
            'energyThroughput': round(sum(c.discharge_energy for c in cycles), 4),
            'degradationRate': degradation_rate,
            'units': units.to_dict()
        }
