import numpy as np
import pandas as pd
import pytest

from BatteryHealthEngine.analyzers.health_analyzer import (
    HealthAnalyzer, chemistry_profile, classify_grade, classify_status
)
from BatteryHealthEngine.config import Config
from BatteryHealthEngine.core.models import (
    Chemistry, CycleRecord, Grade, HealthStatus, SoHPoint, UnitReport
)


def make_cycles(capacities, start=1):
    return [CycleRecord(cycle=start + i, discharge_capacity=float(c), charge_capacity=float(c),
                        max_voltage=4.2, min_voltage=3.0, coulombic_efficiency=100.0)
            for i, c in enumerate(capacities)]


def make_history(values, start=1):
    return [SoHPoint(cycle=start + i, soh=float(v)) for i, v in enumerate(values)]


@pytest.fixture
def analyzer():
    return HealthAnalyzer(Config())


@pytest.mark.parametrize("soh, grade, status", [
    (96.0, Grade.A, HealthStatus.HEALTHY),
    (95.0, Grade.A, HealthStatus.HEALTHY),
    (90.0, Grade.B, HealthStatus.HEALTHY),
    (88.0, Grade.B, HealthStatus.DEGRADING),
    (85.0, Grade.B, HealthStatus.DEGRADING),
    (80.0, Grade.C, HealthStatus.DEGRADING),
    (75.0, Grade.C, HealthStatus.CRITICAL),
    (72.0, Grade.D, HealthStatus.CRITICAL),
])
def test_grade_and_status_bands(soh, grade, status):
    assert classify_grade(soh) == grade
    assert classify_status(soh) == status


def test_soh_is_relative_to_running_maximum(analyzer):
    history = analyzer.calculate_soh_history(make_cycles([2500, 2450, 2600, 2500, 0]))

    assert [p.cycle for p in history] == [1, 2, 3, 4]
    assert [p.soh for p in history] == [100.0, 98.0, 100.0, 96.15]


def test_rul_defaults_with_too_few_points(analyzer):
    assert analyzer.predict_remaining_useful_life(make_history([100, 99])) == (500, None)
    assert analyzer.predict_remaining_useful_life([]) == (500, None)


@pytest.mark.parametrize("values", [[98, 99, 100], [100, 100, 100]])
def test_rul_hits_ceiling_without_decline(analyzer, values):
    rul, _ = analyzer.predict_remaining_useful_life(make_history(values))

    assert rul == 1000


def test_rul_projects_linear_decline(analyzer):
    # SoH = 100.5 - 0.5 * cycle crosses 80% at cycle 41
    history = make_history([100 - 0.5 * i for i in range(30)])
    rul, slope = analyzer.predict_remaining_useful_life(history)

    assert slope == pytest.approx(-0.5)
    assert rul == 11


def test_rul_uses_recent_window_only(analyzer):
    # Flat for 10 cycles, then -1%/cycle reaching 80% at cycle 30
    values = [100] * 10 + [100 - k for k in range(1, 21)]
    rul, slope = analyzer.predict_remaining_useful_life(make_history(values))

    assert slope == pytest.approx(-1.0)
    assert rul == 0


def test_slow_fade_projects_past_the_flat_ceiling(analyzer):
    # SoH = 100.01 - 0.01 * cycle crosses 80% at cycle 2001
    rul, slope = analyzer.predict_remaining_useful_life(make_history([100, 99.99, 99.98, 99.97]))

    assert slope == pytest.approx(-0.01)
    assert rul == pytest.approx(1997, abs=1)
    assert rul > 1000


def test_analyze_without_discharge_defaults_to_full_health(analyzer):
    warnings = []
    summary, metrics = analyzer.analyze('BAT-EMPTY', [], pd.DataFrame({'voltage': []}),
                                        UnitReport(), warnings)

    assert summary.soh == 100.0
    assert summary.soh_history == []
    assert summary.rul == 500
    assert summary.total_cycles == 0
    assert summary.chemistry == Chemistry.UNKNOWN
    assert warnings == ["No discharge capacity found; SoH defaulted to 100%"]
    assert metrics['maxDischargeCapacity'] == 0.0


def test_analyze_summary_and_metrics(analyzer):
    cycles = make_cycles([1000, 950, 900, 850, 790])
    samples = pd.DataFrame({
        'voltage': [4.2, 3.0, 4.2, 3.0],
        'temperature': [25.0, 30.0, 28.0, 27.0],
    })
    summary, metrics = analyzer.analyze('BAT-1', cycles, samples, UnitReport(capacity='Ah'), [])

    assert summary.soh == 79.0
    assert summary.grade == Grade.C
    assert summary.status == HealthStatus.CRITICAL
    assert summary.total_cycles == 5
    assert summary.degradation_rate > 0
    assert metrics['maxDischargeCapacity'] == 1000
    assert metrics['cycleAt80PercentSoH'] == 5
    assert metrics['capacityFadeRate'] == pytest.approx(5.25)
    assert metrics['averageCoulombicEfficiency'] == 100.0
    assert metrics['maxVoltage'] == 4.2
    assert metrics['minVoltage'] == 3.0
    assert metrics['voltageStdDev'] == pytest.approx(0.6)
    assert metrics['temperatureProfile'] == {'mean': 27.5, 'min': 25.0, 'max': 30.0}
    assert metrics['units']['capacity'] == 'Ah'


def test_lfp_voltage_envelope(analyzer):
    samples = pd.DataFrame({'voltage': np.linspace(2.8, 3.6, 9)})

    assert analyzer.detect_chemistry(samples) == Chemistry.LFP


def test_nmc_wins_tie_with_nca(analyzer):
    samples = pd.DataFrame({'voltage': np.linspace(3.1, 4.2, 12)})

    assert analyzer.detect_chemistry(samples) == Chemistry.NMC


def test_unmatched_envelope_is_unknown(analyzer):
    samples = pd.DataFrame({'voltage': [1.0, 1.1, 0.0]})

    assert analyzer.detect_chemistry(samples) == Chemistry.UNKNOWN
    assert analyzer.detect_chemistry(pd.DataFrame({'current': [1.0]})) == Chemistry.UNKNOWN


def test_chemistry_profile_lookup():
    assert chemistry_profile(Chemistry.LCO) == (3.0, 4.35, 3.8)
    assert chemistry_profile(Chemistry.UNKNOWN) is None
