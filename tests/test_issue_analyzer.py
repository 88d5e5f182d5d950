import pytest

from BatteryHealthEngine.analyzers.health_analyzer import classify_grade, classify_status
from BatteryHealthEngine.analyzers.issue_analyzer import IssueAnalyzer
from BatteryHealthEngine.core.models import (
    BatteryHealthSummary, Chemistry, IssueCategory, IssueSeverity
)


def make_summary(soh=95.0, rul=500, chemistry=Chemistry.NMC, cycles=100):
    return BatteryHealthSummary(
        battery_id='BAT-T1',
        soh=soh,
        soh_history=[],
        rul=rul,
        grade=classify_grade(soh),
        status=classify_status(soh),
        chemistry=chemistry,
        total_cycles=cycles
    )


def make_metrics(**overrides):
    metrics = {
        'maxVoltage': 4.2,
        'minVoltage': 3.0,
        'voltageStdDev': 0.3,
        'temperatureProfile': None,
    }
    metrics.update(overrides)
    return metrics


def issue_keys(issues):
    return [issue.id.replace('BAT-T1-', '') for issue in issues]


@pytest.fixture
def analyzer():
    return IssueAnalyzer()


def test_healthy_battery_has_no_issues(analyzer):
    assert analyzer.analyze(make_summary(), make_metrics()) == []


def test_critical_soh_raises_single_performance_issue(analyzer):
    issues = analyzer.analyze(make_summary(soh=70.0), make_metrics())

    assert len(issues) == 1
    issue = issues[0]
    assert issue.id == 'BAT-T1-soh-critical'
    assert issue.severity == IssueSeverity.CRITICAL
    assert issue.category == IssueCategory.PERFORMANCE
    assert '70.0%' in issue.description


def test_low_rul_adds_operational_issue(analyzer):
    issues = analyzer.analyze(make_summary(soh=70.0, rul=50), make_metrics())

    assert issue_keys(issues) == ['soh-critical', 'rul-critical']
    assert issues[1].category == IssueCategory.OPERATIONAL
    assert issues[1].severity == IssueSeverity.CRITICAL


def test_moderate_soh_is_a_warning(analyzer):
    issues = analyzer.analyze(make_summary(soh=85.0), make_metrics())

    assert issue_keys(issues) == ['soh-warning']
    assert issues[0].severity == IssueSeverity.WARNING


def test_high_cycle_count(analyzer):
    issues = analyzer.analyze(make_summary(cycles=2500, chemistry=Chemistry.UNKNOWN), make_metrics())

    assert issue_keys(issues) == ['cycles-high']
    assert issues[0].category == IssueCategory.MAINTENANCE


def test_overvoltage_limit_follows_chemistry(analyzer):
    nmc = analyzer.analyze(make_summary(), make_metrics(maxVoltage=4.35))
    lco = analyzer.analyze(make_summary(chemistry=Chemistry.LCO), make_metrics(maxVoltage=4.35))

    assert issue_keys(nmc) == ['overvoltage']
    assert nmc[0].category == IssueCategory.SAFETY
    assert lco == []


def test_deep_discharge_limit_follows_chemistry(analyzer):
    nmc = analyzer.analyze(make_summary(), make_metrics(minVoltage=2.2))
    lto = analyzer.analyze(make_summary(chemistry=Chemistry.LTO), make_metrics(minVoltage=2.2))
    lfp = analyzer.analyze(make_summary(chemistry=Chemistry.LFP), make_metrics(minVoltage=2.2, maxVoltage=3.6))
    unmeasured = analyzer.analyze(make_summary(), make_metrics(minVoltage=0.0))

    assert issue_keys(nmc) == ['undervoltage']
    assert lto == []
    assert lfp == []
    assert unmeasured == []


def test_voltage_instability(analyzer):
    issues = analyzer.analyze(make_summary(), make_metrics(voltageStdDev=0.55))

    assert issue_keys(issues) == ['voltage-instability']
    assert issues[0].severity == IssueSeverity.WARNING


def test_chemistry_specific_notes(analyzer):
    lfp = analyzer.analyze(make_summary(soh=84.0, chemistry=Chemistry.LFP), make_metrics(maxVoltage=3.6))
    nmc = analyzer.analyze(make_summary(soh=93.0, cycles=1200), make_metrics())

    assert issue_keys(lfp) == ['soh-warning', 'lfp-degradation']
    assert lfp[1].severity == IssueSeverity.INFO
    assert issue_keys(nmc) == ['nmc-performance']


def test_high_temperature(analyzer):
    profile = {'mean': 40.0, 'min': 25.0, 'max': 55.0}
    issues = analyzer.analyze(make_summary(), make_metrics(temperatureProfile=profile))

    assert issue_keys(issues) == ['thermal-high']
    assert issues[0].category == IssueCategory.SAFETY


def test_issue_dict_shape(analyzer):
    issue = analyzer.analyze(make_summary(soh=70.0), make_metrics())[0]
    data = issue.to_dict()

    assert data['severity'] == 'Critical'
    assert data['category'] == 'Performance'
    assert data['affectedMetrics'] == ['SoH', 'RUL', 'Capacity']
    assert set(data) == {'id', 'category', 'severity', 'title', 'description', 'cause',
                         'solution', 'recommendation', 'affectedMetrics'}
