"""
Diagnostic Issue Analysis
Rule-based detection of performance, safety and maintenance issues
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.models import BatteryHealthSummary, Chemistry, Issue, IssueCategory, IssueSeverity
from .health_analyzer import chemistry_profile


SOH_CRITICAL = 80.0
SOH_WARNING = 90.0
RUL_CRITICAL = 100
HIGH_CYCLE_COUNT = 2000
OVERVOLTAGE_V = 4.3
DEEP_DISCHARGE_V = 2.5
VOLTAGE_STD_LIMIT = 0.5
LFP_SOH_LIMIT = 85.0
NMC_CYCLE_COUNT = 1000
NMC_SOH_LIMIT = 90.0
MAX_TEMPERATURE_C = 50.0


class IssueAnalyzer:
    """
    Evaluates every diagnostic rule independently over the health summary and metrics
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def analyze(self, summary: BatteryHealthSummary, metrics: Dict[str, Any]) -> List[Issue]:
        """
        Run all rules

        Args:
            summary: Battery health summary
            metrics: Computed metrics (voltage extrema, std-dev, temperature profile)

        Returns:
            Issues in rule order; empty when nothing triggers
        """
        rules = (
            self._check_soh,
            self._check_rul,
            self._check_cycle_count,
            self._check_overvoltage,
            self._check_deep_discharge,
            self._check_voltage_stability,
            self._check_chemistry,
            self._check_temperature,
        )

        issues = []
        for rule in rules:
            issues.extend(rule(summary, metrics))

        self.logger.debug(f"{len(issues)} issue(s) detected for {summary.battery_id}")
        return issues

    @staticmethod
    def _issue(summary: BatteryHealthSummary, key: str, severity: IssueSeverity,
               category: IssueCategory, **fields) -> Issue:
        return Issue(id=f"{summary.battery_id}-{key}", severity=severity, category=category, **fields)

    def _check_soh(self, summary, metrics) -> List[Issue]:
        if summary.soh < SOH_CRITICAL:
            return [self._issue(
                summary, 'soh-critical', IssueSeverity.CRITICAL, IssueCategory.PERFORMANCE,
                title='Critical State of Health Degradation',
                description=f"Battery SoH has dropped to {summary.soh:.1f}%, below the {SOH_CRITICAL:.0f}% threshold",
                cause='Excessive cycling, high temperature exposure, or deep discharge cycles may have accelerated capacity loss',
                solution='Consider battery replacement or capacity testing to verify actual usable capacity',
                recommendation='Replace battery immediately for critical applications',
                affected_metrics=['SoH', 'RUL', 'Capacity']
            )]
        if summary.soh < SOH_WARNING:
            return [self._issue(
                summary, 'soh-warning', IssueSeverity.WARNING, IssueCategory.PERFORMANCE,
                title='Moderate State of Health Degradation',
                description=f"Battery SoH is {summary.soh:.1f}%, showing signs of aging",
                cause='Normal aging process accelerated by operating conditions or usage patterns',
                solution='Monitor closely and implement capacity management strategies',
                recommendation='Plan for replacement within 6-12 months',
                affected_metrics=['SoH', 'RUL']
            )]
        return []

    def _check_rul(self, summary, metrics) -> List[Issue]:
        if summary.rul >= RUL_CRITICAL:
            return []
        return [self._issue(
            summary, 'rul-critical', IssueSeverity.CRITICAL, IssueCategory.OPERATIONAL,
            title='Low Remaining Useful Life',
            description=f"Only {summary.rul} cycles remaining before end-of-life",
            cause='High degradation rate due to stress factors or poor operating conditions',
            solution='Immediate replacement planning and load reduction if possible',
            recommendation='Replace within next 50 cycles or 1-2 months',
            affected_metrics=['RUL', 'Reliability']
        )]

    def _check_cycle_count(self, summary, metrics) -> List[Issue]:
        if summary.total_cycles <= HIGH_CYCLE_COUNT:
            return []
        return [self._issue(
            summary, 'cycles-high', IssueSeverity.WARNING, IssueCategory.MAINTENANCE,
            title='High Cycle Count',
            description=f"Battery has completed {summary.total_cycles} cycles, approaching typical lifespan limits",
            cause='Extended usage leading to cumulative degradation effects',
            solution='Increase monitoring frequency and prepare for replacement',
            recommendation='Monitor weekly and plan replacement strategy',
            affected_metrics=['Cycles', 'Reliability']
        )]

    def _check_overvoltage(self, summary, metrics) -> List[Issue]:
        """Flags max V above 4.3 V, raised to the chemistry ceiling + 0.05 V (LCO: 4.40 V)"""
        max_voltage = metrics.get('maxVoltage') or 0.0
        profile = chemistry_profile(summary.chemistry)
        limit = max(OVERVOLTAGE_V, profile[1] + 0.05) if profile else OVERVOLTAGE_V
        if max_voltage <= limit:
            return []
        return [self._issue(
            summary, 'overvoltage', IssueSeverity.CRITICAL, IssueCategory.SAFETY,
            title='Overvoltage Detected',
            description=f"Maximum voltage of {max_voltage:.2f}V exceeds the {limit:.2f}V safe limit",
            cause='Charging system malfunction or improper voltage settings',
            solution='Check charging system calibration and voltage limits',
            recommendation='Immediately review charging parameters',
            affected_metrics=['Voltage', 'Safety']
        )]

    def _check_deep_discharge(self, summary, metrics) -> List[Issue]:
        """Flags min V below 2.5 V, lowered to the chemistry floor (LFP: 2.0 V, so 2.2 V passes)"""
        min_voltage = metrics.get('minVoltage') or 0.0
        if min_voltage <= 0:
            return []
        profile = chemistry_profile(summary.chemistry)
        limit = min(DEEP_DISCHARGE_V, profile[0]) if profile else DEEP_DISCHARGE_V
        if min_voltage >= limit:
            return []
        return [self._issue(
            summary, 'undervoltage', IssueSeverity.CRITICAL, IssueCategory.SAFETY,
            title='Deep Discharge Detected',
            description=f"Minimum voltage of {min_voltage:.2f}V indicates deep discharge",
            cause='Over-discharge protection failure or excessive load',
            solution='Implement better discharge protection and load management',
            recommendation='Review discharge cutoff settings',
            affected_metrics=['Voltage', 'Capacity', 'Lifespan']
        )]

    def _check_voltage_stability(self, summary, metrics) -> List[Issue]:
        std_dev = metrics.get('voltageStdDev') or 0.0
        if std_dev <= VOLTAGE_STD_LIMIT:
            return []
        return [self._issue(
            summary, 'voltage-instability', IssueSeverity.WARNING, IssueCategory.PERFORMANCE,
            title='Voltage Instability',
            description=f"High voltage variation (std={std_dev:.3f}V) detected",
            cause='Internal resistance increase, connection issues, or cell imbalance',
            solution='Check connections and consider internal resistance testing',
            recommendation='Perform detailed electrical testing',
            affected_metrics=['Voltage', 'Performance']
        )]

    def _check_chemistry(self, summary, metrics) -> List[Issue]:
        issues = []
        if summary.chemistry == Chemistry.LFP and summary.soh < LFP_SOH_LIMIT:
            issues.append(self._issue(
                summary, 'lfp-degradation', IssueSeverity.INFO, IssueCategory.PERFORMANCE,
                title='LFP Chemistry Degradation Pattern',
                description='LFP batteries typically maintain capacity longer but show sudden drops',
                cause='LFP-specific degradation mechanisms including iron dissolution',
                solution='Consider capacity recalibration and updated SoH assessment',
                recommendation='Perform full capacity test to verify actual degradation',
                affected_metrics=['SoH', 'Capacity']
            ))

        if (summary.chemistry == Chemistry.NMC and summary.total_cycles > NMC_CYCLE_COUNT
                and summary.soh > NMC_SOH_LIMIT):
            issues.append(self._issue(
                summary, 'nmc-performance', IssueSeverity.INFO, IssueCategory.PERFORMANCE,
                title='Excellent NMC Performance',
                description='Battery showing better than expected performance for cycle count',
                cause='Optimal operating conditions and good thermal management',
                solution='Continue current operating practices',
                recommendation='Document and replicate successful operating conditions',
                affected_metrics=['Performance', 'Lifespan']
            ))
        return issues

    def _check_temperature(self, summary, metrics) -> List[Issue]:
        profile: Optional[Dict] = metrics.get('temperatureProfile')
        if not profile or profile['max'] <= MAX_TEMPERATURE_C:
            return []
        return [self._issue(
            summary, 'thermal-high', IssueSeverity.WARNING, IssueCategory.SAFETY,
            title='High Operating Temperature',
            description=f"Maximum cell temperature reached {profile['max']:.1f}°C",
            cause='Insufficient cooling, high C-rate operation or elevated ambient temperature',
            solution='Improve thermal management and verify chamber/ambient conditions',
            recommendation='Reduce charge/discharge rates until temperature is under control',
            affected_metrics=['Temperature', 'Safety', 'Lifespan']
        )]
