"""
Data Models for Parsed Battery Test Data
Per-cycle records, health summary, diagnostic issues and the parse result
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass, field


class StepType(Enum):
    """Electrical regime of a sample"""
    CHARGE = "charge"
    DISCHARGE = "discharge"
    REST = "rest"
    PULSE = "pulse"
    IMPEDANCE = "impedance"
    UNKNOWN = "unknown"


class Chemistry(Enum):
    """Cell chemistry inferred from the voltage envelope"""
    LFP = "LFP"
    NMC = "NMC"
    LCO = "LCO"
    NCA = "NCA"
    LTO = "LTO"
    LMO = "LMO"
    UNKNOWN = "Unknown"


class Grade(Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class HealthStatus(Enum):
    HEALTHY = "Healthy"
    DEGRADING = "Degrading"
    CRITICAL = "Critical"


class IssueSeverity(Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"
    INFO = "Info"


class IssueCategory(Enum):
    PERFORMANCE = "Performance"
    SAFETY = "Safety"
    MAINTENANCE = "Maintenance"
    OPERATIONAL = "Operational"


@dataclass(frozen=True)
class FieldMapping:
    """Canonical field -> source column, fixed once built"""
    columns: Mapping[str, str] = field(default_factory=dict)
    positional: bool = False

    def __post_init__(self):
        columns = dict(self.columns)
        sources = list(columns.values())
        if len(sources) != len(set(sources)):
            raise ValueError(f"Source column mapped to more than one field: {columns}")
        object.__setattr__(self, 'columns', MappingProxyType(columns))

    def __contains__(self, field_name: str) -> bool:
        return field_name in self.columns

    def get(self, field_name: str) -> Optional[str]:
        return self.columns.get(field_name)

    def to_dict(self) -> Dict[str, str]:
        return dict(self.columns)


@dataclass
class IngestedTable:
    """Row-oriented raw records plus how they were read"""
    frame: Any  # pandas.DataFrame of raw cell values, columns = source headers
    format_name: str
    delimiter: Optional[str] = None
    header_row: Optional[int] = None
    size_bytes: int = 0


@dataclass
class UnitReport:
    """Source units detected for each field"""
    capacity: str = 'mAh'
    voltage: str = 'V'
    current: str = 'A'
    time: str = 's'
    energy: str = 'Wh'
    temperature: str = 'C'

    def to_dict(self) -> Dict[str, str]:
        return {
            'capacity': self.capacity,
            'voltage': self.voltage,
            'current': self.current,
            'time': self.time,
            'energy': self.energy,
            'temperature': self.temperature
        }


@dataclass
class CycleRecord:
    """Aggregated metrics for one cycle"""
    cycle: int
    discharge_capacity: float = 0.0
    charge_capacity: float = 0.0
    max_voltage: float = 0.0
    min_voltage: float = 0.0
    avg_voltage: float = 0.0
    coulombic_efficiency: float = 0.0
    timestamp: Optional[float] = None
    is_missing: bool = False
    is_interpolated: bool = False
    discharge_energy: float = 0.0
    max_temperature: Optional[float] = None
    avg_temperature: Optional[float] = None
    duration_s: Optional[float] = None
    data_points: int = 0


@dataclass(frozen=True)
class SoHPoint:
    cycle: int
    soh: float


@dataclass
class BatteryHealthSummary:
    """Health indicators handed to the persistence layer"""
    battery_id: str
    soh: float
    soh_history: List[SoHPoint]
    rul: int
    grade: Grade
    status: HealthStatus
    chemistry: Chemistry
    total_cycles: int
    degradation_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.battery_id,
            'soh': self.soh,
            'sohHistory': [{'cycle': p.cycle, 'soh': p.soh} for p in self.soh_history],
            'rul': self.rul,
            'grade': self.grade.value,
            'status': self.status.value,
            'chemistry': self.chemistry.value,
            'cycles': self.total_cycles,
            'degradationRate': self.degradation_rate
        }


@dataclass
class Issue:
    """One diagnostic finding"""
    id: str
    category: IssueCategory
    severity: IssueSeverity
    title: str
    description: str
    cause: str
    recommendation: str
    affected_metrics: List[str]
    solution: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'category': self.category.value,
            'severity': self.severity.value,
            'title': self.title,
            'description': self.description,
            'cause': self.cause,
            'solution': self.solution,
            'recommendation': self.recommendation,
            'affectedMetrics': list(self.affected_metrics)
        }


@dataclass
class ParseResult:
    """Self-contained output of one parse call"""
    battery_id: str
    cycles: List[CycleRecord]
    summary: BatteryHealthSummary
    computed_metrics: Dict[str, Any]
    issues: List[Issue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    used_synthetic_data: bool = False

    def cycle_analysis(self) -> Dict[str, List[Any]]:
        """Per-cycle arrays in cycle order"""
        soh_by_cycle = {p.cycle: p.soh for p in self.summary.soh_history}
        return {
            'cycle_number': [c.cycle for c in self.cycles],
            'discharge_capacity': [c.discharge_capacity for c in self.cycles],
            'charge_capacity': [c.charge_capacity for c in self.cycles],
            'soh': [soh_by_cycle.get(c.cycle) for c in self.cycles],
            'max_voltage': [c.max_voltage for c in self.cycles],
            'min_voltage': [c.min_voltage for c in self.cycles],
            'avg_voltage': [c.avg_voltage for c in self.cycles],
            'timestamp': [c.timestamp for c in self.cycles],
            'coulombic_efficiency': [c.coulombic_efficiency for c in self.cycles],
            'missing_values': [f"Cycle {c.cycle}" for c in self.cycles if c.is_missing],
            'interpolated_values': [f"Cycle {c.cycle}" for c in self.cycles if c.is_interpolated]
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cycleAnalysis': self.cycle_analysis(),
            'computedMetrics': dict(self.computed_metrics),
            'summary': self.summary.to_dict(),
            'issues': [issue.to_dict() for issue in self.issues],
            'warnings': list(self.warnings),
            'errors': list(self.errors),
            'metadata': dict(self.metadata)
        }
