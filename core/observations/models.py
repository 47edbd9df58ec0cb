"""
Work Cycle Observation Models

Value objects flowing through the rate pipeline:

    RawObservation -> ConsolidatedObservation -> ManufacturingOrderRate
        -> CohortResult

Every object is frozen. Derived objects are rebuilt on each recomputation and
never edited in place; the RawObservation set stays the source of truth.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class RawObservation:
    """
    One reported labor interval from the MES.

    The effective quantity is the manufacturing order's declared quantity when
    known, otherwise the quantity done on this cycle.
    """
    operator_name: Optional[str]
    work_center: Optional[str]       # Free text, as reported
    routing: Optional[str]
    duration_seconds: Optional[float]
    mo_id: Optional[str]
    timestamp: Optional[datetime] = None
    operator_id: Optional[int] = None
    quantity: Optional[float] = None         # Quantity done on this cycle
    mo_quantity: Optional[float] = None      # Declared MO total
    work_order_id: Optional[str] = None
    observation_id: Optional[str] = None     # Work cycle id from the source
    product_code: Optional[str] = None
    suspect: bool = False

    @property
    def effective_quantity(self) -> float:
        """Declared MO quantity if present, else quantity done (0 when absent)"""
        if self.mo_quantity is not None:
            return float(self.mo_quantity)
        if self.quantity is not None:
            return float(self.quantity)
        return 0.0

    @property
    def identity(self) -> Tuple:
        """Natural key used to make re-imports idempotent"""
        if self.observation_id is not None:
            return ("id", str(self.observation_id))
        return (
            "record",
            self.operator_id,
            self.operator_name,
            self.work_center,
            self.routing,
            self.duration_seconds,
            self.quantity,
            self.mo_id,
            self.mo_quantity,
            self.work_order_id,
            self.timestamp,
        )


@dataclass(frozen=True, order=True)
class ConsolidationKey:
    """Observations sharing this key describe the same labor event"""
    operator_name: str
    category: str
    routing: str
    mo_id: str


@dataclass(frozen=True)
class ConsolidatedObservation:
    """One reconciled record per ConsolidationKey"""
    key: ConsolidationKey
    duration_seconds: float          # Sum over the group
    quantity: float                  # Max over the group
    observation_count: int
    operator_id: Optional[int] = None
    work_order_ids: Tuple[str, ...] = ()
    declared_quantities: Tuple[float, ...] = ()   # Distinct values seen, sorted
    latest_timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class CohortKey:
    """(operator, category, routing): the unit of final reporting"""
    operator_name: str
    category: str
    routing: str

    def __str__(self) -> str:
        return f"{self.operator_name} | {self.category} | {self.routing}"


@dataclass(frozen=True)
class ManufacturingOrderRate:
    """Rate for one (manufacturing order, operator, category, routing) tuple"""
    mo_id: str
    operator_name: str
    category: str
    routing: str
    duration_hours: float
    quantity: float
    observation_count: int = 1
    operator_id: Optional[int] = None
    work_order_ids: Tuple[str, ...] = ()
    latest_timestamp: Optional[datetime] = None

    @property
    def rate(self) -> float:
        """Units per labor-hour"""
        if self.duration_hours <= 0:
            return 0.0
        return self.quantity / self.duration_hours

    @property
    def cohort(self) -> CohortKey:
        return CohortKey(self.operator_name, self.category, self.routing)


@dataclass(frozen=True)
class Anomaly:
    """A manufacturing order rate excluded from its cohort average"""
    member: ManufacturingOrderRate
    reason: str
    reference_value: Optional[float]   # Cohort median (IQR) or mean (z-score)
    cohort_sample_size: int

    @property
    def mo_id(self) -> str:
        return self.member.mo_id

    @property
    def rate(self) -> float:
        return self.member.rate

    def to_dict(self) -> Dict:
        """Convert to dictionary for review screens"""
        return {
            'mo_id': self.member.mo_id,
            'operator_name': self.member.operator_name,
            'category': self.member.category,
            'routing': self.member.routing,
            'quantity': self.member.quantity,
            'duration_hours': self.member.duration_hours,
            'rate': self.member.rate,
            'reason': self.reason,
            'reference_value': self.reference_value,
            'cohort_sample_size': self.cohort_sample_size,
            'work_order_ids': list(self.member.work_order_ids)
        }


@dataclass(frozen=True)
class CohortResult:
    """Reported rate for one cohort over one rolling window"""
    cohort: CohortKey
    window_days: int
    rate: Optional[float]              # None when no clean member remains
    member_count: int                  # Clean manufacturing orders averaged
    total_observations: int            # Raw observations behind the clean members
    anomalies: Tuple[Anomaly, ...] = ()
    pooled_rate: Optional[float] = None  # Diagnostic only, never the reported rate
    sample_status: str = "ok"
    operator_id: Optional[int] = None
    quantity_conflicts: Tuple[str, ...] = ()   # MOs with divergent declared quantities
    computed_at: Optional[datetime] = None

    @property
    def operator_name(self) -> str:
        return self.cohort.operator_name

    @property
    def category(self) -> str:
        return self.cohort.category

    @property
    def routing(self) -> str:
        return self.cohort.routing

    @property
    def excluded_mo_ids(self) -> List[str]:
        return [a.mo_id for a in self.anomalies]

    def to_dict(self) -> Dict:
        """Convert to dictionary for easy display"""
        return {
            'operator_name': self.cohort.operator_name,
            'operator_id': self.operator_id,
            'category': self.cohort.category,
            'routing': self.cohort.routing,
            'window_days': self.window_days,
            'rate': self.rate,
            'member_count': self.member_count,
            'total_observations': self.total_observations,
            'pooled_rate': self.pooled_rate,
            'sample_status': self.sample_status,
            'anomalies': [a.to_dict() for a in self.anomalies],
            'quantity_conflicts': list(self.quantity_conflicts),
            'computed_at': self.computed_at.isoformat() if self.computed_at else None
        }
