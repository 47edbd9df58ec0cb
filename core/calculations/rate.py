"""
Rate (UPH) Calculation Functions

A cohort's rate is the unweighted arithmetic mean of its per manufacturing
order rates. Every completed order counts as one sample of the operator's
pace, so a single very high volume order cannot dominate the result.

The pooled rate (sum of quantities / sum of hours) is returned alongside as a
diagnostic comparison value only. It is not the reported rate.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from core.observations.models import ManufacturingOrderRate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CohortRate:
    """Container for a cohort rate calculation"""
    rate: Optional[float]           # Mean of per-MO rates, None without members
    member_count: int
    total_observations: int
    pooled_rate: Optional[float]    # Diagnostic: sum(quantity) / sum(hours)

    def to_dict(self) -> Dict[str, Optional[float]]:
        """Convert to dictionary for easy display"""
        return {
            'rate': self.rate,
            'member_count': self.member_count,
            'total_observations': self.total_observations,
            'pooled_rate': self.pooled_rate
        }


def calculate_mo_rate(quantity: float, duration_seconds: float) -> float:
    """
    Calculate units per labor-hour for one manufacturing order.

    Args:
        quantity: Declared manufacturing order quantity
        duration_seconds: Total labor duration in seconds

    Returns:
        Units per hour (0.0 when duration is not positive)

    Example:
        >>> calculate_mo_rate(100, 7200)
        50.0
    """
    if duration_seconds <= 0:
        return 0.0
    return quantity / (duration_seconds / 3600.0)


def calculate_pooled_rate(rates: Sequence[ManufacturingOrderRate]) -> Optional[float]:
    """
    Sum of quantities divided by sum of hours across all members.

    Only for diagnostics: it weights high volume orders more heavily and
    systematically differs from the averaged rate.
    """
    total_hours = sum(r.duration_hours for r in rates)
    if total_hours <= 0:
        return None
    return sum(r.quantity for r in rates) / total_hours


def compute_cohort_rate(rates: Sequence[ManufacturingOrderRate]) -> CohortRate:
    """
    Compute the cohort rate as the mean of per manufacturing order rates.

    Args:
        rates: Clean ManufacturingOrderRate members of one cohort

    Returns:
        CohortRate with the averaged rate, member count, total observations
        and the pooled diagnostic value
    """
    if not rates:
        return CohortRate(rate=None, member_count=0, total_observations=0, pooled_rate=None)

    values = np.array([r.rate for r in rates], dtype=float)
    average = float(values.mean())

    return CohortRate(
        rate=average,
        member_count=len(rates),
        total_observations=int(sum(r.observation_count for r in rates)),
        pooled_rate=calculate_pooled_rate(rates)
    )
