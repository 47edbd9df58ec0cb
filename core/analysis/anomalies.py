"""
Rate Anomaly Detection

Flags manufacturing order rates that are not representative of an operator's
pace within a cohort (same operator, category and routing): setup/teardown
noise, data-entry corruption, partial-cycle artifacts.

Detection strategy per cohort:
1. Absolute bounds (any cohort size): rate <= 0 or above the ceiling
2. Fewer than 3 remaining members: no statistical test
3. 5 or more members: IQR fences [Q1 - 1.5*IQR, Q3 + 1.5*IQR], median reference
4. 3-4 members: z-score with population std, |z| > 3, mean reference

Anomalies are excluded from the cohort average but returned with their
reason for review. Input records are never modified.
"""

import logging
from collections import Counter, OrderedDict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from core.observations.models import Anomaly, CohortKey, ManufacturingOrderRate

logger = logging.getLogger(__name__)

# Reason codes
OUT_OF_BOUNDS = "out of absolute bounds"
IQR_OUTLIER = "IQR outlier"
ZSCORE_OUTLIER = "z-score outlier"

# Sample status
SAMPLE_OK = "ok"
INSUFFICIENT_SAMPLE = "insufficient-sample"

MIN_SAMPLE_SIZE = 3
IQR_SAMPLE_SIZE = 5
IQR_MULTIPLIER = 1.5
ZSCORE_THRESHOLD = 3.0
DEFAULT_RATE_CEILING = 1000.0


@dataclass(frozen=True)
class AnomalyDetection:
    """Container for anomaly detection results"""
    clean: Tuple[ManufacturingOrderRate, ...]
    anomalies: Tuple[Anomaly, ...]
    sample_status: Dict[CohortKey, str] = field(default_factory=dict)

    @property
    def anomaly_mo_ids(self) -> List[str]:
        return [a.mo_id for a in self.anomalies]


def _absolute_bounds(
    members: Sequence[ManufacturingOrderRate],
    rate_ceiling: float
) -> Tuple[List[ManufacturingOrderRate], List[Anomaly]]:
    """Split members on the absolute sanity bounds"""
    inside, outside = [], []
    for member in members:
        if member.rate <= 0 or member.rate > rate_ceiling:
            outside.append(Anomaly(
                member=member,
                reason=OUT_OF_BOUNDS,
                reference_value=rate_ceiling,
                cohort_sample_size=len(members)
            ))
        else:
            inside.append(member)
    return inside, outside


def _iqr_outliers(members: Sequence[ManufacturingOrderRate]) -> List[Anomaly]:
    """IQR fences for cohorts of IQR_SAMPLE_SIZE or more"""
    values = np.sort(np.array([m.rate for m in members], dtype=float))
    n = len(values)
    # Quartiles and median are order statistics at floor(n * p), no interpolation
    q1 = values[int(n * 0.25)]
    q3 = values[int(n * 0.75)]
    median = float(values[int(n * 0.5)])
    iqr = q3 - q1
    lower_bound = q1 - IQR_MULTIPLIER * iqr
    upper_bound = q3 + IQR_MULTIPLIER * iqr

    return [
        Anomaly(
            member=m,
            reason=IQR_OUTLIER,
            reference_value=median,
            cohort_sample_size=len(members)
        )
        for m in members
        if m.rate < lower_bound or m.rate > upper_bound
    ]


def _zscore_outliers(members: Sequence[ManufacturingOrderRate]) -> List[Anomaly]:
    """z-score test for cohorts between MIN_SAMPLE_SIZE and IQR_SAMPLE_SIZE"""
    values = np.array([m.rate for m in members], dtype=float)
    mean = float(values.mean())
    std_dev = float(values.std())  # Population standard deviation

    if std_dev == 0:
        return []

    return [
        Anomaly(
            member=m,
            reason=ZSCORE_OUTLIER,
            reference_value=mean,
            cohort_sample_size=len(members)
        )
        for m in members
        if abs((m.rate - mean) / std_dev) > ZSCORE_THRESHOLD
    ]


def detect_cohort_anomalies(
    members: Sequence[ManufacturingOrderRate],
    rate_ceiling: float = DEFAULT_RATE_CEILING
) -> Tuple[List[ManufacturingOrderRate], List[Anomaly], str]:
    """
    Detect anomalies within a single cohort.

    Args:
        members: ManufacturingOrderRate members of one cohort
        rate_ceiling: Highest plausible rate (UPH)

    Returns:
        Tuple of (clean members, anomalies, sample status)
    """
    candidates, anomalies = _absolute_bounds(members, rate_ceiling)

    if len(candidates) < MIN_SAMPLE_SIZE:
        status = INSUFFICIENT_SAMPLE
    else:
        status = SAMPLE_OK
        if len(candidates) >= IQR_SAMPLE_SIZE:
            anomalies.extend(_iqr_outliers(candidates))
        else:
            anomalies.extend(_zscore_outliers(candidates))

    excluded = {id(a.member) for a in anomalies}
    clean = [m for m in members if id(m) not in excluded]

    for anomaly in anomalies:
        logger.info(
            f"Anomaly in {anomaly.member.cohort}: MO {anomaly.mo_id} rate={anomaly.rate:.2f} "
            f"({anomaly.reason}, reference={anomaly.reference_value})"
        )

    return clean, anomalies, status


def detect_anomalies(
    rates: Sequence[ManufacturingOrderRate],
    rate_ceiling: float = DEFAULT_RATE_CEILING,
    max_workers: int = 1
) -> AnomalyDetection:
    """
    Detect anomalous manufacturing order rates, cohort by cohort.

    Members of different cohorts may be passed together; each cohort is
    tested only against its own members. Cohorts are independent, so with
    ``max_workers`` above 1 they are processed on a thread pool.

    Args:
        rates: ManufacturingOrderRate values
        rate_ceiling: Highest plausible rate (UPH)
        max_workers: Worker threads for per-cohort detection

    Returns:
        AnomalyDetection with clean members, anomalies and per-cohort status

    Example:
        >>> result = detect_anomalies(mo_rates)
        >>> print(f"Excluded: {result.anomaly_mo_ids}")
    """
    cohorts: Dict[CohortKey, List[ManufacturingOrderRate]] = OrderedDict()
    for member in rates:
        cohorts.setdefault(member.cohort, []).append(member)

    def run(members):
        return detect_cohort_anomalies(members, rate_ceiling)

    if max_workers > 1 and len(cohorts) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(run, cohorts.values()))
    else:
        outcomes = [run(members) for members in cohorts.values()]

    clean_ids = set()
    anomalies: List[Anomaly] = []
    sample_status: Dict[CohortKey, str] = {}

    for cohort, (cohort_clean, cohort_anomalies, status) in zip(cohorts.keys(), outcomes):
        clean_ids.update(id(m) for m in cohort_clean)
        anomalies.extend(cohort_anomalies)
        sample_status[cohort] = status

    clean = tuple(m for m in rates if id(m) in clean_ids)
    logger.info(
        f"Anomaly detection over {len(cohorts)} cohorts: "
        f"{len(clean)} clean, {len(anomalies)} excluded"
    )
    return AnomalyDetection(clean=clean, anomalies=tuple(anomalies), sample_status=sample_status)


def summarize_anomalies(anomalies: Sequence[Anomaly], top_n: int = 10) -> Dict:
    """
    Summarise anomalies for review dashboards.

    Args:
        anomalies: Anomalies from one or more detection passes
        top_n: Number of highest-rate anomalies to list

    Returns:
        Dictionary with total count, counts by reason, category and operator,
        and the top anomalies by rate
    """
    ranked = sorted(anomalies, key=lambda a: a.rate, reverse=True)
    return {
        'total_anomalies': len(anomalies),
        'by_reason': dict(Counter(a.reason for a in anomalies)),
        'by_category': dict(Counter(a.member.category for a in anomalies)),
        'by_operator': dict(Counter(a.member.operator_name for a in anomalies)),
        'top_anomalies': [a.to_dict() for a in ranked[:top_n]]
    }
