"""
Manufacturing Order Aggregation

Rolls consolidated observations up to one duration/quantity total per
(manufacturing order, operator, category, routing) tuple.

When a manufacturing order spans several work orders in the same category,
their durations are summed and the declared manufacturing order quantity
(not a per work order quantity) is used as the numerator.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Tuple

import pandas as pd

from core.observations.models import ConsolidatedObservation, ManufacturingOrderRate

logger = logging.getLogger(__name__)

# Drop reason codes
ZERO_DURATION = "zero-duration"
ZERO_QUANTITY = "zero-quantity"
BELOW_MINIMUM_DURATION = "below-minimum-duration"

GROUP_COLUMNS = ['mo_id', 'operator_name', 'category', 'routing']


def aggregate(
    consolidated: Iterable[ConsolidatedObservation],
    min_duration_seconds: float = 0.0
) -> List[ManufacturingOrderRate]:
    """
    Aggregate consolidated observations into manufacturing order rates.

    Args:
        consolidated: Output of consolidate_observations
        min_duration_seconds: Groups with less total duration are dropped
            (0 disables the check)

    Returns:
        One ManufacturingOrderRate per group with positive duration and
        quantity, sorted by (mo, operator, category, routing)
    """
    records = list(consolidated)
    if not records:
        return []

    df = pd.DataFrame([
        {
            'row': idx,
            'mo_id': rec.key.mo_id,
            'operator_name': rec.key.operator_name,
            'category': rec.key.category,
            'routing': rec.key.routing,
            'duration_seconds': rec.duration_seconds,
            'quantity': rec.quantity,
            'observation_count': rec.observation_count,
        }
        for idx, rec in enumerate(records)
    ])
    df = df.sort_values(GROUP_COLUMNS + ['duration_seconds'], kind='mergesort')

    rates = []
    drops = Counter()

    for (mo_id, operator_name, category, routing), group in df.groupby(GROUP_COLUMNS, sort=True):
        members = [records[i] for i in group['row']]
        duration_seconds = float(group['duration_seconds'].sum())
        quantity = float(group['quantity'].max())

        if duration_seconds <= 0:
            drops[ZERO_DURATION] += 1
            logger.debug(f"Dropped MO {mo_id} ({operator_name}/{category}): {ZERO_DURATION}")
            continue
        if quantity <= 0 or pd.isna(quantity):
            drops[ZERO_QUANTITY] += 1
            logger.debug(f"Dropped MO {mo_id} ({operator_name}/{category}): {ZERO_QUANTITY}")
            continue
        if min_duration_seconds and duration_seconds < min_duration_seconds:
            drops[BELOW_MINIMUM_DURATION] += 1
            logger.debug(
                f"Dropped MO {mo_id} ({operator_name}/{category}): "
                f"{duration_seconds:.0f}s below minimum {min_duration_seconds:.0f}s"
            )
            continue

        operator_ids = sorted(m.operator_id for m in members if m.operator_id is not None)
        work_order_ids = sorted({wo for m in members for wo in m.work_order_ids})
        timestamps = [m.latest_timestamp for m in members if m.latest_timestamp is not None]

        rates.append(ManufacturingOrderRate(
            mo_id=mo_id,
            operator_name=operator_name,
            category=category,
            routing=routing,
            duration_hours=duration_seconds / 3600.0,
            quantity=quantity,
            observation_count=int(group['observation_count'].sum()),
            operator_id=operator_ids[0] if operator_ids else None,
            work_order_ids=tuple(work_order_ids),
            latest_timestamp=max(timestamps) if timestamps else None
        ))

    if drops:
        logger.info(f"Aggregation dropped {sum(drops.values())} MO groups: {dict(drops)}")
    logger.info(f"Aggregated {len(records)} consolidated records into {len(rates)} MO rates")

    return rates


def find_quantity_conflicts(
    consolidated: Iterable[ConsolidatedObservation]
) -> Dict[Tuple[str, str, str], List[str]]:
    """
    Find manufacturing orders whose records declare different quantities.

    The numerator already uses the maximum declared value; this only surfaces
    the condition so it can be reviewed instead of silently resolved.

    Args:
        consolidated: Output of consolidate_observations

    Returns:
        Dictionary mapping (operator, category, routing) to the sorted list of
        conflicting manufacturing order ids
    """
    declared: Dict[Tuple[str, str, str, str], set] = {}
    for rec in consolidated:
        group = (rec.key.operator_name, rec.key.category, rec.key.routing, rec.key.mo_id)
        declared.setdefault(group, set()).update(rec.declared_quantities)

    conflicts: Dict[Tuple[str, str, str], List[str]] = {}
    for (operator_name, category, routing, mo_id), values in sorted(declared.items()):
        if len(values) > 1:
            logger.warning(
                f"MO {mo_id} ({operator_name}/{category}/{routing}) has divergent "
                f"declared quantities: {sorted(values)}"
            )
            conflicts.setdefault((operator_name, category, routing), []).append(mo_id)

    return conflicts
