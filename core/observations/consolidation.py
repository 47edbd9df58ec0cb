"""
Work Cycle Consolidation

Merges raw observations describing the same labor event into one record per
ConsolidationKey (operator, category, routing, manufacturing order).

Merge rule:
- duration: summed across the group
- quantity: maximum across the group. Partial cycle records restate the
  manufacturing order's declared total rather than an increment, so summing
  would double count.

Invalid observations are dropped individually with a logged reason; a bad
record never aborts the batch.
"""

import logging
from collections import Counter
from typing import Iterable, List, Optional

import pandas as pd

from core.categories.mapper import map_category
from .models import ConsolidatedObservation, ConsolidationKey, RawObservation

logger = logging.getLogger(__name__)

# Drop reason codes
INVALID_DURATION = "invalid-duration"
MISSING_OPERATOR = "missing-operator"
MISSING_ROUTING = "missing-routing"
MISSING_MO = "missing-mo"
UNMAPPED_CATEGORY = "unmapped-category"
SUSPECT_RECORD = "suspect-record"

KEY_COLUMNS = ['operator_name', 'category', 'routing', 'mo_id']


def validate_observation(obs: RawObservation) -> Optional[str]:
    """
    Run the structural checks on one observation.

    Returns:
        Drop reason code, or None when the observation is usable
    """
    if obs.suspect:
        return SUSPECT_RECORD
    if obs.duration_seconds is None or pd.isna(obs.duration_seconds) or obs.duration_seconds <= 0:
        return INVALID_DURATION
    if not obs.operator_name or not str(obs.operator_name).strip():
        return MISSING_OPERATOR
    if not obs.routing or not str(obs.routing).strip():
        return MISSING_ROUTING
    if obs.mo_id is None or not str(obs.mo_id).strip():
        return MISSING_MO
    if map_category(obs.work_center) is None:
        return UNMAPPED_CATEGORY
    return None


def consolidation_key(obs: RawObservation) -> ConsolidationKey:
    """Build the merge key for a valid observation"""
    return ConsolidationKey(
        operator_name=str(obs.operator_name).strip(),
        category=map_category(obs.work_center),
        routing=str(obs.routing).strip(),
        mo_id=str(obs.mo_id).strip()
    )


def consolidate_observations(
    observations: Iterable[RawObservation]
) -> List[ConsolidatedObservation]:
    """
    Consolidate raw observations into one record per ConsolidationKey.

    Output is sorted by key and independent of input order, so running it
    twice over the same observation set yields identical records.

    Args:
        observations: Raw observations for one recomputation pass

    Returns:
        List of ConsolidatedObservation sorted by key
    """
    valid: List[RawObservation] = []
    drops = Counter()

    for obs in observations:
        reason = validate_observation(obs)
        if reason is not None:
            drops[reason] += 1
            logger.debug(
                f"Dropped observation {obs.observation_id or '-'} "
                f"(MO {obs.mo_id}, operator {obs.operator_name}): {reason}"
            )
            continue
        valid.append(obs)

    if drops:
        logger.info(f"Consolidation dropped {sum(drops.values())} observations: {dict(drops)}")

    if not valid:
        logger.warning("No valid observations to consolidate")
        return []

    rows = []
    for idx, obs in enumerate(valid):
        key = consolidation_key(obs)
        rows.append({
            'row': idx,
            'operator_name': key.operator_name,
            'category': key.category,
            'routing': key.routing,
            'mo_id': key.mo_id,
            'duration_seconds': float(obs.duration_seconds),
            'quantity': obs.effective_quantity,
        })

    df = pd.DataFrame(rows)
    # Stable ordering inside groups keeps float sums reproducible
    df = df.sort_values(KEY_COLUMNS + ['duration_seconds', 'quantity'], kind='mergesort')

    consolidated = []
    for key_values, group in df.groupby(KEY_COLUMNS, sort=True):
        members = [valid[i] for i in group['row']]
        key = ConsolidationKey(*key_values)

        operator_ids = sorted({int(m.operator_id) for m in members if m.operator_id is not None})
        work_order_ids = sorted({str(m.work_order_id) for m in members if m.work_order_id is not None})
        declared = sorted({float(m.mo_quantity) for m in members if m.mo_quantity is not None})
        timestamps = [m.timestamp for m in members if m.timestamp is not None]

        consolidated.append(ConsolidatedObservation(
            key=key,
            duration_seconds=float(group['duration_seconds'].sum()),
            quantity=float(group['quantity'].max()),
            observation_count=int(len(group)),
            operator_id=operator_ids[0] if operator_ids else None,
            work_order_ids=tuple(work_order_ids),
            declared_quantities=tuple(declared),
            latest_timestamp=max(timestamps) if timestamps else None
        ))

    logger.info(
        f"Consolidated {len(valid)} observations into {len(consolidated)} records"
    )
    return consolidated
