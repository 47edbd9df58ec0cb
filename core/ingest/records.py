"""
Work Cycle Record Normalisation

Converts MES work cycle exports (database rows or CSV dumps loaded into a
DataFrame) into RawObservation objects. Column names follow the MES export
(``work_cycles_*``, ``work_production_*``); missing columns are tolerated.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Protocol

import pandas as pd
from dateutil import parser as dateutil_parser

from core.observations.models import RawObservation
from core.observations.rec_name import parse_rec_name

logger = logging.getLogger(__name__)

TIMESTAMP_COLUMNS = ('work_production_create_date', 'created_at')
REC_NAME_COLUMNS = ('work_cycles_rec_name', 'work_rec_name')


class ObservationSource(Protocol):
    """Contract of the ingestion collaborator"""

    def fetch_observations(self) -> Iterable[RawObservation]:
        ...


def _clean(value: Any) -> Any:
    """Map pandas missing values to None"""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _to_float(value: Any) -> Optional[float]:
    value = _clean(value)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_text(value: Any) -> Optional[str]:
    value = _clean(value)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_id(value: Any) -> Optional[str]:
    """Identifiers come back as floats from pandas when the column has NaNs"""
    value = _clean(value)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip() or None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convert a timestamp cell to a datetime.

    Strings are parsed with dateutil; unparseable values become None.
    """
    value = _clean(value)
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return dateutil_parser.parse(value)
        except (ValueError, TypeError, OverflowError):
            logger.debug(f"Unparseable timestamp: {value!r}")
            return None
    return None


def _truthy(value: Any) -> bool:
    value = _clean(value)
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in ('true', 't', '1', 'yes')
    return bool(value)


def observations_from_frame(df: pd.DataFrame) -> List[RawObservation]:
    """
    Normalise an MES work cycle DataFrame into raw observations.

    Manufacturing order and work order ids fall back to the numbers embedded
    in the cycle's rec_name, then to ``MO<work_production_id>``.

    Args:
        df: DataFrame with MES export columns

    Returns:
        List of RawObservation, one per row

    Example:
        >>> df = fetch_work_cycles()
        >>> observations = observations_from_frame(df)
    """
    if df is None or df.empty:
        return []

    observations = []
    fallback_mo = 0

    for row in df.to_dict('records'):
        rec_name = next(
            (row[col] for col in REC_NAME_COLUMNS if _to_text(row.get(col))),
            None
        )
        parsed = parse_rec_name(_to_text(rec_name))

        mo_id = _to_text(row.get('work_production_number')) or parsed.mo_number
        if mo_id is None and _to_id(row.get('work_production_id')) is not None:
            mo_id = f"MO{_to_id(row.get('work_production_id'))}"
            fallback_mo += 1

        work_order_id = _to_id(row.get('work_id')) or parsed.work_order_number

        timestamp = None
        for col in TIMESTAMP_COLUMNS:
            timestamp = parse_timestamp(row.get(col))
            if timestamp is not None:
                break

        operator_id = _to_id(row.get('work_cycles_operator_id'))

        observations.append(RawObservation(
            operator_name=_to_text(row.get('work_cycles_operator_rec_name')),
            work_center=_to_text(row.get('work_cycles_work_center_rec_name')),
            routing=_to_text(row.get('work_production_routing_rec_name')),
            duration_seconds=_to_float(row.get('work_cycles_duration')),
            mo_id=mo_id,
            timestamp=timestamp,
            operator_id=int(operator_id) if operator_id and operator_id.isdigit() else None,
            quantity=_to_float(row.get('work_cycles_quantity_done')),
            mo_quantity=_to_float(row.get('work_production_quantity')),
            work_order_id=work_order_id,
            observation_id=_to_id(row.get('work_cycles_id')),
            product_code=_to_text(row.get('work_production_product_code')),
            suspect=_truthy(row.get('data_corrupted'))
        ))

    if fallback_mo:
        logger.warning(f"{fallback_mo} rows had no MO number; used work_production_id")
    logger.info(f"Normalised {len(observations)} work cycle rows")

    return observations
