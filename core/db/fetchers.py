"""
Data Fetching Module

Database fetching for the work cycle source. Rows are read from the MES
work cycle table and normalised into RawObservation objects.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, ContextManager, List, Optional

import pandas as pd
import pytz

from config import Config
from core.ingest.records import observations_from_frame
from core.observations.models import RawObservation
from .pool import get_mes_connection
from .queries import WORK_CYCLE_COLUMNS, secure_query_builder

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], ContextManager]


def fetch_work_cycles(
    since: Optional[datetime] = None,
    connection_factory: ConnectionFactory = get_mes_connection,
    raise_on_error: bool = False
) -> pd.DataFrame:
    """
    Fetch work cycle rows from the MES database.

    Args:
        since: Only rows created at or after this timestamp (undated rows
            are always included)
        connection_factory: Context manager factory yielding a connection
        raise_on_error: Re-raise database errors instead of returning an
            empty DataFrame

    Returns:
        DataFrame with WORK_CYCLE_COLUMNS
    """
    logger.info(f"Fetching work cycles since {since or 'beginning'}")

    try:
        with connection_factory() as conn:
            cursor = conn.cursor()

            query, parameters = secure_query_builder.build_work_cycles_query(since)
            cursor.execute(query, parameters)
            data = cursor.fetchall()

            df = pd.DataFrame(data, columns=WORK_CYCLE_COLUMNS)
            logger.info(f"Successfully fetched {len(df)} work cycle records")
            return df

    except Exception as e:
        logger.error(f"Error fetching work cycles: {e}", exc_info=True)
        if raise_on_error:
            raise
        return pd.DataFrame(columns=WORK_CYCLE_COLUMNS)


class WorkCycleSource:
    """
    Observation source backed by the MES work cycle table.

    Reads the largest supported rolling window so every window query can be
    answered from the imported set.
    """

    def __init__(
        self,
        lookback_days: Optional[int] = None,
        connection_factory: ConnectionFactory = get_mes_connection,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.lookback_days = lookback_days or max(Config.WINDOW_DAYS)
        self._connection_factory = connection_factory
        self._now = now or (lambda: datetime.now(pytz.utc))

    def fetch_observations(self) -> List[RawObservation]:
        """
        Fetch and normalise work cycles of the lookback period.

        Raises:
            Exception: Database errors propagate so callers can keep their
                previous data
        """
        since = self._now() - timedelta(days=self.lookback_days)
        df = fetch_work_cycles(
            since=since,
            connection_factory=self._connection_factory,
            raise_on_error=True
        )
        return observations_from_frame(df)
