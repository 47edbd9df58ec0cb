"""
Rolling Window Filtering Utilities

Functions to filter observations based on rolling window configurations.
"""

import logging
from typing import Iterable, List

from core.observations.models import RawObservation
from .models import RollingWindow

logger = logging.getLogger(__name__)


def filter_observations_by_window(
    observations: Iterable[RawObservation],
    window: RollingWindow,
    include_undated: bool = True
) -> List[RawObservation]:
    """
    Filter observations to those recorded within the rolling window.

    Args:
        observations: Raw observations
        window: RollingWindow configuration
        include_undated: Keep observations without a timestamp. The MES
            omits dates on some legacy imports; those cycles stay eligible.

    Returns:
        Observations within the window

    Example:
        >>> window = RollingWindow.ending_now(30)
        >>> recent = filter_observations_by_window(observations, window)
    """
    observations = list(observations)
    filtered = [
        obs for obs in observations
        if (obs.timestamp is None and include_undated) or window.contains(obs.timestamp)
    ]

    logger.info(
        f"Window filter {window}: {len(observations)} → {len(filtered)} observations"
    )
    return filtered


def get_window_summary(observations: Iterable[RawObservation], window: RollingWindow) -> dict:
    """
    Generate coverage statistics for a rolling window.

    Args:
        observations: Raw observations
        window: RollingWindow to summarize

    Returns:
        Dictionary with summary information
    """
    observations = list(observations)
    dated = [obs.timestamp for obs in observations if obs.timestamp is not None]
    included = sum(1 for ts in dated if window.contains(ts))

    return {
        'window_days': window.days,
        'window_start': window.start,
        'window_end': window.end,
        'total_rows': len(observations),
        'undated_rows': len(observations) - len(dated),
        'included_rows': included,
        'excluded_rows': len(dated) - included,
        'coverage_percentage': (included / len(dated) * 100) if dated else 0.0
    }
