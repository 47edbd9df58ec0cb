"""
Suspect Import Detection

A known corrupt import pattern writes several cycles for the same
manufacturing order and operator with an identical, very short duration
(5s, 10s, 15s ...) where parsing of the real duration failed. Those cycles
are marked suspect so consolidation drops them.
"""

import logging
from collections import Counter
from dataclasses import replace
from typing import List, Sequence

from .models import RawObservation

logger = logging.getLogger(__name__)


def flag_suspect_observations(
    observations: Sequence[RawObservation],
    max_duration_seconds: float = 60.0,
    min_repeats: int = 3
) -> List[RawObservation]:
    """
    Return the observations with the corrupt-import pattern marked suspect.

    Observations sharing (MO, operator, duration) where the duration is at most
    ``max_duration_seconds`` and the pattern occurs ``min_repeats`` times or
    more are returned as copies with ``suspect=True``. Order is preserved and
    the input objects are not modified.

    Args:
        observations: Raw observations of one import batch or data set
        max_duration_seconds: Upper bound for a "short" duration
        min_repeats: Minimum identical repeats to count as corrupt

    Returns:
        List of observations, suspect ones replaced by flagged copies
    """
    def pattern(obs: RawObservation):
        return (obs.mo_id, obs.operator_name, obs.duration_seconds)

    counts = Counter(
        pattern(obs) for obs in observations
        if obs.duration_seconds is not None
        and 0 < obs.duration_seconds <= max_duration_seconds
        and obs.mo_id is not None
    )
    corrupt = {key for key, count in counts.items() if count >= min_repeats}

    if not corrupt:
        return list(observations)

    flagged = []
    flagged_count = 0
    for obs in observations:
        if not obs.suspect and pattern(obs) in corrupt:
            flagged.append(replace(obs, suspect=True))
            flagged_count += 1
        else:
            flagged.append(obs)

    for mo_id, operator, duration in sorted(corrupt, key=lambda k: (str(k[0]), str(k[1]), k[2])):
        logger.warning(
            f"Suspect import pattern: {mo_id} - {operator}: "
            f"{counts[(mo_id, operator, duration)]} cycles @ {duration}s"
        )
    logger.info(f"Flagged {flagged_count} of {len(observations)} observations as suspect")

    return flagged
