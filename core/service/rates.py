"""
Windowed Rate Query Service

Answers rate questions over rolling windows (7, 30 or 180 days):

    window filter -> reference enrichment -> consolidation -> aggregation
        -> anomaly detection -> cohort averaging

Results are cached per filter tuple (routing, category, operator, window).
Any import or recalculation invalidates the whole cache. When a computation
fails the last successful result for the same filter tuple is served; when
there is none the answer is an empty list.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

import pytz

from config import Config
from core.analysis.anomalies import DEFAULT_RATE_CEILING, detect_anomalies, summarize_anomalies
from core.cache.results import ResultCache
from core.calculations.aggregation import aggregate, find_quantity_conflicts
from core.calculations.rate import compute_cohort_rate
from core.ingest.records import ObservationSource
from core.observations.consolidation import consolidate_observations
from core.observations.models import CohortKey, CohortResult, RawObservation
from core.observations.suspect import flag_suspect_observations
from core.reference.routing import ReferenceData, enrich_observations
from core.time_windows.filters import filter_observations_by_window, get_window_summary
from core.time_windows.models import RollingWindow, ensure_aware
from utils.config import get_app_config

logger = logging.getLogger(__name__)


class RateQueryService:
    """
    Rate queries over an in-memory observation store.

    Import and recomputation share one re-entrant lock, so a recomputation
    never sees a half-applied import. Reads work on a snapshot of the store.
    """

    def __init__(
        self,
        cache: Optional[ResultCache] = None,
        reference: Optional[ReferenceData] = None,
        source: Optional[ObservationSource] = None,
        rate_ceiling: float = DEFAULT_RATE_CEILING,
        min_mo_duration_seconds: float = 0.0,
        max_workers: int = 1,
        timezone: str = "Europe/Copenhagen",
        now: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the service.

        Args:
            cache: Result cache, a fresh ResultCache when None
            reference: Reference data used to fill missing routing/quantity
            source: Observation source used by refresh_from_source
            rate_ceiling: Highest plausible rate (UPH)
            min_mo_duration_seconds: Minimum labor per MO group (0 disables)
            max_workers: Worker threads for per-cohort anomaly detection
            timezone: Plant timezone for naive timestamps and window bounds
            now: Clock returning an aware datetime (injectable for tests)
        """
        self.cache = cache if cache is not None else ResultCache()
        self.reference = reference
        self.source = source
        self.rate_ceiling = rate_ceiling
        self.min_mo_duration_seconds = min_mo_duration_seconds
        self.max_workers = max_workers
        self.timezone = timezone
        self._now = now or (lambda: datetime.now(pytz.utc))

        self._store: Dict[Tuple, RawObservation] = OrderedDict()
        self._lock = threading.RLock()
        self._last_good: Dict[Hashable, Tuple[CohortResult, ...]] = {}
        self._generation = 0

    @classmethod
    def from_config(
        cls,
        reference: Optional[ReferenceData] = None,
        source: Optional[ObservationSource] = None
    ) -> 'RateQueryService':
        """Build a service from environment settings"""
        settings = get_app_config()
        return cls(
            cache=ResultCache(ttl_seconds=settings["cache_ttl_seconds"]),
            reference=reference,
            source=source,
            rate_ceiling=settings["rate_ceiling"],
            min_mo_duration_seconds=settings["min_mo_duration_seconds"],
            max_workers=settings["max_workers"],
            timezone=settings["timezone"]
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _normalize(self, obs: RawObservation) -> RawObservation:
        """Make timestamps timezone-aware in plant time"""
        if obs.timestamp is None or obs.timestamp.tzinfo is not None:
            return obs
        return replace(obs, timestamp=ensure_aware(obs.timestamp, self.timezone))

    def _snapshot(self) -> List[RawObservation]:
        with self._lock:
            return list(self._store.values())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def import_observations(self, batch: Iterable[RawObservation]) -> Dict[str, int]:
        """
        Add a batch of raw observations to the store.

        Observations are keyed by their identity, so importing the same batch
        twice leaves the store unchanged. Suspect import patterns are counted
        over the whole store, so a corrupt run split across imports is still
        flagged. The result cache is invalidated.

        Args:
            batch: Raw observations

        Returns:
            Dictionary with 'inserted' and 'replaced' counts
        """
        observations = [self._normalize(obs) for obs in batch]

        inserted = 0
        replaced = 0
        with self._lock:
            for obs in observations:
                key = obs.identity
                if key in self._store:
                    replaced += 1
                else:
                    inserted += 1
                self._store[key] = obs

            for obs in flag_suspect_observations(list(self._store.values())):
                if obs.suspect and not self._store[obs.identity].suspect:
                    self._store[obs.identity] = obs

            self._generation += 1
            self.cache.invalidate_all()

        logger.info(
            f"Imported {len(observations)} observations: "
            f"{inserted} inserted, {replaced} replaced, store size {len(self)}"
        )
        return {'inserted': inserted, 'replaced': replaced}

    def refresh_from_source(self) -> Optional[Dict[str, int]]:
        """
        Pull observations from the configured source and import them.

        Source failures are logged and leave the store and cache untouched.

        Returns:
            Import counts, or None when nothing was imported
        """
        if self.source is None:
            logger.warning("No observation source configured; refresh skipped")
            return None

        try:
            batch = list(self.source.fetch_observations())
        except Exception as e:
            logger.error(f"Observation source failed, keeping previous data: {e}", exc_info=True)
            return None

        return self.import_observations(batch)

    def recalculate(self) -> Dict[int, int]:
        """
        Invalidate every cached result and recompute all windows.

        Returns:
            Dictionary mapping window days to the number of cohorts computed
        """
        with self._lock:
            removed = self.cache.invalidate_all()
            logger.info(f"Recalculating rates ({removed} cached results dropped)")
            return self.warm_cache()

    def warm_cache(self) -> Dict[int, int]:
        """
        Compute the unfiltered result set of every supported window.

        Returns:
            Dictionary mapping window days to the number of cohorts computed
        """
        counts = {}
        for window_days in Config.WINDOW_DAYS:
            counts[window_days] = len(self.get_cohort_rates(window_days=window_days))
        logger.info(f"Cache warmed: {counts}")
        return counts

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_cohort_rates(
        self,
        routing: Optional[str] = None,
        category: Optional[str] = None,
        operator_id: Optional[int] = None,
        window_days: int = 30
    ) -> List[CohortResult]:
        """
        Get cohort rates matching the filters over a rolling window.

        Args:
            routing: Only this routing
            category: Only this category (Cutting, Assembly, Packaging)
            operator_id: Only this operator
            window_days: Rolling window, one of 7, 30, 180

        Returns:
            CohortResults sorted by (operator, category, routing)

        Raises:
            ValueError: If window_days is not a supported window

        Example:
            >>> service.get_cohort_rates(category="Assembly", window_days=7)
        """
        if window_days not in Config.WINDOW_DAYS:
            raise ValueError(
                f"Invalid window: {window_days} days. "
                f"Must be one of: {list(Config.WINDOW_DAYS)}"
            )

        key = (routing, category, operator_id, window_days)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        with self._lock:
            generation = self._generation
            snapshot = list(self._store.values())

        try:
            results = self._compute(snapshot, routing, category, operator_id, window_days)
        except Exception as e:
            logger.error(f"Rate computation failed for {key}: {e}", exc_info=True)
            with self._lock:
                fallback = self._last_good.get(key)
            if fallback is None:
                logger.warning(f"No previous result for {key}; returning no data")
                return []
            logger.warning(f"Serving last good result for {key}")
            return list(fallback)

        with self._lock:
            # An import since the snapshot makes this result stale
            if generation == self._generation:
                self.cache.put(key, results)
            self._last_good[key] = results
        return list(results)

    def get_operator_rate(
        self,
        operator_id: int,
        routing: str,
        category: str,
        window_days: int = 30
    ) -> Optional[float]:
        """
        Get one operator's rate for a routing and category.

        Returns:
            Units per hour, or None when no clean data exists
        """
        for result in self.get_cohort_rates(routing, category, operator_id, window_days):
            if result.rate is not None:
                return result.rate
        return None

    def estimate_work_order_hours(
        self,
        operator_id: int,
        routing: str,
        category: str,
        quantity: float,
        window_days: int = 30
    ) -> Optional[float]:
        """
        Estimate the labor hours a work order needs from the operator's rate.

        Args:
            operator_id: Operator assigned to the work order
            routing: Product routing
            category: Work center category
            quantity: Units to produce
            window_days: Rolling window the rate is taken from

        Returns:
            Estimated hours, or None when the operator has no rate

        Raises:
            ValueError: If quantity is negative
        """
        if quantity < 0:
            raise ValueError(f"quantity must not be negative, got {quantity}")

        rate = self.get_operator_rate(operator_id, routing, category, window_days)
        if not rate or rate <= 0:
            return None
        return quantity / rate

    def anomaly_summary(self, window_days: int = 30, top_n: int = 10) -> Dict:
        """Anomaly statistics over every cohort of a window"""
        anomalies = [
            anomaly
            for result in self.get_cohort_rates(window_days=window_days)
            for anomaly in result.anomalies
        ]
        return summarize_anomalies(anomalies, top_n=top_n)

    def window_summary(self, window_days: int = 30) -> dict:
        """Coverage of the observation store by a rolling window"""
        window = RollingWindow.ending_now(window_days, now=self._now(), timezone=self.timezone)
        return get_window_summary(self._snapshot(), window)

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def _compute(
        self,
        snapshot: List[RawObservation],
        routing: Optional[str],
        category: Optional[str],
        operator_id: Optional[int],
        window_days: int
    ) -> Tuple[CohortResult, ...]:
        computed_at = self._now()
        window = RollingWindow.ending_now(window_days, now=computed_at, timezone=self.timezone)

        observations = filter_observations_by_window(snapshot, window)
        if operator_id is not None:
            observations = [obs for obs in observations if obs.operator_id == operator_id]
        if self.reference is not None:
            observations = enrich_observations(observations, self.reference)

        consolidated = [
            rec for rec in consolidate_observations(observations)
            if (routing is None or rec.key.routing == routing)
            and (category is None or rec.key.category == category)
        ]

        conflicts = find_quantity_conflicts(consolidated)
        mo_rates = aggregate(consolidated, self.min_mo_duration_seconds)
        detection = detect_anomalies(mo_rates, self.rate_ceiling, max_workers=self.max_workers)

        clean_by_cohort: Dict[CohortKey, list] = {}
        for member in detection.clean:
            clean_by_cohort.setdefault(member.cohort, []).append(member)
        anomalies_by_cohort: Dict[CohortKey, list] = {}
        for anomaly in detection.anomalies:
            anomalies_by_cohort.setdefault(anomaly.member.cohort, []).append(anomaly)
        operator_ids: Dict[CohortKey, set] = {}
        for member in mo_rates:
            if member.operator_id is not None:
                operator_ids.setdefault(member.cohort, set()).add(member.operator_id)

        results = []
        for cohort in sorted(
            detection.sample_status,
            key=lambda c: (c.operator_name, c.category, c.routing)
        ):
            cohort_rate = compute_cohort_rate(clean_by_cohort.get(cohort, []))
            ids = sorted(operator_ids.get(cohort, ()))
            results.append(CohortResult(
                cohort=cohort,
                window_days=window_days,
                rate=cohort_rate.rate,
                member_count=cohort_rate.member_count,
                total_observations=cohort_rate.total_observations,
                anomalies=tuple(anomalies_by_cohort.get(cohort, ())),
                pooled_rate=cohort_rate.pooled_rate,
                sample_status=detection.sample_status[cohort],
                operator_id=ids[0] if ids else None,
                quantity_conflicts=tuple(
                    conflicts.get((cohort.operator_name, cohort.category, cohort.routing), ())
                ),
                computed_at=computed_at
            ))

        logger.info(
            f"Computed {len(results)} cohort rates for window {window_days}d "
            f"(routing={routing}, category={category}, operator_id={operator_id})"
        )
        return tuple(results)
