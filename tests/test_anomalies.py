"""
Tests for cohort anomaly detection.
"""

import pytest

from core.analysis.anomalies import (
    INSUFFICIENT_SAMPLE,
    IQR_OUTLIER,
    OUT_OF_BOUNDS,
    SAMPLE_OK,
    detect_anomalies,
    detect_cohort_anomalies,
    summarize_anomalies,
)
from core.calculations.rate import compute_cohort_rate


class TestIQR:

    def test_single_outlier_excluded(self, make_rate):
        """{10, 11, 9, 10, 12, 500}: only 500 is flagged."""
        members = [make_rate(v) for v in (10, 11, 9, 10, 12, 500)]

        clean, anomalies, status = detect_cohort_anomalies(members)

        assert status == SAMPLE_OK
        assert len(anomalies) == 1
        assert anomalies[0].rate == pytest.approx(500)
        assert anomalies[0].reason == IQR_OUTLIER
        assert anomalies[0].reference_value == pytest.approx(11.0)
        assert anomalies[0].cohort_sample_size == 6
        assert compute_cohort_rate(clean).rate == pytest.approx(10.4)

    def test_quartiles_use_order_statistics(self, make_rate):
        """Q1 and Q3 are the sorted values at floor(n * p), not interpolated."""
        # Sorted: q1 = 10, q3 = 20, upper fence 35; interpolation would flag 31
        members = [make_rate(v) for v in (10, 10, 10, 10, 20, 31)]

        clean, anomalies, status = detect_cohort_anomalies(members)

        assert status == SAMPLE_OK
        assert anomalies == []
        assert clean == members

    def test_median_reference_odd_cohort(self, make_rate):
        members = [make_rate(v) for v in (8, 9, 10, 11, 12, 13, 400)]
        _, anomalies, _ = detect_cohort_anomalies(members)

        assert [a.rate for a in anomalies] == [pytest.approx(400)]
        assert anomalies[0].reference_value == pytest.approx(11.0)

    def test_tight_cohort_has_no_outliers(self, make_rate):
        members = [make_rate(v) for v in (20, 21, 22, 23, 24)]
        clean, anomalies, _ = detect_cohort_anomalies(members)
        assert anomalies == []
        assert clean == members


class TestSmallSamples:

    def test_two_members_never_flagged(self, make_rate):
        members = [make_rate(10), make_rate(900)]
        clean, anomalies, status = detect_cohort_anomalies(members)

        assert anomalies == []
        assert clean == members
        assert status == INSUFFICIENT_SAMPLE

    def test_three_members_use_zscore(self, make_rate):
        members = [make_rate(10), make_rate(12), make_rate(11)]
        clean, anomalies, status = detect_cohort_anomalies(members)
        assert status == SAMPLE_OK
        assert anomalies == []
        assert len(clean) == 3


class TestAbsoluteBounds:

    def test_rate_above_ceiling(self, make_rate):
        members = [make_rate(10), make_rate(1500)]
        clean, anomalies, status = detect_cohort_anomalies(members, rate_ceiling=1000)

        assert [a.reason for a in anomalies] == [OUT_OF_BOUNDS]
        assert [m.rate for m in clean] == [10]
        assert status == INSUFFICIENT_SAMPLE

    def test_ceiling_is_inclusive(self, make_rate):
        _, anomalies, _ = detect_cohort_anomalies([make_rate(1000)], rate_ceiling=1000)
        assert anomalies == []

    def test_zero_rate(self, make_rate):
        _, anomalies, _ = detect_cohort_anomalies([make_rate(0)])
        assert anomalies[0].reason == OUT_OF_BOUNDS


class TestDetectAnomalies:

    def test_cohorts_are_independent(self, make_rate):
        steady = [make_rate(v, operator="A") for v in (10, 11, 9, 10, 12)]
        fast = [make_rate(500, operator="B")]

        result = detect_anomalies(steady + fast)

        assert result.anomalies == ()
        assert len(result.clean) == 6

    def test_input_not_modified(self, make_rate):
        members = [make_rate(v) for v in (10, 11, 9, 10, 12, 500)]
        snapshot = list(members)

        result = detect_anomalies(members)

        assert members == snapshot
        assert result.anomaly_mo_ids == [members[-1].mo_id]

    def test_parallel_matches_sequential(self, make_rate):
        members = []
        for operator in ("A", "B", "C"):
            members += [make_rate(v, operator=operator) for v in (10, 11, 9, 10, 12, 500)]

        sequential = detect_anomalies(members)
        parallel = detect_anomalies(members, max_workers=4)

        assert parallel.clean == sequential.clean
        assert parallel.anomalies == sequential.anomalies
        assert parallel.sample_status == sequential.sample_status


def test_summarize_anomalies(make_rate):
    members = [make_rate(v) for v in (10, 11, 9, 10, 12, 500)]
    members.append(make_rate(2000, operator="B", category="Cutting"))

    summary = summarize_anomalies(detect_anomalies(members).anomalies, top_n=1)

    assert summary["total_anomalies"] == 2
    assert summary["by_reason"] == {IQR_OUTLIER: 1, OUT_OF_BOUNDS: 1}
    assert summary["by_category"] == {"Assembly": 1, "Cutting": 1}
    assert len(summary["top_anomalies"]) == 1
    assert summary["top_anomalies"][0]["rate"] == pytest.approx(2000)
