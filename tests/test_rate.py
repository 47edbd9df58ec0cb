"""
Tests for rate (UPH) calculations.
"""

import pytest

from core.calculations.rate import calculate_mo_rate, calculate_pooled_rate, compute_cohort_rate


class TestCalculateMoRate:

    def test_basic_rate(self):
        """100 units over 2 hours is 50 UPH."""
        assert calculate_mo_rate(100, 7200) == pytest.approx(50.0)

    def test_non_positive_duration(self):
        assert calculate_mo_rate(100, 0) == 0.0
        assert calculate_mo_rate(100, -10) == 0.0


class TestCohortRate:

    def test_mean_of_member_rates(self, make_rate):
        result = compute_cohort_rate([make_rate(40), make_rate(60)])

        assert result.rate == pytest.approx(50.0)
        assert result.member_count == 2
        assert result.total_observations == 2

    def test_differs_from_pooled_when_durations_differ(self, make_rate):
        # 40 units in 1h (40 UPH) and 600 units in 10h (60 UPH)
        members = [
            make_rate(40, duration_hours=1.0, quantity=40.0),
            make_rate(60, duration_hours=10.0, quantity=600.0),
        ]
        result = compute_cohort_rate(members)

        assert result.rate == pytest.approx(50.0)
        assert result.pooled_rate == pytest.approx(640 / 11)
        assert result.rate != pytest.approx(result.pooled_rate)

    def test_empty_cohort(self):
        result = compute_cohort_rate([])
        assert result.rate is None
        assert result.member_count == 0
        assert result.pooled_rate is None

    def test_to_dict(self, make_rate):
        data = compute_cohort_rate([make_rate(30)]).to_dict()
        assert data["rate"] == pytest.approx(30.0)
        assert set(data) == {"rate", "member_count", "total_observations", "pooled_rate"}


def test_pooled_rate_without_hours():
    assert calculate_pooled_rate([]) is None
