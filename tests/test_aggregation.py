"""
Tests for manufacturing order aggregation.
"""

import pytest

from core.calculations.aggregation import aggregate, find_quantity_conflicts
from core.observations.consolidation import consolidate_observations
from core.observations.models import ConsolidatedObservation, ConsolidationKey


def _record(mo_id="MO1", duration=3600.0, quantity=100.0, count=1, declared=(), **key):
    values = {
        "operator_name": "Courtney Banh",
        "category": "Assembly",
        "routing": "Lifetime Harness",
    }
    values.update(key)
    return ConsolidatedObservation(
        key=ConsolidationKey(mo_id=mo_id, **values),
        duration_seconds=duration,
        quantity=quantity,
        observation_count=count,
        declared_quantities=tuple(declared),
    )


class TestAggregate:

    def test_single_record(self):
        rates = aggregate([_record(duration=7200, quantity=100, count=3)])

        assert len(rates) == 1
        rate = rates[0]
        assert rate.duration_hours == pytest.approx(2.0)
        assert rate.rate == pytest.approx(50.0)
        assert rate.observation_count == 3

    def test_mo_spanning_work_orders(self, make_observation):
        """Two work orders of one MO in the same category sum their labor."""
        observations = [
            make_observation(work_order_id="WO1", duration_seconds=1800),
            make_observation(work_order_id="WO2", duration_seconds=1800),
        ]
        rates = aggregate(consolidate_observations(observations))

        assert len(rates) == 1
        assert rates[0].duration_hours == pytest.approx(1.0)
        assert rates[0].quantity == 100
        assert rates[0].work_order_ids == ("WO1", "WO2")

    def test_groups_per_category(self, make_observation):
        observations = [
            make_observation(work_center="Sewing"),
            make_observation(work_center="Cutting"),
        ]
        rates = aggregate(consolidate_observations(observations))
        assert sorted(r.category for r in rates) == ["Assembly", "Cutting"]

    def test_zero_quantity_dropped(self):
        assert aggregate([_record(quantity=0)]) == []

    def test_zero_duration_dropped(self):
        assert aggregate([_record(duration=0)]) == []

    def test_minimum_duration(self):
        records = [_record(mo_id="MO1", duration=60), _record(mo_id="MO2", duration=600)]
        rates = aggregate(records, min_duration_seconds=120)
        assert [r.mo_id for r in rates] == ["MO2"]

    def test_empty(self):
        assert aggregate([]) == []


class TestQuantityConflicts:

    def test_divergent_quantities_reported(self):
        records = [
            _record(mo_id="MO1", declared=(100.0, 120.0)),
            _record(mo_id="MO2", declared=(50.0,)),
        ]
        conflicts = find_quantity_conflicts(records)
        assert conflicts == {("Courtney Banh", "Assembly", "Lifetime Harness"): ["MO1"]}

    def test_no_conflicts(self):
        assert find_quantity_conflicts([_record(declared=(100.0,))]) == {}
