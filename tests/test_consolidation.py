"""
Tests for work cycle consolidation.
"""

import random

from core.observations.consolidation import (
    INVALID_DURATION,
    MISSING_MO,
    MISSING_OPERATOR,
    MISSING_ROUTING,
    SUSPECT_RECORD,
    UNMAPPED_CATEGORY,
    consolidate_observations,
    validate_observation,
)
from core.observations.models import ConsolidationKey


class TestMergeRule:

    def test_durations_summed_quantity_max(self, make_observation):
        """1800s + 5400s on the same key gives one 7200s record."""
        observations = [
            make_observation(duration_seconds=1800, mo_quantity=None, quantity=40),
            make_observation(duration_seconds=5400, mo_quantity=None, quantity=100),
        ]

        result = consolidate_observations(observations)

        assert len(result) == 1
        record = result[0]
        assert record.duration_seconds == 7200
        assert record.quantity == 100
        assert record.observation_count == 2
        assert record.key == ConsolidationKey("Courtney Banh", "Assembly", "Lifetime Harness", "MO100")

    def test_declared_quantity_preferred(self, make_observation):
        observations = [make_observation(quantity=5, mo_quantity=120)]
        assert consolidate_observations(observations)[0].quantity == 120

    def test_distinct_keys_stay_separate(self, make_observation):
        observations = [
            make_observation(mo_id="MO1"),
            make_observation(mo_id="MO2"),
            make_observation(mo_id="MO1", work_center="Cutting"),
            make_observation(mo_id="MO1", operator_name="Lars Holm"),
        ]
        assert len(consolidate_observations(observations)) == 4

    def test_work_orders_carried_as_metadata(self, make_observation):
        observations = [
            make_observation(work_order_id="WO2"),
            make_observation(work_order_id="WO1"),
        ]
        result = consolidate_observations(observations)
        assert len(result) == 1
        assert result[0].work_order_ids == ("WO1", "WO2")

    def test_divergent_declared_quantities_recorded(self, make_observation):
        observations = [
            make_observation(mo_quantity=100),
            make_observation(mo_quantity=120),
        ]
        record = consolidate_observations(observations)[0]
        assert record.quantity == 120
        assert record.declared_quantities == (100.0, 120.0)

    def test_latest_timestamp(self, make_observation, now):
        early = now.replace(day=1)
        observations = [make_observation(timestamp=early), make_observation(timestamp=now)]
        assert consolidate_observations(observations)[0].latest_timestamp == now


class TestValidation:

    def test_valid_observation(self, make_observation):
        assert validate_observation(make_observation()) is None

    def test_drop_reasons(self, make_observation):
        assert validate_observation(make_observation(duration_seconds=0)) == INVALID_DURATION
        assert validate_observation(make_observation(duration_seconds=None)) == INVALID_DURATION
        assert validate_observation(make_observation(operator_name=" ")) == MISSING_OPERATOR
        assert validate_observation(make_observation(routing=None)) == MISSING_ROUTING
        assert validate_observation(make_observation(mo_id=None)) == MISSING_MO
        assert validate_observation(make_observation(work_center="Office")) == UNMAPPED_CATEGORY
        assert validate_observation(make_observation(suspect=True)) == SUSPECT_RECORD

    def test_invalid_records_do_not_abort_batch(self, make_observation):
        observations = [
            make_observation(duration_seconds=-5),
            make_observation(work_center="Unknown"),
            make_observation(mo_id="MO200"),
        ]
        result = consolidate_observations(observations)
        assert [r.key.mo_id for r in result] == ["MO200"]

    def test_empty_input(self):
        assert consolidate_observations([]) == []


class TestDeterminism:

    def test_order_independent(self, make_observation):
        observations = [
            make_observation(mo_id=f"MO{i % 4}", duration_seconds=100.0 + i * 0.1)
            for i in range(20)
        ]
        shuffled = list(observations)
        random.Random(3).shuffle(shuffled)

        assert consolidate_observations(observations) == consolidate_observations(shuffled)

    def test_idempotent(self, make_observation):
        observations = [make_observation(mo_id=f"MO{i}") for i in range(5)]
        first = consolidate_observations(observations)
        second = consolidate_observations(observations)
        assert first == second
