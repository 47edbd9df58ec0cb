"""
Shared fixtures for the rate pipeline tests.
"""

from datetime import datetime, timedelta

import pytest
import pytz

from core.observations.models import ManufacturingOrderRate, RawObservation

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=pytz.utc)


@pytest.fixture
def now():
    """Fixed reference time for window calculations."""
    return NOW


@pytest.fixture
def make_observation():
    """Factory for raw observations with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "operator_name": "Courtney Banh",
            "work_center": "Sewing Line 1",
            "routing": "Lifetime Harness",
            "duration_seconds": 3600.0,
            "mo_id": "MO100",
            "timestamp": NOW - timedelta(days=1),
            "operator_id": 7,
            "quantity": None,
            "mo_quantity": 100.0,
            "work_order_id": None,
            "observation_id": f"wc-{counter['n']}",
        }
        values.update(overrides)
        return RawObservation(**values)

    return _make


@pytest.fixture
def make_rate():
    """Factory for manufacturing order rates with a chosen UPH (1 hour of labor)."""
    counter = {"n": 0}

    def _make(rate, operator="Courtney Banh", category="Assembly", routing="Lifetime Harness", **overrides):
        counter["n"] += 1
        values = {
            "mo_id": f"MO{counter['n']}",
            "operator_name": operator,
            "category": category,
            "routing": routing,
            "duration_hours": 1.0,
            "quantity": float(rate),
        }
        values.update(overrides)
        return ManufacturingOrderRate(**values)

    return _make
