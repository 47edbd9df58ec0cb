"""
Tests for corrupt import pattern detection.
"""

from core.observations.suspect import flag_suspect_observations


def test_repeated_short_durations_flagged(make_observation):
    corrupt = [make_observation(duration_seconds=10) for _ in range(3)]
    normal = make_observation(duration_seconds=3600)

    result = flag_suspect_observations(corrupt + [normal])

    assert [obs.suspect for obs in result] == [True, True, True, False]
    assert all(not obs.suspect for obs in corrupt)


def test_two_repeats_not_flagged(make_observation):
    observations = [make_observation(duration_seconds=10) for _ in range(2)]
    assert not any(obs.suspect for obs in flag_suspect_observations(observations))


def test_long_durations_not_flagged(make_observation):
    observations = [make_observation(duration_seconds=61) for _ in range(5)]
    assert not any(obs.suspect for obs in flag_suspect_observations(observations))


def test_pattern_is_per_mo_and_operator(make_observation):
    observations = [
        make_observation(duration_seconds=5, mo_id="MO1"),
        make_observation(duration_seconds=5, mo_id="MO2"),
        make_observation(duration_seconds=5, mo_id="MO1", operator_name="Lars Holm"),
    ]
    assert not any(obs.suspect for obs in flag_suspect_observations(observations))


def test_custom_thresholds(make_observation):
    observations = [make_observation(duration_seconds=90) for _ in range(2)]
    result = flag_suspect_observations(observations, max_duration_seconds=120, min_repeats=2)
    assert all(obs.suspect for obs in result)
