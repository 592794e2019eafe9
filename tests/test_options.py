"""Tests for solve options and learning-rate schedules."""

import pytest

from jax_ik import schedules
from jax_ik.options import (
    CCD,
    FABRIK,
    SolveCCDOptions,
    SolveFABRIKOptions,
    learning_rate_at,
    resolve_options,
)


def test_defaults_to_fabrik():
    options = resolve_options(None)

    assert isinstance(options, SolveFABRIKOptions)
    assert options.method == FABRIK
    assert options.learning_rate == 1e-3
    assert options.delta_angle == 1e-4
    assert options.accepted_error == 0.0


def test_ccd_takes_its_own_defaults():
    options = resolve_options(SolveCCDOptions())

    assert options.method == CCD
    assert options.learning_rate == 1.0
    assert options.accepted_error == 0.0


def test_set_fields_are_kept():
    options = resolve_options(SolveFABRIKOptions(learning_rate=0.5))

    assert options.learning_rate == 0.5
    assert options.delta_angle == 1e-4


def test_method_is_not_settable():
    with pytest.raises(TypeError):
        SolveCCDOptions(method=FABRIK)


@pytest.mark.parametrize(
    "mapping, expected_type",
    [
        ({}, SolveFABRIKOptions),
        ({"method": "FABRIK", "delta_angle": 1e-3}, SolveFABRIKOptions),
        ({"method": "CCD", "learning_rate": 0.5}, SolveCCDOptions),
    ],
)
def test_mapping_selects_method(mapping, expected_type):
    options = resolve_options(mapping)

    assert isinstance(options, expected_type)
    for key, value in mapping.items():
        assert getattr(options, key) == value


def test_mapping_rejects_unknown_method():
    with pytest.raises(ValueError, match="Unknown solve method"):
        resolve_options({"method": "Jacobian"})


def test_mapping_rejects_options_of_other_method():
    """CCD has no finite-difference perturbation."""
    with pytest.raises(ValueError, match="delta_angle"):
        resolve_options({"method": "CCD", "delta_angle": 1e-3})


def test_unsupported_options_type():
    with pytest.raises(ValueError, match="Unsupported"):
        resolve_options(0.5)


def test_learning_rate_at():
    assert learning_rate_at(0.25, 10.0) == 0.25
    assert learning_rate_at(lambda error: error / 100, 10.0) == pytest.approx(0.1)


def test_constant_schedule():
    schedule = schedules.constant(0.3)
    assert schedule(0.0) == schedule(1e6) == 0.3


def test_distance_scaled_schedule():
    schedule = schedules.distance_scaled(reach=100.0)

    # Far from the target the far rate is used unscaled
    assert schedule(80.0) == 1e-2
    assert schedule(0.0) == pytest.approx(1e-3 / 100.0)
    assert schedule(1.0) == pytest.approx((1e-3 + 0.5 * 1e-3) / 100.0)
    assert schedule(10.0) > schedule(1.0)


def test_distance_scaled_schedule_requires_positive_reach():
    with pytest.raises(ValueError, match="reach must be positive"):
        schedules.distance_scaled(reach=0.0)
