"""Tests for spatial forward kinematics, constraints and solving."""

import numpy as np
import pytest

from jax_ik import solve3d
from jax_ik.core import AxisConstraints, ExactRotation, JointTransform3D, Link3D, Range
from jax_ik.options import SolveCCDOptions, SolveFABRIKOptions
from jax_ik.transforms import quaternion

ORIGIN = JointTransform3D(position=np.zeros(3))
IDENTITY = np.array([0.0, 0.0, 0.0, 1.0])
QUARTER_TURN_Z = np.array([0.0, 0.0, np.sqrt(0.5), np.sqrt(0.5)])


def straight_chain(count, length=50.0):
    return [Link3D(rotation=IDENTITY, position=[length, 0.0, 0.0]) for _ in range(count)]


def solve_repeatedly(links, base, target, options, times):
    """Yield (error before, error after) for *times* fed-back solve calls."""
    for _ in range(times):
        error_before = solve3d.get_error_distance(links, base, target)
        result = solve3d.solve(links, base, target, options)
        links = result.links
        yield error_before, result.get_error_distance()


def assert_same_rotation(actual, expected, atol=1e-9):
    """Quaternions q and -q describe the same rotation."""
    np.testing.assert_allclose(
        quaternion.to_matrix(actual), quaternion.to_matrix(np.asarray(expected)), atol=atol
    )


# Forward kinematics
def test_fk_empty_chain_returns_base():
    """An empty chain has the base as its effector."""
    chain = solve3d.get_joint_transforms([], ORIGIN)

    assert len(chain.transforms) == 1
    assert chain.transforms[0] is ORIGIN
    np.testing.assert_array_equal(chain.effector_position, [0.0, 0.0, 0.0])
    np.testing.assert_array_equal(chain.effector_rotation, IDENTITY)


def test_fk_single_link():
    """One straight link of offset (50, 0, 0) ends at (50, 0, 0)."""
    effector = solve3d.get_end_effector_position(straight_chain(1), ORIGIN)
    np.testing.assert_allclose(effector, [50.0, 0.0, 0.0], atol=1e-12)


def test_fk_length_shorthand_matches_position():
    """A link given by length behaves like one with an x-axis offset."""
    rotation = quaternion.from_euler_angles(np.array([0.1, 0.2, 0.3]))
    by_length = solve3d.get_end_effector_position([Link3D(rotation=rotation, length=50.0)], ORIGIN)
    by_position = solve3d.get_end_effector_position(
        [Link3D(rotation=rotation, position=[50.0, 0.0, 0.0])], ORIGIN
    )
    np.testing.assert_allclose(by_length, by_position, atol=1e-12)


def test_fk_respects_base_rotation():
    """The base rotation turns the whole chain."""
    base = JointTransform3D(position=np.zeros(3), rotation=QUARTER_TURN_Z)
    effector = solve3d.get_end_effector_position(straight_chain(1), base)
    np.testing.assert_allclose(effector, [0.0, 50.0, 0.0], atol=1e-9)


def test_fk_long_chain_is_additive():
    """N collinear links of length L reach N * L along the shared axis."""
    effector = solve3d.get_end_effector_position(straight_chain(4), ORIGIN)
    np.testing.assert_allclose(effector, [200.0, 0.0, 0.0], atol=1e-9)


def test_fk_chain_with_bends():
    """Relative rotations accumulate down the chain."""
    links = [
        Link3D(rotation=IDENTITY, length=50.0),
        Link3D(rotation=QUARTER_TURN_Z, length=50.0),
        Link3D(rotation=quaternion.conjugate(QUARTER_TURN_Z), length=50.0),
    ]
    base = JointTransform3D(position=[0.0, 0.0, 10.0])
    transforms = solve3d.get_joint_transforms(links, base).transforms

    assert len(transforms) == 4
    expected_positions = [[0, 0, 10], [50, 0, 10], [50, 50, 10], [100, 50, 10]]
    expected_rotations = [IDENTITY, IDENTITY, QUARTER_TURN_Z, IDENTITY]
    for transform, position, rotation in zip(transforms, expected_positions, expected_rotations):
        np.testing.assert_allclose(transform.position, position, atol=1e-9)
        assert_same_rotation(transform.rotation, rotation)


def test_link_without_offset_is_rejected():
    """A link needs a position or a length to have an offset."""
    with pytest.raises(ValueError, match="position or a length"):
        solve3d.get_joint_transforms([Link3D()], ORIGIN)


# Solving
def test_solve_empty_chain():
    """An empty chain solves to an empty chain with the base-to-target error."""
    result = solve3d.solve([], ORIGIN, [0.0, 3.0, 4.0])

    assert result.links == []
    np.testing.assert_allclose(result.get_error_distance(), 5.0)


def test_base_may_be_a_bare_position():
    """A bare base position behaves like a base transform with no rotation."""
    links = straight_chain(2)
    target = [0.0, 50.0, 0.0]

    from_position = solve3d.solve(links, [0.0, 0.0, 0.0], target)
    from_transform = solve3d.solve(links, ORIGIN, target)

    np.testing.assert_allclose(from_position.get_error_distance(), from_transform.get_error_distance())


def test_solve_does_not_mutate_input():
    """Solving returns new links and leaves the caller's chain alone."""
    links = straight_chain(2)
    result = solve3d.solve(links, ORIGIN, [0.0, 50.0, 0.0])

    assert result.links is not links
    assert all(new is not old for new, old in zip(result.links, links))
    for link in links:
        np.testing.assert_array_equal(link.rotation, IDENTITY)


def test_returned_links_do_not_share_caller_arrays():
    """Changing the caller's position list or rotation array after solving leaves the result alone."""
    position = [50.0, 0.0, 0.0]
    rotation = np.array([0.0, 0.0, 0.0, 1.0])
    links = [Link3D(rotation=rotation, position=position)]
    result = solve3d.solve(links, ORIGIN, [0.0, 50.0, 0.0], SolveCCDOptions(learning_rate=0.5))
    solved_rotation = np.array(result.links[0].rotation)
    effector = np.asarray(solve3d.get_end_effector_position(result.links, ORIGIN))

    position[0] = 999.0
    rotation[:] = [1.0, 0.0, 0.0, 0.0]

    np.testing.assert_array_equal(result.links[0].position, [50.0, 0.0, 0.0])
    np.testing.assert_array_equal(result.links[0].rotation, solved_rotation)
    np.testing.assert_array_equal(solve3d.get_end_effector_position(result.links, ORIGIN), effector)


@pytest.mark.parametrize("count", [1, 4])
def test_fabrik_reduces_error_each_call(count):
    """Feeding results back in strictly lowers the error."""
    options = SolveFABRIKOptions(accepted_error=0.0)
    for error_before, error_after in solve_repeatedly(straight_chain(count), ORIGIN, [0.0, 50.0, 0.0], options, 3):
        assert error_before > error_after


def test_result_not_fed_back_does_not_improve():
    """Only the returned links move; the input chain keeps its error."""
    links = straight_chain(4)
    target = [0.0, 50.0, 0.0]
    for _ in range(3):
        error_before = solve3d.get_error_distance(links, ORIGIN, target)
        solve3d.solve(links, ORIGIN, target)
        assert solve3d.get_error_distance(links, ORIGIN, target) == error_before


def test_within_accepted_error_returns_early():
    """CCD skips the sweep when the error is already accepted."""
    result = solve3d.solve(straight_chain(1), ORIGIN, [50.0, 1.0, 0.0], SolveCCDOptions(accepted_error=2.0))

    assert result.is_within_accepted_error is True
    np.testing.assert_array_equal(result.links[0].rotation, IDENTITY)


@pytest.mark.parametrize(
    "constraint",
    [0.0, Range(min=0.0, max=0.0), AxisConstraints.uniform(0.0)],
    ids=["unary", "binary", "per-axis"],
)
def test_zero_range_blocks_movement(constraint):
    """A link limited to a zero range cannot reduce the error."""
    links = [Link3D(rotation=IDENTITY, length=50.0, constraints=constraint)]
    for error_before, error_after in solve_repeatedly(links, ORIGIN, [0.0, 50.0, 0.0], None, 3):
        assert error_after >= error_before


def test_roll_range_converges_to_limit():
    """A link asked to turn 90 degrees about z stops at its pi / 4 roll limit."""
    constraints = AxisConstraints(pitch=0.0, yaw=0.0, roll=Range(min=-np.pi / 4, max=np.pi / 4))
    links = [Link3D(rotation=IDENTITY, length=1.0, constraints=constraints)]
    target = [0.0, 1.0, 0.0]
    options = SolveFABRIKOptions(learning_rate=10e-3)

    error = solve3d.get_error_distance(links, ORIGIN, target)
    for _ in range(1000):
        result = solve3d.solve(links, ORIGIN, target, options)
        if result.get_error_distance() >= error:
            break
        links = result.links
        error = result.get_error_distance()

    np.testing.assert_allclose(links[0].rotation, [0.0, 0.0, 0.3826834, 0.9238795], atol=1e-4)


def test_inverted_axis_range_raises():
    """An axis range with min above max is rejected, naming the axis."""
    constraints = AxisConstraints(pitch=Range(min=0.5, max=-0.5))
    links = [Link3D(rotation=IDENTITY, length=50.0, constraints=constraints)]
    with pytest.raises(ValueError, match="component 0"):
        solve3d.solve(links, ORIGIN, [0.0, 50.0, 0.0])


def test_exact_local_rotation_is_kept():
    """A local lock leaves the link's relative rotation at exactly its value."""
    value = quaternion.from_euler_angles(np.array([0.0, 0.2, 0.4]))
    lock = ExactRotation(value=value, type="local")
    links = [Link3D(rotation=IDENTITY, length=50.0), Link3D(rotation=IDENTITY, length=50.0, constraints=lock)]

    for options in (SolveFABRIKOptions(), SolveCCDOptions()):
        result = solve3d.solve(links, ORIGIN, [-20.0, 70.0, 10.0], options)
        np.testing.assert_array_equal(result.links[1].rotation, value)


def test_exact_global_rotation_holds_absolute_rotation():
    """The locked link's absolute rotation matches the lock."""
    value = quaternion.from_euler_angles(np.array([0.3, -0.2, 0.5]))
    lock = ExactRotation(value=value, type="global")
    base = JointTransform3D(position=[0.0, 0.0, 5.0], rotation=quaternion.from_euler_angles(np.array([0.0, 0.0, 0.4])))
    links = [
        Link3D(rotation=quaternion.from_euler_angles(np.array([0.1, 0.0, 0.2])), length=50.0),
        Link3D(rotation=IDENTITY, length=50.0),
        Link3D(rotation=IDENTITY, length=50.0, constraints=lock),
    ]

    for options in (SolveFABRIKOptions(), SolveCCDOptions()):
        result = solve3d.solve(links, base, [30.0, 90.0, 20.0], options)
        transforms = solve3d.get_joint_transforms(result.links, base).transforms
        assert_same_rotation(transforms[3].rotation, value)


def test_global_lock_after_clamped_parent():
    """A global lock still holds when an earlier link in the chain gets clamped."""
    value = quaternion.from_euler_angles(np.array([0.0, 0.0, -0.3]))
    links = [
        Link3D(rotation=IDENTITY, length=50.0, constraints=Range(min=-0.05, max=0.05)),
        Link3D(rotation=IDENTITY, length=50.0, constraints=ExactRotation(value=value, type="global")),
        Link3D(rotation=IDENTITY, length=50.0),
    ]
    result = solve3d.solve(links, ORIGIN, [0.0, 120.0, 0.0], SolveFABRIKOptions(learning_rate=0.01))
    transforms = solve3d.get_joint_transforms(result.links, ORIGIN).transforms

    assert abs(float(result.links[0].rotation[2])) <= np.sin(0.025) + 1e-9
    assert_same_rotation(transforms[2].rotation, value)


def test_ccd_points_single_link_at_target():
    """A full CCD step points a single link straight at the target."""
    result = solve3d.solve(straight_chain(1), ORIGIN, [0.0, 50.0, 0.0], SolveCCDOptions())

    assert result.is_within_accepted_error is None
    assert_same_rotation(result.links[0].rotation, QUARTER_TURN_Z)
    assert result.get_error_distance() < 1e-9


def test_ccd_sweep_stops_once_within_accepted_error():
    """When the tip link alone reaches the target, the base link is left untouched."""
    result = solve3d.solve(straight_chain(2), ORIGIN, [50.0, 50.0, 0.0], SolveCCDOptions(accepted_error=1e-6))

    assert result.is_within_accepted_error is None
    np.testing.assert_array_equal(result.links[0].rotation, IDENTITY)
    assert_same_rotation(result.links[1].rotation, QUARTER_TURN_Z)
    assert result.get_error_distance() < 1e-6


def test_ccd_handles_target_behind_link():
    """A target exactly opposite the effector still gets a half turn."""
    result = solve3d.solve(straight_chain(1), ORIGIN, [-50.0, 0.0, 0.0], SolveCCDOptions())
    assert result.get_error_distance() < 1e-9


def test_ccd_works_in_rotated_link_frame():
    """A link already turned away from the identity still points at the target."""
    rotation = quaternion.from_euler_angles(np.array([0.4, 0.0, 1.0]))
    links = [Link3D(rotation=rotation, length=50.0)]
    result = solve3d.solve(links, ORIGIN, [0.0, 0.0, 50.0], SolveCCDOptions())
    assert result.get_error_distance() < 1e-6


def test_ccd_reduces_error_with_partial_steps():
    """Partial CCD steps still lower the error on every call."""
    options = SolveCCDOptions(learning_rate=0.5)
    for error_before, error_after in solve_repeatedly(straight_chain(3), ORIGIN, [20.0, 60.0, 40.0], options, 3):
        assert error_before > error_after


def test_apply_constraints_checks_transform_count():
    """A transform list of the wrong length is an internal error."""
    links = straight_chain(2)
    transforms = solve3d.get_joint_transforms(links, ORIGIN).transforms
    with pytest.raises(RuntimeError, match="links \\+ 1"):
        solve3d.apply_constraints(links, transforms[1:])


def test_target_dimension_is_checked():
    """Targets must be 3D."""
    with pytest.raises(ValueError, match="Length should be 3"):
        solve3d.solve(straight_chain(1), ORIGIN, [0.0, 1.0])
