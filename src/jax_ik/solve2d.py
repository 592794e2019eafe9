"""Inverse kinematics for planar (2D) link chains.

Rotations are scalar angles in radians, anticlockwise positive. Each link's
offset is rotated by the link's absolute rotation (parent absolute rotation
plus its own relative rotation) and added to the parent joint's position.

Every function here is pure: links are immutable records and a solve returns
a new list of links, leaving the caller's chain untouched. A single call takes
at most one step; callers converge by feeding ``result.links`` back in.
"""

from logging import getLogger
from typing import List, Sequence, Union

import jax
import jax.numpy as jnp

from .core.constraints import ExactRotation, Range, check_bounds
from .core.links import ChainTransforms, JointTransform2D, Link2D, SolveResult
from .options import CCD, SolveCCDOptions, SolveFABRIKOptions, learning_rate_at, resolve_options
from .transforms import scalar, v2

Array = jax.Array

# Re-exported under dimension-neutral names for callers using solve2d.Link etc.
Link = Link2D
JointTransform = JointTransform2D

logger = getLogger(__name__)


def solve(
    links: Sequence[Link2D],
    base: JointTransform2D,
    target: Array,
    options: Union[None, SolveFABRIKOptions, SolveCCDOptions, dict] = None,
) -> SolveResult:
    """Take one step moving the end effector towards *target*.

    Args:
        links: Ordered chain, base to tip. May be empty.
        base: Absolute transform of the first joint.
        target: (2,) position to reach.
        options: FABRIK options (the default method), CCD options, or a mapping
            with a ``method`` key. Unset fields take the selected method's defaults.

    Returns:
        SolveResult holding the new links. ``is_within_accepted_error`` is True
        only when the call returned early without stepping.
    """
    options = resolve_options(options)
    target = v2.from_array(target)
    links = list(links)

    if options.method == CCD:
        return _solve_ccd(links, base, target, options)
    return _solve_fabrik(links, base, target, options)


def _solve_fabrik(
    links: List[Link2D],
    base: JointTransform2D,
    target: Array,
    options: SolveFABRIKOptions,
) -> SolveResult:
    chain = get_joint_transforms(links, base)
    error = _distance(target, chain.effector_position)
    if error < options.accepted_error:
        return _within_accepted_error(links, error)

    _check_transform_count(chain.transforms, links)
    logger.debug("FABRIK step over %d links, error %.6g", len(links), error)

    delta_angle = options.delta_angle
    stepped = []
    for index, link in enumerate(links):
        rotation = float(link.rotation)
        probe = link.replace(rotation=rotation + delta_angle)

        # Remaining chain from this link's joint, which stays at its pre-step pose
        projected_links = [probe, *links[index + 1:]]
        projected_error = get_error_distance(projected_links, chain.transforms[index], target)
        gradient = (projected_error - error) / delta_angle

        angle_step = -gradient * learning_rate_at(options.learning_rate, projected_error)
        stepped.append(link.replace(rotation=rotation + angle_step))

    adjusted = get_joint_transforms(stepped, base).transforms
    constrained = apply_constraints(stepped, adjusted)

    return SolveResult(
        links=constrained,
        get_error_distance=lambda: get_error_distance(constrained, base, target),
        is_within_accepted_error=None,
    )


def _solve_ccd(
    links: List[Link2D],
    base: JointTransform2D,
    target: Array,
    options: SolveCCDOptions,
) -> SolveResult:
    initial_error = get_error_distance(links, base, target)
    if initial_error < options.accepted_error:
        return _within_accepted_error(links, initial_error)

    adjusted = [link.replace() for link in links]

    # Tip to base, each link pointing the effector at the target
    for index in reversed(range(len(adjusted))):
        chain = get_joint_transforms(adjusted, base)
        effector_position = chain.effector_position
        error = _distance(target, effector_position)
        if error < options.accepted_error:
            logger.debug("CCD sweep stopped at link %d, error %.6g", index, error)
            break

        link = adjusted[index]
        joint = chain.transforms[index]

        direction_to_target = v2.angle(v2.subtract(target, joint.position))
        direction_to_effector = v2.angle(v2.subtract(effector_position, joint.position))
        angle_between = _wrap_angle(float(direction_to_effector - direction_to_target))

        angle_step = -angle_between * learning_rate_at(options.learning_rate, error)
        adjusted[index] = link.replace(rotation=float(link.rotation) + angle_step)

    transforms = get_joint_transforms(adjusted, base).transforms
    constrained = apply_constraints(adjusted, transforms)

    return SolveResult(
        links=constrained,
        get_error_distance=lambda: get_error_distance(constrained, base, target),
        is_within_accepted_error=None,
    )


def apply_constraint(link: Link2D, joint: JointTransform2D) -> Link2D:
    """
    Constrain one link given its own absolute joint transform after stepping.

    Args:
        link: Link whose rotation has already been stepped.
        joint: Absolute transform at the tip of *link* (its absolute rotation).

    Returns:
        A new link with the constrained rotation.

    Raises:
        ValueError: if a range constraint has min > max
    """
    constraints = link.constraints
    rotation = float(link.rotation)

    if constraints is None:
        return link.replace(rotation=rotation)

    if isinstance(constraints, ExactRotation):
        if constraints.type == "global":
            delta_rotation = float(constraints.value) - float(joint.rotation)
            return link.replace(rotation=rotation + delta_rotation)
        return link.replace(rotation=float(constraints.value))

    if isinstance(constraints, Range):
        lower, upper = float(constraints.min), float(constraints.max)
    else:
        half_constraint = float(constraints) / 2
        lower, upper = -half_constraint, half_constraint

    check_bounds(lower, upper)
    return link.replace(rotation=float(scalar.clamp(rotation, lower, upper)))


def apply_constraints(links: Sequence[Link2D], transforms: Sequence[JointTransform2D]) -> List[Link2D]:
    """
    Constrain every link of a stepped chain, base to tip, in a single pass.

    Each link sees its absolute rotation as built from the already-constrained
    links before it, so a global lock holds even when a parent was clamped.

    Args:
        links: Stepped links.
        transforms: Forward kinematics of *links*, len(links) + 1 entries.

    Returns:
        New list of constrained links.
    """
    _check_transform_count(transforms, links)

    constrained = []
    parent_rotation = float(transforms[0].rotation)
    for link, joint in zip(links, transforms[1:]):
        joint = joint.replace(rotation=parent_rotation + float(link.rotation))
        constrained_link = apply_constraint(link, joint)
        parent_rotation += constrained_link.rotation
        constrained.append(constrained_link)
    return constrained


def get_error_distance(links: Sequence[Link2D], base: JointTransform2D, target: Array) -> float:
    """Distance from the end effector to *target*."""
    return _distance(target, get_end_effector_position(links, base))


def get_end_effector_position(links: Sequence[Link2D], base: JointTransform2D) -> Array:
    """Absolute position of the tip of the last link."""
    return get_joint_transforms(links, base).effector_position


def get_joint_transforms(links: Sequence[Link2D], base: JointTransform2D) -> ChainTransforms:
    """
    Forward kinematics: the absolute transform of every joint in the chain.

    Args:
        links: Ordered chain, base to tip. May be empty.
        base: Transform of the first joint; returned unchanged as transforms[0].

    Returns:
        ChainTransforms with len(links) + 1 transforms
    """
    base_position = jnp.asarray(base.position, dtype=jnp.float64)
    base_rotation = jnp.asarray(base.rotation, dtype=jnp.float64)

    if links:
        rotations = jnp.asarray([float(link.rotation) for link in links], dtype=jnp.float64)
        offsets = jnp.stack([link.offset for link in links])
    else:
        rotations = jnp.zeros((0,))
        offsets = jnp.zeros((0, 2))

    positions, absolute_rotations = _forward_kinematics(base_position, base_rotation, rotations, offsets)

    transforms = [base]
    for index in range(len(links)):
        transforms.append(JointTransform2D(position=positions[index], rotation=absolute_rotations[index]))

    last = transforms[-1]
    return ChainTransforms(
        transforms=transforms,
        effector_position=jnp.asarray(last.position, dtype=jnp.float64),
        effector_rotation=jnp.asarray(last.rotation, dtype=jnp.float64),
    )


@jax.jit
def _forward_kinematics(base_position: Array, base_rotation: Array, rotations: Array, offsets: Array):
    """Chain relative rotations and offsets into absolute joint poses."""

    def scan_body(carry, link):
        parent_position, parent_rotation = carry
        link_rotation, offset = link

        absolute_rotation = parent_rotation + link_rotation
        absolute_position = parent_position + v2.rotate(offset, absolute_rotation)
        return (absolute_position, absolute_rotation), (absolute_position, absolute_rotation)

    _, (positions, absolute_rotations) = jax.lax.scan(
        scan_body, (base_position, base_rotation), (rotations, offsets)
    )
    return positions, absolute_rotations


def _check_transform_count(transforms: Sequence, links: Sequence) -> None:
    if len(transforms) != len(links) + 1:
        raise RuntimeError(
            f"Joint transforms should have the same length as links + 1. "
            f"Got {len(transforms)}, expected {len(links) + 1}"
        )


def _within_accepted_error(links: Sequence[Link2D], error: float) -> SolveResult:
    logger.debug("Effector within accepted error (%.6g), no step taken", error)
    return SolveResult(
        links=[link.replace() for link in links],
        get_error_distance=lambda: error,
        is_within_accepted_error=True,
    )


def _distance(target: Array, position: Array) -> float:
    return float(v2.euclidean_distance(target, position))


def _wrap_angle(angle: float) -> float:
    """Wrap into [-pi, pi) so a sweep never turns the long way round."""
    return float((angle + jnp.pi) % (2 * jnp.pi) - jnp.pi)
