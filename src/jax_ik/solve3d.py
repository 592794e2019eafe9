"""Inverse kinematics for spatial (3D) link chains.

Rotations are unit quaternions in (x, y, z, w) order and compose as
``absolute = parent_absolute * relative``. A link's offset is rotated by the
link's absolute rotation and added to its parent joint's position; the
forward axis of an unrotated link is +x.

Per-axis limits are expressed as pitch (about x), yaw (about y) and roll
(about z) and enforced with :func:`jax_ik.transforms.quaternion.clamp`.
"""

from logging import getLogger
from typing import List, Sequence, Union

import jax
import jax.numpy as jnp

from .core.constraints import AxisConstraints, ExactRotation
from .core.links import ChainTransforms, JointTransform3D, Link3D, SolveResult
from .options import CCD, SolveCCDOptions, SolveFABRIKOptions, learning_rate_at, resolve_options
from .transforms import quaternion, v3

Array = jax.Array

Link = Link3D
JointTransform = JointTransform3D

logger = getLogger(__name__)


def solve(
    links: Sequence[Link3D],
    base: Union[JointTransform3D, Array],
    target: Array,
    options: Union[None, SolveFABRIKOptions, SolveCCDOptions, dict] = None,
) -> SolveResult:
    """Take one step moving the end effector towards *target*.

    Args:
        links: Ordered chain, base to tip. May be empty.
        base: Absolute transform of the first joint, or just its position
            (the rotation is then the identity).
        target: (3,) position to reach.
        options: FABRIK options (the default method), CCD options, or a mapping
            with a ``method`` key. Unset fields take the selected method's defaults.

    Returns:
        SolveResult holding the new links. ``is_within_accepted_error`` is True
        only when the call returned early without stepping.
    """
    options = resolve_options(options)
    base = _as_joint_transform(base)
    target = v3.from_array(target)
    links = list(links)

    if options.method == CCD:
        return _solve_ccd(links, base, target, options)
    return _solve_fabrik(links, base, target, options)


def _solve_fabrik(
    links: List[Link3D],
    base: JointTransform3D,
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
    # One small Euler rotation per axis: rows are x, y and z perturbations
    perturbations = quaternion.from_euler_angles(jnp.eye(3) * delta_angle)

    stepped = []
    for index, link in enumerate(links):
        rotation = jnp.asarray(link.rotation, dtype=jnp.float64)
        joint = chain.transforms[index]

        angle_steps = []
        for perturbation in perturbations:
            probe = link.replace(rotation=quaternion.multiply(rotation, perturbation))

            # Remaining chain from this link's joint, which stays at its pre-step pose
            projected_links = [probe, *links[index + 1:]]
            projected_error = get_error_distance(projected_links, joint, target)
            gradient = (projected_error - error) / delta_angle

            angle_steps.append(-gradient * learning_rate_at(options.learning_rate, projected_error))

        angle_step = quaternion.from_euler_angles(jnp.asarray(angle_steps))
        stepped.append(link.replace(rotation=quaternion.multiply(rotation, angle_step)))

    adjusted = get_joint_transforms(stepped, base).transforms
    constrained = apply_constraints(stepped, adjusted)

    return SolveResult(
        links=constrained,
        get_error_distance=lambda: get_error_distance(constrained, base, target),
        is_within_accepted_error=None,
    )


def _solve_ccd(
    links: List[Link3D],
    base: JointTransform3D,
    target: Array,
    options: SolveCCDOptions,
) -> SolveResult:
    initial_error = get_error_distance(links, base, target)
    if initial_error < options.accepted_error:
        return _within_accepted_error(links, initial_error)

    adjusted = [link.replace() for link in links]

    for index in reversed(range(len(adjusted))):
        chain = get_joint_transforms(adjusted, base)
        effector_position = chain.effector_position
        error = _distance(target, effector_position)
        if error < options.accepted_error:
            logger.debug("CCD sweep stopped at link %d, error %.6g", index, error)
            break

        link = adjusted[index]
        pivot = chain.transforms[index].position
        # Directions in the link's own absolute frame
        to_local = quaternion.inverse(chain.transforms[index + 1].rotation)

        local_effector = v3.rotate(v3.subtract(effector_position, pivot), to_local)
        local_target = v3.rotate(v3.subtract(target, pivot), to_local)

        full_rotation = quaternion.rotation_from_to(local_effector, local_target)
        rate = learning_rate_at(options.learning_rate, error)
        partial_rotation = quaternion.slerp(quaternion.identity(), full_rotation, rate)

        rotation = quaternion.multiply(link.rotation, partial_rotation)
        adjusted[index] = link.replace(rotation=quaternion.normalize(rotation))

    transforms = get_joint_transforms(adjusted, base).transforms
    constrained = apply_constraints(adjusted, transforms)

    return SolveResult(
        links=constrained,
        get_error_distance=lambda: get_error_distance(constrained, base, target),
        is_within_accepted_error=None,
    )


def apply_constraint(link: Link3D, joint: JointTransform3D) -> Link3D:
    """
    Constrain one link given its own absolute joint transform after stepping.

    Args:
        link: Link whose rotation has already been stepped.
        joint: Absolute transform at the tip of *link* (its absolute rotation).

    Returns:
        A new link with the constrained rotation.

    Raises:
        ValueError: if an axis range has min > max
    """
    constraints = link.constraints
    rotation = jnp.asarray(link.rotation, dtype=jnp.float64)

    if constraints is None:
        return link.replace(rotation=rotation)

    if isinstance(constraints, ExactRotation):
        value = jnp.asarray(constraints.value, dtype=jnp.float64)
        if constraints.type == "global":
            # rotation * inverse(current absolute) * target absolute; order matters
            delta_rotation = quaternion.multiply(quaternion.inverse(joint.rotation), value)
            return link.replace(rotation=quaternion.multiply(rotation, delta_rotation))
        return link.replace(rotation=value)

    if not isinstance(constraints, AxisConstraints):
        constraints = AxisConstraints.uniform(constraints)

    lower, upper = constraints.bounds()
    return link.replace(rotation=quaternion.clamp(rotation, lower, upper))


def apply_constraints(links: Sequence[Link3D], transforms: Sequence[JointTransform3D]) -> List[Link3D]:
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
    parent_rotation = jnp.asarray(transforms[0].rotation, dtype=jnp.float64)
    for link, joint in zip(links, transforms[1:]):
        joint = joint.replace(rotation=quaternion.multiply(parent_rotation, link.rotation))
        constrained_link = apply_constraint(link, joint)
        parent_rotation = quaternion.multiply(parent_rotation, constrained_link.rotation)
        constrained.append(constrained_link)
    return constrained


def get_error_distance(links: Sequence[Link3D], base: JointTransform3D, target: Array) -> float:
    """Distance from the end effector to *target*."""
    return _distance(target, get_end_effector_position(links, base))


def get_end_effector_position(links: Sequence[Link3D], base: JointTransform3D) -> Array:
    """Absolute position of the tip of the last link."""
    return get_joint_transforms(links, base).effector_position


def get_joint_transforms(links: Sequence[Link3D], base: JointTransform3D) -> ChainTransforms:
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
        rotations = jnp.stack([jnp.asarray(link.rotation, dtype=jnp.float64) for link in links])
        offsets = jnp.stack([link.offset for link in links])
    else:
        rotations = jnp.zeros((0, 4))
        offsets = jnp.zeros((0, 3))

    positions, absolute_rotations = _forward_kinematics(base_position, base_rotation, rotations, offsets)

    transforms = [base]
    for index in range(len(links)):
        transforms.append(JointTransform3D(position=positions[index], rotation=absolute_rotations[index]))

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

        absolute_rotation = quaternion.multiply(parent_rotation, link_rotation)
        absolute_position = parent_position + v3.rotate(offset, absolute_rotation)
        return (absolute_position, absolute_rotation), (absolute_position, absolute_rotation)

    _, (positions, absolute_rotations) = jax.lax.scan(
        scan_body, (base_position, base_rotation), (rotations, offsets)
    )
    return positions, absolute_rotations


def _as_joint_transform(base: Union[JointTransform3D, Array]) -> JointTransform3D:
    if isinstance(base, JointTransform3D):
        return base
    return JointTransform3D(position=v3.from_array(base))


def _check_transform_count(transforms: Sequence, links: Sequence) -> None:
    if len(transforms) != len(links) + 1:
        raise RuntimeError(
            f"Joint transforms should have the same length as links + 1. "
            f"Got {len(transforms)}, expected {len(links) + 1}"
        )


def _within_accepted_error(links: Sequence[Link3D], error: float) -> SolveResult:
    logger.debug("Effector within accepted error (%.6g), no step taken", error)
    return SolveResult(
        links=[link.replace() for link in links],
        get_error_distance=lambda: error,
        is_within_accepted_error=True,
    )


def _distance(target: Array, position: Array) -> float:
    return float(v3.euclidean_distance(target, position))
