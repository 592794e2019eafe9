"""Learning-rate schedules for the solvers.

A learning rate may be a constant or a function of the current error distance.
"""

from typing import Callable

from .transforms import scalar

LearningRateSchedule = Callable[[float], float]


def constant(rate: float) -> LearningRateSchedule:
    """Schedule that ignores the error distance."""
    rate = float(rate)

    def learning_rate(error_distance: float) -> float:
        return rate

    return learning_rate


def distance_scaled(
    reach: float,
    cutoff: float = 0.5,
    far_rate: float = 1e-2,
    minimum_rate: float = 1e-3,
    falloff: float = 0.02,
) -> LearningRateSchedule:
    """
    Schedule that slows down as the relative error distance shrinks.

    Args:
        reach: Range of movement of the chain, usually the sum of link lengths.
        cutoff: Relative error above which *far_rate* is used.
        far_rate: Rate used far from the target.
        minimum_rate: Rate floor near the target, before dividing by *reach*.
        falloff: Relative distance over which the near rate grows by *minimum_rate*.

    Returns:
        Function mapping an error distance to a learning rate

    Raises:
        ValueError: if reach is not positive
    """
    if reach <= 0:
        raise ValueError(f"reach must be positive, got {reach}")

    def learning_rate(error_distance: float) -> float:
        relative_distance = float(scalar.clamp(error_distance / reach, 0.0, 1.0))
        if relative_distance > cutoff:
            return far_rate

        remaining_distance = relative_distance / falloff
        return (minimum_rate + remaining_distance * minimum_rate) / reach

    return learning_rate
