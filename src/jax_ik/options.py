"""Solve options for the FABRIK (gradient descent) and CCD methods.

The two option records are mutually exclusive: ``solve`` dispatches once on
``method`` and fills unset fields from the defaults of the selected method
only. Plain mappings such as ``{"method": "CCD", "learning_rate": 0.5}`` are
accepted and validated against the selected method.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Callable, Mapping, Optional, Union

FABRIK = "FABRIK"
CCD = "CCD"
METHODS = (FABRIK, CCD)

LearningRate = Union[float, Callable[[float], float]]


@dataclass(frozen=True)
class SolveFABRIKOptions:
    """Options for the finite-difference gradient descent method.

    Attributes:
        learning_rate: Step scale, either a constant or a function of the
            projected error distance. Large values oscillate about the target,
            small values converge slowly.
        delta_angle: Perturbation (radians) used to estimate the error gradient.
        accepted_error: Error distance below which a call returns without stepping.
    """
    learning_rate: Optional[LearningRate] = None
    delta_angle: Optional[float] = None
    accepted_error: Optional[float] = None
    method: str = field(default=FABRIK, init=False)


@dataclass(frozen=True)
class SolveCCDOptions:
    """Options for the cyclic coordinate descent method.

    Attributes:
        learning_rate: Fraction of the full corrective rotation applied per
            link, either a constant or a function of the current error distance.
        accepted_error: Error distance below which the sweep stops.
    """
    learning_rate: Optional[LearningRate] = None
    accepted_error: Optional[float] = None
    method: str = field(default=CCD, init=False)


SolveOptions = Union[SolveFABRIKOptions, SolveCCDOptions]

DEFAULT_FABRIK_OPTIONS = SolveFABRIKOptions(learning_rate=1e-3, delta_angle=1e-4, accepted_error=0.0)
DEFAULT_CCD_OPTIONS = SolveCCDOptions(learning_rate=1.0, accepted_error=0.0)


def resolve_options(options: Union[None, SolveOptions, Mapping] = None) -> SolveOptions:
    """
    Return fully populated options for the selected method.

    Args:
        options: None (FABRIK with defaults), an options record, or a mapping
            with an optional ``method`` key and that method's option names.

    Returns:
        A SolveFABRIKOptions or SolveCCDOptions with every field set

    Raises:
        ValueError: for an unknown method, or a mapping key that does not
            belong to the selected method
    """
    if options is None:
        options = SolveFABRIKOptions()
    elif isinstance(options, Mapping):
        options = _from_mapping(options)
    elif not isinstance(options, (SolveFABRIKOptions, SolveCCDOptions)):
        raise ValueError(f"Unsupported solve options: {options!r}")

    defaults = DEFAULT_FABRIK_OPTIONS if options.method == FABRIK else DEFAULT_CCD_OPTIONS
    unset = {
        f.name: getattr(defaults, f.name)
        for f in fields(options)
        if f.init and getattr(options, f.name) is None
    }
    return replace(options, **unset)


def learning_rate_at(learning_rate: LearningRate, error_distance: float) -> float:
    """Evaluate a constant or error-dependent learning rate."""
    if callable(learning_rate):
        return float(learning_rate(float(error_distance)))
    return float(learning_rate)


def _from_mapping(options: Mapping) -> SolveOptions:
    method = options.get("method") or FABRIK
    if method not in METHODS:
        raise ValueError(f"Unknown solve method '{method}', expected one of {METHODS}")

    option_class = SolveFABRIKOptions if method == FABRIK else SolveCCDOptions
    allowed = {f.name for f in fields(option_class)}
    foreign = set(options) - allowed
    if foreign:
        raise ValueError(f"Options {sorted(foreign)} are not valid for method '{method}'")

    return option_class(**{key: value for key, value in options.items() if key != "method"})
