"""
Solver settings: Run configuration shared by every system solver
"""

from typing import Any, Mapping

from attrs import asdict, define, field, fields

from cropsim.errors import ConfigurationError


def _positive(instance, attribute, value):
    if not value > 0:
        raise ConfigurationError(f"{attribute.name} must be positive, got {value!r}")


def _positive_int(instance, attribute, value):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{attribute.name} must be a positive integer, got {value!r}")


@define(frozen=True)
class SolverSettings:
    """
    Settings used to construct a system solver.
    """

    step_size: float = field(default=1.0, converter=float, validator=_positive)  ## output (and fixed-step) time step, in units of the system's time
    rel_error_tolerance: float = field(default=1e-4, converter=float, validator=_positive)  ## relative error tolerance (adaptive solvers only)
    abs_error_tolerance: float = field(default=1e-4, converter=float, validator=_positive)  ## absolute error tolerance (adaptive solvers only)
    max_steps: int = field(default=200, validator=_positive_int)  ## maximum number of internal steps (accepted or rejected) between two output times (adaptive solvers only)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SolverSettings":
        """Builds settings from a mapping such as a parsed configuration file section."""
        known = {a.name for a in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError(f"Unknown solver settings: {', '.join(unknown)}")
        return cls(**dict(mapping))

    def as_dict(self):
        return asdict(self)
