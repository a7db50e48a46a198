"""
Drivers: Time-varying external inputs (e.g. hourly weather) interpolated at the times requested by a solver
"""

from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
from attrs import define, field
from scipy.interpolate import interp1d

from cropsim.errors import ComputationError, ConfigurationError

INTERPOLATION_KINDS = ("linear", "pconst")


def interp_nearest_lower_neighbour(x, y, xt):
    """
    One-dimensional piecewise constant interpolation, with given discrete data points (x, y),
    evaluated at xt.

    Given an array of x and y coordinates and a point xt anywhere within the x domain, it will
    index to the nearest x coordinate below (or equal to) xt and return the corresponding y value.

    Parameters
    ----------
    x: array_like
        The x-coordinates of the data points, sorted in increasing order
    y: array_like
        The y-coordinates of the data points, length must match x
    xt: float
        The x-coordinate at which to evaluate the interpolated value

    Returns
    -------
    yt: float
        The interpolated value at the new x-coordinate, xt.
    """
    i_xt = np.searchsorted(x, xt, side="right") - 1
    i_xt = min(max(i_xt, 0), len(x) - 1)
    return y[i_xt]


@define
class Drivers:
    """
    Table of externally driven quantities.

    ``times`` must be strictly increasing. Each entry in ``values`` is a sequence with one value per
    driver time. Values between driver times are interpolated linearly ("linear") or held at the
    value of the preceding driver time ("pconst").
    """

    times: np.ndarray = field(converter=lambda x: np.asarray(x, dtype=float))
    values: Dict[str, np.ndarray] = field(
        converter=lambda d: {k: np.asarray(v, dtype=float) for k, v in d.items()}
    )
    kind: str = field(default="linear")
    _interpolators: Dict[str, object] = field(init=False, repr=False, factory=dict)

    @kind.validator
    def _check_kind(self, attribute, value):
        if value not in INTERPOLATION_KINDS:
            raise ConfigurationError(
                "Interpolation method %s not accepted. Please choose one of %s" % (value, ", ".join(INTERPOLATION_KINDS))
            )

    def __attrs_post_init__(self):
        if self.times.ndim != 1 or self.times.size < 1:
            raise ConfigurationError("Driver times must be a one-dimensional sequence with at least one entry")
        if np.any(np.diff(self.times) <= 0):
            raise ConfigurationError("Driver times must be strictly increasing")
        for name, series in self.values.items():
            if series.shape != self.times.shape:
                raise ConfigurationError(
                    f"Driver '{name}' has {series.size} values but there are {self.times.size} driver times"
                )
            if not np.all(np.isfinite(series)):
                raise ConfigurationError(f"Driver '{name}' contains non-finite values")
        if self.kind == "linear" and self.times.size > 1:
            self._interpolators = {
                name: interp1d(self.times, series, kind="linear", assume_sorted=True)
                for name, series in self.values.items()
            }

    @classmethod
    def empty(cls) -> "Drivers":
        return cls(times=[0.0], values={})

    @classmethod
    def from_mapping(cls, drivers: Optional[Mapping[str, Sequence[float]]], time_key: str = "time", kind: str = "linear") -> "Drivers":
        """
        Builds drivers from a column mapping that contains a ``time_key`` column, e.g. a weather table.
        """
        if drivers is None:
            return cls.empty()
        if isinstance(drivers, Drivers):
            return drivers
        columns = dict(drivers)
        if time_key not in columns:
            raise ConfigurationError(f"Driver table must contain a '{time_key}' column")
        times = columns.pop(time_key)
        return cls(times=times, values=columns, kind=kind)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self.values.keys())

    @property
    def time_bounds(self) -> Tuple[float, float]:
        return float(self.times[0]), float(self.times[-1])

    @property
    def is_smooth(self) -> bool:
        """Piecewise constant drivers have discontinuities that adaptive step control cannot resolve."""
        return self.kind == "linear" or not self.values

    def at(self, t: float) -> Dict[str, float]:
        """Returns the value of every driver at time t."""
        if not self.values:
            return {}
        t0, t1 = self.time_bounds
        slack = 1e-9 * max(1.0, abs(t1 - t0))
        if t < t0 - slack or t > t1 + slack:
            raise ComputationError(
                f"Requested time {t:g} is outside the driver time range [{t0:g}, {t1:g}]", time=t
            )
        t = min(max(t, t0), t1)
        if self.times.size == 1:
            return {name: float(series[0]) for name, series in self.values.items()}
        if self.kind == "linear":
            return {name: float(f(t)) for name, f in self._interpolators.items()}
        return {
            name: float(interp_nearest_lower_neighbour(self.times, series, t))
            for name, series in self.values.items()
        }
