"""
Run records: Time series of every quantity produced by one integration run
"""

from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
from attrs import define, field


@define
class RunRecord:
    """
    Values of every quantity (state, parameters, drivers and module outputs) at every recorded time.

    ``values`` has one row per recorded time and one column per name in ``names``. A record attached
    to a ComputationError has ``complete=False`` and stops at the last successful output time.
    """

    names: Tuple[str, ...] = field(converter=tuple)
    times: np.ndarray
    values: np.ndarray
    solver_name: Optional[str] = field(default=None)            ## solver that produced the record
    requested_solver_name: Optional[str] = field(default=None)  ## solver requested by the caller
    fallback_used: bool = field(default=False)
    evaluation_count: int = field(default=0)
    complete: bool = field(default=True)
    _column: Dict[str, int] = field(init=False, repr=False)

    def __attrs_post_init__(self):
        self._column = {name: i for i, name in enumerate(self.names)}

    def __len__(self) -> int:
        return len(self.times)

    def __getitem__(self, name: str) -> np.ndarray:
        try:
            return self.values[:, self._column[name]]
        except KeyError:
            raise KeyError(f"'{name}' is not a recorded quantity") from None

    def __contains__(self, name: object) -> bool:
        return name in self._column

    def as_dict(self) -> Dict[str, np.ndarray]:
        """Column view of the record, e.g. for building a table."""
        return {name: self.values[:, i].copy() for name, i in self._column.items()}

    def snapshots(self) -> List[Mapping[str, float]]:
        return [MappingProxyType(dict(zip(self.names, row.tolist()))) for row in self.values]

    def at(self, time: float) -> Mapping[str, float]:
        """Returns the snapshot recorded at the given time."""
        matches = np.flatnonzero(np.isclose(self.times, time, rtol=0.0, atol=1e-9 * max(1.0, abs(time))))
        if matches.size == 0:
            raise KeyError(f"No values were recorded at t={time:g}")
        return MappingProxyType(dict(zip(self.names, self.values[matches[0]].tolist())))


@define
class RunRecorder:
    """Accumulates snapshots while a solver runs."""

    names: Tuple[str, ...] = field(converter=tuple)
    _times: List[float] = field(init=False, factory=list)
    _rows: List[np.ndarray] = field(init=False, factory=list)

    def append(self, t: float, values: np.ndarray) -> None:
        if self._times and t < self._times[-1]:
            raise ValueError(f"Recorded times must not decrease: {t:g} after {self._times[-1]:g}")
        self._times.append(float(t))
        self._rows.append(np.array(values, dtype=float))

    @property
    def last_time(self) -> Optional[float]:
        return self._times[-1] if self._times else None

    def __len__(self) -> int:
        return len(self._times)

    def build(self, **metadata) -> RunRecord:
        values = np.vstack(self._rows) if self._rows else np.zeros((0, len(self.names)))
        return RunRecord(names=self.names, times=np.array(self._times, dtype=float), values=values, **metadata)
