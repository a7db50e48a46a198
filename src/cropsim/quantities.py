"""
Quantity store: Fixed-size arena of named scalar quantities shared by the modules of one dynamical system
"""

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

import numpy as np
from attrs import define, field

from cropsim.errors import DuplicateOutput, UnknownQuantity


@define
class QuantityStore:
    """
    Named scalar quantities held in a single float array.

    Names are fixed when the store is created. Modules resolve the integer index of each quantity
    they read or write once, at construction, and afterwards access ``values`` directly so that
    repeated evaluations always see live values without re-binding.
    """

    names: Tuple[str, ...] = field(converter=tuple)
    values: np.ndarray = field(default=None)
    _index: Dict[str, int] = field(init=False, repr=False)

    def __attrs_post_init__(self):
        self._index = {}
        for i, name in enumerate(self.names):
            if name in self._index:
                raise DuplicateOutput(name, ["quantity store", "quantity store"])
            self._index[name] = i
        if self.values is None:
            self.values = np.zeros(len(self.names))
        else:
            self.values = np.array(self.values, dtype=float)
        if self.values.shape != (len(self.names),):
            raise ValueError(f"Quantity store has {len(self.names)} names but {self.values.size} values")

    @classmethod
    def from_mappings(cls, **sources: Mapping[str, float]) -> "QuantityStore":
        """
        Build a store from several named mappings, e.g. ``initial_state=...``, ``parameters=...``.

        A name defined in more than one mapping would have two owners, so it is rejected.
        """
        owner: Dict[str, str] = {}
        values: Dict[str, float] = {}
        for source_name, mapping in sources.items():
            for name, value in mapping.items():
                if name in owner:
                    raise DuplicateOutput(name, [owner[name], source_name])
                owner[name] = source_name
                values[name] = float(value)
        return cls(names=list(values.keys()), values=list(values.values()))

    def index(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise UnknownQuantity(name) from None

    def get(self, name: str) -> float:
        return float(self.values[self.index(name)])

    def set(self, name: str, value: float) -> None:
        self.values[self.index(name)] = value

    def snapshot(self) -> Mapping[str, float]:
        """Returns an immutable copy of every quantity."""
        return MappingProxyType(dict(zip(self.names, self.values.tolist())))

    def __getitem__(self, name: str) -> float:
        return self.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)
